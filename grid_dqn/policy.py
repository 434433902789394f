import random
from typing import Optional

from .board import ACTIONS


class EpsilonGreedyPolicy:
    """Epsilon-greedy exploration whose epsilon lives for the whole run.

    Epsilon only decays when the greedy action is taken. ``boost`` raises it
    after an unproductive training round and jumps straight to 1.0 (full
    exploration) once it would pass ``max_epsilon``.
    """

    def __init__(self, epsilon: float = 0.5, max_epsilon: float = 0.5, decay: float = 0.995,
                 rng: Optional[random.Random] = None):
        if not 0.0 <= epsilon <= 1.0:
            raise ValueError(f"epsilon must lie in [0, 1], got {epsilon}")
        self.epsilon = epsilon
        self.max_epsilon = max_epsilon
        self.decay = decay
        self.rng = rng if rng is not None else random.Random()

    def random_action(self) -> str:
        return self.rng.choice(ACTIONS)

    def select_action(self, predicted: str) -> str:
        if self.rng.random() < self.epsilon:
            return self.random_action()
        self.epsilon *= self.decay
        return predicted

    def boost(self, rate: float) -> float:
        self.epsilon *= (1 + rate)
        if self.epsilon > self.max_epsilon:
            self.epsilon = 1.0
        return self.epsilon
