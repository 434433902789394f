from typing import Sequence

import numpy as np

from .board import ACTIONS

SOFT_UPDATE_ALPHA = 0.1


def greedy_action(q_values: Sequence[float]) -> str:
    # argmax keeps the first maximum on ties
    return ACTIONS[int(np.argmax(q_values))]


def action_to_q_value(action: str, q_values: Sequence[float]) -> float:
    return float(q_values[ACTIONS.index(action)])


def discounted_value(q_sa: float, reward: float, max_next_q: float, gamma: float,
                     alpha: float = SOFT_UPDATE_ALPHA) -> float:
    return (1 - alpha) * q_sa + alpha * (reward + gamma * max_next_q)


def calculate_target_q_values(q_values, action: str, reward: float, max_next_q: float,
                              gamma: float, alpha: float = SOFT_UPDATE_ALPHA) -> np.ndarray:
    """Training target: the prediction itself, with only the taken action's slot
    moved towards reward + gamma * max_next_q."""
    target = np.array(q_values, dtype=np.float32, copy=True)
    i = ACTIONS.index(action)
    target[i] = discounted_value(float(target[i]), reward, max_next_q, gamma, alpha)
    return target
