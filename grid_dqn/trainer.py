import time
from dataclasses import dataclass
from typing import Callable, Optional

from .batch import TrainingBatch
from .board import Agent, Environment, Goal, render_board
from .policy import EpsilonGreedyPolicy
from .rewards import calculate_reward
from .targets import calculate_target_q_values, greedy_action
from .utils import state_to_features


@dataclass
class TrainResult:
    wins: int
    ending_epoch: int
    epsilon: float
    last_reward: float = 0.0
    last_loss: Optional[float] = None


@dataclass
class RoundReport:
    round_no: int
    wins: int
    best_wins: int
    accepted: bool
    epsilon: float
    eval_streak: int


def print_board(board_size: int, entities):
    print(render_board(board_size, entities))


class Trainer:
    def __init__(self, approximator, policy: EpsilonGreedyPolicy, env: Environment, cfg):
        self.approximator = approximator
        self.policy = policy
        self.env = env
        self.cfg = cfg
        self.max_steps = cfg.max_steps
        self.gamma = cfg.gamma
        self.alpha = cfg.soft_update_alpha
        self.reward_strategy = cfg.reward
        self.verbose = getattr(cfg, "verbose", False)
        # Carries across epochs and rounds, like the epsilon in policy
        self.batch = TrainingBatch(cfg.batch_size)

    def new_episode(self, start=None, goal_pos=None):
        agent = Agent(self.env, start)
        goal = Goal(goal_pos if goal_pos is not None else self.env.random_pos())
        return agent, goal

    def train_step(self, agent: Agent, goal: Goal):
        """One simulated step plus its training sample. Returns (reward, loss)."""
        features = state_to_features(agent, goal)
        q_values = self.approximator.predict(features)

        action = self.policy.select_action(greedy_action(q_values))
        agent.move(action)

        # Scored before the idle retry below; the retry move is never scored
        reward = calculate_reward(agent, goal, self.reward_strategy)

        if agent.is_idle():
            action = self.policy.random_action()
            agent.undo_move()
            agent.move(action)

        next_q = self.approximator.predict(state_to_features(agent, goal))
        max_next_q = float(max(next_q))

        target = calculate_target_q_values(q_values, action, reward, max_next_q, self.gamma, self.alpha)
        self.batch.push(features, target)
        loss = self.batch.flush(self.approximator)
        return reward, loss

    def run_episode(self, agent: Agent, goal: Goal):
        """Train on one episode. Returns (won, last_reward, last_loss)."""
        reward = 0.0
        last_loss = None
        for _ in range(self.max_steps):
            reward, loss = self.train_step(agent, goal)
            if loss is not None:
                last_loss = loss
            if agent.has_reached_goal(goal):
                return True, reward, last_loss
        return False, reward, last_loss

    def train(self, epochs: int, starting_epoch: int = 0) -> TrainResult:
        wins = 0
        reward = 0.0
        last_loss = None
        for epoch in range(epochs):
            agent, goal = self.new_episode()
            won, reward, loss = self.run_episode(agent, goal)
            if loss is not None:
                last_loss = loss
            if won:
                wins += 1
            if self.verbose:
                print(f"[DQN] epoch={starting_epoch + epoch + 1} won={won} r={reward:.2f} eps={self.policy.epsilon:.3f}")
        return TrainResult(wins=wins, ending_epoch=starting_epoch + epochs,
                           epsilon=self.policy.epsilon, last_reward=reward, last_loss=last_loss)

    def evaluate(self, agent: Optional[Agent] = None, goal: Optional[Goal] = None,
                 render: Optional[Callable] = print_board, delay: float = 0.0,
                 progress: Optional[Callable] = None) -> bool:
        """Greedy rollout with no exploration and no learning. True if the goal was reached."""
        if agent is None or goal is None:
            agent, goal = self.new_episode()
        if render is not None:
            render(self.env.board_size, (goal, agent))

        for move_no in range(1, self.max_steps + 1):
            q_values = self.approximator.predict(state_to_features(agent, goal))
            agent.move(greedy_action(q_values))
            if render is not None:
                render(self.env.board_size, (goal, agent))
            if agent.has_reached_goal(goal):
                return True
            if progress is not None:
                progress(move_no, q_values)
            if delay > 0:
                time.sleep(delay)
        return False


class Governor:
    """Outer loop: train a round, keep or roll back its weights, then evaluate."""

    def __init__(self, trainer: Trainer, cfg, render: Optional[Callable] = print_board,
                 on_accept: Optional[Callable] = None):
        self.trainer = trainer
        self.cfg = cfg
        self.render = render
        self.on_accept = on_accept
        self.epochs_per_round = cfg.epochs_per_round
        self.boost_rate = cfg.eps_boost_rate
        self.max_eval_streak = cfg.max_eval_streak
        self.delay = cfg.eval_delay
        self.best_wins = 0
        self.epoch_no = 0
        self.round_no = 0

    def judge(self, wins: int, snapshot) -> bool:
        """Accept the round if it won at least as often as the best so far, else roll back."""
        if wins >= self.best_wins:
            self.best_wins = wins
            return True
        self.trainer.approximator.set_weights(snapshot)
        self.trainer.policy.boost(self.boost_rate)
        return False

    def _progress(self, streak: int):
        error_rate = 1 - self.best_wins / self.epochs_per_round

        def report(move_no, q_values):
            print(f"Wins: {streak}")
            print(f"Epochs: {self.epoch_no}")
            print(f"Moves: {move_no}")
            print(f"Error rate: {error_rate:.3f} (the lower the better)")
            print(q_values)
        return report

    def evaluate_streak(self) -> int:
        """Evaluate until a rollout fails (or the streak cap is hit); returns the number of successes."""
        streak = 0
        while self.max_eval_streak is None or streak < self.max_eval_streak:
            progress = self._progress(streak) if self.render is not None else None
            if not self.trainer.evaluate(render=self.render, delay=self.delay, progress=progress):
                break
            streak += 1
        return streak

    def run_round(self) -> RoundReport:
        self.round_no += 1
        snapshot = self.trainer.approximator.get_weights()
        result = self.trainer.train(self.epochs_per_round, starting_epoch=self.epoch_no)
        self.epoch_no = result.ending_epoch

        prev_best = self.best_wins
        accepted = self.judge(result.wins, snapshot)
        if accepted:
            print(f"[DQN] round={self.round_no} wins={result.wins}/{self.epochs_per_round} "
                  f"accepted (best {prev_best} -> {self.best_wins}) eps={self.trainer.policy.epsilon:.3f}")
            if self.on_accept is not None:
                self.on_accept(self)
        else:
            print(f"[DQN] round={self.round_no} wins={result.wins}/{self.epochs_per_round} "
                  f"rolled back (best {self.best_wins}) eps={self.trainer.policy.epsilon:.3f}")

        streak = self.evaluate_streak()
        return RoundReport(round_no=self.round_no, wins=result.wins, best_wins=self.best_wins,
                           accepted=accepted, epsilon=self.trainer.policy.epsilon, eval_streak=streak)

    def run(self, max_rounds: Optional[int] = None):
        """Run rounds forever, or max_rounds of them. Returns the last RoundReport."""
        report = None
        while max_rounds is None or self.round_no < max_rounds:
            report = self.run_round()
        return report
