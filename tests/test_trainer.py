import random

import numpy as np
import pytest
import torch

from config import Config
from grid_dqn.board import ACTIONS, Agent, Environment, Goal
from grid_dqn.models import init_model
from grid_dqn.policy import EpsilonGreedyPolicy
from grid_dqn.trainer import Governor, Trainer


class FakeApproximator:
    """Scripted stand-in: Q-values come from a callable, weights are an int."""

    def __init__(self, q_fn=None):
        self.q_fn = q_fn or (lambda f: np.zeros(4, dtype=np.float32))
        self.weights = 0
        self.fits = []

    def predict(self, features):
        return np.asarray(self.q_fn(features), dtype=np.float32)

    def fit(self, features, targets):
        self.fits.append((features, targets))
        self.weights += 1
        return 0.0

    def get_weights(self):
        return self.weights

    def set_weights(self, weights):
        self.weights = weights


def towards_goal(features):
    """Q-values that always point the agent at the goal (x first)."""
    ax, ay, gx, gy = features
    q = np.zeros(4, dtype=np.float32)
    if gx > ax:
        q[ACTIONS.index("right")] = 1
    elif gx < ax:
        q[ACTIONS.index("left")] = 1
    elif gy > ay:
        q[ACTIONS.index("down")] = 1
    elif gy < ay:
        q[ACTIONS.index("up")] = 1
    return q


def make_trainer(approximator, cfg=None, epsilon=0.0, seed=0):
    cfg = cfg or Config(board_size=4, max_steps=20, epochs_per_round=5, batch_size=4,
                        eval_delay=0.0, device="cpu")
    rng = random.Random(seed)
    env = Environment(cfg.board_size, rng=rng)
    policy = EpsilonGreedyPolicy(epsilon, cfg.eps_max, cfg.eps_decay, rng=rng)
    return Trainer(approximator, policy, env, cfg)


def test_train_step_queues_pre_move_features():
    approx = FakeApproximator(towards_goal)
    trainer = make_trainer(approx)
    agent, goal = Agent(trainer.env, (0, 0)), Goal((2, 0))

    reward, loss = trainer.train_step(agent, goal)

    assert agent.position == (1, 0)
    assert reward == -1
    assert loss is None
    np.testing.assert_array_equal(trainer.batch.features[0], [0, 0, 2, 0])
    target = trainer.batch.targets[0]
    i = ACTIONS.index("right")
    # max over next-state Q-values is 1 (still pointing right)
    assert target[i] == pytest.approx(0.9 * 1 + 0.1 * (-1 + 0.9 * 1))
    assert [target[j] for j in range(4) if j != i] == [0, 0, 0]


def test_idle_move_is_retried_but_scored_as_idle():
    # Greedy action runs into the top wall
    approx = FakeApproximator(lambda f: np.array([1, 0, 0, 0]))
    trainer = make_trainer(approx)
    agent, goal = Agent(trainer.env, (1, 0)), Goal((3, 3))

    reward, _ = trainer.train_step(agent, goal)

    assert reward == -1 + -4
    assert len(agent.move_history) == 2
    assert agent.move_history[0] == (1, 0)
    # the retried action gets the target update; it may be "up" again
    retried = {(1, 0): "up", (0, 0): "left", (2, 0): "right", (1, 1): "down"}[agent.position]
    i = ACTIONS.index(retried)
    q = [1, 0, 0, 0]
    target = trainer.batch.targets[0]
    assert target[i] == pytest.approx(0.9 * q[i] + 0.1 * (-5 + 0.9 * 1))
    assert [target[j] for j in range(4) if j != i] == [q[j] for j in range(4) if j != i]


def test_fit_happens_once_batch_is_full():
    approx = FakeApproximator()
    trainer = make_trainer(approx)
    agent, goal = Agent(trainer.env, (0, 0)), Goal((3, 3))
    for _ in range(3):
        trainer.train_step(agent, goal)
    assert approx.fits == []
    trainer.train_step(agent, goal)
    assert len(approx.fits) == 1
    assert approx.fits[0][0].shape == (4, 4)
    assert len(trainer.batch) == 0


def test_episode_ends_on_goal():
    approx = FakeApproximator(towards_goal)
    trainer = make_trainer(approx)
    agent, goal = Agent(trainer.env, (0, 0)), Goal((2, 1))
    won, reward, _ = trainer.run_episode(agent, goal)
    assert won
    assert reward == 100
    assert len(agent.move_history) == 4


def test_train_counts_wins_and_carries_epsilon():
    approx = FakeApproximator(towards_goal)
    trainer = make_trainer(approx, epsilon=0.2)
    result = trainer.train(5, starting_epoch=10)
    assert result.ending_epoch == 15
    assert result.epsilon == trainer.policy.epsilon
    assert result.epsilon < 0.2
    assert 0 <= result.wins <= 5


def test_evaluate_is_greedy_and_does_not_learn():
    approx = FakeApproximator(towards_goal)
    trainer = make_trainer(approx, epsilon=1.0)
    frames = []
    won = trainer.evaluate(Agent(trainer.env, (0, 0)), Goal((3, 3)),
                           render=lambda size, entities: frames.append(size))
    assert won
    assert len(frames) == 1 + 6
    assert trainer.policy.epsilon == 1.0
    assert approx.fits == []


def test_evaluate_fails_when_step_budget_runs_out():
    approx = FakeApproximator(lambda f: np.array([1, 0, 0, 0]))
    trainer = make_trainer(approx)
    assert not trainer.evaluate(Agent(trainer.env, (0, 0)), Goal((3, 3)), render=None)


def test_governor_rolls_back_and_boosts_on_worse_round():
    approx = FakeApproximator()
    trainer = make_trainer(approx, epsilon=0.3)
    governor = Governor(trainer, trainer.cfg, render=None)
    governor.best_wins = 5
    snapshot = approx.get_weights()
    approx.weights = 42  # "learned" during the round

    assert not governor.judge(2, snapshot)
    assert approx.weights == snapshot
    assert trainer.policy.epsilon == pytest.approx(0.36)
    assert governor.best_wins == 5


def test_governor_accepts_equal_or_better_round():
    approx = FakeApproximator()
    trainer = make_trainer(approx, epsilon=0.3)
    governor = Governor(trainer, trainer.cfg, render=None)
    governor.best_wins = 2
    approx.weights = 7
    assert governor.judge(2, snapshot=0)
    assert governor.judge(4, snapshot=0)
    assert approx.weights == 7
    assert governor.best_wins == 4
    assert trainer.policy.epsilon == 0.3


def test_governor_run_is_bounded_by_max_rounds():
    approx = FakeApproximator(towards_goal)
    cfg = Config(board_size=4, max_steps=20, epochs_per_round=3, batch_size=4,
                 eval_delay=0.0, max_eval_streak=2, device="cpu")
    trainer = make_trainer(approx, cfg=cfg)
    accepted = []
    governor = Governor(trainer, cfg, render=None, on_accept=lambda g: accepted.append(g.round_no))

    report = governor.run(max_rounds=2)

    assert governor.round_no == 2
    assert governor.epoch_no == 6
    assert report.wins == 3
    assert report.accepted
    assert report.eval_streak == 2
    assert accepted == [1, 2]


def test_evaluation_streak_stops_on_first_failure():
    trainer = make_trainer(FakeApproximator())
    outcomes = iter([True, True, False, True])
    calls = []

    def scripted_evaluate(**kwargs):
        calls.append(kwargs)
        return next(outcomes)

    trainer.evaluate = scripted_evaluate
    governor = Governor(trainer, trainer.cfg, render=None)
    assert governor.evaluate_streak() == 2
    assert len(calls) == 3


def test_training_with_real_approximator_runs():
    torch.manual_seed(0)
    cfg = Config(board_size=3, max_steps=5, epochs_per_round=2, batch_size=4,
                 hidden_layers=1, units=8, eval_delay=0.0, max_eval_streak=1, device="cpu")
    approx = init_model(cfg, torch.device("cpu"))
    trainer = make_trainer(approx, cfg=cfg, epsilon=0.5)
    governor = Governor(trainer, cfg, render=None)
    report = governor.run(max_rounds=1)
    assert report.round_no == 1
    assert report.accepted  # first round always matches best_wins=0
    assert 0.0 <= report.epsilon <= 1.0
