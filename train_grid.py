import argparse
import os
import random

import torch

from config import Config
from grid_dqn.board import Environment
from grid_dqn.models import init_model
from grid_dqn.policy import EpsilonGreedyPolicy
from grid_dqn.trainer import Governor, Trainer, print_board
from grid_dqn.utils import load_model_if_exists, save_model, seed_everything

PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))


def _env_float(name, default):
    try:
        return float(os.getenv(name)) if os.getenv(name) is not None else default
    except ValueError:
        print(f"[DQN] ignoring {name}={os.getenv(name)!r}: not a number")
        return default


def config_from_env(cfg: Config) -> Config:
    cfg.board_size = int(_env_float("GRID_DQN_BOARD_SIZE", float(cfg.board_size)))
    cfg.max_steps = int(_env_float("GRID_DQN_MAX_STEPS", float(cfg.max_steps)))
    cfg.epochs_per_round = int(_env_float("GRID_DQN_EPOCHS", float(cfg.epochs_per_round)))
    cfg.eps_start = _env_float("GRID_DQN_EPS_START", cfg.eps_start)
    cfg.eps_max = _env_float("GRID_DQN_EPS_MAX", cfg.eps_max)
    cfg.lr = _env_float("GRID_DQN_LR", cfg.lr)
    cfg.eval_delay = _env_float("GRID_DQN_DELAY", cfg.eval_delay)
    return cfg


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Train a DQN agent to reach a goal cell on a grid.")
    parser.add_argument("--board-size", type=int)
    parser.add_argument("--max-steps", type=int)
    parser.add_argument("--epochs", type=int, help="training epochs per round")
    parser.add_argument("--eps-start", type=float)
    parser.add_argument("--delay", type=float, help="seconds between rendered evaluation steps")
    parser.add_argument("--rounds", type=int, help="stop after this many rounds (default: run forever)")
    parser.add_argument("--max-eval-streak", type=int)
    parser.add_argument("--seed", type=int)
    parser.add_argument("--no-render", action="store_true")
    parser.add_argument("--verbose", action="store_true")
    parser.add_argument("--checkpoint", type=str, help="save weights here after every accepted round")
    parser.add_argument("--resume", action="store_true", help="load --checkpoint before training")
    return parser.parse_args(argv)


def build_config(args) -> Config:
    cfg = config_from_env(Config())
    if args.board_size is not None:
        cfg.board_size = args.board_size
    if args.max_steps is not None:
        cfg.max_steps = args.max_steps
    if args.epochs is not None:
        cfg.epochs_per_round = args.epochs
    if args.eps_start is not None:
        cfg.eps_start = args.eps_start
    if args.delay is not None:
        cfg.eval_delay = args.delay
    if args.max_eval_streak is not None:
        cfg.max_eval_streak = args.max_eval_streak
    cfg.verbose = args.verbose
    return cfg.validate()


def main(argv=None):
    args = parse_args(argv)
    cfg = build_config(args)

    rng = random.Random(args.seed)
    if args.seed is not None:
        seed_everything(args.seed)

    device = torch.device(cfg.device)
    print(f"[DQN] device: {device}")

    env = Environment(cfg.board_size, rng=rng)
    approximator = init_model(cfg, device)
    policy = EpsilonGreedyPolicy(cfg.eps_start, cfg.eps_max, cfg.eps_decay, rng=rng)

    model_path = args.checkpoint or os.path.join(PROJECT_ROOT, cfg.model_dir, cfg.model_name)
    if args.resume:
        if load_model_if_exists(model_path, approximator):
            print(f"[DQN] resumed weights from {model_path}")
        else:
            print(f"[DQN] no checkpoint at {model_path}, starting fresh")

    on_accept = None
    if args.checkpoint:
        def on_accept(governor):
            save_model(model_path, governor.trainer.approximator)
            print(f"[DQN] saved round {governor.round_no} -> {model_path}")

    trainer = Trainer(approximator, policy, env, cfg)
    governor = Governor(trainer, cfg, render=None if args.no_render else _render, on_accept=on_accept)
    try:
        governor.run(max_rounds=args.rounds)
    except KeyboardInterrupt:
        print(f"\n[DQN] stopped after {governor.round_no} rounds, best wins {governor.best_wins}/{cfg.epochs_per_round}")


def _render(board_size, entities):
    # clear the terminal so the board redraws in place
    print("\033[2J\033[H", end="")
    print_board(board_size, entities)


if __name__ == "__main__":
    main()
