from dataclasses import dataclass, field
from typing import Optional

import torch

from grid_dqn.rewards import RewardStrategy


@dataclass
class Config:
    # Board / episodes
    board_size: int = 10
    max_steps: int = 50
    epochs_per_round: int = 25

    # Model / training
    lr: float = 1e-3
    gamma: float = 0.9  # reward discount
    soft_update_alpha: float = 0.1
    batch_size: int = 16
    hidden_layers: int = 5
    units: int = 128
    dropout: float = 0.2
    leaky_relu_alpha: float = 0.01
    max_grad_norm: float = 10.0

    # Exploration
    eps_start: float = 0.5
    eps_max: float = 0.5  # boosting past this resets epsilon to 1.0
    eps_decay: float = 0.995  # multiplicative, applied on greedy picks only
    eps_boost_rate: float = 0.2

    # Evaluation
    eval_delay: float = 0.05  # seconds between rendered steps
    max_eval_streak: Optional[int] = None  # None = keep evaluating while it wins

    # Reward shaping
    reward: RewardStrategy = field(default_factory=RewardStrategy)

    # IO
    model_dir: str = "checkpoints"
    model_name: str = "dqn_grid.pt"
    verbose: bool = False

    device: str = "cuda" if torch.cuda.is_available() else "cpu"

    def validate(self):
        if self.board_size < 1:
            raise ValueError(f"board_size must be positive, got {self.board_size}")
        if self.max_steps < 1 or self.epochs_per_round < 1:
            raise ValueError("max_steps and epochs_per_round must be positive")
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if not 0.0 <= self.eps_start <= 1.0:
            raise ValueError(f"eps_start must lie in [0, 1], got {self.eps_start}")
        if not 0.0 < self.soft_update_alpha <= 1.0:
            raise ValueError(f"soft_update_alpha must lie in (0, 1], got {self.soft_update_alpha}")
        return self
