import os
import random

import numpy as np
import torch


def state_to_features(agent, goal) -> np.ndarray:
    return np.array([agent.x, agent.y, goal.x, goal.y], dtype=np.float32)


def seed_everything(seed: int):
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)


def ensure_dir(path: str):
    if path:
        os.makedirs(path, exist_ok=True)


def save_model(path: str, approximator):
    ensure_dir(os.path.dirname(path))
    torch.save(approximator.get_weights(), path)


def load_model_if_exists(path: str, approximator) -> bool:
    if not os.path.exists(path):
        return False
    state = torch.load(path, map_location="cpu")
    if not isinstance(state, dict):
        raise ValueError(f"{path} does not hold a state dict")
    approximator.set_weights(state)
    return True
