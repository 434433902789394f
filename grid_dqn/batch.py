from typing import List, Optional

import numpy as np


class TrainingBatch:
    """Collects (features, target) pairs and hands them to the approximator once full."""

    def __init__(self, batch_size: int):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.batch_size = batch_size
        self.features: List[np.ndarray] = []
        self.targets: List[np.ndarray] = []

    def push(self, features, target):
        self.features.append(np.asarray(features, dtype=np.float32))
        self.targets.append(np.asarray(target, dtype=np.float32))

    def __len__(self): return len(self.features)

    def is_full(self) -> bool:
        return len(self.features) >= self.batch_size

    def flush(self, approximator) -> Optional[float]:
        """Fit on the queued pairs if the batch is full; returns the loss, or None if nothing was fit."""
        if not self.is_full():
            return None
        loss = approximator.fit(np.stack(self.features), np.stack(self.targets))
        self.features = []
        self.targets = []
        return loss
