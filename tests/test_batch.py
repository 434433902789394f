import numpy as np
import pytest

from grid_dqn.batch import TrainingBatch


class RecordingApproximator:
    def __init__(self):
        self.calls = []

    def fit(self, features, targets):
        self.calls.append((features, targets))
        return 0.5


def test_flush_waits_for_full_batch():
    batch = TrainingBatch(3)
    approx = RecordingApproximator()
    for i in range(2):
        batch.push([i, 0, 1, 1], [0.0, 0.0, 0.0, float(i)])
        assert batch.flush(approx) is None
    assert approx.calls == []
    assert len(batch) == 2


def test_flush_fits_and_clears():
    batch = TrainingBatch(2)
    approx = RecordingApproximator()
    batch.push([0, 0, 1, 1], [1, 2, 3, 4])
    batch.push([1, 0, 1, 1], [5, 6, 7, 8])
    assert batch.flush(approx) == 0.5
    assert len(batch) == 0
    features, targets = approx.calls[0]
    assert features.shape == (2, 4)
    np.testing.assert_array_equal(targets[1], [5, 6, 7, 8])


def test_rejects_non_positive_size():
    with pytest.raises(ValueError):
        TrainingBatch(0)
