"""
Training hyperparameters shared by a network and its trainable layers.
"""

import math

import numpy as np

from .errors import ConstructionError


class HyperParameters:
    """
    Training configuration not learned from data.

    A single instance is shared by reference between a network and every
    Dense layer in it, so a change of learning rate applies to all of them.

    Args:
        batch_size: Examples per averaged update when gradient accumulation
            is enabled (default: 1)
        learning_rate: Gradient descent step size (default: 0.002)
        accumulate_gradients: Sum gradients over batch_size examples before
            updating. Off by default: every backward call updates at once.

    gamma and decay_rate are reserved for momentum and learning-rate decay
    and are not read by any layer yet.
    """

    def __init__(self, batch_size=1, learning_rate=0.002, accumulate_gradients=False):
        self.batch_size = 1
        self.learning_rate = 0.002
        self.accumulate_gradients = bool(accumulate_gradients)
        self.gamma = 0.99
        self.decay_rate = 0.99

        self.set_batch_size(batch_size)
        self.set_learning_rate(learning_rate)

    def set_batch_size(self, batch_size):
        if isinstance(batch_size, bool) or not isinstance(batch_size, (int, np.integer)) or batch_size <= 0:
            raise ConstructionError(f"Batch size must be a positive integer, got {batch_size!r}")
        self.batch_size = batch_size

    def set_learning_rate(self, learning_rate):
        try:
            learning_rate = float(learning_rate)
        except (TypeError, ValueError):
            raise ConstructionError(f"Learning rate must be a number, got {learning_rate!r}") from None
        if not math.isfinite(learning_rate) or learning_rate <= 0:
            raise ConstructionError(f"Learning rate must be positive and finite, got {learning_rate}")
        self.learning_rate = learning_rate

    def __repr__(self):
        return (f"HyperParameters(batch_size={self.batch_size}, "
                f"learning_rate={self.learning_rate}, "
                f"accumulate_gradients={self.accumulate_gradients})")
