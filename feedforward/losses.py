"""
Loss Functions
==============

Loss functions measure how wrong the network's prediction is for one example.

Each loss implements:
- forward(predictions, targets): scalar error
- backward(predictions, targets): derivative fed into the last layer

The derivatives are not general ones, each is meant for a specific output layer:
- 'bce' after a sigmoid unit (or a single linear unit): dL/dz = o - t
- 'cce': dL/do = -t / o. A final softmax layer skips it and takes the target
  itself, returning the combined gradient o - t

Known sharp edges: there is no clipping, so an output of exactly 0 (or 1 for
bce) gives an infinite error and the cce derivative divides by zero.
"""

import numpy as np

from .errors import LossError


class Loss:
    """Base class for loss functions."""

    name = None

    def forward(self, predictions, targets):
        """Compute loss value."""
        raise NotImplementedError

    def backward(self, predictions, targets):
        """Compute gradient of loss w.r.t. predictions."""
        raise NotImplementedError

    def __call__(self, predictions, targets):
        return self.forward(predictions, targets)

    def __repr__(self):
        return f"{type(self).__name__}()"


class BinaryCrossEntropyLoss(Loss):
    """
    Binary Cross-Entropy for a single output probability.

    Formula: L = -[t*log(o) + (1-t)*log(1-o)]

    Gradient (combined with the sigmoid that produced o):
        dL/dz = o - t
    """

    name = 'bce'

    def forward(self, predictions, targets):
        t = float(np.ravel(targets)[0])
        o = float(np.ravel(predictions)[0])
        return float(-t * np.log(o) - (1 - t) * np.log(1 - o))

    def backward(self, predictions, targets):
        return np.asarray(predictions, dtype=np.float64) - targets


class CategoricalCrossEntropyLoss(Loss):
    """
    Categorical Cross-Entropy for a probability vector.

    Formula: L = -sum(t * log(o))

    Gradient w.r.t. the softmax output:
        dL/do = -t / o

    Through the softmax Jacobian this reduces to o - t for a one-hot target.
    The network does not route it through a final softmax layer, which gets
    the target directly and returns o - t without dividing by o.
    """

    name = 'cce'

    def forward(self, predictions, targets):
        return float(np.sum(targets * -np.log(predictions)))

    def backward(self, predictions, targets):
        return -np.asarray(targets, dtype=np.float64) / predictions


# ============================================================================
# Loss Registry
# ============================================================================

LOSSES = {
    'bce': BinaryCrossEntropyLoss,
    'cce': CategoricalCrossEntropyLoss,
    'none': None,
}


def get_loss(name):
    """
    Get loss function by name.

    Args:
        name: 'bce', 'cce', 'none' or a Loss instance

    Returns:
        Loss instance, or None for the inference-only kind 'none'
    """
    if isinstance(name, Loss):
        return name

    if name not in LOSSES:
        available = ', '.join(LOSSES.keys())
        raise LossError(f"Unknown loss '{name}'. Available: {available}")

    loss_cls = LOSSES[name]
    return loss_cls() if loss_cls is not None else None
