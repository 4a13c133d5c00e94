"""
Activation Functions
====================

Non-linear functions applied elementwise between Dense layers.
Each activation implements the function itself and its local derivative.

The derivative is evaluated either at the layer input or at the layer output,
whichever is cheaper:
- Sigmoid: f'(x) = s * (1 - s), so only the output s needs to be kept
- ReLU / LeakyReLU: only the sign of the input matters

Softmax is the odd one out. It is not elementwise and its layer never asks for
a derivative: the gradient is taken as a shortcut together with the
categorical cross-entropy loss (see layers.Activation).
"""

import numpy as np

from .errors import ConstructionError


class ActivationFunction:
    """Base class for all activation functions."""

    # Whether derivative() expects the cached output instead of the input
    uses_output = False

    def forward(self, x):
        """Apply activation function."""
        raise NotImplementedError

    def derivative(self, cached):
        """Local derivative evaluated at the cached input or output."""
        raise NotImplementedError

    def __call__(self, x):
        return self.forward(x)


class ReLU(ActivationFunction):
    """
    Rectified Linear Unit: f(x) = max(0, x)

    Derivative:
        f'(x) = 1 if x > 0 else 0
    """

    def forward(self, x):
        return np.maximum(0, x)

    def derivative(self, x):
        return (x > 0).astype(np.float64)


class LeakyReLU(ActivationFunction):
    """
    Leaky ReLU: f(x) = x if x > 0 else alpha * x

    Args:
        alpha: Slope for negative values (default: 0.01)
    """

    def __init__(self, alpha=0.01):
        self.alpha = alpha

    def forward(self, x):
        return np.where(x > 0, x, self.alpha * x)

    def derivative(self, x):
        return np.where(x > 0, 1.0, self.alpha)


class Sigmoid(ActivationFunction):
    """
    Sigmoid: f(x) = 1 / (1 + exp(-x))

    Squashes output to (0, 1). Paired with the 'bce' loss on the output side.

    Derivative (from the output s):
        f'(x) = s * (1 - s)
    """

    uses_output = True

    def forward(self, x):
        # Clip for numerical stability
        x_clipped = np.clip(x, -500, 500)
        return 1.0 / (1.0 + np.exp(-x_clipped))

    def derivative(self, s):
        return s * (1 - s)


class Softmax(ActivationFunction):
    """
    Softmax: f(x_i) = exp(x_i) / sum(exp(x_j))

    Numerical Stability:
        The largest value is subtracted before exp to prevent overflow.
        exp(x-c)/sum(exp(x-c)) = exp(x)/sum(exp(x))

    NaN entries are left out of both the max and the sum and come out as NaN.
    Malformed inputs are tolerated, not rejected.
    """

    uses_output = True

    def forward(self, x):
        x = np.asarray(x, dtype=np.float64)
        valid = x[~np.isnan(x)]
        shift = valid.max() if valid.size else 0.0
        exp_x = np.exp(x - shift)
        return exp_x / np.nansum(exp_x)

    def derivative(self, s):
        """
        Full Jacobian of softmax: J[i,j] = s[i] * (delta[i,j] - s[j])

        Not used during backpropagation, kept for checking the cce shortcut.
        """
        s = np.ravel(s)
        return np.diag(s) - np.outer(s, s)


# ====================================
# Activation Registry
# ====================================

ACTIVATIONS = {
    'sigmoid': Sigmoid,
    'relu': ReLU,
    'leakyrelu': LeakyReLU,
    'softmax': Softmax,
}


def get_activation(name):
    """
    Get activation function by name.

    Args:
        name: One of 'sigmoid', 'relu', 'leakyrelu', 'softmax', or an
            ActivationFunction instance

    Returns:
        ActivationFunction instance

    Example:
        >>> act = get_activation('relu')
        >>> act(np.array([-1, 0, 1]))
        array([0, 0, 1])
    """
    if isinstance(name, ActivationFunction):
        return name

    if name not in ACTIVATIONS:
        available = ', '.join(ACTIVATIONS.keys())
        raise ConstructionError(f"Unknown activation '{name}'. Available: {available}")

    return ACTIVATIONS[name]()
