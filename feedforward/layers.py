"""
Network Layers - From Scratch Implementation
============================================

The building blocks of a feed-forward pipeline, implemented using only NumPy.
Every layer works on a single example and implements forward and backward
passes for backpropagation.

Layers implemented:
- Dense: Fully connected layer, the only layer with trainable parameters
- Activation: Sigmoid, ReLU, LeakyReLU or Softmax
- Flatten: Reshape an n-dimensional input to a vector
- Dropout: Regularization by randomly zeroing activations

Unlike a framework with a separate optimizer, a Dense layer updates its own
weights by gradient descent as part of backward().
"""

import numpy as np

from .activations import Softmax, get_activation
from .errors import ConstructionError
from .hyperparameters import HyperParameters


class Layer:
    """Base class for all layers."""

    def __init__(self):
        self.params = {}    # Trainable parameters
        self.grads = {}     # Gradients of the last backward pass
        self.training = True

    def forward(self, x, training=True):
        """Forward pass."""
        raise NotImplementedError

    def backward(self, grad_output):
        """Backward pass. Returns the gradient w.r.t. the layer input."""
        raise NotImplementedError

    def flush(self):
        """Apply pending accumulated updates. Nothing to do by default."""

    def __call__(self, x, training=True):
        return self.forward(x, training)

    def set_training(self, mode):
        """Set training mode."""
        self.training = mode


class Dense(Layer):
    """
    Fully Connected (Dense) Layer.

    Each output is connected to every input.

    Args:
        input_dim: Number of input features
        output_dim: Number of output features
        hyperparameters: Shared HyperParameters (learning rate, batching)
        weight_init: 'he' or 'xavier'

    Forward: output = W @ input + b, with W of shape (output_dim, input_dim)
    """

    def __init__(self, input_dim, output_dim, hyperparameters=None, weight_init='he'):
        super().__init__()

        if input_dim <= 0:
            raise ConstructionError(f"Dense input dimension should be > 0, got {input_dim}")
        if output_dim <= 0:
            raise ConstructionError(f"Dense output dimension should be > 0, got {output_dim}")

        self.input_dim = input_dim
        self.output_dim = output_dim
        self.hyperparameters = hyperparameters if hyperparameters is not None else HyperParameters()

        # Weight initialization
        if weight_init == 'he':
            scale = np.sqrt(2.0 / input_dim)
        else:
            scale = np.sqrt(1.0 / input_dim)

        self.params['weight'] = np.random.randn(output_dim, input_dim) * scale
        self.params['bias'] = np.zeros(output_dim)

        self.cache = {}

        # Gradient sums while accumulating over a batch
        self._grad_sums = {}
        self._n_accumulated = 0

    def forward(self, x, training=True):
        """Forward pass: y = W @ x + b"""
        self.training = training
        self.cache['x'] = x

        return self.params['weight'] @ x + self.params['bias']

    def backward(self, grad_output):
        """
        Backward pass and parameter update.

        dL/dW = outer(grad_output, x)
        dL/db = grad_output
        dL/dx = W.T @ grad_output     (with the weights before the update)
        """
        x = self.cache['x']

        self.grads['weight'] = np.outer(grad_output, x)
        self.grads['bias'] = np.array(grad_output, dtype=np.float64)

        grad_input = self.params['weight'].T @ grad_output

        if self.hyperparameters.accumulate_gradients:
            self._accumulate()
        else:
            self._apply(self.grads)

        return grad_input

    def _apply(self, grads, scale=1.0):
        step = self.hyperparameters.learning_rate * scale
        for name, grad in grads.items():
            self.params[name] -= step * grad

    def _accumulate(self):
        for name, grad in self.grads.items():
            if name in self._grad_sums:
                self._grad_sums[name] += grad
            else:
                self._grad_sums[name] = grad.copy()
        self._n_accumulated += 1

        if self._n_accumulated >= self.hyperparameters.batch_size:
            self.flush()

    @property
    def pending(self):
        """Number of examples accumulated but not yet applied."""
        return self._n_accumulated

    def flush(self):
        """Apply the batch-averaged accumulated gradient, if any."""
        if self._n_accumulated == 0:
            return
        self._apply(self._grad_sums, 1.0 / self._n_accumulated)
        self._grad_sums = {}
        self._n_accumulated = 0

    def __repr__(self):
        return f"Dense({self.input_dim}, {self.output_dim})"


class Activation(Layer):
    """
    Activation layer wrapper.

    Wraps activation functions as layers for use in the pipeline. Keeps the
    value its derivative is evaluated at: the output for sigmoid and softmax,
    the input for relu and leakyrelu.

    Softmax backward is not the general Jacobian product. It assumes it is
    the last layer of a 'cce' network and that its feedback is the one-hot
    target itself, and it returns o - t: the gradient of softmax combined
    with categorical cross-entropy w.r.t. the softmax input. Network.backward
    hands the target straight to a final softmax for this reason. Any other
    loss in front of a softmax gives a wrong gradient, which is why the
    network builder only accepts softmax as the last layer of a 'cce' (or
    inference-only) network.
    """

    def __init__(self, activation='relu'):
        super().__init__()
        self.activation = get_activation(activation)
        self.activation_name = activation if isinstance(activation, str) else type(activation).__name__.lower()
        self.cache = {}

    @property
    def is_softmax(self):
        return isinstance(self.activation, Softmax)

    def forward(self, x, training=True):
        """Apply activation function."""
        output = self.activation.forward(x)
        self.cache['value'] = output if self.activation.uses_output else x
        return output

    def backward(self, grad_output):
        """Multiply by activation derivative."""
        cached = self.cache['value']

        if self.is_softmax:
            # grad_output is the target here, see class docstring
            return cached - grad_output

        return grad_output * self.activation.derivative(cached)

    def __repr__(self):
        return f"Activation({self.activation_name})"


class Flatten(Layer):
    """
    Flatten layer: reshapes an n-dimensional example to a vector.

    Input: (d1, d2, ..., dn)
    Output: (d1 * d2 * ... * dn,)

    Used to connect image-shaped inputs to dense layers.
    """

    def __init__(self):
        super().__init__()
        self.cache = {}

    def forward(self, x, training=True):
        """Flatten input, remembering its shape."""
        self.cache['input_shape'] = x.shape
        return x.reshape(-1)

    def backward(self, grad_output):
        """Reshape gradient back to original shape."""
        return grad_output.reshape(self.cache['input_shape'])

    def __repr__(self):
        return "Flatten()"


class Dropout(Layer):
    """
    Dropout Layer for regularization.

    Randomly sets activations to zero during training.
    Uses "inverted dropout": scales remaining activations so we don't
    need to scale at inference time.

    Args:
        rate: Fraction of activations to drop, in [0, 1) (default: 0.5)
    """

    def __init__(self, rate=0.5):
        super().__init__()
        if not 0 <= rate < 1:
            raise ConstructionError(f"Dropout rate must be in [0, 1), got {rate}")
        self.rate = rate
        self.cache = {}

    def forward(self, x, training=True):
        """Apply dropout during training."""
        self.training = training

        if training and self.rate > 0:
            # Create mask: 1 = keep, 0 = drop
            self.cache['mask'] = (np.random.rand(*x.shape) > self.rate).astype(np.float64)
            # Inverted dropout: scale by 1/(1-rate)
            return x * self.cache['mask'] / (1 - self.rate)
        else:
            return x

    def backward(self, grad_output):
        """Route gradient through non-dropped positions only."""
        if self.training and self.rate > 0:
            return grad_output * self.cache['mask'] / (1 - self.rate)
        else:
            return grad_output

    def __repr__(self):
        return f"Dropout(rate={self.rate})"
