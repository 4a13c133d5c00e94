"""
Feed-Forward Network
====================

This is the main module that ties everything together:
- Layer stacking with shape checks at construction time (NetworkBuilder)
- Forward pass
- Backward pass (backpropagation with in-place parameter updates)
- Error evaluation
- Training loop and prediction helpers

A network goes through two phases. While under construction only the
builder exists and layers can be added; build() hands over a Network whose
pipeline is fixed and which can run forward/backward:

    >>> builder = NetworkBuilder((28, 28), loss='cce')
    >>> builder.set_learning_rate(0.05)
    >>> builder.add_flatten().add_dense(100).add_activation('sigmoid')
    >>> builder.add_dense(10).add_activation('softmax')
    >>> network = builder.build()
    >>> output = network.forward(image)
    >>> network.backward(one_hot_label)

The network keeps exactly one example of state (last input, output and
target), so forward and backward must alternate example by example.
"""

import logging

import numpy as np
from tqdm import tqdm

from .errors import ConstructionError, LossError, NetworkStateError, ShapeError
from .hyperparameters import HyperParameters
from .layers import Activation, Dense, Dropout, Flatten
from .losses import get_loss
from .utils import accuracy_score, count_params, get_model_summary, one_hot_encode

logger = logging.getLogger(__name__)


def _normalize_shape(shape):
    if isinstance(shape, (int, np.integer)):
        shape = (shape,)
    try:
        shape = tuple(int(d) for d in shape)
    except (TypeError, ValueError):
        raise ConstructionError(f"Input shape must be an int or a tuple of ints, got {shape!r}") from None
    if not shape or any(d <= 0 for d in shape):
        raise ConstructionError(f"Input shape must have positive dimensions, got {shape}")
    return shape


class NetworkBuilder:
    """
    Assembles a network layer by layer.

    Every add_* call either appends a layer and records the shape of the new
    pipeline stage, or raises ConstructionError and leaves the builder as it
    was, so a rejected call can be retried with other arguments.

    Args:
        input_shape: Shape of one input example, int or tuple
            (e.g. 2 for a pair of bits, (28, 28) for an image)
        loss: 'bce', 'cce', or 'none' for an inference-only network
    """

    def __init__(self, input_shape, loss='none'):
        self.input_shape = _normalize_shape(input_shape)
        self.loss = get_loss(loss)
        self.loss_kind = self.loss.name if self.loss is not None else 'none'
        self.hyperparameters = HyperParameters()

        self._layers = []
        self._shapes = [self.input_shape]
        self._built = False

    @property
    def layers(self):
        return list(self._layers)

    @property
    def shapes(self):
        """Recorded stage shapes: the input shape, then one per layer."""
        return list(self._shapes)

    def _check_open(self):
        if self._built:
            raise NetworkStateError("Builder was already used to build a network")

    def _reject(self, message):
        logger.warning("Rejected layer: %s", message)
        raise ConstructionError(message)

    def _append(self, layer, shape):
        self._layers.append(layer)
        self._shapes.append(shape)
        logger.debug("Added %r, stage shape %s", layer, shape)
        return self

    # ------------------------------------------------------------------
    # Hyperparameters
    # ------------------------------------------------------------------

    def set_batch_size(self, batch_size):
        self._check_open()
        self.hyperparameters.set_batch_size(batch_size)
        return self

    def set_learning_rate(self, learning_rate):
        self._check_open()
        self.hyperparameters.set_learning_rate(learning_rate)
        return self

    def set_accumulate_gradients(self, enabled=True):
        """Average gradients over batch_size examples before updating."""
        self._check_open()
        self.hyperparameters.accumulate_gradients = bool(enabled)
        return self

    # ------------------------------------------------------------------
    # Layers
    # ------------------------------------------------------------------

    def add_dense(self, output_dim):
        """Fully connected layer from the current (1-D) stage to output_dim units."""
        self._check_open()
        if isinstance(output_dim, bool) or not isinstance(output_dim, (int, np.integer)):
            self._reject(f"Dense output dimension must be an integer, got {output_dim!r}")
        if output_dim <= 0:
            self._reject(f"Dense output dimension should be > 0, got {output_dim}")

        current = self._shapes[-1]
        if len(current) > 1:
            self._reject(f"Dense just accepts 1-D input, current stage is {current}; add_flatten first")

        layer = Dense(current[0], int(output_dim), self.hyperparameters)
        return self._append(layer, (int(output_dim),))

    def add_activation(self, name):
        """Activation layer; never changes the stage shape."""
        self._check_open()
        try:
            layer = Activation(name)
        except ConstructionError as exc:
            logger.warning("Rejected layer: %s", exc)
            raise
        return self._append(layer, self._shapes[-1])

    def add_flatten(self):
        """Flatten a multi-dimensional stage into a vector."""
        self._check_open()
        current = self._shapes[-1]
        if len(current) == 1:
            self._reject(f"Stage {current} is already one-dimensional, nothing to flatten")

        elements = int(np.prod(current))
        return self._append(Flatten(), (elements,))

    def add_dropout(self, rate):
        """Inverted dropout, active only in training mode."""
        self._check_open()
        try:
            layer = Dropout(rate)
        except ConstructionError as exc:
            logger.warning("Rejected layer: %s", exc)
            raise
        return self._append(layer, self._shapes[-1])

    # ------------------------------------------------------------------
    # Finishing
    # ------------------------------------------------------------------

    def _validate(self):
        if not self._layers:
            raise NetworkStateError("Cannot build a network without layers")

        output_shape = self._shapes[-1]
        if len(output_shape) != 1:
            raise ConstructionError(f"Network output must be one-dimensional, last stage is {output_shape}")

        last = len(self._layers) - 1
        for i, layer in enumerate(self._layers):
            if isinstance(layer, Activation) and layer.is_softmax:
                if i != last:
                    raise ConstructionError(f"Softmax must be the last layer, found at position {i}")
                if self.loss_kind not in ('cce', 'none'):
                    raise ConstructionError(
                        f"Softmax output requires the 'cce' loss, network uses '{self.loss_kind}'")

        if self.loss_kind == 'bce' and output_shape != (1,):
            raise ConstructionError(f"The 'bce' loss needs a single output unit, last stage is {output_shape}")

    def build(self):
        """
        Finish construction and return a ready Network.

        The builder is consumed: its layers belong to the returned network.
        """
        self._check_open()
        self._validate()

        network = Network(self.input_shape, self._layers, self._shapes,
                          self.loss, self.hyperparameters)
        self._built = True
        logger.debug("Built %r with %d layers", network, len(self._layers))
        return network

    def print_setup(self):
        """Print the layers added so far."""
        print(get_model_summary(self._layers, self._shapes))

    def __repr__(self):
        return f"NetworkBuilder(input_shape={self.input_shape}, loss='{self.loss_kind}', layers={len(self._layers)})"


class Network:
    """
    A ready-to-run feed-forward network.

    Created by NetworkBuilder.build(). The layer pipeline is fixed; only the
    parameters of Dense layers change, in place, on every backward call.

    Attributes:
        last_input: Input of the most recent forward pass
        last_output: Output of the most recent forward pass
        last_target: Target of the most recent backward pass
    """

    def __init__(self, input_shape, layers, shapes, loss, hyperparameters):
        self.input_shape = tuple(input_shape)
        self._layers = tuple(layers)
        self._shapes = tuple(tuple(s) for s in shapes)
        self.loss = loss
        self.loss_kind = loss.name if loss is not None else 'none'
        self.hyperparameters = hyperparameters

        self.last_input = None
        self.last_output = None
        self.last_target = None

        self.history = {'loss': [], 'accuracy': []}

    @property
    def layers(self):
        return self._layers

    @property
    def shapes(self):
        return list(self._shapes)

    @property
    def output_shape(self):
        return self._shapes[-1]

    @property
    def inference_only(self):
        return self.loss is None

    def forward(self, x, training=True):
        """
        Forward pass through the network.

        Args:
            x: One example, shaped like input_shape
            training: Whether in training mode (affects dropout)

        Returns:
            Output vector, shape output_shape
        """
        x = np.asarray(x, dtype=np.float64)
        if x.shape != self.input_shape:
            raise ShapeError(f"Expected input of shape {self.input_shape}, got {x.shape}")

        # Layers cache their input for backward, keep it out of the caller's reach
        x = x.copy()
        self.last_input = x
        for layer in self._layers:
            x = layer.forward(x, training=training)

        self.last_output = x
        return x.copy()

    def _check_target(self, target):
        if self.inference_only:
            raise LossError("Network was built with loss 'none' and is inference-only")
        if self.last_output is None:
            raise NetworkStateError("No forward pass yet, nothing to compare the target with")

        target = np.array(target, dtype=np.float64)
        if target.size != self.last_output.size:
            raise ShapeError(f"Expected target of shape {self.output_shape}, got {target.shape}")
        return target.reshape(self.last_output.shape)

    def backward(self, target):
        """
        Backward pass through the network.

        Computes the loss derivative from the cached output and propagates it
        through the layers in reverse order. Dense layers update their
        parameters as a side effect; the gradients are not returned.

        A final softmax layer is fed the target itself instead of the cce
        derivative -t / o and returns o - t, so a saturated output of exactly
        0 never reaches a division.
        """
        target = self._check_target(target)
        self.last_target = target

        layers = list(self._layers)
        last = layers[-1]
        if isinstance(last, Activation) and last.is_softmax and self.loss_kind == 'cce':
            grad = last.backward(target)
            layers.pop()
        else:
            grad = self.loss.backward(self.last_output, target)

        for layer in reversed(layers):
            grad = layer.backward(grad)

    def error(self, target):
        """Scalar loss of the most recent output against target."""
        target = self._check_target(target)
        return self.loss.forward(self.last_output, target)

    def flush(self):
        """Apply gradients still pending from an unfinished batch."""
        for layer in self._layers:
            layer.flush()
        logger.debug("Flushed pending gradients")

    def train(self, x, target):
        """One training step on a single example. Returns the output."""
        output = self.forward(x, training=True)
        self.backward(target)
        return output

    def predict(self, x):
        """Inference on a single example."""
        return self.forward(x, training=False)

    def _prepare_targets(self, y):
        y = np.asarray(y)
        n_outputs = self.output_shape[0]

        if y.ndim == 1:
            if n_outputs == 1:
                return y.astype(np.float64).reshape(-1, 1)
            return one_hot_encode(y, n_outputs)
        return y.astype(np.float64)

    def evaluate(self, X, y):
        """
        Evaluate model on data.

        Args:
            X: Examples, shape (N, *input_shape)
            y: Targets, shape (N, n_outputs), or integer labels (N,)

        Returns:
            Tuple of (mean loss, accuracy); the loss is None for an
            inference-only network
        """
        X = np.asarray(X, dtype=np.float64)
        targets = self._prepare_targets(y)

        predictions = np.array([self.predict(x) for x in X])

        loss = None
        if not self.inference_only:
            loss = float(np.mean([self.loss.forward(p, t) for p, t in zip(predictions, targets)]))

        return loss, accuracy_score(targets, predictions)

    def score(self, X, y):
        """Compute accuracy."""
        _, accuracy = self.evaluate(X, y)
        return accuracy

    def fit(self, X, y, epochs=10, shuffle=True, verbose=True):
        """
        Train the network example by example.

        Args:
            X: Training examples, shape (N, *input_shape)
            y: Targets, shape (N, n_outputs), or integer labels (N,)
            epochs: Number of passes over the data
            shuffle: Visit examples in a random order each epoch
            verbose: Show a progress bar and print epoch summaries

        Returns:
            Training history dictionary
        """
        if self.inference_only:
            raise LossError("Network was built with loss 'none' and cannot be trained")

        X = np.asarray(X, dtype=np.float64)
        targets = self._prepare_targets(y)
        if len(X) != len(targets):
            raise ShapeError(f"Got {len(X)} examples but {len(targets)} targets")

        self.history = {'loss': [], 'accuracy': []}

        for epoch in range(epochs):
            order = np.random.permutation(len(X)) if shuffle else np.arange(len(X))
            if verbose:
                pbar = tqdm(order, desc=f"Epoch {epoch+1}/{epochs}")
            else:
                pbar = order

            epoch_loss = 0.0
            predictions = np.zeros_like(targets)

            for i in pbar:
                predictions[i] = self.forward(X[i], training=True)
                epoch_loss += self.error(targets[i])
                self.backward(targets[i])

            # Don't carry a partial batch into the next epoch
            self.flush()

            avg_loss = epoch_loss / len(X)
            avg_accuracy = accuracy_score(targets, predictions)
            self.history['loss'].append(avg_loss)
            self.history['accuracy'].append(avg_accuracy)
            logger.debug("Epoch %d/%d loss=%.4f accuracy=%.4f", epoch + 1, epochs, avg_loss, avg_accuracy)

            if verbose:
                print(f"Epoch {epoch+1}/{epochs} - Loss: {avg_loss:.4f} - Acc: {avg_accuracy:.4f}")

        return self.history

    def print_setup(self):
        """Print the layer pipeline. Returns the number of trainable parameters."""
        print(get_model_summary(self._layers, self._shapes))
        return sum(count_params(layer) for layer in self._layers)

    def __repr__(self):
        return (f"Network(input_shape={self.input_shape}, output_shape={self.output_shape}, "
                f"loss='{self.loss_kind}')")
