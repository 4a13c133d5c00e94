"""
Feed-Forward Network Engine
===========================

A minimal neural network training engine using only NumPy.
Networks are assembled from layers, run forward on one example at a time,
and trained by propagating a loss derivative backward:
- Dense (fully connected) layers with in-place gradient descent updates
- Sigmoid, ReLU, LeakyReLU and Softmax activations
- Flatten and Dropout layers
- Binary and categorical cross-entropy losses
- Construction-time shape checks
"""

from .activations import ReLU, LeakyReLU, Sigmoid, Softmax, get_activation
from .layers import Layer, Dense, Activation, Flatten, Dropout
from .losses import BinaryCrossEntropyLoss, CategoricalCrossEntropyLoss, get_loss
from .hyperparameters import HyperParameters
from .network import NetworkBuilder, Network
from .errors import NetworkError, ConstructionError, LossError, ShapeError, NetworkStateError
from .utils import one_hot_encode, accuracy_score
from . import visualizations

__version__ = "1.0.0"
__all__ = [
    # Activations
    'ReLU', 'LeakyReLU', 'Sigmoid', 'Softmax', 'get_activation',
    # Layers
    'Layer', 'Dense', 'Activation', 'Flatten', 'Dropout',
    # Losses
    'BinaryCrossEntropyLoss', 'CategoricalCrossEntropyLoss', 'get_loss',
    # Configuration
    'HyperParameters',
    # Main classes
    'NetworkBuilder', 'Network',
    # Errors
    'NetworkError', 'ConstructionError', 'LossError', 'ShapeError', 'NetworkStateError',
    # Utilities
    'one_hot_encode', 'accuracy_score',
]
