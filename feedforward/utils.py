"""
Utility Functions
=================

Helper functions for:
- Target encoding
- Metrics
- Model summaries
"""

import numpy as np


def one_hot_encode(labels, num_classes=None):
    """
    Convert integer labels to one-hot encoded vectors.

    Args:
        labels: Integer labels, shape (N,)
        num_classes: Number of classes (inferred if None)

    Returns:
        One-hot matrix, shape (N, num_classes)
    """
    labels = np.asarray(labels).astype(int)

    if num_classes is None:
        num_classes = labels.max() + 1

    one_hot = np.zeros((len(labels), num_classes), dtype=np.float64)
    one_hot[np.arange(len(labels)), labels] = 1.0

    return one_hot


def accuracy_score(y_true, y_pred):
    """
    Compute classification accuracy.

    Args:
        y_true: True labels (integers, one-hot, or a single 0/1 column)
        y_pred: Predictions (probabilities, one-hot, or a single column)

    Returns:
        Accuracy as float

    A single output column is a binary classifier and is thresholded at 0.5,
    wider outputs are compared by argmax.
    """
    y_true = np.asarray(y_true)
    y_pred = np.asarray(y_pred)

    if y_pred.ndim > 1 and y_pred.shape[1] == 1:
        return float(np.mean((y_true.reshape(-1) >= 0.5) == (y_pred.reshape(-1) >= 0.5)))

    if y_true.ndim > 1:
        y_true = np.argmax(y_true, axis=1)
    if y_pred.ndim > 1:
        y_pred = np.argmax(y_pred, axis=1)

    return float(np.mean(y_true == y_pred))


def count_params(layer):
    """Number of trainable values in a layer."""
    return sum(param.size for param in getattr(layer, 'params', {}).values())


def get_model_summary(layers, shapes):
    """
    Generate model summary.

    Args:
        layers: List of layer objects
        shapes: Stage shapes, the input shape followed by one per layer

    Returns:
        Summary string
    """
    lines = []
    lines.append("=" * 70)
    lines.append(f"{'Layer':<30} {'Output Shape':<20} {'Params':<15}")
    lines.append("=" * 70)
    lines.append(f"{'Input':<30} {str(tuple(shapes[0])):<20} {0:,}")

    total_params = 0

    for layer, shape in zip(layers, shapes[1:]):
        n_params = count_params(layer)
        total_params += n_params

        lines.append(f"{str(layer):<30} {str(tuple(shape)):<20} {n_params:,}")

    lines.append("=" * 70)
    lines.append(f"Total trainable parameters: {total_params:,}")
    lines.append("=" * 70)

    return '\n'.join(lines)
