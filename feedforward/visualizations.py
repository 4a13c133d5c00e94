"""
Visualization Utilities
=======================

Plots of training progress as recorded by Network.fit().
"""

import matplotlib.pyplot as plt


def plot_training_history(history, figsize=(14, 5), save_path=None, show=True):
    """
    Plot training history (loss and accuracy curves).

    Args:
        history: Dictionary with 'loss' and 'accuracy' lists, one entry per epoch
        figsize: Figure size
        save_path: Path to save figure
        show: Open a window with the figure

    Returns:
        The matplotlib Figure
    """
    fig, axes = plt.subplots(1, 2, figsize=figsize)

    epochs = range(1, len(history['loss']) + 1)

    # Loss plot
    axes[0].plot(epochs, history['loss'], 'b-', label='Training Loss', linewidth=2)
    axes[0].set_xlabel('Epoch', fontsize=12)
    axes[0].set_ylabel('Loss', fontsize=12)
    axes[0].set_title('Training Loss', fontsize=14)
    axes[0].legend(fontsize=10)
    axes[0].grid(True, alpha=0.3)

    # Accuracy plot
    axes[1].plot(epochs, history['accuracy'], 'b-', label='Training Accuracy', linewidth=2)
    axes[1].set_xlabel('Epoch', fontsize=12)
    axes[1].set_ylabel('Accuracy', fontsize=12)
    axes[1].set_title('Training Accuracy', fontsize=14)
    axes[1].legend(fontsize=10)
    axes[1].grid(True, alpha=0.3)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        print(f"Training history plot saved to {save_path}")

    if show:
        plt.show()
    return fig
