"""
Integration Tests for the Network
=================================

Construction through NetworkBuilder, forward/backward/error on a built
Network, and end-to-end training scenarios.
"""

import numpy as np
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from feedforward.network import NetworkBuilder, Network
from feedforward.layers import Dense, Activation, Flatten, Dropout
from feedforward.errors import ConstructionError, LossError, ShapeError, NetworkStateError


def build_or_network(loss='bce', learning_rate=0.3):
    builder = NetworkBuilder(2, loss=loss)
    builder.set_learning_rate(learning_rate)
    builder.add_dense(2)
    builder.add_activation('sigmoid')
    builder.add_dense(1)
    return builder.build()


class TestNetworkConstruction:
    """Tests for NetworkBuilder."""

    def test_shape_pipeline(self):
        """(28, 28) -> Flatten -> Dense(10)."""
        builder = NetworkBuilder((28, 28), loss='none')
        builder.add_flatten()
        builder.add_dense(10)

        assert builder.shapes == [(28, 28), (784,), (10,)]

        network = builder.build()
        output = network.forward(np.random.randn(28, 28))

        assert network.shapes == [(28, 28), (784,), (10,)]
        assert output.shape == (10,)

    def test_int_input_shape(self):
        builder = NetworkBuilder(4)

        assert builder.shapes == [(4,)]

    def test_layer_types(self):
        builder = NetworkBuilder((4, 4), loss='cce')
        builder.add_flatten().add_dense(8).add_activation('relu').add_dropout(0.2)
        builder.add_dense(3).add_activation('softmax')
        network = builder.build()

        kinds = [type(layer) for layer in network.layers]
        assert kinds == [Flatten, Dense, Activation, Dropout, Dense, Activation]
        assert network.output_shape == (3,)

    def test_activation_keeps_shape(self):
        builder = NetworkBuilder(3)
        builder.add_dense(5).add_activation('leakyrelu')

        assert builder.shapes == [(3,), (5,), (5,)]

    def test_dense_sized_from_previous_stage(self):
        builder = NetworkBuilder((2, 3))
        builder.add_flatten().add_dense(4)

        dense = builder.layers[-1]
        assert dense.params['weight'].shape == (4, 6)

    def test_hyperparameters_reach_dense(self):
        builder = NetworkBuilder(3, loss='bce')
        builder.set_batch_size(4)
        builder.add_dense(1)
        builder.set_learning_rate(0.5)
        network = builder.build()

        assert network.layers[0].hyperparameters is network.hyperparameters
        assert network.hyperparameters.learning_rate == 0.5
        assert network.hyperparameters.batch_size == 4

    def test_unknown_loss(self):
        with pytest.raises(LossError):
            NetworkBuilder(2, loss='hinge')

    @pytest.mark.parametrize("shape", [0, (28, 0), (), 'abc'])
    def test_invalid_input_shape(self, shape):
        with pytest.raises(ConstructionError):
            NetworkBuilder(shape)


class TestRejectedLayers:
    """A rejected add_* call leaves the builder unchanged."""

    def _assert_unchanged(self, builder, layers, shapes):
        assert builder.layers == layers
        assert builder.shapes == shapes

    def test_dense_on_multidimensional_stage(self):
        builder = NetworkBuilder((28, 28))
        layers, shapes = builder.layers, builder.shapes

        with pytest.raises(ConstructionError):
            builder.add_dense(10)

        self._assert_unchanged(builder, layers, shapes)

    def test_flatten_on_flat_stage(self):
        builder = NetworkBuilder(4)
        builder.add_dense(3)
        layers, shapes = builder.layers, builder.shapes

        with pytest.raises(ConstructionError):
            builder.add_flatten()

        self._assert_unchanged(builder, layers, shapes)

    @pytest.mark.parametrize("output_dim", [0, -2, 1.5])
    def test_invalid_dense_dimension(self, output_dim):
        builder = NetworkBuilder(4)
        layers, shapes = builder.layers, builder.shapes

        with pytest.raises(ConstructionError):
            builder.add_dense(output_dim)

        self._assert_unchanged(builder, layers, shapes)

    def test_unknown_activation(self):
        builder = NetworkBuilder(4)
        builder.add_dense(2)
        layers, shapes = builder.layers, builder.shapes

        with pytest.raises(ConstructionError):
            builder.add_activation('tanh')

        self._assert_unchanged(builder, layers, shapes)

    def test_invalid_dropout(self):
        builder = NetworkBuilder(4)
        layers, shapes = builder.layers, builder.shapes

        with pytest.raises(ConstructionError):
            builder.add_dropout(1.0)

        self._assert_unchanged(builder, layers, shapes)

    def test_retry_after_rejection(self):
        builder = NetworkBuilder((2, 2))

        with pytest.raises(ConstructionError):
            builder.add_dense(3)
        builder.add_flatten().add_dense(3)

        assert builder.shapes == [(2, 2), (4,), (3,)]


class TestBuild:
    """Tests for the transition to a ready network."""

    def test_empty_network(self):
        with pytest.raises(NetworkStateError):
            NetworkBuilder(3).build()

    def test_builder_is_consumed(self):
        builder = NetworkBuilder(3)
        builder.add_dense(2)
        network = builder.build()

        assert isinstance(network, Network)
        with pytest.raises(NetworkStateError):
            builder.add_dense(2)
        with pytest.raises(NetworkStateError):
            builder.build()

    def test_softmax_must_be_last(self):
        builder = NetworkBuilder(3, loss='cce')
        builder.add_dense(4).add_activation('softmax').add_dense(2)

        with pytest.raises(ConstructionError):
            builder.build()

    def test_softmax_requires_cce(self):
        builder = NetworkBuilder(3, loss='bce')
        builder.add_dense(1).add_activation('softmax')

        with pytest.raises(ConstructionError):
            builder.build()

    def test_softmax_allowed_for_inference(self):
        builder = NetworkBuilder(3, loss='none')
        builder.add_dense(4).add_activation('softmax')

        network = builder.build()

        assert network.inference_only

    def test_bce_needs_single_output(self):
        builder = NetworkBuilder(3, loss='bce')
        builder.add_dense(2)

        with pytest.raises(ConstructionError):
            builder.build()

    def test_output_must_be_flat(self):
        builder = NetworkBuilder((2, 3))
        builder.add_activation('relu')

        with pytest.raises(ConstructionError):
            builder.build()

    def test_failed_build_keeps_builder_usable(self):
        builder = NetworkBuilder(3, loss='bce')
        builder.add_dense(2)

        with pytest.raises(ConstructionError):
            builder.build()
        builder.add_dense(1)

        assert builder.build().output_shape == (1,)


class TestNetworkForward:
    """Tests for the forward pass."""

    def test_inference_only_forward(self):
        """Logical-function network with loss 'none' still runs forward."""
        network = build_or_network(loss='none')

        output = network.forward(np.array([1.0, 0.0]))

        assert output.shape == (1,)

    def test_caches_last_example(self):
        network = build_or_network()
        x = np.array([1.0, 0.0])

        output = network.forward(x)

        np.testing.assert_array_equal(network.last_input, x)
        np.testing.assert_array_equal(network.last_output, output)

    def test_accepts_lists(self):
        network = build_or_network()

        assert network.forward([0, 1]).shape == (1,)

    def test_wrong_input_shape(self):
        network = build_or_network()

        with pytest.raises(ShapeError):
            network.forward(np.zeros(3))

    def test_softmax_output_is_distribution(self):
        np.random.seed(42)
        builder = NetworkBuilder((3, 3), loss='cce')
        builder.add_flatten().add_dense(5).add_activation('softmax')
        network = builder.build()

        output = network.forward(np.random.randn(3, 3))

        assert np.all(output >= 0)
        assert abs(np.sum(output) - 1.0) < 1e-9


class TestNetworkBackward:
    """Tests for backward and error."""

    def test_inference_only_rejects_backward(self):
        network = build_or_network(loss='none')
        network.forward([1.0, 0.0])

        with pytest.raises(LossError):
            network.backward([1.0])
        with pytest.raises(LossError):
            network.error([1.0])

    def test_backward_before_forward(self):
        network = build_or_network()

        with pytest.raises(NetworkStateError):
            network.backward([1.0])
        with pytest.raises(NetworkStateError):
            network.error([1.0])

    def test_wrong_target_shape(self):
        network = build_or_network()
        network.forward([1.0, 0.0])

        with pytest.raises(ShapeError):
            network.backward([1.0, 0.0])

    def test_backward_returns_nothing_and_updates(self):
        np.random.seed(42)
        network = build_or_network()
        W0 = network.layers[2].params['weight'].copy()

        network.forward([1.0, 1.0])
        result = network.backward([1.0])

        assert result is None
        np.testing.assert_array_equal(network.last_target, [1.0])
        assert not np.array_equal(network.layers[2].params['weight'], W0)

    def test_cce_backward_gradient(self):
        """Dense below softmax sees o - t."""
        np.random.seed(42)
        builder = NetworkBuilder(4, loss='cce')
        builder.add_dense(3).add_activation('softmax')
        network = builder.build()

        x = np.random.randn(4)
        target = np.array([0.0, 0.0, 1.0])
        output = network.forward(x)
        network.backward(target)

        np.testing.assert_allclose(network.layers[0].grads['bias'], output - target, atol=1e-12)

    def test_cce_backward_saturated_softmax(self):
        """A softmax output that underflows to 0 does not poison the weights."""
        builder = NetworkBuilder(2, loss='cce')
        builder.add_dense(2).add_activation('softmax')
        network = builder.build()
        dense = network.layers[0]
        dense.params['weight'] = np.array([[0.0, 0.0], [400.0, 400.0]])
        dense.params['bias'] = np.zeros(2)

        output = network.forward([1.0, 1.0])
        assert output[0] == 0.0

        target = np.array([1.0, 0.0])
        network.backward(target)

        np.testing.assert_array_equal(dense.grads['bias'], output - target)
        assert np.all(np.isfinite(dense.params['weight']))
        assert np.all(np.isfinite(dense.params['bias']))

    def test_backward_ignores_caller_input_changes(self):
        """Reusing the input buffer between forward and backward is safe."""
        np.random.seed(42)
        builder = NetworkBuilder(2, loss='cce')
        builder.add_dense(2).add_activation('softmax')
        network = builder.build()

        x = np.array([1.0, 0.0])
        output = network.forward(x)
        x[:] = [5.0, 5.0]

        target = np.array([0.0, 1.0])
        network.backward(target)

        np.testing.assert_array_equal(network.last_input, [1.0, 0.0])
        np.testing.assert_allclose(network.layers[0].grads['weight'],
                                   np.outer(output - target, [1.0, 0.0]), atol=1e-12)

    def test_error_values(self):
        np.random.seed(42)
        builder = NetworkBuilder(4, loss='cce')
        builder.add_dense(3).add_activation('softmax')
        network = builder.build()

        output = network.forward(np.random.randn(4))

        np.testing.assert_allclose(network.error([0.0, 1.0, 0.0]), -np.log(output[1]))

    def test_bce_error_value(self):
        builder = NetworkBuilder(1, loss='bce')
        builder.add_dense(1).add_activation('sigmoid')
        network = builder.build()

        o = network.forward([0.5])[0]

        np.testing.assert_allclose(network.error([1.0]), -np.log(o))
        np.testing.assert_allclose(network.error([0.0]), -np.log(1 - o))


class TestGradientAccumulation:
    """Tests for batch-averaged updates through the network."""

    def test_updates_once_per_batch(self):
        np.random.seed(42)
        builder = NetworkBuilder(2, loss='bce')
        builder.set_batch_size(4).set_learning_rate(0.1).set_accumulate_gradients()
        builder.add_dense(1)
        network = builder.build()
        dense = network.layers[0]
        W0 = dense.params['weight'].copy()

        X = np.array([[0.0, 0.0], [0.0, 1.0], [1.0, 0.0]])
        for x in X:
            network.train(x, [1.0])
        np.testing.assert_array_equal(dense.params['weight'], W0)

        network.flush()

        assert dense.pending == 0
        assert not np.array_equal(dense.params['weight'], W0)

    def test_default_is_per_example(self):
        np.random.seed(42)
        builder = NetworkBuilder(2, loss='bce')
        builder.set_batch_size(32)
        builder.add_dense(1)
        network = builder.build()
        W0 = network.layers[0].params['weight'].copy()

        network.train([1.0, 1.0], [1.0])

        assert not np.array_equal(network.layers[0].params['weight'], W0)


class TestTrainingScenarios:
    """End-to-end training."""

    def test_learns_logical_or(self):
        np.random.seed(42)
        network = build_or_network(loss='bce', learning_rate=0.3)

        X = np.array([[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]])
        y = np.array([[0.0], [1.0], [1.0], [1.0]])

        for _ in range(20000):
            for x, t in zip(X, y):
                network.train(x, t)

        predictions = np.array([network.predict(x)[0] for x in X])
        np.testing.assert_allclose(predictions, [0.0, 1.0, 1.0, 1.0], atol=0.1)

    def test_fit_reduces_loss(self):
        np.random.seed(42)
        builder = NetworkBuilder(4, loss='cce')
        builder.set_learning_rate(0.05)
        builder.add_dense(8).add_activation('relu')
        builder.add_dense(3).add_activation('softmax')
        network = builder.build()

        # Three well separated clusters
        centers = np.eye(3, 4) * 3
        labels = np.random.randint(0, 3, 60)
        X = centers[labels] + np.random.randn(60, 4) * 0.3

        history = network.fit(X, labels, epochs=10, verbose=False)

        assert len(history['loss']) == 10
        assert history['loss'][-1] < history['loss'][0], "Loss should decrease during training"
        assert network.score(X, labels) > 0.9

    def test_fit_inference_only(self):
        network = build_or_network(loss='none')

        with pytest.raises(LossError):
            network.fit(np.zeros((4, 2)), np.zeros(4), epochs=1, verbose=False)

    def test_fit_length_mismatch(self):
        network = build_or_network()

        with pytest.raises(ShapeError):
            network.fit(np.zeros((4, 2)), np.zeros(3), epochs=1, verbose=False)

    def test_evaluate(self):
        np.random.seed(42)
        network = build_or_network()
        X = np.array([[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]])
        y = np.array([0.0, 1.0, 1.0, 1.0])

        loss, accuracy = network.evaluate(X, y)

        assert isinstance(loss, float)
        assert 0 <= accuracy <= 1

    def test_evaluate_inference_only(self):
        network = build_or_network(loss='none')
        X = np.array([[0.0, 0.0], [1.0, 1.0]])

        loss, accuracy = network.evaluate(X, np.array([0.0, 1.0]))

        assert loss is None
        assert 0 <= accuracy <= 1


class TestDiagnostics:
    """Tests for the setup listing and plots."""

    def test_print_setup(self, capsys):
        builder = NetworkBuilder((28, 28), loss='none')
        builder.add_flatten().add_dense(10)
        network = builder.build()

        total = network.print_setup()
        printed = capsys.readouterr().out

        assert total == 784 * 10 + 10
        assert "Flatten()" in printed
        assert "Dense(784, 10)" in printed

    def test_plot_training_history(self, tmp_path):
        import matplotlib
        matplotlib.use('Agg')
        from feedforward.visualizations import plot_training_history

        history = {'loss': [1.0, 0.5, 0.25], 'accuracy': [0.3, 0.6, 0.9]}
        save_path = tmp_path / "history.png"

        fig = plot_training_history(history, save_path=str(save_path), show=False)

        assert save_path.exists()
        assert len(fig.axes) == 2


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
