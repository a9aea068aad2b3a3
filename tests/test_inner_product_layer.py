"""Tests for InnerProductLayer: setup shapes, forward values, gradients."""

import numpy as np
import pytest

from blobnet import (
    Blob,
    FillerParameter,
    GradientChecker,
    InnerProductLayer,
    LayerParameter,
    PreconditionError,
    get_backend,
)
from conftest import make_blob, requires_gpu


def _param(num_output=2, bias_term=True, **kwargs):
    return LayerParameter(
        name="ip",
        type="InnerProduct",
        num_output=num_output,
        bias_term=bias_term,
        weight_filler=FillerParameter(type="gaussian", std=1.0, seed=1),
        bias_filler=FillerParameter(type="gaussian", std=1.0, seed=2),
        **kwargs,
    )


def _layer(backend, **kwargs):
    return InnerProductLayer(_param(**kwargs), backend=backend)


def test_setup_shapes(cpu64):
    """Weight is K x N, bias is 1 x N, top is (M, N, 1, 1)."""
    bottom = Blob(4, 3, 2, 5, dtype=np.float64)
    top = Blob(dtype=np.float64)
    layer = _layer(cpu64, num_output=7)
    layer.setup([bottom], [top])
    weight, bias = layer.blobs
    assert weight.shape == (1, 1, 30, 7)
    assert (weight.height, weight.width) == (30, 7)
    assert bias.shape == (1, 1, 1, 7)
    assert top.shape == (4, 7, 1, 1)
    np.testing.assert_array_equal(layer.bias_multiplier.cpu_data().ravel(), np.ones(4))


def test_setup_without_bias(cpu64):
    layer = _layer(cpu64, bias_term=False)
    layer.setup([Blob(2, 3, 1, 1, dtype=np.float64)], [Blob(dtype=np.float64)])
    assert len(layer.blobs) == 1
    assert len(layer.params()) == len(layer.grads()) == 1


def test_blob_count_preconditions(cpu64):
    layer = _layer(cpu64)
    with pytest.raises(PreconditionError):
        layer.setup([Blob(2, 3, 1, 1), Blob(2, 3, 1, 1)], [Blob()])
    with pytest.raises(PreconditionError):
        layer.setup([Blob(2, 3, 1, 1)], [])


def test_non_positive_num_output(cpu64):
    layer = _layer(cpu64, num_output=0)
    with pytest.raises(PreconditionError):
        layer.setup([Blob(2, 3, 1, 1)], [Blob()])


def test_forward_before_setup(cpu64):
    layer = _layer(cpu64)
    with pytest.raises(PreconditionError):
        layer.forward([Blob(2, 3, 1, 1)], [Blob()])
    with pytest.raises(PreconditionError):
        layer.backward([Blob()], [True], [Blob(2, 3, 1, 1)])


def test_forward_matches_matrix_product(cpu64):
    """2x3 input, fixed 3x2 weight, fixed bias: row i = x_i . W + b."""
    x = np.array([[1.0, 2.0, 3.0], [-1.0, 0.5, 4.0]])
    W = np.array([[1.0, -1.0], [0.5, 2.0], [-2.0, 0.0]])
    b = np.array([0.25, -3.0])
    bottom = make_blob(x, shape=(2, 3, 1, 1))
    top = Blob(dtype=np.float64)
    layer = _layer(cpu64)
    layer.setup([bottom], [top])
    layer.blobs[0].mutable_cpu_data()[...] = W.reshape(1, 1, 3, 2)
    layer.blobs[1].mutable_cpu_data()[...] = b.reshape(1, 1, 1, 2)

    loss = layer.forward([bottom], [top])
    out = top.cpu_data().reshape(2, 2)
    np.testing.assert_allclose(out, x @ W + b)
    np.testing.assert_allclose(out - x @ W, np.tile(b, (2, 1)))
    assert loss == 0.0


def test_forward_overwrites_stale_top(cpu64):
    bottom = make_blob(np.ones((2, 3)), shape=(2, 3, 1, 1))
    top = Blob(dtype=np.float64)
    layer = _layer(cpu64, bias_term=False)
    layer.setup([bottom], [top])
    top.mutable_cpu_data()[...] = np.nan
    layer.forward([bottom], [top])
    assert np.all(np.isfinite(top.cpu_data()))


def test_forward_leaves_params_unchanged(cpu64):
    bottom = make_blob(np.arange(6.0).reshape(2, 3), shape=(2, 3, 1, 1))
    top = Blob(dtype=np.float64)
    layer = _layer(cpu64)
    layer.setup([bottom], [top])
    before = [p.copy() for p in layer.params()]
    layer.forward([bottom], [top])
    for old, new in zip(before, layer.params()):
        np.testing.assert_array_equal(old, new)


def test_backward_gradients(cpu64):
    x = np.random.RandomState(0).randn(4, 3)
    dy = np.random.RandomState(1).randn(4, 2)
    bottom = make_blob(x, shape=(4, 3, 1, 1))
    top = Blob(dtype=np.float64)
    layer = _layer(cpu64)
    layer.setup([bottom], [top])
    W = layer.blobs[0].cpu_data().reshape(3, 2).copy()
    layer.forward([bottom], [top])
    top.mutable_cpu_diff()[...] = dy.reshape(top.shape)

    loss = layer.backward([top], [True], [bottom])
    assert loss == 0.0
    np.testing.assert_allclose(layer.blobs[0].cpu_diff().reshape(3, 2), x.T @ dy)
    np.testing.assert_allclose(layer.blobs[1].cpu_diff().ravel(), dy.sum(axis=0))
    np.testing.assert_allclose(bottom.cpu_diff().reshape(4, 3), dy @ W.T)


def test_backward_without_propagate_down_keeps_bottom_diff(cpu64):
    bottom = make_blob(np.ones((2, 3)), shape=(2, 3, 1, 1))
    bottom.mutable_cpu_diff()[...] = 42.0
    top = Blob(dtype=np.float64)
    layer = _layer(cpu64)
    layer.setup([bottom], [top])
    layer.forward([bottom], [top])
    top.mutable_cpu_diff()[...] = 1.0
    layer.backward([top], False, [bottom])
    assert np.all(bottom.cpu_diff() == 42.0)
    assert np.any(layer.blobs[0].cpu_diff() != 0)


def test_propagate_down_length_mismatch(cpu64):
    bottom = make_blob(np.ones((2, 3)), shape=(2, 3, 1, 1))
    top = Blob(dtype=np.float64)
    layer = _layer(cpu64)
    layer.setup([bottom], [top])
    with pytest.raises(PreconditionError):
        layer.backward([top], [True, True], [bottom])


def test_finite_difference_gradients(cpu64):
    """Analytic weight, bias and input gradients match central differences."""
    bottom = make_blob(np.random.RandomState(3).randn(3, 2, 2), shape=(3, 2, 2, 1))
    top = Blob(dtype=np.float64)
    failures = GradientChecker(stepsize=1e-3, threshold=1e-3).check_gradient(
        _layer(cpu64, num_output=4), [bottom], [top]
    )
    assert failures == []


def test_single_weight_central_difference(cpu64):
    """dL/dW[i,j] equals (L(W+e) - L(W-e)) / 2e for L = 0.5 * sum(top^2)."""
    bottom = make_blob(np.random.RandomState(5).randn(2, 3), shape=(2, 3, 1, 1))
    top = Blob(dtype=np.float64)
    layer = _layer(cpu64)
    layer.setup([bottom], [top])
    GradientChecker.objective(layer, [bottom], [top])
    layer.backward([top], [True], [bottom])
    analytic = layer.blobs[0].cpu_diff().reshape(3, 2)[1, 0]

    eps = 1e-4
    weight = layer.blobs[0]
    orig = weight.cpu_data().reshape(3, 2)[1, 0]
    weight.mutable_cpu_data().reshape(3, 2)[1, 0] = orig + eps
    plus = GradientChecker.objective(layer, [bottom], [top])
    weight.mutable_cpu_data().reshape(3, 2)[1, 0] = orig - eps
    minus = GradientChecker.objective(layer, [bottom], [top])
    assert abs(analytic - (plus - minus) / (2 * eps)) < 1e-3


def test_reshape_new_batch_size(cpu64):
    bottom = make_blob(np.ones((2, 3)), shape=(2, 3, 1, 1))
    top = Blob(dtype=np.float64)
    layer = _layer(cpu64)
    layer.setup([bottom], [top])
    weight_before = layer.blobs[0].cpu_data().copy()
    bottom.reshape(5, 3, 1, 1)
    layer.reshape([bottom], [top])
    assert top.shape == (5, 2, 1, 1)
    assert layer.bias_multiplier.count == 5
    np.testing.assert_array_equal(layer.blobs[0].cpu_data(), weight_before)


def test_reshape_rejects_new_sample_size(cpu64):
    bottom = make_blob(np.ones((2, 3)), shape=(2, 3, 1, 1))
    top = Blob(dtype=np.float64)
    layer = _layer(cpu64)
    layer.setup([bottom], [top])
    bottom.reshape(2, 4, 1, 1)
    with pytest.raises(PreconditionError):
        layer.reshape([bottom], [top])


@requires_gpu
def test_cpu_and_gpu_agree():
    """Same inputs and parameters give the same outputs and gradients on both backends."""
    rng = np.random.RandomState(7)
    x = rng.randn(5, 6).astype(np.float32)
    dy = rng.randn(5, 3).astype(np.float32)
    results = {}
    for name in ("cpu", "gpu"):
        backend = get_backend(name, np.float32)
        bottom = make_blob(x, shape=(5, 6, 1, 1), dtype=np.float32)
        top = Blob(dtype=np.float32)
        layer = InnerProductLayer(_param(num_output=3), backend=backend)
        layer.setup([bottom], [top])
        layer.forward([bottom], [top])
        top.mutable_cpu_diff()[...] = dy.reshape(top.shape)
        layer.backward([top], [True], [bottom])
        results[name] = (
            top.cpu_data().copy(),
            layer.blobs[0].cpu_diff().copy(),
            layer.blobs[1].cpu_diff().copy(),
            bottom.cpu_diff().copy(),
        )
    for cpu_arr, gpu_arr in zip(results["cpu"], results["gpu"]):
        np.testing.assert_allclose(gpu_arr, cpu_arr, rtol=1e-4, atol=1e-5)
