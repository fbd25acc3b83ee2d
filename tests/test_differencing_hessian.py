"""Unit tests for finitediffkit.differencing.hessian."""

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from finitediffkit.differencing import (
    central_diff,
    central_hessian,
    central_hessian_vec_prod,
    forward_diff,
    forward_hessian,
    forward_hessian_nograd,
    forward_hessian_nograd_sparse,
    forward_hessian_vec_prod,
)

EXPECTED = np.array(
    [
        [0.0, 0.0, 0.0, 0.0],
        [0.0, 2.0, 0.0, 0.0],
        [0.0, 0.0, 0.0, 2.0],
        [0.0, 0.0, 2.0, 2.0],
    ]
)
SPARSE_INDICES = [(1, 1), (2, 3), (3, 3)]


def model(x):
    """f(x) = x0 + x1**2 + x2 * x3**2."""
    return x[0] + x[1] ** 2 + x[2] * x[3] ** 2


def forward_gradient(x):
    """Gradient callable built from forward differences of ``model``."""
    return forward_diff(x, model)


def central_gradient(x):
    """Gradient callable built from central differences of ``model``."""
    return central_diff(x, model)


def model_smooth_3d(x):
    """A smooth function with a dense Hessian."""
    return np.exp(0.5 * x[0]) * np.cos(x[1]) + x[1] * x[2] ** 2


class CountingFunction:
    """Wraps a function and counts its calls."""

    def __init__(self, fn):
        self.fn = fn
        self.calls = 0

    def __call__(self, x):
        self.calls += 1
        return self.fn(x)


def assert_exactly_symmetric(mat):
    """Asserts mat[i][j] == mat[j][i] bit for bit."""
    arr = np.asarray(mat)
    assert_array_equal(arr, arr.T)


def all_hessians(x):
    """Every Hessian route on the reference model."""
    return {
        "forward": forward_hessian(x, forward_gradient),
        "central": central_hessian(x, central_gradient),
        "nograd": forward_hessian_nograd(x, model),
        "nograd_sparse": forward_hessian_nograd_sparse(x, model, SPARSE_INDICES),
    }


@pytest.mark.parametrize("make", [list, np.array])
def test_hessians_match_reference(make):
    """Tests every Hessian route against the analytic Hessian at x = 1."""
    for name, hess in all_hessians(make([1.0, 1.0, 1.0, 1.0])).items():
        assert_allclose(np.asarray(hess), EXPECTED, rtol=0, atol=1e-6, err_msg=name)
        assert_exactly_symmetric(hess)


@pytest.mark.parametrize("make", [list, np.array])
def test_hessians_keep_container_type(make):
    """Tests that Hessians come back in the matrix type of the input's backend."""
    x = make([1.0, 1.0, 1.0, 1.0])
    for hess in all_hessians(x).values():
        if isinstance(x, list):
            assert isinstance(hess, list) and all(isinstance(r, list) for r in hess)
        else:
            assert isinstance(hess, np.ndarray) and hess.shape == (4, 4)


def test_smooth_hessians_symmetric_away_from_dyadic_points():
    """Tests exact symmetry where rounding noise differs per entry."""
    x = np.array([0.3, -0.7, 1.1])

    def g(v):
        return central_diff(v, model_smooth_3d)

    results = [
        forward_hessian(x, g),
        central_hessian(x, g),
        forward_hessian_nograd(x, model_smooth_3d),
    ]
    for hess in results:
        assert hess.shape == (3, 3)
        assert np.isfinite(hess).all()
        assert_exactly_symmetric(hess)


@pytest.mark.parametrize(
    "method, gradient",
    [(forward_hessian_vec_prod, forward_gradient), (central_hessian_vec_prod, central_gradient)],
)
@pytest.mark.parametrize("make", [list, np.array])
def test_hessian_vec_prod(method, gradient, make):
    """Tests H @ p for the reference model."""
    x = make([1.0, 1.0, 1.0, 1.0])
    p = make([2.0, 3.0, 4.0, 5.0])
    out = method(x, gradient, p)
    assert type(out) is type(x)
    assert_allclose(out, [0.0, 6.0, 10.0, 18.0], rtol=0, atol=1e-6)


def test_hessian_vec_prod_takes_two_gradient_evaluations():
    """Tests that the product costs two gradient evaluations."""
    g = CountingFunction(forward_gradient)
    central_hessian_vec_prod([1.0] * 4, g, [1.0] * 4)
    assert g.calls == 2


def test_hessian_vec_prod_rejects_wrong_direction_length():
    """Tests that p must match the length of x."""
    with pytest.raises(ValueError, match="length 4"):
        forward_hessian_vec_prod([1.0] * 4, forward_gradient, [1.0] * 3)


def test_gradient_based_hessian_evaluation_counts():
    """Tests n + 1 forward and 2n central evaluations of the gradient."""
    g = CountingFunction(forward_gradient)
    forward_hessian([1.0] * 4, g)
    assert g.calls == 5
    g = CountingFunction(central_gradient)
    central_hessian([1.0] * 4, g)
    assert g.calls == 8


def test_nograd_evaluation_count():
    """Tests 1 + n + n (n + 1) / 2 evaluations of f for the dense gradient-free route."""
    f = CountingFunction(model)
    forward_hessian_nograd([1.0] * 4, f)
    assert f.calls == 1 + 4 + 10


def test_nograd_sparse_evaluation_count():
    """Tests that only the singles and pairs needed by the listed entries are evaluated."""
    f = CountingFunction(model)
    forward_hessian_nograd_sparse([1.0] * 4, f, SPARSE_INDICES)
    assert f.calls == 1 + 3 + 3


def test_nograd_sparse_mirrors_and_deduplicates():
    """Tests that (a, b) fills (b, a) and that (b, a) is not evaluated again."""
    f = CountingFunction(model)
    hess = forward_hessian_nograd_sparse(np.ones(4), f, [(3, 2), (2, 3)])
    assert f.calls == 1 + 2 + 1
    expected = np.zeros((4, 4))
    expected[2, 3] = expected[3, 2] = 2.0
    assert_allclose(hess, expected, rtol=0, atol=1e-6)


def test_nograd_sparse_unlisted_entries_are_zero():
    """Tests that entries not listed stay zero even where the true Hessian is not."""
    hess = forward_hessian_nograd_sparse(np.ones(4), model, [(1, 1)])
    expected = np.zeros((4, 4))
    expected[1, 1] = 2.0
    assert_allclose(hess, expected, rtol=0, atol=1e-6)


def test_nograd_sparse_rejects_out_of_range_index():
    """Tests that indices beyond x raise IndexError."""
    with pytest.raises(IndexError):
        forward_hessian_nograd_sparse([1.0] * 4, model, [(0, 4)])


def test_nograd_empty_input():
    """Tests the n = 0 boundary of the gradient-free route."""
    f = CountingFunction(lambda v: 1.0)
    hess = forward_hessian_nograd(np.zeros(0), f)
    assert hess.shape == (0, 0)
    assert f.calls == 1


def test_gradient_of_wrong_length_raises():
    """Tests that a gradient callable returning the wrong length is rejected."""
    with pytest.raises(ValueError, match="square"):
        forward_hessian(np.ones(3), lambda v: np.array([v[0], v[1]]))


def test_hessians_leave_input_unchanged():
    """Tests that x is not modified by any Hessian route."""
    x = np.ones(4)
    all_hessians(x)
    forward_hessian_vec_prod(x, forward_gradient, np.arange(4.0))
    central_hessian_vec_prod(x, central_gradient, np.arange(4.0))
    assert_array_equal(x, np.ones(4))


@pytest.mark.parallel
def test_parallel_equals_serial(extra_threads_ok):
    """Tests that threaded Hessians equal the sequential ones."""
    if not extra_threads_ok:
        pytest.skip("cannot spawn threads")
    x = np.array([0.3, -0.7, 1.1])

    def g(v):
        return central_diff(v, model_smooth_3d)

    for method, fn in [
        (forward_hessian, g),
        (central_hessian, g),
        (forward_hessian_nograd, model_smooth_3d),
    ]:
        assert_array_equal(method(x, fn, n_workers=1), method(x, fn, n_workers=3))
    serial = forward_hessian_nograd_sparse(x, model_smooth_3d, [(0, 1), (2, 2)], n_workers=1)
    threaded = forward_hessian_nograd_sparse(x, model_smooth_3d, [(0, 1), (2, 2)], n_workers=3)
    assert_array_equal(serial, threaded)
