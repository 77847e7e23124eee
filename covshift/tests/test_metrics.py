# License: BSD 3-Clause

import numpy as np
import pytest
from numpy.testing import assert_allclose
from sklearn.utils import check_random_state

from covshift import InvalidSampleError
from covshift.datasets import make_shifted_gaussians
from covshift.metrics import (
    effective_sample_size,
    mmd_squared,
    weighted_density_compare,
)


def _gaussian_kernel(x, y):
    return np.exp(-np.sum((x - y) ** 2))


@pytest.mark.parametrize(
    "kernel, kernel_params",
    [
        ("linear", {}),
        ("rbf", {}),
        ("rbf", {"gamma": 0.1}),
        ("poly", {"degree": 2}),
        ("laplacian", {}),
        (_gaussian_kernel, {}),
    ],
)
def test_mmd_of_sample_with_itself_is_zero(kernel, kernel_params):
    rng = check_random_state(0)
    X = rng.normal(size=(30, 2))

    mmd2 = mmd_squared(X, np.ones(30), X, kernel=kernel, **kernel_params)
    assert mmd2 == pytest.approx(0.0, abs=1e-10)
    assert mmd_squared(X, None, X, kernel=kernel, **kernel_params) == pytest.approx(
        0.0, abs=1e-10
    )


def test_mmd_linear_kernel_is_mean_difference():
    rng = check_random_state(0)
    X_source = rng.normal(size=(40, 3))
    X_target = rng.normal(loc=1.0, size=(25, 3))
    weights = rng.uniform(0, 2, size=40)

    expected = np.sum((weights @ X_source / 40 - X_target.mean(axis=0)) ** 2)
    assert mmd_squared(X_source, weights, X_target) == pytest.approx(expected)


def test_mmd_callable_kernel_matches_rbf():
    rng = check_random_state(1)
    X_source = rng.normal(size=(20, 2))
    X_target = rng.normal(loc=0.5, size=(15, 2))
    weights = rng.uniform(size=20)

    assert mmd_squared(
        X_source, weights, X_target, kernel=_gaussian_kernel
    ) == pytest.approx(
        mmd_squared(X_source, weights, X_target, kernel="rbf", gamma=1.0)
    )


def test_mmd_univariate_samples():
    assert mmd_squared([0.0, 1.0], None, [0.5]) == pytest.approx(0.0)
    assert mmd_squared([0.0, 1.0], [2.0, 0.0], [0.5]) == pytest.approx(0.25)


def test_mmd_invalid_inputs():
    X = np.ones((5, 2))
    with pytest.raises(InvalidSampleError):
        mmd_squared(X, np.ones(4), X)
    with pytest.raises(InvalidSampleError):
        mmd_squared(X, [1, 1, 1, 1, np.nan], X)
    with pytest.raises(InvalidSampleError):
        mmd_squared(X, None, np.ones((5, 3)))
    with pytest.raises(InvalidSampleError):
        mmd_squared(np.empty((0, 2)), None, X)
    with pytest.raises(ValueError, match="kernel"):
        mmd_squared(X, None, X, kernel="gaussian")


def test_effective_sample_size():
    assert effective_sample_size(np.ones(10)) == pytest.approx(10.0)
    assert effective_sample_size([3.0, 0.0, 0.0]) == pytest.approx(1.0)
    assert effective_sample_size([1.0, 1.0, 2.0]) == pytest.approx(16 / 6)
    assert effective_sample_size(np.zeros(4)) == 0.0

    with pytest.raises(InvalidSampleError):
        effective_sample_size([1.0, -1.0])


def test_weighted_density_compare():
    shift = 0.5
    X_source, X_target = make_shifted_gaussians(
        n_samples_source=500,
        n_samples_target=500,
        shift=shift,
        random_state=0,
    )
    # true density ratio N(shift, 1) / N(0, 1)
    weights = np.exp(shift * X_source[:, 0] - shift ** 2 / 2)

    comparison = weighted_density_compare(X_source, weights, X_target)

    assert set(comparison.keys()) == {
        "mmd2",
        "mmd2_unweighted",
        "effective_sample_size",
        "mean_difference",
        "mean_difference_unweighted",
    }
    assert comparison.mmd2_unweighted == pytest.approx(
        mmd_squared(X_source, None, X_target, kernel="rbf")
    )
    assert comparison.mean_difference.shape == (1,)
    assert 0 < comparison.effective_sample_size < 500
    assert np.abs(comparison.mean_difference[0]) < np.abs(
        comparison.mean_difference_unweighted[0]
    )


def test_weighted_density_compare_uniform_weights():
    rng = check_random_state(0)
    X = rng.normal(size=(30, 2))
    X_reference = rng.normal(loc=1.0, size=(20, 2))

    comparison = weighted_density_compare(X, np.ones(30), X_reference, kernel="linear")
    assert comparison.mmd2 == pytest.approx(comparison.mmd2_unweighted)
    assert comparison.effective_sample_size == pytest.approx(30.0)
    assert_allclose(comparison.mean_difference, comparison.mean_difference_unweighted)


def test_weighted_density_compare_zero_weights():
    rng = check_random_state(0)
    X = rng.normal(size=(10, 1))
    X_reference = rng.normal(size=(10, 1))

    with pytest.warns(UserWarning, match="All weights are zero"):
        comparison = weighted_density_compare(X, np.zeros(10), X_reference)
    assert comparison.effective_sample_size == pytest.approx(10.0)

    with pytest.raises(InvalidSampleError):
        weighted_density_compare(X, -np.ones(10), X_reference)
