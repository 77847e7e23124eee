# License: BSD 3-Clause

import logging
import warnings

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal
from sklearn.base import clone
from sklearn.exceptions import NotFittedError
from sklearn.utils import check_random_state

from covshift import (
    BallRatioReweightAdapter,
    DegenerateRegionWarning,
    InvalidSampleError,
    default_radius,
    default_threshold,
    estimate_ratio,
)
from covshift.utils import source_target_merge


@pytest.mark.parametrize("threshold", [0.0, 0.5, 1.0])
def test_ratio_zero_where_target_is_absent(threshold):
    X_source = np.zeros((5, 1))
    X_target = np.ones((5, 1))

    with warnings.catch_warnings():
        warnings.simplefilter("error", DegenerateRegionWarning)
        raw, guarded = estimate_ratio([[0.0]], X_target, X_source, 0.5, threshold)

    assert_array_equal(raw, [0.0])
    assert_array_equal(guarded, [0.0])


def test_threshold_zeroes_unreliable_estimates():
    X_source = np.array([[0.0], [0.0], [0.0], [10.0]])
    X_target = np.array([[10.0], [10.0], [10.0], [0.0]])
    X_query = np.array([[0.0], [10.0]])

    raw, guarded = estimate_ratio(X_query, X_target, X_source, 0.5, threshold=0.5)

    # source mass is 3/4 at 0 and 1/4 at 10
    assert_allclose(raw, [1 / 3, 3.0])
    assert_allclose(guarded, [1 / 3, 0.0])

    _, guarded = estimate_ratio(X_query, X_target, X_source, 0.5, threshold=0.0)
    assert_allclose(guarded, [1 / 3, 3.0])


def test_identical_samples_ratio_is_one():
    rng = check_random_state(0)
    X = rng.normal(size=(50, 2))

    for radius in [0.1, 0.5, 2.0]:
        raw, guarded = estimate_ratio(X, X, X, radius)
        assert_allclose(raw, 1.0)
        assert_allclose(guarded, 1.0)


def test_ratio_increases_with_target_mass():
    X_source = np.array([[0.0], [5.0]])
    ratios = []
    for n_close in range(1, 4):
        X_target = np.array([[0.0]] * n_close + [[5.0]] * (4 - n_close))
        raw, _ = estimate_ratio([[0.0]], X_target, X_source, 0.5)
        ratios.append(raw[0])

    assert_allclose(ratios, [0.5, 1.0, 1.5])
    assert np.all(np.diff(ratios) > 0)


def test_empty_source_ball_warns():
    X_source = np.zeros((3, 1))
    X_target = np.full((3, 1), 5.0)

    with pytest.warns(DegenerateRegionWarning, match="1 out of 2"):
        raw, guarded = estimate_ratio(
            [[5.0], [0.0]], X_target, X_source, 1.0, threshold=0.0
        )

    assert np.isposinf(raw[0])
    assert raw[1] == 0.0
    assert_array_equal(guarded, [0.0, 0.0])
    assert np.all(np.isfinite(guarded))


@pytest.mark.parametrize("algorithm", ["auto", "kd_tree", "ball_tree"])
def test_tree_counts_match_brute_force(algorithm):
    rng = check_random_state(42)
    X_source = rng.normal(size=(80, 3))
    X_target = rng.normal(loc=0.3, size=(70, 3))
    X_query = rng.normal(size=(20, 3))

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", DegenerateRegionWarning)
        expected = estimate_ratio(
            X_query, X_target, X_source, 1.2, 0.05, algorithm="brute"
        )
        result = estimate_ratio(
            X_query, X_target, X_source, 1.2, 0.05, algorithm=algorithm
        )

    assert_array_equal(result[0], expected[0])
    assert_array_equal(result[1], expected[1])


def test_guarded_estimate_consistency():
    # the guarded estimate gets closer to the true ratio (1) with more data
    rng = check_random_state(0)
    deviations = []
    for n in [100, 2000]:
        X_source = rng.normal(size=(n, 1))
        X_target = rng.normal(size=(n, 1))
        radius = default_radius(n, n, 1, smoothness=1.0)
        threshold = default_threshold(n)
        _, guarded = estimate_ratio(X_source, X_target, X_source, radius, threshold)
        deviations.append(np.mean(np.abs(guarded - 1)))

    assert deviations[1] < deviations[0]


@pytest.mark.parametrize(
    "X_source, X_target, X_query",
    [
        (np.empty((0, 1)), [[1.0]], [[0.0]]),
        ([[1.0]], [], [[0.0]]),
        ([[1.0]], [[1.0]], np.empty((0, 1))),
        ([[1.0, 2.0]], [[1.0]], [[0.0]]),
        ([[1.0]], [[1.0]], [[0.0, 1.0]]),
        ([[np.nan]], [[1.0]], [[0.0]]),
        ([[1.0]], [[np.inf]], [[0.0]]),
    ],
)
def test_invalid_samples(X_source, X_target, X_query):
    with pytest.raises(InvalidSampleError):
        estimate_ratio(X_query, X_target, X_source, 0.5)


@pytest.mark.parametrize(
    "params",
    [
        dict(radius=-1.0),
        dict(radius=np.nan),
        dict(radius=0.5, threshold=-0.1),
        dict(radius=0.5, algorithm="kmeans"),
    ],
)
def test_invalid_parameters(params):
    with pytest.raises(InvalidSampleError):
        estimate_ratio([[0.0]], [[0.0]], [[0.0]], **params)


def test_invalid_sample_error_is_value_error():
    with pytest.raises(ValueError):
        estimate_ratio([[0.0]], [[0.0]], [], 0.5)


def test_default_radius_and_threshold():
    assert default_radius(100, 1000, 1) == pytest.approx(
        (np.log(100) / 100) ** (1 / 3)
    )
    assert default_radius(100, 100, 2, smoothness=0.5, scale=2.0) == pytest.approx(
        2.0 * (np.log(100) / 100) ** (0.5 / 3)
    )
    assert default_radius(1, 100, 1) == 0.0
    assert default_threshold(50) == pytest.approx(np.log(50) / 50)
    assert default_threshold(50, scale=0.0) == 0.0
    assert default_threshold(1) == 0.0

    with pytest.raises(InvalidSampleError):
        default_radius(10, 10, 1, smoothness=1.5)
    with pytest.raises(InvalidSampleError):
        default_radius(10, 10, 1, smoothness=0.0)
    with pytest.raises(InvalidSampleError):
        default_threshold(10, scale=-1.0)


def test_ball_ratio_adapter(shifted_gaussians):
    X, sample_domain = shifted_gaussians
    n_source = np.count_nonzero(sample_domain >= 0)
    n_target = np.count_nonzero(sample_domain < 0)

    adapter = BallRatioReweightAdapter()
    adapter.fit(X, sample_domain=sample_domain)

    assert adapter.radius_ == pytest.approx(default_radius(n_target, n_source, 2))
    assert adapter.threshold_ == pytest.approx(default_threshold(n_target))
    assert adapter.X_source_.shape == (n_source, 2)
    assert adapter.X_target_.shape == (n_target, 2)

    weights = adapter.compute_weights(X, sample_domain=sample_domain)
    assert weights.shape == (X.shape[0],)
    assert np.all(weights >= 0)
    assert np.all(weights[sample_domain < 0] == 0)

    raw, guarded = adapter.estimate_ratio(X[sample_domain >= 0])
    assert_array_equal(guarded, weights[sample_domain >= 0])
    assert np.all((guarded == raw) | (guarded == 0))


def test_ball_ratio_adapter_fixed_parameters():
    X, sample_domain = source_target_merge(
        np.array([[0.0], [0.0], [0.0], [10.0]]),
        np.array([[10.0], [10.0], [10.0], [0.0]]),
    )
    adapter = BallRatioReweightAdapter(radius=0.5, threshold=0.5)
    adapter.fit(X, sample_domain=sample_domain)

    assert adapter.radius_ == 0.5
    assert adapter.threshold_ == 0.5
    assert_allclose(adapter.predict([[0.0], [10.0]]), [1 / 3, 0.0])

    adapter.set_params(threshold=0.0).fit(X, sample_domain=sample_domain)
    assert_allclose(adapter.predict([[0.0], [10.0]]), [1 / 3, 3.0])


@pytest.mark.parametrize(
    "params",
    [
        dict(radius=-0.5),
        dict(threshold=-0.5),
        dict(smoothness=2.0),
        dict(algorithm="kmeans"),
    ],
)
def test_ball_ratio_adapter_invalid_parameters(shifted_gaussians, params):
    X, sample_domain = shifted_gaussians
    with pytest.raises(InvalidSampleError):
        BallRatioReweightAdapter(**params).fit(X, sample_domain=sample_domain)


def test_ball_ratio_adapter_needs_source(shifted_gaussians):
    X, sample_domain = shifted_gaussians

    # without sample_domain every sample is considered as target
    with pytest.raises(InvalidSampleError, match="source"):
        BallRatioReweightAdapter().fit(X)

    with pytest.raises(InvalidSampleError, match="target"):
        BallRatioReweightAdapter().fit(
            X[sample_domain >= 0], sample_domain=sample_domain[sample_domain >= 0]
        )


def test_ball_ratio_adapter_query_checks(shifted_gaussians):
    X, sample_domain = shifted_gaussians
    adapter = BallRatioReweightAdapter()

    with pytest.raises(NotFittedError):
        adapter.predict(X)

    adapter.fit(X, sample_domain=sample_domain)
    with pytest.raises(InvalidSampleError):
        adapter.predict(X[:, :1])

    cloned = clone(adapter)
    assert cloned.get_params() == adapter.get_params()
    assert not hasattr(cloned, "radius_")


def test_ball_ratio_adapter_logs_fit(shifted_gaussians, caplog):
    X, sample_domain = shifted_gaussians
    with caplog.at_level(logging.DEBUG, logger="covshift"):
        BallRatioReweightAdapter().fit(X, sample_domain=sample_domain)

    assert "Ball ratio fitted" in caplog.text
