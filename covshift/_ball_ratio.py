# License: BSD 3-Clause

import warnings
from numbers import Real

import numpy as np
from sklearn.metrics import pairwise_distances_chunked
from sklearn.neighbors import BallTree, KDTree
from sklearn.utils.validation import check_is_fitted

from ._utils import _logger
from .base import BaseReweightAdapter
from .exceptions import DegenerateRegionWarning, InvalidSampleError
from .utils import check_samples

_ALGORITHMS = ("auto", "brute", "kd_tree", "ball_tree")


def default_radius(n_target, n_source, n_features, smoothness=1.0, scale=1.0):
    r"""Radius given by the convergence rate of the ball-ratio estimator.

    .. math::
        r = c \left(\frac{\log m}{m}\right)^{\beta / (2 \beta + d)},
        \quad m = \min(n_T, n_S)

    Parameters
    ----------
    n_target : int
        Number of target samples.
    n_source : int
        Number of source samples.
    n_features : int
        Dimension d of the samples.
    smoothness : float, default=1.0
        Hölder exponent :math:`\beta` of the density ratio, in (0, 1].
    scale : float, default=1.0
        Multiplicative constant c.

    Returns
    -------
    radius : float
        The radius, 0 when fewer than two samples are available.
    """
    if not 0 < smoothness <= 1:
        raise InvalidSampleError(
            f"`smoothness` should be in (0, 1], got {smoothness!r}"
        )
    if scale < 0:
        raise InvalidSampleError(f"`scale` should be non-negative, got {scale!r}")
    m = min(n_target, n_source)
    if m <= 1:
        return 0.0
    return scale * (np.log(m) / m) ** (smoothness / (2 * smoothness + n_features))


def default_threshold(n_target, scale=1.0):
    """Reliability threshold ``scale * log(n_target) / n_target``."""
    if scale < 0:
        raise InvalidSampleError(f"`scale` should be non-negative, got {scale!r}")
    if n_target <= 1:
        return 0.0
    return scale * np.log(n_target) / n_target


def _check_non_negative(value, name):
    if not isinstance(value, Real) or np.isnan(value) or value < 0:
        raise InvalidSampleError(
            f"`{name}` should be a non-negative number, got {value!r}"
        )
    return float(value)


def _ball_mass(X_query, X_ref, radius, algorithm="brute", leaf_size=30):
    """Fraction of `X_ref` inside the closed ball B(x, radius) for every
    query point x."""
    if algorithm == "brute":
        counts = np.concatenate([
            np.count_nonzero(D <= radius, axis=1)
            for D in pairwise_distances_chunked(
                X_query, X_ref, metric="minkowski", p=2
            )
        ])
    else:
        tree_cls = BallTree if algorithm == "ball_tree" else KDTree
        tree = tree_cls(X_ref, leaf_size=leaf_size)
        counts = tree.query_radius(X_query, r=radius, count_only=True)
    return counts / X_ref.shape[0]


def estimate_ratio(
    X_query,
    X_target,
    X_source,
    radius,
    threshold=0.0,
    *,
    algorithm="brute",
    leaf_size=30,
):
    r"""Ball-ratio estimate of the density ratio p_target / p_source.

    For every query point x the empirical masses of the closed ball
    :math:`B(x, r)` are computed in both samples,

    .. math::
        \hat{p}_T(x) = \frac{|\{t \in T : \|t - x\| \le r\}|}{|T|}, \quad
        \hat{p}_S(x) = \frac{|\{s \in S : \|s - x\| \le r\}|}{|S|}

    and the raw ratio is :math:`\hat{p}_T(x) / \hat{p}_S(x)` (``+inf`` when
    :math:`\hat{p}_S(x) = 0`). The guarded estimate keeps the raw ratio
    only where the source mass reaches the reliability threshold, and is
    0 elsewhere.

    See [1]_ for details.

    Parameters
    ----------
    X_query : array-like of shape (n_queries, n_features)
        Points where the ratio is estimated.
    X_target : array-like of shape (n_samples_target, n_features)
        Sample drawn from the target distribution.
    X_source : array-like of shape (n_samples_source, n_features)
        Sample drawn from the source distribution.
    radius : float
        Radius r >= 0 of the balls.
    threshold : float, default=0.0
        Reliability threshold alpha >= 0 on the source ball mass.
    algorithm : {'auto', 'brute', 'kd_tree', 'ball_tree'}, default='brute'
        How balls are counted. 'brute' scans all pairwise distances,
        the tree based algorithms give the same counts faster on
        low dimensional data. 'auto' uses a KD tree.
    leaf_size : int, default=30
        Leaf size passed to KDTree or BallTree.

    Returns
    -------
    raw_ratio : ndarray of shape (n_queries,)
        Ratio of the empirical ball masses, ``+inf`` where no source
        sample falls in the ball.
    guarded : ndarray of shape (n_queries,)
        The raw ratio where the source ball mass is positive and at least
        `threshold`, 0 elsewhere. Always finite and non-negative.

    Warns
    -----
    DegenerateRegionWarning
        When some query balls contain no source sample.

    References
    ----------
    .. [1] Samory Kpotufe. Lipschitz Density-Ratios, Structured Data, and
           Data-driven Tuning. In AISTATS, 2017.
    """
    X_source, X_target, X_query = check_samples(X_source, X_target, X_query)
    radius = _check_non_negative(radius, "radius")
    threshold = _check_non_negative(threshold, "threshold")
    if algorithm not in _ALGORITHMS:
        raise InvalidSampleError(
            f"`algorithm` should be one of {_ALGORITHMS}, got {algorithm!r}"
        )

    p_target = _ball_mass(X_query, X_target, radius, algorithm, leaf_size)
    p_source = _ball_mass(X_query, X_source, radius, algorithm, leaf_size)

    supported = p_source > 0
    raw_ratio = np.full(X_query.shape[0], np.inf)
    raw_ratio[supported] = p_target[supported] / p_source[supported]

    guarded = np.zeros(X_query.shape[0])
    reliable = supported & (p_source >= threshold)
    guarded[reliable] = raw_ratio[reliable]

    n_degenerate = np.count_nonzero(~supported)
    if n_degenerate > 0:
        warnings.warn(
            f"{n_degenerate} out of {X_query.shape[0]} query points have no "
            f"source sample within radius {radius:g}. Their raw ratio is "
            "infinite and their guarded estimate is 0.",
            DegenerateRegionWarning,
        )
    return raw_ratio, guarded


class BallRatioReweightAdapter(BaseReweightAdapter):
    """Ball-ratio (histogram) density ratio re-weighting.

    The density ratio at x is estimated by the ratio of the fractions of
    target and source samples lying in the ball of radius `radius` around
    x. Estimates are set to 0 where the source ball mass is below
    `threshold`, i.e. where there are too few source samples for the
    ratio to be trusted.

    See [1]_ for details.

    Parameters
    ----------
    radius : float or 'auto', default='auto'
        Radius of the balls. If 'auto', the radius is
        ``radius_scale * (log m / m) ** (smoothness / (2 * smoothness + d))``
        with m the size of the smallest sample.
    threshold : float or 'auto', default='auto'
        Reliability threshold on the source ball mass. If 'auto', the
        threshold is ``threshold_scale * log(n_target) / n_target``.
    smoothness : float, default=1.0
        Hölder exponent of the density ratio, in (0, 1]. Only used when
        `radius='auto'`.
    radius_scale : float, default=1.0
        Constant of the automatic radius.
    threshold_scale : float, default=1.0
        Constant of the automatic threshold.
    algorithm : {'auto', 'brute', 'kd_tree', 'ball_tree'}, default='brute'
        Algorithm used to count the samples in the balls.
    leaf_size : int, default=30
        Leaf size passed to KDTree or BallTree.

    Attributes
    ----------
    `radius_` : float
        The radius used.
    `threshold_` : float
        The threshold used.
    `X_source_` : ndarray of shape (n_samples_source, n_features)
        The source sample.
    `X_target_` : ndarray of shape (n_samples_target, n_features)
        The target sample.

    References
    ----------
    .. [1] Samory Kpotufe. Lipschitz Density-Ratios, Structured Data, and
           Data-driven Tuning. In AISTATS, 2017.
    """

    def __init__(
        self,
        radius="auto",
        threshold="auto",
        smoothness=1.0,
        radius_scale=1.0,
        threshold_scale=1.0,
        algorithm="brute",
        leaf_size=30,
    ):
        super().__init__()
        self.radius = radius
        self.threshold = threshold
        self.smoothness = smoothness
        self.radius_scale = radius_scale
        self.threshold_scale = threshold_scale
        self.algorithm = algorithm
        self.leaf_size = leaf_size

    def fit(self, X, y=None, *, sample_domain=None):
        """Fit adaptation parameters.

        Parameters
        ----------
        X : array-like, shape (n_samples, n_features)
            The source and target data.
        y : array-like, shape (n_samples,)
            Ignored, present for API consistency.
        sample_domain : array-like, shape (n_samples,)
            The domain labels (same as sample_domain).

        Returns
        -------
        self : object
            Returns self.
        """
        X_source, X_target = self._split_fit_input(X, sample_domain)
        n_source, n_target = X_source.shape[0], X_target.shape[0]

        if isinstance(self.radius, str) and self.radius == "auto":
            radius = default_radius(
                n_target,
                n_source,
                self.n_features_in_,
                smoothness=self.smoothness,
                scale=self.radius_scale,
            )
        else:
            radius = self.radius
        if isinstance(self.threshold, str) and self.threshold == "auto":
            threshold = default_threshold(n_target, scale=self.threshold_scale)
        else:
            threshold = self.threshold
        if self.algorithm not in _ALGORITHMS:
            raise InvalidSampleError(
                f"`algorithm` should be one of {_ALGORITHMS}, got {self.algorithm!r}"
            )

        self.radius_ = _check_non_negative(radius, "radius")
        self.threshold_ = _check_non_negative(threshold, "threshold")
        self.X_source_ = X_source
        self.X_target_ = X_target
        _logger.debug(
            "Ball ratio fitted on %d source and %d target samples "
            "(radius=%.4g, threshold=%.4g)",
            n_source, n_target, self.radius_, self.threshold_,
        )
        return self

    def estimate_ratio(self, X):
        """Raw and guarded ratio estimates at the query points `X`.

        Parameters
        ----------
        X : array-like, shape (n_queries, n_features)
            The query points.

        Returns
        -------
        raw_ratio : ndarray, shape (n_queries,)
            Ratio of ball masses, ``+inf`` where no source sample is
            in the ball.
        guarded : ndarray, shape (n_queries,)
            Estimates zeroed where the source ball mass is below the
            threshold.
        """
        check_is_fitted(self)
        X = self._check_query(X)
        return estimate_ratio(
            X,
            self.X_target_,
            self.X_source_,
            self.radius_,
            self.threshold_,
            algorithm=self.algorithm,
            leaf_size=self.leaf_size,
        )

    def predict(self, X):
        """Guarded ratio estimates at the query points `X`."""
        return self.estimate_ratio(X)[1]
