# License: BSD 3-Clause

"""Diagnostics comparing a weighted sample to a reference sample."""

import warnings

import numpy as np
from sklearn.metrics.pairwise import KERNEL_PARAMS, pairwise_kernels
from sklearn.utils import Bunch

from .exceptions import InvalidSampleError
from .utils import check_samples


def _check_weights(weights, n_samples, non_negative=False):
    if weights is None:
        return np.ones(n_samples)
    weights = np.asarray(weights, dtype=np.float64).ravel()
    if weights.shape[0] != n_samples:
        raise InvalidSampleError(
            f"Expected {n_samples} weights, one per sample, got {weights.shape[0]}"
        )
    if not np.all(np.isfinite(weights)):
        raise InvalidSampleError("Weights should be finite")
    if non_negative and np.any(weights < 0):
        raise InvalidSampleError("Weights should be non-negative")
    return weights


def _kernel_matrix(X, Y, kernel, kernel_params):
    if isinstance(kernel, str) and kernel not in KERNEL_PARAMS:
        kernel_list = str(list(KERNEL_PARAMS.keys()))
        raise ValueError(
            "`kernel` argument should be a callable or included in %s,"
            " got '%s'" % (kernel_list, str(kernel))
        )
    return pairwise_kernels(X, Y, metric=kernel, filter_params=True, **kernel_params)


def mmd_squared(X_source, weights, X_target, kernel="linear", **kernel_params):
    r"""Squared maximum mean discrepancy between a weighted source sample
    and a target sample.

    .. math::
        \mathrm{MMD}^2 = \sum_{i, i'} \alpha_i \alpha_{i'} K(x_i, x_{i'})
        + \sum_{j, j'} \beta_j \beta_{j'} K(y_j, y_{j'})
        - 2 \sum_{i, j} \alpha_i \beta_j K(x_i, y_j)

    with :math:`\alpha_i = w_i / n_S` and :math:`\beta_j = 1 / n_T`.

    The cost is quadratic in the number of samples, this is meant as a
    diagnostic of the weights.

    Parameters
    ----------
    X_source : array-like of shape (n_samples_source, n_features)
        Source sample.
    weights : array-like of shape (n_samples_source,) or None
        Weights of the source samples. None means uniform weights of 1.
    X_target : array-like of shape (n_samples_target, n_features)
        Target sample.
    kernel : str or callable, default='linear'
        Kernel name accepted by :func:`sklearn.metrics.pairwise_kernels`
        (e.g. 'linear', 'rbf', 'poly') or a callable ``K(x, y)`` taking two
        1D arrays and returning a float. It should be positive
        semi-definite.
    **kernel_params : dict
        Parameters of the kernel (e.g. `gamma` for 'rbf').

    Returns
    -------
    mmd2 : float
        The squared MMD, non-negative up to numerical noise.
    """
    X_source, X_target = check_samples(X_source, X_target)
    n_source, n_target = X_source.shape[0], X_target.shape[0]
    alpha = _check_weights(weights, n_source) / n_source
    beta = np.full(n_target, 1.0 / n_target)

    Kss = _kernel_matrix(X_source, X_source, kernel, kernel_params)
    Ktt = _kernel_matrix(X_target, X_target, kernel, kernel_params)
    Kst = _kernel_matrix(X_source, X_target, kernel, kernel_params)
    return float(alpha @ Kss @ alpha + beta @ Ktt @ beta - 2 * alpha @ Kst @ beta)


def effective_sample_size(weights):
    r"""Effective sample size :math:`(\sum_i w_i)^2 / \sum_i w_i^2`."""
    weights = _check_weights(weights, np.size(weights), non_negative=True)
    squared_sum = np.sum(weights ** 2)
    if squared_sum == 0:
        return 0.0
    return float(np.sum(weights) ** 2 / squared_sum)


def weighted_density_compare(X, weights, X_reference, kernel="rbf", **kernel_params):
    """Compare a weighted sample to a reference sample.

    The weighted sample is compared to the reference before and after
    weighting, so that the effect of the weights can be judged.

    Parameters
    ----------
    X : array-like of shape (n_samples, n_features)
        The weighted sample, usually the source sample.
    weights : array-like of shape (n_samples,)
        Non-negative weights of `X`, usually density ratio estimates.
    X_reference : array-like of shape (n_samples_reference, n_features)
        The reference sample, usually the target sample.
    kernel : str or callable, default='rbf'
        Kernel of the MMD, see :func:`mmd_squared`.
    **kernel_params : dict
        Parameters of the kernel.

    Returns
    -------
    comparison : :class:`~sklearn.utils.Bunch`
        Dictionary-like object, with the following attributes.

        mmd2 : float
            Squared MMD between the weighted sample and the reference.
        mmd2_unweighted : float
            Squared MMD between the unweighted sample and the reference.
        effective_sample_size : float
            Effective sample size of the weights.
        mean_difference : ndarray of shape (n_features,)
            Weighted mean of `X` minus the mean of `X_reference`.
        mean_difference_unweighted : ndarray of shape (n_features,)
            Mean of `X` minus the mean of `X_reference`.
    """
    X, X_reference = check_samples(X, X_reference)
    weights = _check_weights(weights, X.shape[0], non_negative=True)
    if weights.sum() == 0:
        warnings.warn("All weights are zero. Using uniform weights.")
        weights = np.ones_like(weights)

    reference_mean = X_reference.mean(axis=0)
    return Bunch(
        mmd2=mmd_squared(X, weights, X_reference, kernel=kernel, **kernel_params),
        mmd2_unweighted=mmd_squared(
            X, None, X_reference, kernel=kernel, **kernel_params
        ),
        effective_sample_size=effective_sample_size(weights),
        mean_difference=np.average(X, axis=0, weights=weights) - reference_mean,
        mean_difference_unweighted=X.mean(axis=0) - reference_mean,
    )
