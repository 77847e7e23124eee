# Author: Theo Gnassounou <theo.gnassounou@inria.fr>
#         Remi Flamary <remi.flamary@polytechnique.edu>
#         Oleksii Kachaiev <kachayev@gmail.com>
#         Bueno Ruben <ruben.bueno@polytechnique.edu>
#
# License: BSD 3-Clause

import numpy as np
from scipy.stats import beta
from sklearn.utils import check_random_state

from ..utils import source_target_merge


def _check_beta_params(params, name):
    params = tuple(float(p) for p in params)
    if len(params) != 2 or min(params) <= 0:
        raise ValueError(
            f"`{name}` should be a pair of positive numbers, got {params!r}"
        )
    return params


def _return_samples(X_source, X_target, return_sample_domain):
    if return_sample_domain:
        return source_target_merge(X_source, X_target)
    return X_source, X_target


def make_shifted_gaussians(
    n_samples_source=100,
    n_samples_target=100,
    n_features=1,
    shift=1.0,
    scale=1.0,
    random_state=None,
    return_sample_domain=False,
):
    """Generate a standard Gaussian source sample and a shifted Gaussian
    target sample.

    Source samples are drawn from N(0, I) and target samples from
    N(shift, scale^2 I), so that the true density ratio is known in
    closed form.

    Parameters
    ----------
    n_samples_source : int, default=100
        Number of source samples.
    n_samples_target : int, default=100
        Number of target samples.
    n_features : int, default=1
        The number of features for each sample.
    shift : float or array like, default=1.0
        If float, it is the value of the translation for every target feature.
        If array_like, each element of the sequence indicates the value of
        the translation for each target features.
    scale : float, default=1.0
        Standard deviation of the target features.
    random_state : int, RandomState instance or None, default=None
        Determines random number generation for dataset creation. Pass an int
        for reproducible output across multiple function calls.
    return_sample_domain : boolean, optional (default=False)
        When set to `True`, returns the merged samples and their domain
        labels ``(X, sample_domain)`` instead of ``(X_source, X_target)``.

    Returns
    -------
    (X_source, X_target) : tuple if `return_sample_domain=False`
        Source sample of shape (n_samples_source, n_features) and target
        sample of shape (n_samples_target, n_features).
    (X, sample_domain) : tuple if `return_sample_domain=True`
        Samples from the source and the target stacked, and their domain
        labels (positive for the source, negative for the target).
    """
    if scale <= 0:
        raise ValueError(f"`scale` should be positive, got {scale!r}")
    rng = check_random_state(random_state)

    X_source = rng.normal(size=(n_samples_source, n_features))
    X_target = rng.normal(
        loc=shift, scale=scale, size=(n_samples_target, n_features)
    )
    return _return_samples(X_source, X_target, return_sample_domain)


def make_beta_shift(
    n_samples_source=100,
    n_samples_target=100,
    source_params=(2, 2),
    target_params=(2, 5),
    random_state=None,
    return_sample_domain=False,
):
    """Generate univariate source and target samples from two Beta
    distributions on [0, 1].

    The log density ratio of two Beta distributions is linear in
    ``[log(x), log(1 - x)]``, so this is the natural benchmark of the
    exponential tilting estimator with the 'beta' statistic.

    Parameters
    ----------
    n_samples_source : int, default=100
        Number of source samples.
    n_samples_target : int, default=100
        Number of target samples.
    source_params : tuple of float, default=(2, 2)
        Shape parameters (a, b) of the source Beta distribution.
    target_params : tuple of float, default=(2, 5)
        Shape parameters (a, b) of the target Beta distribution.
    random_state : int, RandomState instance or None, default=None
        Determines random number generation for dataset creation. Pass an int
        for reproducible output across multiple function calls.
    return_sample_domain : boolean, optional (default=False)
        When set to `True`, returns the merged samples and their domain
        labels ``(X, sample_domain)`` instead of ``(X_source, X_target)``.

    Returns
    -------
    (X_source, X_target) : tuple if `return_sample_domain=False`
        Source sample of shape (n_samples_source, 1) and target sample of
        shape (n_samples_target, 1).
    (X, sample_domain) : tuple if `return_sample_domain=True`
        Samples from the source and the target stacked, and their domain
        labels.
    """
    a_source, b_source = _check_beta_params(source_params, "source_params")
    a_target, b_target = _check_beta_params(target_params, "target_params")
    rng = check_random_state(random_state)

    X_source = rng.beta(a_source, b_source, size=(n_samples_source, 1))
    X_target = rng.beta(a_target, b_target, size=(n_samples_target, 1))
    return _return_samples(X_source, X_target, return_sample_domain)


def beta_density_ratio(x, source_params=(2, 2), target_params=(2, 5)):
    """True density ratio p_target(x) / p_source(x) of :func:`make_beta_shift`.

    Parameters
    ----------
    x : array-like
        Points in (0, 1).
    source_params : tuple of float, default=(2, 2)
        Shape parameters of the source Beta distribution.
    target_params : tuple of float, default=(2, 5)
        Shape parameters of the target Beta distribution.

    Returns
    -------
    ratio : ndarray
        The density ratio, with the shape of `x` (flattened for a column).
    """
    a_source, b_source = _check_beta_params(source_params, "source_params")
    a_target, b_target = _check_beta_params(target_params, "target_params")
    x = np.asarray(x, dtype=np.float64)
    if x.ndim == 2 and x.shape[1] == 1:
        x = x.ravel()
    return np.exp(
        beta.logpdf(x, a_target, b_target) - beta.logpdf(x, a_source, b_source)
    )
