# Author: Yanis Lalou <yanis.lalou@polytechnique.edu>
#         Antoine Collas <contact@antoinecollas.fr>
#
# License: BSD 3-Clause

import warnings
from itertools import chain
from typing import Optional, Sequence

import numpy as np
from sklearn.utils import check_array, check_consistent_length

from ._utils import (
    _DEFAULT_SOURCE_DOMAIN_LABEL,
    _DEFAULT_TARGET_DOMAIN_LABEL,
    _DEFAULT_TARGET_DOMAIN_ONLY_LABEL,
    _as_2d,
)
from .exceptions import InvalidSampleError


def check_sample(X, name="input"):
    """Input validation for a single sample of points in R^d.

    A 1D array is understood as a univariate sample, i.e. it is
    reshaped to (n_samples, 1).

    Parameters
    ----------
    X : array-like of shape (n_samples, n_features) or (n_samples,)
        The sample.
    name : str, default="input"
        Name used in error messages.

    Returns
    -------
    X : ndarray of shape (n_samples, n_features)
        The validated sample, as floats.

    Raises
    ------
    InvalidSampleError
        If the sample is empty, has no features or contains
        non-finite values.
    """
    X = _as_2d(X)
    if X.shape[0] == 0:
        raise InvalidSampleError(f"The {name} sample is empty")
    try:
        X = check_array(X, dtype=np.float64, input_name=name)
    except ValueError as e:
        raise InvalidSampleError(f"Invalid {name} sample: {e}") from e
    return X


def check_samples(X_source, X_target, X_query=None):
    """Validate a source, a target and (optionally) a query sample
    and check that they share the same number of features.

    Parameters
    ----------
    X_source : array-like of shape (n_samples_source, n_features)
        Sample drawn from the source distribution.
    X_target : array-like of shape (n_samples_target, n_features)
        Sample drawn from the target distribution.
    X_query : array-like of shape (n_queries, n_features), optional
        Points where the ratio is evaluated.

    Returns
    -------
    arrays : list of ndarray
        The validated arrays, in the order given.
    """
    arrays = [check_sample(X_source, "source"), check_sample(X_target, "target")]
    if X_query is not None:
        arrays.append(check_sample(X_query, "query"))
    n_features = {X.shape[1] for X in arrays}
    if len(n_features) > 1:
        raise InvalidSampleError(
            "All samples should have the same number of features, got "
            f"{[X.shape[1] for X in arrays]}"
        )
    return arrays


def clip_weights(weights, max_weight=None):
    """Turn raw ratio values into usable sample weights.

    NaN and negative values become 0. Infinite values become `max_weight`
    when given, otherwise the largest finite weight (0 if there is none).
    Finite values above `max_weight` are clipped to it.

    Parameters
    ----------
    weights : array-like of shape (n_samples,)
        Raw weights.
    max_weight : float, optional
        Upper bound on the returned weights.

    Returns
    -------
    weights : ndarray of shape (n_samples,)
        Finite, non-negative weights.
    """
    weights = np.array(weights, dtype=np.float64)
    weights[np.isnan(weights) | (weights < 0)] = 0.0
    finite = np.isfinite(weights)
    if max_weight is None:
        max_weight = weights[finite].max() if finite.any() else 0.0
    weights[~finite] = max_weight
    return np.minimum(weights, max_weight)


def check_X_domain(X, sample_domain):
    """
    Input validation for density ratio estimators working on
    packed source and target samples.

    Parameters
    ----------
    X : array-like of shape (n_samples, n_features)
        Input features.
    sample_domain : array-like, scalar, or None
        Array specifying the domain labels for each sample. A scalar value
        can be provided to assign all samples to the same domain. When None,
        all samples are labelled as target.

    Returns
    -------
    X : array
        Input features.
    sample_domain : array
        Combined domain labels for source and target domains.
    """
    X = check_sample(X, name="X")

    if sample_domain is None:
        # with no labels we always assume target domain
        sample_domain = (
            _DEFAULT_TARGET_DOMAIN_ONLY_LABEL * np.ones(X.shape[0], dtype=np.int32)
        )

    if np.isscalar(sample_domain):
        sample_domain = sample_domain * np.ones(X.shape[0], dtype=np.int32)
    sample_domain = np.asarray(sample_domain)

    check_consistent_length(X, sample_domain)

    return X, sample_domain


def extract_source_indices(sample_domain):
    """Extract the indices of the source samples.

    Parameters
    ----------
    sample_domain : array-like of shape (n_samples,)
        Array specifying the domain labels for each sample.

    Returns
    -------
    source_idx : array
        Boolean array indicating source indices.
    """
    sample_domain = check_array(
        sample_domain,
        dtype=np.int32,
        ensure_2d=False,
        input_name='sample_domain'
    )

    source_idx = (sample_domain >= 0)
    return source_idx


def source_target_split(
    *arrays,
    sample_domain
):
    r"""Split data into source and target domains

    Parameters
    ----------
    *arrays : sequence of array-like of identical shape (n_samples, n_features)
        Input features and target variable(s), and or sample_weights to be
        split. All arrays should have the same length except if None is given
        then a couple of None variables are returned to allow for optional
        sample_weight.
    sample_domain : array-like of shape (n_samples,)
        Array specifying the domain labels for each sample.

    Returns
    -------
    splits : list, length=2 * len(arrays)
        List containing source-target split of inputs.
    """
    if len(arrays) == 0:
        raise ValueError("At least one array required as input")

    check_consistent_length(*arrays)

    source_idx = extract_source_indices(sample_domain)

    return list(chain.from_iterable(
        (a[source_idx], a[~source_idx]) if a is not None else (None, None)
        for a in arrays
    ))


def source_target_merge(
    X_source,
    X_target,
    *,
    sample_domain: Optional[np.ndarray] = None
) -> Sequence[np.ndarray]:
    """Stack a source and a target sample into a single array.

    Parameters
    ----------
    X_source : array-like of shape (n_samples_source, n_features)
        The source sample. A 1D array is read as a univariate sample.
    X_target : array-like of shape (n_samples_target, n_features)
        The target sample. A 1D array is read as a univariate sample.
    sample_domain : array-like of shape (n_samples,), optional
        Domain labels of the merged array. If None, source rows get
        label {_DEFAULT_SOURCE_DOMAIN_LABEL} and target rows get label
        {_DEFAULT_TARGET_DOMAIN_LABEL}, sources being placed first.

    Returns
    -------
    X : ndarray of shape (n_samples_source + n_samples_target, n_features)
        The merged data.
    sample_domain : ndarray of shape (n_samples_source + n_samples_target,)
        Array specifying the domain labels for each sample.

    Examples
    --------
    >>> X_source = np.array([[1, 2], [3, 4], [5, 6]])
    >>> X_target = np.array([[7, 8], [9, 10]])
    >>> X, sample_domain = source_target_merge(X_source, X_target)
    >>> X
    array([[ 1,  2],
           [ 3,  4],
           [ 5,  6],
           [ 7,  8],
           [ 9, 10]])
    >>> sample_domain
    array([ 1,  1,  1, -2, -2])
    """
    X_source = _as_2d(X_source)
    X_target = _as_2d(X_target)

    if X_source.shape[0] == 0 and X_target.shape[0] == 0:
        raise ValueError("Only one of the source and target arrays can be empty")

    if X_source.shape[0] > 0 and X_target.shape[0] > 0:
        if X_source.shape[1:] != X_target.shape[1:]:
            raise ValueError(
                "Inconsistent number of features in source-target arrays"
            )

    if sample_domain is not None:
        sample_domain = np.asarray(sample_domain)
    if sample_domain is None or sample_domain.shape[0] == 0:
        if sample_domain is not None:
            warnings.warn(
                "sample_domain is empty, it will be inferred from the arrays"
            )
        sample_domain = np.concatenate((
            _DEFAULT_SOURCE_DOMAIN_LABEL * np.ones(X_source.shape[0], dtype=np.int32),
            _DEFAULT_TARGET_DOMAIN_LABEL * np.ones(X_target.shape[0], dtype=np.int32),
        ))

    source_indices = extract_source_indices(sample_domain)
    if (
        np.count_nonzero(source_indices) != X_source.shape[0] or
        np.count_nonzero(~source_indices) != X_target.shape[0]
    ):
        raise ValueError(
            "Inconsistent number of samples in source-target arrays "
            "and the number inferred in the sample_domain"
        )

    if X_source.shape[0] == 0:
        X = np.array(X_target, copy=True)
    elif X_target.shape[0] == 0:
        X = np.array(X_source, copy=True)
    else:
        X = np.zeros(
            (sample_domain.shape[0], *X_source.shape[1:]),
            dtype=np.result_type(X_source, X_target),
        )
        X[source_indices] = X_source
        X[~source_indices] = X_target

    return X, sample_domain


# Update the docstring to replace placeholders with actual values
source_target_merge.__doc__ = source_target_merge.__doc__.format(
    _DEFAULT_SOURCE_DOMAIN_LABEL=_DEFAULT_SOURCE_DOMAIN_LABEL,
    _DEFAULT_TARGET_DOMAIN_LABEL=_DEFAULT_TARGET_DOMAIN_LABEL
)
