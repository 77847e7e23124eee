# Author: Theo Gnassounou <theo.gnassounou@inria.fr>
#         Remi Flamary <remi.flamary@polytechnique.edu>
#         Oleksii Kachaiev <kachayev@gmail.com>
#
# License: BSD 3-Clause

from abc import abstractmethod

import numpy as np
from sklearn.base import BaseEstimator
from sklearn.utils.validation import check_is_fitted

from .exceptions import InvalidSampleError
from .utils import (
    check_sample,
    check_samples,
    check_X_domain,
    extract_source_indices,
    source_target_split,
)


class BaseReweightAdapter(BaseEstimator):
    """Base class for the adapters that yield density ratio weights.

    Specific implementation should provide `fit` and `predict`, where
    `predict` returns the estimated ratio p_target(x) / p_source(x) for
    arbitrary query points. The base class takes care of turning the
    ratio into per-sample weights for packed source/target inputs.
    """

    @abstractmethod
    def fit(self, X, y=None, *, sample_domain=None):
        pass

    @abstractmethod
    def predict(self, X):
        pass

    def compute_weights(self, X, y=None, *, sample_domain=None, **params):
        """Compute the weights of the source samples.

        Parameters
        ----------
        X : array-like, shape (n_samples, n_features)
            The data, source and target samples stacked.
        y : array-like, shape (n_samples,)
            Ignored, present for API consistency.
        sample_domain : array-like, shape (n_samples,)
            The domain labels, non-negative for source samples and
            negative for target samples.

        Returns
        -------
        weights : ndarray, shape (n_samples,)
            The estimated density ratio for source samples, 0 for target
            samples.
        """
        check_is_fitted(self)
        X, sample_domain = check_X_domain(X, sample_domain)
        source_idx = extract_source_indices(sample_domain)
        (source_idx,) = np.where(source_idx)
        weights = np.zeros(X.shape[0], dtype=np.float64)
        if source_idx.size > 0:
            weights[source_idx] = self.predict(X[source_idx])
        return weights

    def fit_transform(self, X, y=None, *, sample_domain=None, **params):
        """Fit the ratio estimator and return weights as an additional
        parameter for a downstream estimator.

        Parameters
        ----------
        X : array-like, shape (n_samples, n_features)
            The data, source and target samples stacked.
        y : array-like, shape (n_samples,)
            Ignored, present for API consistency.
        sample_domain : array-like, shape (n_samples,)
            The domain labels (same as sample_domain).

        Returns
        -------
        X : array-like, shape (n_samples, n_features)
            The data (same as X).
        params : dict
            ``dict(sample_weight=weights)`` with the weights given by
            `compute_weights`.
        """
        self.fit(X, y=y, sample_domain=sample_domain)
        weights = self.compute_weights(X, y=y, sample_domain=sample_domain, **params)
        return X, dict(sample_weight=weights)

    def _split_fit_input(self, X, sample_domain):
        """Validate packed input and return the source and target samples."""
        X, sample_domain = check_X_domain(X, sample_domain)
        X_source, X_target = source_target_split(X, sample_domain=sample_domain)
        X_source, X_target = check_samples(X_source, X_target)
        self.n_features_in_ = X.shape[1]
        return X_source, X_target

    def _check_query(self, X):
        X = check_sample(X, name="query")
        if X.shape[1] != self.n_features_in_:
            raise InvalidSampleError(
                f"Query has {X.shape[1]} features, but {self.__class__.__name__} "
                f"was fitted on {self.n_features_in_} features"
            )
        return X
