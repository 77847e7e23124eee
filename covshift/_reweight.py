# Author: Theo Gnassounou <theo.gnassounou@inria.fr>
#         Remi Flamary <remi.flamary@polytechnique.edu>
#         Oleksii Kachaiev <kachayev@gmail.com>
#         Bueno Ruben <ruben.bueno@polytechnique.edu>
#         Antoine Collas <contact@antoinecollas.fr>
#         Yanis Lalou <yanis.lalou@polytechnique.edu>
#
# License: BSD 3-Clause

import numpy as np
from scipy.stats import multivariate_normal
from sklearn.base import clone
from sklearn.linear_model import LogisticRegression
from sklearn.neighbors import KernelDensity
from sklearn.utils.validation import check_is_fitted

from ._utils import EPS, _estimate_covariance, _logger
from .base import BaseReweightAdapter
from .utils import clip_weights


class DensityReweightAdapter(BaseReweightAdapter):
    """Adapter based on re-weighting samples using density estimation.

    The source and the target densities are estimated separately and the
    weight of x is their ratio.

    Parameters
    ----------
    weight_estimator : estimator object, optional
        The estimator to use to estimate the densities of source and target
        observations. It must provide `score_samples` returning log
        densities. If None, a KernelDensity estimator is used.

    Attributes
    ----------
    weight_estimator_source_ : object
        The estimator object fitted on the source data.
    weight_estimator_target_ : object
        The estimator object fitted on the target data.
    """

    def __init__(self, weight_estimator=None):
        super().__init__()
        self.weight_estimator = weight_estimator

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

        weight_estimator = self.weight_estimator
        if weight_estimator is None:
            weight_estimator = KernelDensity()
        source_estimator = clone(weight_estimator)
        source_estimator.fit(X_source)
        target_estimator = clone(weight_estimator)
        target_estimator.fit(X_target)
        self.weight_estimator_source_ = source_estimator
        self.weight_estimator_target_ = target_estimator
        return self

    def predict(self, X):
        check_is_fitted(self)
        X = self._check_query(X)
        ws = self.weight_estimator_source_.score_samples(X)
        wt = self.weight_estimator_target_.score_samples(X)
        # exp(-inf - -inf) is NaN where both densities vanish
        with np.errstate(invalid="ignore", over="ignore"):
            return clip_weights(np.exp(wt - ws))


class GaussianReweightAdapter(BaseReweightAdapter):
    """Gaussian approximation re-weighting method.

    See [1]_ for details.

    Parameters
    ----------
    reg : 'auto' or float, default="auto"
        The regularization parameter of the covariance estimator.
        Possible values:

          - None: no shrinkage.
          - 'auto': automatic shrinkage using the Ledoit-Wolf lemma.
          - float between 0 and 1: fixed shrinkage parameter.

    Attributes
    ----------
    `mean_source_` : array-like, shape (n_features,)
        Mean of the source data.
    `cov_source_` : array-like, shape (n_features, n_features)
        Covariance of the source data.
    `mean_target_` : array-like, shape (n_features,)
        Mean of the target data.
    `cov_target_` : array-like, shape (n_features, n_features)
        Covariance of the target data.

    References
    ----------
    .. [1]  Hidetoshi Shimodaira. Improving predictive inference under
            covariate shift by weighting the log-likelihood function.
            In Journal of Statistical Planning and Inference, 2000.
    """

    def __init__(self, reg="auto"):
        super().__init__()
        self.reg = reg

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

        self.mean_source_ = X_source.mean(axis=0)
        self.cov_source_ = _estimate_covariance(X_source, shrinkage=self.reg)
        self.mean_target_ = X_target.mean(axis=0)
        self.cov_target_ = _estimate_covariance(X_target, shrinkage=self.reg)
        return self

    def predict(self, X):
        check_is_fitted(self)
        X = self._check_query(X)
        log_target = multivariate_normal.logpdf(
            X, self.mean_target_, self.cov_target_, allow_singular=True
        )
        log_source = multivariate_normal.logpdf(
            X, self.mean_source_, self.cov_source_, allow_singular=True
        )
        with np.errstate(invalid="ignore", over="ignore"):
            return clip_weights(np.exp(np.atleast_1d(log_target - log_source)))


class DiscriminatorReweightAdapter(BaseReweightAdapter):
    """Discriminative (propensity score) re-weighting method.

    A classifier is trained to tell target samples from source samples.
    The density ratio is then

    .. math::
        w(x) = \\frac{n_S}{n_T} \\frac{P(target | x)}{P(source | x)}

    See [1]_ for details.

    Parameters
    ----------
    domain_classifier : sklearn classifier, optional
        Classifier used to predict the domains. If None, a
        LogisticRegression is used.

    Attributes
    ----------
    `domain_classifier_` : object
        The classifier object fitted on the source and target data.
    `prior_ratio_` : float
        Ratio n_source / n_target of the sample sizes.

    References
    ----------
    .. [1] Steffen Bickel, Michael Brückner and Tobias Scheffer.
           Discriminative learning for differing training and test
           distributions. In ICML, 2007.
    """

    def __init__(self, domain_classifier=None):
        super().__init__()
        self.domain_classifier = domain_classifier

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
        X = np.vstack([X_source, X_target])
        y_domain = np.ones(X.shape[0], dtype=np.int32)
        y_domain[:X_source.shape[0]] = 0

        domain_classifier = self.domain_classifier
        if domain_classifier is None:
            domain_classifier = LogisticRegression()
        domain_classifier = clone(domain_classifier)
        domain_classifier.fit(X, y_domain)
        self.domain_classifier_ = domain_classifier
        self.prior_ratio_ = X_source.shape[0] / X_target.shape[0]
        _logger.debug(
            "Domain classifier %s fitted, prior ratio %.4g",
            domain_classifier.__class__.__name__, self.prior_ratio_,
        )
        return self

    def predict(self, X):
        check_is_fitted(self)
        X = self._check_query(X)
        target_col = list(self.domain_classifier_.classes_).index(1)
        probas = self.domain_classifier_.predict_proba(X)[:, target_col]
        probas = np.clip(probas, EPS, 1.0 - EPS)
        return self.prior_ratio_ * probas / (1 - probas)
