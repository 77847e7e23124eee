# Author: Theo Gnassounou <theo.gnassounou@inria.fr>
#         Remi Flamary <remi.flamary@polytechnique.edu>
#         Oleksii Kachaiev <kachayev@gmail.com>
#         Yanis Lalou <yanis.lalou@polytechnique.edu>
#
# License: BSD 3-Clause

import logging
from numbers import Real

import numpy as np
from sklearn.covariance import (
    empirical_covariance,
    ledoit_wolf,
    shrunk_covariance,
)
from sklearn.preprocessing import StandardScaler

_logger = logging.getLogger("covshift")

EPS = np.finfo(float).eps

# Floor added before every logarithm in the tilting estimator
LOG_EPS = 1e-12

# Default labels used when packing a source and a target sample together
_DEFAULT_SOURCE_DOMAIN_LABEL = 1
_DEFAULT_TARGET_DOMAIN_LABEL = -2

# Default label for datasets without source domain
_DEFAULT_TARGET_DOMAIN_ONLY_LABEL = -1


def _estimate_covariance(X, shrinkage, assume_centered=False):
    if shrinkage is None:
        s = empirical_covariance(X, assume_centered=assume_centered)
    elif shrinkage == "auto":
        sc = StandardScaler(with_mean=not assume_centered)
        X = sc.fit_transform(X)
        s = ledoit_wolf(X)[0]
        # rescale
        s = sc.scale_[:, np.newaxis] * s * sc.scale_[np.newaxis, :]
    elif isinstance(shrinkage, Real):
        s = shrunk_covariance(
            empirical_covariance(X, assume_centered=assume_centered),
            shrinkage=shrinkage,
        )
    else:
        raise ValueError(
            "`reg` should be None, 'auto' or a float between 0 and 1,"
            f" got {shrinkage!r}"
        )
    return s


def _as_2d(X):
    """View a univariate sample given as a 1D array as a column."""
    X = np.asarray(X)
    if X.ndim == 1:
        X = X.reshape(-1, 1)
    return X
