# License: BSD 3-Clause

import warnings
from dataclasses import dataclass, field
from typing import Callable

import numpy as np
from scipy.optimize import minimize
from sklearn.exceptions import ConvergenceWarning
from sklearn.utils.validation import check_is_fitted

from ._utils import LOG_EPS, _logger
from .base import BaseReweightAdapter
from .exceptions import InvalidSampleError, TiltOptimizationError
from .utils import check_sample, check_samples, clip_weights


def _linear_statistic(X):
    return X


def _quadratic_statistic(X):
    return np.hstack([X, X ** 2])


def _log_statistic(X):
    with np.errstate(invalid="ignore", divide="ignore"):
        return np.log(X + LOG_EPS)


def _beta_statistic(X):
    with np.errstate(invalid="ignore", divide="ignore"):
        return np.hstack([np.log(X + LOG_EPS), np.log(1 - X + LOG_EPS)])


SUFFICIENT_STATISTICS = {
    "linear": _linear_statistic,
    "quadratic": _quadratic_statistic,
    "log": _log_statistic,
    "beta": _beta_statistic,
}

# methods of scipy.optimize.minimize that use the gradient
GRADIENT_METHODS = ("BFGS", "L-BFGS-B", "CG")


def _check_statistic(statistic):
    if callable(statistic):
        return statistic
    if statistic not in SUFFICIENT_STATISTICS:
        raise ValueError(
            "`statistic` should be a callable or one of "
            f"{list(SUFFICIENT_STATISTICS)}, got {statistic!r}"
        )
    return SUFFICIENT_STATISTICS[statistic]


def _statistic_values(statistic, X):
    T = np.asarray(statistic(X), dtype=np.float64)
    if T.ndim == 1:
        T = T.reshape(-1, 1)
    if T.ndim != 2 or T.shape[0] != X.shape[0]:
        raise InvalidSampleError(
            "The sufficient statistic should return one row per sample, "
            f"got shape {T.shape} for {X.shape[0]} samples"
        )
    return T


def _design(T):
    """Prepend the intercept column to the sufficient statistics."""
    return np.hstack([np.ones((T.shape[0], 1)), T])


@dataclass(frozen=True, eq=False)
class TiltParameter:
    """Fitted exponential tilt :math:`g(x) = \\exp(\\theta_0 + \\theta^T T(x))`.

    Attributes
    ----------
    intercept : float
        The intercept :math:`\\theta_0`.
    coef : ndarray of shape (n_statistics,)
        The coefficients :math:`\\theta` of the sufficient statistics.
    lagrange : float
        The Lagrange multiplier :math:`\\lambda` of the profile likelihood.
    objective : float
        Negative profile log-likelihood at the returned parameters.
    n_iter : int
        Number of optimizer iterations.
    converged : bool
        Whether the optimizer reported convergence.
    message : str
        Optimizer termination message.
    statistic : callable
        Sufficient statistic T used during the fit.
    """

    intercept: float
    coef: np.ndarray
    lagrange: float
    objective: float
    n_iter: int
    converged: bool
    message: str = ""
    statistic: Callable = field(default=_linear_statistic, repr=False)

    def to_array(self):
        """Parameters laid out as ``[intercept, *coef, lagrange]``."""
        return np.concatenate([[self.intercept], self.coef, [self.lagrange]])

    def evaluate(self, X):
        """Estimated density ratio :math:`g(x; \\hat{\\theta})` at `X`.

        No guarding is applied: the values may overflow to ``inf`` or be
        NaN where the sufficient statistic is undefined. Use
        :func:`~covshift.utils.clip_weights` before using them as weights.
        """
        X = check_sample(X, name="query")
        T = _statistic_values(self.statistic, X)
        if T.shape[1] != self.coef.shape[0]:
            raise InvalidSampleError(
                f"Query gives {T.shape[1]} sufficient statistics, but the tilt "
                f"has {self.coef.shape[0]} coefficients"
            )
        with np.errstate(over="ignore", invalid="ignore"):
            return np.exp(self.intercept + T @ self.coef)


@dataclass(frozen=True, eq=False)
class OptimizationFailure:
    """Result of :func:`fit_tilt` when no usable tilt was found.

    It evaluates to False, so that ``if not result:`` tells a failure
    apart from a :class:`TiltParameter`.

    Attributes
    ----------
    reason : str
        Why the optimization failed.
    params : ndarray
        Last parameter vector considered.
    objective : float
        Objective value at `params` (``inf``).
    n_iter : int
        Number of optimizer iterations run.
    """

    reason: str
    params: np.ndarray
    objective: float = np.inf
    n_iter: int = 0

    def __bool__(self):
        return False


class _ProfileLikelihood:
    """Negative profile log-likelihood of the exponential tilt and its
    gradient, keeping track of the best feasible point evaluated."""

    def __init__(self, Z_source, Z_target):
        self.Z_all = np.vstack([Z_source, Z_target])
        self.Z_target = Z_target
        self.best_value = np.inf
        self.best_params = None
        self.best_grad = None
        self.n_evals = 0

    def value_and_grad(self, params):
        theta, lam = params[:-1], params[-1]
        with np.errstate(all="ignore"):
            g_all = np.exp(self.Z_all @ theta)
            g_target = np.exp(self.Z_target @ theta)
            arg = 1 + lam * (g_all + 1)
        # outside of this region the log-likelihood is undefined
        if not (
            np.all(np.isfinite(g_all))
            and np.all(np.isfinite(g_target))
            and np.all(np.isfinite(arg))
            and np.all(arg > 0)
        ):
            return np.inf, None
        with np.errstate(all="ignore"):
            value = np.sum(np.log(arg + LOG_EPS)) - np.sum(np.log(g_target + LOG_EPS))
            grad = np.append(
                self.Z_all.T @ (lam * g_all / (arg + LOG_EPS))
                - self.Z_target.T @ (g_target / (g_target + LOG_EPS)),
                np.sum((g_all + 1) / (arg + LOG_EPS)),
            )
        if not (np.isfinite(value) and np.all(np.isfinite(grad))):
            return np.inf, None
        return value, grad

    def __call__(self, params):
        self.n_evals += 1
        value, grad = self.value_and_grad(params)
        if grad is None:
            # there is no derivative outside of the domain
            return np.inf, np.full_like(params, np.nan, dtype=np.float64)
        if value < self.best_value:
            self.best_value = value
            self.best_params = np.array(params, copy=True)
            self.best_grad = grad
        return value, grad

    def descent_step(self, max_halvings=60, c1=1e-4):
        """Steepest descent step from the best point.

        The step starts with unit length and is halved until it lands in
        the domain with a sufficient decrease (Armijo rule). Returns
        whether the best point moved.
        """
        start, start_value, grad = self.best_params, self.best_value, self.best_grad
        slope = grad @ grad
        if slope == 0:
            return False
        step = 1.0 / np.sqrt(slope)
        for _ in range(max_halvings):
            value, _ = self(start - step * grad)
            if value <= start_value - c1 * step * slope:
                return True
            step /= 2
        return self.best_value < start_value


def _prepare(X_source, X_target, statistic):
    X_source, X_target = check_samples(X_source, X_target)
    statistic = _check_statistic(statistic)
    T_source = _statistic_values(statistic, X_source)
    T_target = _statistic_values(statistic, X_target)
    if T_source.shape[1] != T_target.shape[1]:
        raise InvalidSampleError(
            "The sufficient statistic should give the same number of columns "
            "on the source and the target samples"
        )
    return statistic, _design(T_source), _design(T_target)


def tilt_objective(params, X_source, X_target, statistic="linear"):
    r"""Negative profile log-likelihood of the exponential tilting model.

    .. math::
        F(\theta, \lambda) = \sum_{x \in S \cup T}
        \log\left(1 + \lambda (g(x; \theta) + 1) + \epsilon\right)
        - \sum_{x \in T} \log\left(g(x; \theta) + \epsilon\right)

    with :math:`g(x; \theta) = \exp(\theta_0 + \theta^T T(x))`. The value
    is ``+inf`` wherever some :math:`g` or some argument
    :math:`1 + \lambda (g + 1)` is not finite, or some argument is not
    positive.

    Parameters
    ----------
    params : array-like of shape (n_statistics + 2,)
        Parameters laid out as ``[intercept, *coef, lagrange]``.
    X_source : array-like of shape (n_samples_source, n_features)
        Source sample.
    X_target : array-like of shape (n_samples_target, n_features)
        Target sample.
    statistic : str or callable, default='linear'
        Sufficient statistic T, see :func:`fit_tilt`.

    Returns
    -------
    value : float
        The objective value, possibly ``+inf``.
    """
    _, Z_source, Z_target = _prepare(X_source, X_target, statistic)
    params = _check_params(params, Z_source.shape[1] + 1)
    value, _ = _ProfileLikelihood(Z_source, Z_target).value_and_grad(params)
    return value


def _check_params(params, n_params):
    params = np.asarray(params, dtype=np.float64).ravel()
    if params.shape[0] != n_params:
        raise InvalidSampleError(
            f"Expected {n_params} parameters ([intercept, *coef, lagrange]), "
            f"got {params.shape[0]}"
        )
    return params


def fit_tilt(
    X_source,
    X_target,
    init_params=None,
    *,
    statistic="linear",
    method="BFGS",
    tol=1e-6,
    max_iter=1000,
):
    r"""Fit the semi-parametric exponential tilting model of the density
    ratio by maximizing its profile likelihood.

    The ratio is modelled as
    :math:`p_T(x) / p_S(x) = g(x; \theta) = \exp(\theta_0 + \theta^T T(x))`
    for a sufficient statistic T. The parameters and the Lagrange
    multiplier :math:`\lambda` minimize the negative profile
    log-likelihood :func:`tilt_objective` with a gradient based optimizer.
    The objective is ``+inf`` outside of its domain, with a NaN gradient,
    and such points are never accepted as improvements.

    When an optimizer run stalls on the boundary of the domain, a steepest
    descent step from the best point is taken, its length halved until it
    stays in the domain, and the optimizer is restarted from there. Steps
    of both kinds count towards `max_iter`.

    See [1]_ for details.

    Parameters
    ----------
    X_source : array-like of shape (n_samples_source, n_features)
        Sample drawn from the source distribution.
    X_target : array-like of shape (n_samples_target, n_features)
        Sample drawn from the target distribution.
    init_params : array-like of shape (n_statistics + 2,), optional
        Initial ``[intercept, *coef, lagrange]``. Zeros by default, which
        is always in the domain of the objective.
    statistic : {'linear', 'quadratic', 'log', 'beta'} or callable, \
            default='linear'
        Sufficient statistic T:

        - 'linear' : T(x) = x
        - 'quadratic' : T(x) = [x, x^2]
        - 'log' : T(x) = log(x)
        - 'beta' : T(x) = [log(x), log(1 - x)], for samples in [0, 1]
        - callable : maps an array of shape (n, d) to shape (n, k)
    method : {'BFGS', 'L-BFGS-B', 'CG'}, default='BFGS'
        Gradient based method of :func:`scipy.optimize.minimize`.
    tol : float, default=1e-6
        Tolerance for termination. The fit has converged when the
        optimizer reports success and every component of the gradient at
        the best point is below `tol`.
    max_iter : int, default=1000
        Maximum number of iterations, optimizer iterations and
        safeguarded descent steps together.

    Returns
    -------
    result : TiltParameter or OptimizationFailure
        The best parameters found, or a failure if the initial parameters
        are outside of the domain of the objective.

    Warns
    -----
    ConvergenceWarning
        When `max_iter` is exhausted or no descent step stays in the
        domain. The best parameters found are still returned.

    References
    ----------
    .. [1] Jing Qin. Inferences for case-control and semiparametric
           two-sample density ratio models. Biometrika, 1998.
    """
    if not isinstance(max_iter, (int, np.integer)) or max_iter < 1:
        raise ValueError(f"`max_iter` should be a positive integer, got {max_iter!r}")
    if not isinstance(method, str) or method.upper() not in GRADIENT_METHODS:
        raise ValueError(
            f"`method` should be one of {list(GRADIENT_METHODS)}, got {method!r}"
        )

    statistic, Z_source, Z_target = _prepare(X_source, X_target, statistic)
    n_params = Z_source.shape[1] + 1
    if init_params is None:
        init_params = np.zeros(n_params)
    init_params = _check_params(init_params, n_params)

    objective = _ProfileLikelihood(Z_source, Z_target)
    init_value, _ = objective(init_params)
    if not np.isfinite(init_value):
        if not (np.all(np.isfinite(Z_source)) and np.all(np.isfinite(Z_target))):
            reason = "the sufficient statistic is not finite on the samples"
        else:
            reason = "the initial parameters are outside the domain of the objective"
        _logger.debug("Exponential tilting not started: %s", reason)
        return OptimizationFailure(reason=reason, params=init_params)

    n_iter = 0
    converged = False
    message = "Maximum number of iterations reached."
    with np.errstate(all="ignore"):
        while n_iter < max_iter:
            result = minimize(
                objective,
                objective.best_params,
                method=method,
                jac=True,
                tol=tol,
                options={"maxiter": max_iter - n_iter},
            )
            nit = min(int(getattr(result, "nit", 0)), max_iter - n_iter)
            n_iter += nit
            if (
                result.success
                and objective.best_value < init_value
                and np.max(np.abs(objective.best_grad)) <= tol
            ):
                converged = True
                message = str(result.message)
                break
            if nit > 0 or n_iter >= max_iter:
                continue
            # the run stalled on the boundary of the domain
            if not objective.descent_step():
                message = "No descent step stays in the domain of the objective."
                break
            n_iter += 1

    if not converged:
        warnings.warn(
            f"Exponential tilting did not converge after {n_iter} iterations, "
            f"returning the best parameters found: {message}",
            ConvergenceWarning,
        )
    best = objective.best_params
    _logger.debug(
        "Exponential tilting: objective %.6g -> %.6g in %d iterations "
        "(%d evaluations, converged=%s)",
        init_value, objective.best_value, n_iter, objective.n_evals, converged,
    )
    return TiltParameter(
        intercept=float(best[0]),
        coef=best[1:-1],
        lagrange=float(best[-1]),
        objective=float(objective.best_value),
        n_iter=n_iter,
        converged=converged,
        message=message,
        statistic=statistic,
    )


def evaluate_tilt(tilt, X):
    """Evaluate a fitted tilt at `X`, see :meth:`TiltParameter.evaluate`."""
    return tilt.evaluate(X)


class ExponentialTiltReweightAdapter(BaseReweightAdapter):
    """Semi-parametric exponential tilting re-weighting.

    The density ratio is modelled as :math:`\\exp(\\theta_0 + \\theta^T T(x))`
    and fitted by profile likelihood, see :func:`fit_tilt` and [1]_.

    Parameters
    ----------
    statistic : {'linear', 'quadratic', 'log', 'beta'} or callable, \
            default='linear'
        Sufficient statistic T of the tilt.
    init_params : array-like, optional
        Initial ``[intercept, *coef, lagrange]``. Zeros by default.
    method : {'BFGS', 'L-BFGS-B', 'CG'}, default='BFGS'
        Gradient based method of :func:`scipy.optimize.minimize`.
    tol : float, default=1e-6
        Tolerance for the stopping criterion in the optimization.
    max_iter : int, default=1000
        Number of maximum iteration before stopping the optimization.
    max_weight : float, optional
        Upper bound on the weights. Infinite ratios are replaced by the
        largest finite one when None.

    Attributes
    ----------
    `tilt_` : TiltParameter
        The fitted tilt.

    References
    ----------
    .. [1] Jing Qin. Inferences for case-control and semiparametric
           two-sample density ratio models. Biometrika, 1998.
    """

    def __init__(
        self,
        statistic="linear",
        init_params=None,
        method="BFGS",
        tol=1e-6,
        max_iter=1000,
        max_weight=None,
    ):
        super().__init__()
        self.statistic = statistic
        self.init_params = init_params
        self.method = method
        self.tol = tol
        self.max_iter = max_iter
        self.max_weight = max_weight

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

        Raises
        ------
        TiltOptimizationError
            If the profile likelihood could not be optimized.
        """
        X_source, X_target = self._split_fit_input(X, sample_domain)
        result = fit_tilt(
            X_source,
            X_target,
            self.init_params,
            statistic=self.statistic,
            method=self.method,
            tol=self.tol,
            max_iter=self.max_iter,
        )
        if isinstance(result, OptimizationFailure):
            raise TiltOptimizationError(result)
        self.tilt_ = result
        return self

    def predict(self, X):
        """Clipped tilt weights at the query points `X`."""
        check_is_fitted(self, "tilt_")
        X = self._check_query(X)
        return clip_weights(self.tilt_.evaluate(X), self.max_weight)
