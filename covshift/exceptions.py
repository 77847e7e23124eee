# License: BSD 3-Clause

"""Exceptions and warnings raised by covshift estimators."""


class InvalidSampleError(ValueError):
    """Raised when a sample, a query or a hyperparameter cannot be used to
    estimate a density ratio: empty sample, mismatching number of features,
    non-finite values, negative radius or threshold.
    """


class DegenerateRegionWarning(UserWarning):
    """Warning used when some query points have no source sample in their
    ball. The raw ratio is reported as ``+inf`` there and the guarded
    estimate as 0.
    """


class TiltOptimizationError(RuntimeError):
    """Raised by :class:`~covshift.ExponentialTiltReweightAdapter` when the
    profile likelihood could not be optimized.

    The :class:`~covshift.OptimizationFailure` returned by the solver is
    available as the ``failure`` attribute so that callers can inspect it
    (e.g. to retry with other initial parameters).
    """

    def __init__(self, failure):
        super().__init__(f"Exponential tilting failed: {failure.reason}")
        self.failure = failure
