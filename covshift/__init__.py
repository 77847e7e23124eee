# Author: Theo Gnassounou <theo.gnassounou@inria.fr>
#         Remi Flamary <remi.flamary@polytechnique.edu>
#         Oleksii Kachaiev <kachayev@gmail.com>
#
# License: BSD 3-Clause

from .version import __version__  # noqa: F401
from . import datasets
from . import metrics
from .base import BaseReweightAdapter
from .exceptions import (
    DegenerateRegionWarning,
    InvalidSampleError,
    TiltOptimizationError,
)
from ._ball_ratio import (
    BallRatioReweightAdapter,
    default_radius,
    default_threshold,
    estimate_ratio,
)
from ._tilt import (
    ExponentialTiltReweightAdapter,
    OptimizationFailure,
    TiltParameter,
    evaluate_tilt,
    fit_tilt,
    tilt_objective,
)
from ._reweight import (
    DensityReweightAdapter,
    DiscriminatorReweightAdapter,
    GaussianReweightAdapter,
)
from .metrics import effective_sample_size, mmd_squared, weighted_density_compare
from .utils import clip_weights, source_target_merge, source_target_split

__all__ = [
    "datasets",
    "metrics",

    "BaseReweightAdapter",

    "InvalidSampleError",
    "DegenerateRegionWarning",
    "TiltOptimizationError",

    "BallRatioReweightAdapter",
    "default_radius",
    "default_threshold",
    "estimate_ratio",

    "ExponentialTiltReweightAdapter",
    "OptimizationFailure",
    "TiltParameter",
    "evaluate_tilt",
    "fit_tilt",
    "tilt_objective",

    "DensityReweightAdapter",
    "DiscriminatorReweightAdapter",
    "GaussianReweightAdapter",

    "effective_sample_size",
    "mmd_squared",
    "weighted_density_compare",

    "clip_weights",
    "source_target_merge",
    "source_target_split",
]
