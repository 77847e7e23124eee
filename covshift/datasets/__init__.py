# License: BSD 3-Clause

"""
Utilities to produce shifted samples for testing and benchmarking.
"""

from ._samples_generator import (
    beta_density_ratio,
    make_beta_shift,
    make_shifted_gaussians,
)

__all__ = [
    'beta_density_ratio',
    'make_beta_shift',
    'make_shifted_gaussians',
]
