import numpy as np
import pytest

from covshift.datasets import make_beta_shift, make_shifted_gaussians


@pytest.fixture(scope='function', autouse=True)
def set_seed():
    np.random.seed(0)


@pytest.fixture(scope='session')
def shifted_gaussians():
    return make_shifted_gaussians(
        n_samples_source=60,
        n_samples_target=50,
        n_features=2,
        shift=0.5,
        random_state=42,
        return_sample_domain=True,
    )


@pytest.fixture(scope='session')
def shifted_gaussians_1d():
    return make_shifted_gaussians(
        n_samples_source=200,
        n_samples_target=200,
        n_features=1,
        shift=0.5,
        random_state=42,
    )


@pytest.fixture(scope='session')
def beta_samples():
    return make_beta_shift(
        n_samples_source=200,
        n_samples_target=150,
        source_params=(2, 2),
        target_params=(2, 5),
        random_state=0,
    )
