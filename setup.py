from setuptools import setup, find_packages

setup(
    name='covshift',
    version='0.1.0',
    description='Density ratio estimation for covariate shift correction.',

    # Author details
    author='covshift developers',

    # Choose your license
    license='BSD 3-Clause',
    # What does your project relate to?
    keywords='covariate-shift density-ratio importance-weighting',

    packages=find_packages(),
    python_requires='>=3.9',
    install_requires=[
        'numpy',
        'scipy',
        'scikit-learn>=1.2',
    ],
    extras_require={
        'test': ['pytest'],
    },
)
