"""
Setup script for ecommath package.
"""

from setuptools import setup, find_packages

setup(
    name="ecommath",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        # Core numerical dependencies
        "numpy>=1.20.0",
        "pandas>=1.3.0",
        "scipy>=1.7.0",
        "scikit-learn>=1.0.0",

        # Mixed-type distances
        "gower>=0.1.2",

        # Utilities
        "pyyaml>=6.0.0",
    ],
    extras_require={
        # Parquet snapshots
        "parquet": [
            "pyarrow>=8.0.0",
        ],
        # Testing
        "test": [
            "pytest>=6.0.0",
        ],
    },
    author="Ecommath Team",
    description="Distance matrices, PCA and MDS for exploratory analysis of e-commerce data",
    keywords="distance matrix, pca, mds, multivariate analysis",
    python_requires=">=3.8",
)
