"""
Pytest configuration and fixtures for ecommath tests.
"""

import os
import sys

import numpy as np
import pandas as pd
import pytest

# Add the parent directory to the path to import the package
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from ecommath.components.config import Config
from ecommath.dataset import Dataset, Schema

ORDER_SCHEMA = {
    'order_value': 'continuous',
    'items': 'continuous',
    'discount_rate': 'continuous',
    'delivery_days': 'continuous',
    'returns': 'continuous',
    'is_returning': 'binary',
    'used_coupon': 'binary',
    'prime_member': 'binary',
    'payment_method': 'categorical',
    'region': 'categorical',
}


def make_orders_frame(n: int = 40, seed: int = 7) -> pd.DataFrame:
    """Synthetic e-commerce orders with every column type."""
    rng = np.random.default_rng(seed)
    items = rng.integers(1, 8, n).astype(float)
    frame = pd.DataFrame({
        'order_value': items * rng.gamma(2.0, 25.0, n),
        'items': items,
        'discount_rate': rng.uniform(0.0, 0.3, n),
        'delivery_days': rng.integers(1, 10, n).astype(float),
        'returns': np.concatenate([[0.0, 1.0, 2.0], rng.integers(0, 3, n - 3).astype(float)]),
        'is_returning': np.concatenate([[0, 1], rng.integers(0, 2, n - 2)]),
        'used_coupon': np.concatenate([[1, 0], rng.integers(0, 2, n - 2)]),
        'prime_member': np.concatenate([[0, 1], rng.integers(0, 2, n - 2)]),
        'payment_method': rng.choice(['card', 'upi', 'cod', 'wallet'], n),
        'region': rng.choice(['north', 'south', 'east', 'west'], n),
    }, index=[f"order_{i:02d}" for i in range(n)])
    return frame


@pytest.fixture
def orders_frame():
    """Frame of 40 synthetic orders."""
    return make_orders_frame()


@pytest.fixture
def orders_schema():
    """Schema of the synthetic orders."""
    return Schema.from_dict(ORDER_SCHEMA)


@pytest.fixture
def orders(orders_frame, orders_schema):
    """Validated Dataset of 40 synthetic orders."""
    return Dataset(orders_frame, orders_schema)


@pytest.fixture
def config():
    """Fresh default configuration."""
    return Config()


@pytest.fixture
def rng():
    """Seeded random generator."""
    return np.random.default_rng(42)
