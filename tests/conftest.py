"""Pytest configuration and shared fixtures for simplexmin tests.

This module provides:
- Deterministic RNG fixtures for numpy and torch
- A clean default abort token for every test
"""

import os

import numpy as np
import pytest
import torch

from simplexmin.abort import default_abort_token


@pytest.fixture(scope="function")
def rng() -> np.random.Generator:
    """Provide a deterministic numpy RNG for tests.

    Uses seed from TEST_RNG_SEED environment variable (default: 0).

    Returns:
        A seeded numpy.random.Generator instance.
    """
    seed = int(os.environ.get("TEST_RNG_SEED", "0"))
    return np.random.default_rng(seed)


@pytest.fixture(scope="function", autouse=True)
def set_random_seeds() -> None:
    """Auto-use fixture to set global random seeds for reproducibility."""
    seed = int(os.environ.get("TEST_RNG_SEED", "0"))
    np.random.seed(seed)
    torch.manual_seed(seed)


@pytest.fixture(scope="function", autouse=True)
def clear_default_abort():
    """Leave the process-wide abort token cleared before and after each test."""
    token = default_abort_token()
    token.reset()
    yield token
    token.reset()
