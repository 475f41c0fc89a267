"""
Shared fixtures for cvkit tests.
"""

import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def regression_frame():
    """100 rows with a linear label and a uniform [0, 1) split column."""
    rng = np.random.default_rng(0)
    X = rng.normal(size=(100, 3))
    return pd.DataFrame({
        "x1": X[:, 0],
        "x2": X[:, 1],
        "x3": X[:, 2],
        "Label": 2.0 * X[:, 0] - X[:, 1] + 0.1 * rng.normal(size=100),
        "Split": rng.random(100),
    })


@pytest.fixture
def binary_frame():
    """120 rows with a separable-ish 0/1 label."""
    rng = np.random.default_rng(1)
    X = rng.normal(size=(120, 2))
    return pd.DataFrame({
        "x1": X[:, 0],
        "x2": X[:, 1],
        "Label": (X[:, 0] + 0.5 * X[:, 1] > 0).astype(int),
    })


@pytest.fixture
def multiclass_frame():
    """150 rows with three string classes."""
    rng = np.random.default_rng(2)
    X = rng.normal(size=(150, 2))
    label = np.where(X[:, 0] > 0.5, "a", np.where(X[:, 1] > 0, "b", "c"))
    return pd.DataFrame({"x1": X[:, 0], "x2": X[:, 1], "Label": label})


@pytest.fixture
def grouped_frame():
    """Rows in contiguous groups of uneven size."""
    sizes = [3, 1, 4, 2, 5, 1, 2, 3, 6, 3]
    groups = np.repeat(np.arange(len(sizes)), sizes)
    rng = np.random.default_rng(3)
    return pd.DataFrame({
        "GroupId": groups,
        "x1": rng.normal(size=len(groups)),
        "Label": rng.normal(size=len(groups)),
    })
