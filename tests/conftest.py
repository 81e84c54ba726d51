"""
Shared test fixtures for the group-level Bayesian model comparison tests.
"""

import numpy as np
import pytest


@pytest.fixture
def flat_evidence():
    """2 models, 3 subjects, no information to discriminate the models."""
    return np.zeros((2, 3))


@pytest.fixture
def strong_evidence():
    """2 models, 5 subjects, the first model is strongly favored for every subject."""
    return np.vstack([np.full(5, 10.0), np.zeros(5)])


@pytest.fixture
def random_evidence():
    """4 models, 20 subjects, random log-evidences."""
    rng = np.random.default_rng(42)
    return 3 * rng.standard_normal((4, 20))
