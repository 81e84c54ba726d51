"""
Tests for the free energies of the random-effects and null hypotheses.
"""

import numpy as np
import pytest
from scipy.special import digamma, gammaln, logsumexp

from groupbmc import FreeEnergy, Partition, free_energy, null_free_energy


def reference_free_energy(L, a, r, a_prior):
    """Term-by-term evaluation, with the Dirichlet entropy written out in full."""
    K, n = L.shape
    a0 = a.sum()
    Sqf = gammaln(a).sum() - gammaln(a0) + (a0 - K) * digamma(a0) - ((a - 1) * digamma(a)).sum()
    Sqm = -(r * np.log(r + np.finfo(float).eps)).sum()
    Elogr = digamma(a) - digamma(a0)
    ELJ = gammaln(a_prior.sum()) - gammaln(a_prior).sum()
    for k in range(K):
        ELJ += (a_prior[k] - 1) * Elogr[k]
        for i in range(n):
            ELJ += r[k, i] * (Elogr[k] + L[k, i])
    return ELJ + Sqf + Sqm, ELJ, Sqf, Sqm


# ------------------------------------------------------------------------------
# Random-effects free energy
# ------------------------------------------------------------------------------


def test_matches_reference(random_evidence):
    """Vectorized terms agree with an explicit double loop."""
    rng = np.random.default_rng(1)
    K, n = random_evidence.shape
    r = rng.dirichlet(np.ones(K), size=n).T
    a_prior = np.ones(K)
    a = a_prior + r.sum(axis=1)

    fe = free_energy(random_evidence, a, r, a_prior)

    assert isinstance(fe, FreeEnergy)
    assert np.allclose(fe, reference_free_energy(random_evidence, a, r, a_prior))


def test_terms_add_up(random_evidence):
    """F is the sum of the expected log-joint and the two entropies."""
    K, n = random_evidence.shape
    r = np.full((K, n), 1 / K)
    fe = free_energy(random_evidence, np.full(K, 1 + n / K), r, np.ones(K))

    assert fe.F == pytest.approx(fe.ELJ + fe.Sqf + fe.Sqm)


def test_flat_evidence_value():
    """Closed-form value for 2 models, 3 uninformative subjects at the VB fixed point."""
    L = np.zeros((2, 3))
    a = np.array([2.5, 2.5])
    r = np.full((2, 3), 0.5)
    Elogr = digamma(2.5) - digamma(5.0)
    Sqf = 2 * gammaln(2.5) - gammaln(5.0) - 2 * 1.5 * Elogr

    fe = free_energy(L, a, r, np.ones(2))

    assert fe.ELJ == pytest.approx(3 * Elogr)
    assert fe.Sqm == pytest.approx(3 * np.log(2))
    assert fe.Sqf == pytest.approx(Sqf)
    assert fe.F == pytest.approx(-0.529, abs=1e-3)


def test_column_vectors_accepted(random_evidence):
    """Kx1 concentrations give the same value as K vectors."""
    K, n = random_evidence.shape
    r = np.full((K, n), 1 / K)
    a = np.full(K, 1 + n / K)

    assert free_energy(random_evidence, a[:, None], r, np.ones((K, 1))) == free_energy(random_evidence, a, r, np.ones(K))


def test_negative_infinite_evidence_is_finite():
    """A model that cannot explain a subject (zero attribution) does not poison F."""
    L = np.array([[0.0, -np.inf], [-1.0, 0.0]])
    r = np.array([[0.7, 0.0], [0.3, 1.0]])

    fe = free_energy(L, np.array([1.7, 2.3]), r, np.ones(2))

    assert np.isfinite(fe.F)


# ------------------------------------------------------------------------------
# Null free energy
# ------------------------------------------------------------------------------


def test_null_flat_evidence_is_zero(flat_evidence):
    """Uninformative unit evidences have unit marginal likelihood under equal frequencies."""
    F0, F0_family = null_free_energy(flat_evidence)

    assert F0 == pytest.approx(0.0, abs=1e-12)
    assert F0_family is None


def test_null_is_log_mean_evidence(random_evidence):
    """Without families, F0 is the sum over subjects of log(mean_k exp(L[k, i]))."""
    K = random_evidence.shape[0]
    F0, _ = null_free_energy(random_evidence)

    assert F0 == pytest.approx((logsumexp(random_evidence, axis=0) - np.log(K)).sum())


def test_null_stable_for_large_evidences(random_evidence):
    """Shifting all log-evidences by a large constant shifts F0 by n times that constant."""
    n = random_evidence.shape[1]
    F0, _ = null_free_energy(random_evidence)
    F0_shifted, _ = null_free_energy(random_evidence - 1e5)

    assert np.isfinite(F0_shifted)
    assert F0_shifted == pytest.approx(F0 - n * 1e5)


def test_null_family_level():
    """Family-level null weights models by uniform family frequencies."""
    L = np.zeros((3, 1))
    f0 = Partition([[1], [2, 3]], 3).null_frequencies()

    F0, F0_family = null_free_energy(L, f0)

    assert F0 == pytest.approx(0.0, abs=1e-12)
    assert F0_family == pytest.approx(np.log(3) - 5 * np.log(2) / 3)


def test_null_handles_negative_infinity():
    """-inf evidences are legitimate and keep F0 finite."""
    L = np.array([[0.0, -np.inf], [-np.inf, 0.0]])
    F0, _ = null_free_energy(L)

    assert F0 == pytest.approx(-2 * np.log(2))
