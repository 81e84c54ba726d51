""" Variational free energies of the random-effects (H1) and null (H0) hypotheses.
Equation numbers refer to the appendix of Rigoux, L., Stephan, K. E., Friston, K. J., & Daunizeau, J. (2014).
Bayesian model selection for group studies—revisited. NeuroImage, 84, 971-985.
"""
from typing import NamedTuple, Optional, Tuple
import numpy as np
from scipy.special import digamma as ψ, gammaln, logsumexp, softmax

ε: float = np.finfo(float).eps


class FreeEnergy(NamedTuple):
    """ The free energy and its three additive terms. """
    F: float    # ELJ + Sqf + Sqm
    ELJ: float  # expected log-joint
    Sqf: float  # entropy of the Dirichlet density on model frequencies
    Sqm: float  # entropy of the subjects' model attributions


def free_energy(L: np.ndarray, α: np.ndarray, z: np.ndarray, α_0: np.ndarray) -> FreeEnergy:
    """ Derives the free energy for the current approximate posteriors (H1).

    :param L: KxN array of the log-evidence of each model given each subject.
    :param α: K (or Kx1) array of sufficient statistics of the posterior Dirichlet density on model frequencies.
    :param z: KxN array of posterior probabilities for each subject to belong to each model.
    :param α_0: K (or Kx1) array of sufficient statistics of the prior Dirichlet density on model frequencies.
    """
    α, α_0 = np.reshape(α, (-1, 1)), np.reshape(α_0, (-1, 1))
    E_log_r = ψ(α) - ψ(α.sum())
    # attributions that are exactly zero (e.g. L = -inf) contribute nothing
    E_log_joint = np.multiply(z, L + E_log_r, out=np.zeros_like(z, dtype=float), where=z > 0).sum()  # (A20) line 2
    E_log_joint += ((α_0 - 1) * E_log_r).sum()                                                        # (A20) line 2
    E_log_joint += gammaln(α_0.sum()) - gammaln(α_0).sum()                                            # (A20) line 3
    entropy_z = -(z * np.log(z + ε)).sum()                                                            # (A20) line 3
    entropy_α = gammaln(α).sum() - gammaln(α.sum()) - ((α - 1) * E_log_r).sum()                       # (A20) line 4
    return FreeEnergy(float(E_log_joint + entropy_α + entropy_z), float(E_log_joint), float(entropy_α),
                      float(entropy_z))


def null_free_energy(L: np.ndarray, f0: Optional[np.ndarray] = None) -> Tuple[float, Optional[float]]:
    """ Derives the free energy of the null hypothesis (H0: equal model frequencies).

    :param L: KxN array of the log-evidence of each model given each subject.
    :param f0: K array of model frequencies under the family-level null (equal family frequencies), if any.
    :return: the free energy of H0 at the model level, and at the family level (``None`` without families).
    """
    K = L.shape[0]
    w = softmax(L, axis=0)              # (A19)
    log_evidence = logsumexp(L, axis=0)
    F0 = float((w * (log_evidence - np.log(K))).sum())
    if f0 is None:
        return F0, None
    return F0, float((w * (log_evidence + np.log(np.ravel(f0))[:, None])).sum())
