""" Bayesian model selection for group studies.
Adapted from VBA-toolbox (https://github.com/MBB-team/VBA-toolbox) by Lionel Rigoux.
References:
[1] Rigoux, L., Stephan, K. E., Friston, K. J., & Daunizeau, J. (2014).
Bayesian model selection for group studies—revisited. NeuroImage, 84, 971-985.
https://www.tnu.ethz.ch/fileadmin/user_upload/documents/Publications/2014/2014_Rigoux_Stephan_Friston_Daunizeau.pdf.
[2] Stephan, K. E., Penny, W. D., Daunizeau, J., Moran, R. J., & Friston, K. J. (2009).
Bayesian model selection for group studies. NeuroImage, 46(4), 1004-1017.
https://www.ncbi.nlm.nih.gov/pmc/articles/PMC2703732/pdf/ukmss-5226.pdf.
"""
import logging
import time
import warnings
from datetime import datetime
from numbers import Integral
from typing import Any, Callable, List, Optional, Sequence
import numpy as np
from scipy.special import digamma as ψ, softmax, expit

from .dirichlet import dirichlet_moments
from .exceedance import robust_exceedance_probability
from .exceptions import FreeEnergyDecreaseWarning, InvalidInputError
from .families import Partition
from .free_energy import FreeEnergy, free_energy, null_free_energy

logger = logging.getLogger(__name__)


class GroupBMCResult:
    """ Results of Bayesian model selection for group studies. """
    concentration: np.ndarray   # sufficient statistics of the posterior Dirichlet density on model/family frequencies
    attribution: np.ndarray     # posterior probabilities for each subject to belong to each model/family
    frequency_mean: np.ndarray  # mean of the posterior Dirichlet distribution on model/family frequencies
    frequency_cov: np.ndarray   # covariance of the posterior Dirichlet distribution on model/family frequencies
    frequency_var: np.ndarray   # variance of the posterior Dirichlet distribution on model/family frequencies
    exceedance_probability: np.ndarray              # p. 972
    exceedance_approximated: bool                   # True if obtained by Gaussian moment matching
    protected_exceedance_probability: np.ndarray    # p. 973 (7)

    def __init__(self, α: np.ndarray, z: np.ndarray, bor: float,
                 n_samples: Optional[int] = None, random_state=None):
        """
        :param α: sufficient statistics of the posterior Dirichlet density on model/family frequencies
        :param z: posterior probabilities for each subject to belong to each model/family
        :param bor: Bayesian omnibus risk p(y|H0)/(p(y|H0)+p(y|H1))
        :param n_samples: number of Monte Carlo samples for the exceedance probabilities (``None``: integration)
        :param random_state: seed or generator used by the Monte Carlo simulation
        """
        self.concentration = np.ravel(α).astype(float)
        self.attribution = z.copy()
        self.frequency_mean, self.frequency_cov = dirichlet_moments(self.concentration)
        self.frequency_var = np.diag(self.frequency_cov).copy()
        self.exceedance_probability, self.exceedance_approximated = \
            robust_exceedance_probability(self.concentration, n_samples, random_state)
        self.protected_exceedance_probability = \
            self.exceedance_probability * (1 - bor) + bor / len(self.concentration)  # (7)


class GroupBMC:
    """ Variational Bayesian algorithm for group-level Bayesian Model Comparison.
    Rigoux, L., Stephan, K. E., Friston, K. J., & Daunizeau, J. (2014).
    Bayesian model selection for group studies—revisited.
    https://www.tnu.ethz.ch/fileadmin/user_upload/documents/Publications/2014/2014_Rigoux_Stephan_Friston_Daunizeau.pdf.
    """
    L: np.ndarray           # KxN array of the log-evidence of each model given each subject
    partition: Optional[Partition]  # families of models, if any
    α_0: np.ndarray         # Kx1 array of sufficient statistics of the prior Dirichlet density on model frequencies
    z_0: np.ndarray         # KxN array of prior model attributions (the prior frequencies of the models with L > -inf)
    α: np.ndarray           # Kx1 array of sufficient statistics of the posterior Dirichlet density on model frequencies
    z: np.ndarray           # KxN array of posterior probabilities for each subject to belong to each model
    F: List[float]          # The series of free energies along the VB iterations, starting from the prior
    n_iter: int             # number of free energy evaluations, including the prior one
    converged: bool         # False if stopped by ``max_iter`` or by the callback before reaching ``tolerance``
    cancelled: bool         # True if the callback stopped the iterations
    ELJ: float              # expected log-joint at convergence
    Sqf: float              # entropy of the Dirichlet density on model frequencies at convergence
    Sqm: float              # entropy of the model attributions at convergence
    F0: float               # free energy of the null hypothesis (equal model frequencies)
    F0_family: Optional[float]  # free energy of the null hypothesis at the family level (equal family frequencies)
    dt: float               # running time of the VB algorithm (in sec)
    date: datetime          # end of the VB algorithm

    def __init__(self,
                 L:             np.ndarray,
                 α_0:           Optional[np.ndarray] = None,
                 partitions:    Optional[Sequence[Sequence[int]]] = None,
                 max_iter:      int = 32,
                 min_iter:      int = 1,
                 tolerance:     float = 1e-4,
                 n_samples:     Optional[int] = None,
                 random_state:  Any = None,
                 verbose:       bool = True,
                 callback:      Optional[Callable[['GroupBMC'], Optional[bool]]] = None):
        """ Uses variational Bayesian analysis to fit a Dirichlet distribution on model frequencies to the data.

        NB: using families changes the default prior (uniform prior on families rather than on models), and hence the
        model evidence.

        :param L: KxN array of the log-evidence of each of the K models given each of the N subjects.
                  -inf is a valid log-evidence (the model cannot explain the subject at all).
        :param α_0: K array of sufficient statistics of the prior Dirichlet density of model frequencies.
                    Default to one per model, or one per family spread evenly over its models.
        :param partitions: Nf arrays of indices (1 to K) of models belonging to each of the Nf families.
        :param max_iter: max number of iterations.
        :param min_iter: min number of iterations.
        :param tolerance: max change in free energy.
        :param n_samples: number of Monte Carlo samples for the exceedance probabilities (``None``: integration).
        :param random_state: seed or generator used by the Monte Carlo simulation.
        :param verbose: log summary statistics once converged.
        :param callback: called with this object after each iteration; returning True stops the iterations.
        """
        t_start = time.perf_counter()
        self.L = _check_evidence(L)
        K = self.L.shape[0]
        self.partition = None if partitions is None else Partition(partitions, K)
        self.α_0 = _check_prior(α_0, K, self.partition)[:, None]
        if not (isinstance(min_iter, Integral) and isinstance(max_iter, Integral) and 1 <= min_iter <= max_iter):
            raise InvalidInputError(f'min_iter/max_iter: expected integers with 1 <= min_iter <= max_iter, '
                                    f'got {min_iter} and {max_iter}!')
        if not tolerance >= 0:
            raise InvalidInputError(f'tolerance: expected a non-negative number, got {tolerance}!')
        self.max_iter, self.min_iter, self.tolerance = max_iter, min_iter, tolerance

        # prior frequencies, restricted to the models that can explain each subject (L > -inf)
        self.z_0 = np.where(np.isfinite(self.L), self.α_0, 0.0)
        self.z_0 /= self.z_0.sum(axis=0, keepdims=True)
        self.α, self.z = self.α_0.copy(), self.z_0.copy()
        self.F = [self.free_energy().F]
        self.converged = self.cancelled = False
        while True:
            self.z = softmax(self.L + ψ(self.α), axis=0)            # (A21) line 2
            self.α = self.α_0 + self.z.sum(axis=1, keepdims=True)   # (A21) line 1

            self.F.append(self.free_energy().F)
            logger.debug('VB iteration %d: F = %.6f', len(self.F), self.F[-1])
            self._check_increase()
            if callback is not None and callback(self):
                self.cancelled = True
                logger.warning('VB iterations cancelled after %d iterations.', len(self.F))
                break
            if self._stop():
                break
        self.n_iter = len(self.F)
        if not self.converged and not self.cancelled:
            logger.warning('VB reached max_iter=%d before the free energy changed by less than %g.',
                           self.max_iter, self.tolerance)

        _, self.ELJ, self.Sqf, self.Sqm = self.free_energy()
        self.F0, self.F0_family = null_free_energy(
            self.L, None if self.partition is None else self.partition.null_frequencies())
        self._result = GroupBMCResult(self.α, self.z, self.bor, n_samples, random_state)
        self._family_result = None
        if self.partition is not None:
            self._family_result = GroupBMCResult(self.partition.pool(self.α), self.partition.pool(self.z),
                                                 float(expit(self.F0_family - self.F[-1])), n_samples, random_state)
        self.dt = time.perf_counter() - t_start
        self.date = datetime.now()
        if verbose:
            logger.info(self.summary())

    def free_energy(self) -> FreeEnergy:
        """ Derives the free energy for the current approximate posteriors (H1). """
        return free_energy(self.L, self.α, self.z, self.α_0)

    def _check_increase(self):
        ΔF = self.F[-1] - self.F[-2]
        if ΔF < -1e-8 * max(1.0, abs(self.F[-2])):
            message = f'Free energy decreased by {-ΔF:.3g} at VB iteration {len(self.F)}!'
            logger.warning(message)
            warnings.warn(message, FreeEnergyDecreaseWarning, stacklevel=3)

    def _stop(self) -> bool:
        """ Checks the stopping criteria. """
        it = len(self.F)
        if it < self.min_iter:
            return False
        if abs(self.F[-1] - self.F[-2]) <= self.tolerance:
            self.converged = True
            return True
        return it >= self.max_iter

    @property
    def p_h1(self) -> float:
        """ Posterior probability that model frequencies differ, p(H1|y). """
        return float(expit(self.F[-1] - self.F0))

    @property
    def bor(self) -> float:
        """ Bayesian omnibus risk p(H0|y). """
        return float(expit(self.F0 - self.F[-1]))

    def get_result(self) -> GroupBMCResult:
        """ Get various statistics of the posterior Dirichlet distribution on model frequencies. """
        return self._result

    def get_family_result(self) -> GroupBMCResult:
        """ Get various statistics of the posterior Dirichlet distribution on family frequencies. """
        if self._family_result is None:
            raise ValueError('No families were given!')
        return self._family_result

    def summary(self) -> str:
        """ Summary statistics of the VB inversion. """
        K, N = self.L.shape
        took = f'{int(self.dt)} sec' if self.dt < 60 else f'{int(self.dt // 60)} min'
        status = 'converged in' if self.converged else 'stopped after'
        lines = [f'Date: {self.date:%d-%b-%Y %H:%M:%S}',
                 f'VB {status} {self.n_iter} iterations (took ~{took}).',
                 'Dimensions:',
                 f'     - subjects: n={N}',
                 f'     - models: K={K}']
        if self.partition is not None:
            lines.append(f'     - families: m={self.partition.n_families}')
        lines += ['Posterior probabilities:',
                  f'     - RFX: p(H1|y)= {self.p_h1:4.3f}',
                  f'     - null: p(H0|y)= {self.bor:4.3f}']
        return '\n'.join(lines)


def _check_evidence(L) -> np.ndarray:
    try:
        L = np.array(L, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f'L: expected a KxN array of log-evidences ({e})!') from e
    if L.ndim != 2 or L.size == 0:
        raise InvalidInputError(f'L: expected a non-empty KxN array of log-evidences, got shape {L.shape}!')
    if np.isnan(L).any() or np.isposinf(L).any():
        raise InvalidInputError('L: log-evidences must not be NaN or +inf!')
    impossible = np.flatnonzero(np.isneginf(L).all(axis=0))
    if len(impossible):
        raise InvalidInputError(f'L: subjects {impossible.tolist()} have a -inf log-evidence under every model!')
    return L


def _check_prior(α_0, K: int, partition: Optional[Partition]) -> np.ndarray:
    if α_0 is None:
        return np.ones(K) if partition is None else partition.prior_concentration()
    α_0 = np.asarray(α_0, dtype=float).ravel()
    if len(α_0) != K:
        raise InvalidInputError(f'α_0: model evidence and priors size mismatch ({K} models, {len(α_0)} priors)!')
    if not np.all(np.isfinite(α_0) & (α_0 > 0)):
        raise InvalidInputError('α_0: prior concentrations must be finite and positive!')
    return α_0
