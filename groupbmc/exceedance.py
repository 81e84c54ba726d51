""" Exceedance probabilities of model/family frequencies.
Exceedance probability: φ_i = p(∀j != i: r_i > r_j | y), the probability that category i is the most frequent one.

Two tiers are provided: the exact one works on the posterior Dirichlet density itself, the approximate one on a
multivariate Gaussian matched to its first two moments. ``robust_exceedance_probability`` tries the former and falls
back to the latter, reporting the fallback.
"""
import logging
import warnings
from typing import Optional, Tuple
import numpy as np
from scipy import integrate
from scipy.integrate import IntegrationWarning
from scipy.stats import rv_continuous, dirichlet, gamma, multivariate_normal as mvn
from scipy.stats._multivariate import dirichlet_frozen, multivariate_normal_frozen
from scipy.special import gammainc, gammaln

from .dirichlet import dirichlet_moments
from .exceptions import ExceedanceApproximationWarning, ExceedanceProbabilityError

logger = logging.getLogger(__name__)
ε: float = np.finfo(float).eps


def _dimension(distribution: rv_continuous) -> int:
    if isinstance(distribution, dirichlet_frozen):
        return len(distribution.alpha)
    if isinstance(distribution, multivariate_normal_frozen):
        return len(distribution.mean)
    raise NotImplementedError('Exceedance probability not implemented for this distribution!')


def exceedance_probability(distribution: rv_continuous,
                           n_samples: Optional[int] = None,
                           random_state=None) -> np.ndarray:
    """ Calculates the exceedance probability of a random variable following a continuous multivariate distribution.
    Exceedance probability: φ_i = p(∀j != i: x_i > x_j | x ~ ``distribution``).

    The result is renormalized to sum to one. Ties have zero probability, so this only absorbs the integration or
    sampling error; for a Gaussian surrogate of a Dirichlet density the raw values may sum to more than one, which is
    an artifact of the approximation rather than an error.

    :param distribution: the continuous multivariate distribution (frozen Dirichlet or multivariate normal).
    :param n_samples: the number of realization sampled from the distribution to approximate the exceedance probability.
                      Default to ``None`` and numerical integration is used instead of Monte Carlo simulation.
    :param random_state: seed or generator used by the Monte Carlo simulation.
    :return: the exceedance probability of a random variable following the continuous multivariate distribution.
    """
    n = _dimension(distribution)
    if n == 1:
        return np.ones(1)
    if n_samples is None:   # Numerical integration
        if isinstance(distribution, multivariate_normal_frozen):
            # Speekenbrink, M., & Konstantinidis, E. (2015). Uncertainty and exploration in a restless bandit problem.
            # https://onlinelibrary.wiley.com/doi/pdf/10.1111/tops.12145: p. 4.
            μ, Σ = distribution.mean, distribution.cov
            φ = np.zeros(n)
            I = - np.eye(n - 1)
            for i in range(n):
                A = np.insert(I, i, 1, axis=1)  # rows: x_i - x_j
                φ[i] = mvn.cdf(A @ μ, cov=A @ Σ @ A.T)
        else:
            # Soch, J. & Allefeld, C. (2016). Exceedance Probabilities for the Dirichlet Distribution.
            # https://arxiv.org/pdf/1611.01439.pdf: p. 361.
            α = distribution.alpha
            γ = gammaln(α)

            def f(x, i):
                φ_i = np.prod(gammainc(np.delete(α, i), x))
                return φ_i * np.exp((α[i] - 1) * np.log(x) - x - γ[i])

            φ = np.zeros(n)
            for i in range(n):
                # the integrand is bounded by the Gamma(α_i) density: integrate over its bulk
                a, b = gamma.ppf(ε, α[i]), gamma.isf(ε, α[i])
                mode = α[i] - 1
                φ[i] = integrate.quad(f, a, b, args=(i,), points=[mode] if a < mode < b else None, limit=200)[0]
    else:   # Monte Carlo simulation
        samples = distribution.rvs(size=n_samples, random_state=random_state)
        φ = (samples == np.amax(samples, axis=1, keepdims=True)).sum(axis=0)
    return φ / φ.sum()


def dirichlet_exceedance_probability(α: np.ndarray,
                                     n_samples: Optional[int] = None,
                                     random_state=None) -> np.ndarray:
    """ Exact exceedance probabilities of a Dirichlet density on frequencies.

    :param α: K array of sufficient statistics of the Dirichlet density.
    :param n_samples: number of Monte Carlo samples, ``None`` for numerical integration.
    :param random_state: seed or generator used by the Monte Carlo simulation.
    :raises ExceedanceProbabilityError: the computation overflowed, did not integrate reliably or degenerated.
    """
    α = np.asarray(α, dtype=float).ravel()
    if len(α) == 1:
        return np.ones(1)
    try:
        with warnings.catch_warnings():
            warnings.simplefilter('error', IntegrationWarning)
            with np.errstate(over='raise', invalid='raise'):
                φ = exceedance_probability(dirichlet(α), n_samples, random_state)
    except (FloatingPointError, OverflowError, MemoryError, IntegrationWarning) as e:
        raise ExceedanceProbabilityError(f'Dirichlet exceedance probabilities failed: {e!r}') from e
    if not np.all(np.isfinite(φ)):
        raise ExceedanceProbabilityError('Dirichlet exceedance probabilities are not finite!')
    return φ


def gaussian_exceedance_probability(mean: np.ndarray, cov: np.ndarray) -> np.ndarray:
    """ Exceedance probabilities of a multivariate Gaussian density on frequencies (moment matching).

    :param mean: K array of frequency means.
    :param cov: KxK covariance matrix of the frequencies, possibly singular (as for a Dirichlet density).
    """
    mean = np.asarray(mean, dtype=float).ravel()
    if len(mean) == 1:
        return np.ones(1)
    return exceedance_probability(mvn(mean, cov, allow_singular=True))


def robust_exceedance_probability(α: np.ndarray,
                                  n_samples: Optional[int] = None,
                                  random_state=None) -> Tuple[np.ndarray, bool]:
    """ Exceedance probabilities of a Dirichlet density, falling back to Gaussian moment matching on failure.

    :param α: K array of sufficient statistics of the Dirichlet density.
    :param n_samples: number of Monte Carlo samples for the exact tier, ``None`` for numerical integration.
    :param random_state: seed or generator used by the Monte Carlo simulation.
    :return: the exceedance probabilities, and whether they were approximated.
    """
    try:
        return dirichlet_exceedance_probability(α, n_samples, random_state), False
    except ExceedanceProbabilityError as e:
        message = f'Exceedance probabilities are approximated! ({e})'
        logger.warning(message)
        warnings.warn(message, ExceedanceApproximationWarning, stacklevel=2)
    return gaussian_exceedance_probability(*dirichlet_moments(α)), True
