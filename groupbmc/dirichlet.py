""" Moments of the Dirichlet density on model/family frequencies. """
from typing import Tuple
import numpy as np

from .exceptions import InvalidInputError


def dirichlet_moments(α: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """ Derives the first- and second-order moments of a Dirichlet density.

    :param α: K (or Kx1) array of sufficient statistics (concentrations) of the Dirichlet density.
    :return: the K array of frequency means and the KxK covariance matrix of the frequencies.
    """
    α = np.asarray(α, dtype=float).ravel()
    if α.size == 0 or not np.all(α > 0):
        raise InvalidInputError('Dirichlet concentrations must be a non-empty array of positive numbers!')
    α_0 = α.sum()
    E = α / α_0
    V = - np.outer(α, α)
    V[np.diag_indices_from(V)] = α * (α_0 - α)
    return E, V / (α_0 ** 2 * (α_0 + 1))
