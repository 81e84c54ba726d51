""" Bayesian model selection for group studies.
Adapted from VBA-toolbox (https://github.com/MBB-team/VBA-toolbox) by Lionel Rigoux.
"""
__author__ = 'Sichao Yang'
__contact__ = 'sichao@cs.wisc.edu'
__license__ = 'MIT'
__version__ = '0.2.0'

from .dirichlet import dirichlet_moments
from .exceedance import (exceedance_probability, dirichlet_exceedance_probability, gaussian_exceedance_probability,
                         robust_exceedance_probability)
from .exceptions import (InvalidInputError, ExceedanceProbabilityError, ExceedanceApproximationWarning,
                         FreeEnergyDecreaseWarning)
from .families import Partition
from .free_energy import FreeEnergy, free_energy, null_free_energy
from .group_bmc import GroupBMC, GroupBMCResult

__all__ = [
    'GroupBMC', 'GroupBMCResult', 'Partition', 'FreeEnergy', 'free_energy', 'null_free_energy', 'dirichlet_moments',
    'exceedance_probability', 'dirichlet_exceedance_probability', 'gaussian_exceedance_probability',
    'robust_exceedance_probability', 'InvalidInputError', 'ExceedanceProbabilityError',
    'ExceedanceApproximationWarning', 'FreeEnergyDecreaseWarning',
]
