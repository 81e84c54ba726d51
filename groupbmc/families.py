""" Partition of the model space into families. """
from numbers import Integral
from typing import List, Sequence
import numpy as np

from .exceptions import InvalidInputError


class Partition:
    """ Non-overlapping families of models covering the whole model space.
    Models are indexed from 1 to K, as in the VBA toolbox.
    """
    groups: List[np.ndarray]    # 0-based indices of the models belonging to each family
    membership: np.ndarray      # KxNf array, 1 if the model belongs to the family and 0 otherwise

    def __init__(self, partitions: Sequence[Sequence[int]], K: int):
        """
        :param partitions: Nf sequences of indices (1 to K) of models belonging to each of the Nf families.
        :param K: number of models.
        """
        if len(partitions) == 0:
            raise InvalidInputError('families: at least one family is required!')
        self.groups = []
        for j, p in enumerate(partitions):
            if len(p) == 0:
                raise InvalidInputError(f'families: family {j + 1} is empty!')
            if not all(isinstance(k, Integral) and 1 <= k <= K for k in p):
                raise InvalidInputError(f'families: family {j + 1} has model indices outside 1..{K}!')
            self.groups.append(np.array(p, dtype=int) - 1)
        indices = np.concatenate(self.groups)
        if len(indices) != len(np.unique(indices)):
            raise InvalidInputError('families: a model belongs to more than one family!')
        if len(indices) != K:
            missing = sorted(set(range(1, K + 1)) - set(indices + 1))
            raise InvalidInputError(f'families: models {missing} belong to no family!')

        self.membership = np.zeros((K, len(self.groups)))
        for j, p in enumerate(self.groups):
            self.membership[p, j] = 1

    @property
    def n_families(self) -> int:
        return self.membership.shape[1]

    def prior_concentration(self) -> np.ndarray:
        """ Prior counts giving each family a total mass of one (uniform prior over families, not models). """
        return self.membership @ (1 / self.membership.sum(axis=0))

    def null_frequencies(self) -> np.ndarray:
        """ Model frequencies under the family-level null: uniform over families, then within each family. """
        return self.prior_concentration() / self.n_families

    def pool(self, x: np.ndarray) -> np.ndarray:
        """ Sums model-level statistics (Kx... array) over the members of each family. """
        return self.membership.T @ x

    def __repr__(self):
        return f'Partition({[(p + 1).tolist() for p in self.groups]})'
