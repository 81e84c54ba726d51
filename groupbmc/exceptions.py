""" Errors and warnings raised by the group-level Bayesian model comparison. """


class InvalidInputError(ValueError):
    """ Raised before any VB iteration when the log-evidences, priors, families or options are malformed. """


class ExceedanceProbabilityError(ArithmeticError):
    """ Raised when the exact (Dirichlet) exceedance probabilities cannot be computed reliably. """


class ExceedanceApproximationWarning(RuntimeWarning):
    """ Exceedance probabilities were approximated by Gaussian moment matching. """


class FreeEnergyDecreaseWarning(RuntimeWarning):
    """ The free energy decreased between two VB iterations, which the updates should never do. """
