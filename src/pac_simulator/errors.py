class PacSimulatorError(Exception):
    """Base class for every error raised by the engine."""


class ValidationError(PacSimulatorError, ValueError):
    """Plan or request parameters break an input invariant."""


class NotFoundError(PacSimulatorError, LookupError):
    """An allocation references an asset the catalog does not know."""

    def __init__(self, asset_id: str):
        super().__init__(f"Asset not found: {asset_id}")
        self.asset_id = asset_id


class ReferenceUnavailableError(PacSimulatorError):
    """The asset reference itself could not be consulted."""


class ComputationError(PacSimulatorError, ArithmeticError):
    """Metrics were requested for a series that cannot produce them."""
