"""Exception types shared by the analysis pipeline and its callers."""


class TrapAnalysisError(Exception):
    """Base class for failures raised by the analysis core."""


class DecodeError(TrapAnalysisError):
    """The trap image could not be opened or decoded."""


class ValidationError(TrapAnalysisError):
    """Microclimate input was missing or not numeric."""


class StoreError(TrapAnalysisError):
    """The reading store could not be reached or failed mid-query."""
