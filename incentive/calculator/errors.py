# ==============================================================================
# incentive/calculator/errors.py
# ------------------------------------------------------------------------------
# The one exception a run can end with. Everything recoverable is logged.
# ==============================================================================


class SchemeExecutionError(ValueError):
    """Raised when a scheme run cannot start: missing mapping, file, column or date."""
