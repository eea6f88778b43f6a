# ==============================================================================
# incentive/calculator/__init__.py
# ------------------------------------------------------------------------------
# The scheme execution engine and its stages.
# ==============================================================================
