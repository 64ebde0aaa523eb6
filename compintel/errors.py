"""
Exception hierarchy for the pipeline.
"""


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class ItemValidationError(PipelineError):
    """Raw item rejected at the ingress boundary. Never retried."""


class TenantScopeError(ItemValidationError):
    """A store operation was attempted without a tenant identity."""


class AdapterError(PipelineError):
    """Sentiment or entity adapter failed (network, timeout, bad response)."""


class StoreUnavailableError(PipelineError):
    """The processed store could not be read."""


class PersistenceError(PipelineError):
    """The processed store could not be written."""
