"""
Exception hierarchy for the strategy summary pipeline.

Only InputError and PersistenceError halt the pipeline. NarrativeServiceError
is raised inside the AI narrative generator and always caught there, so the
deterministic template takes over. Malformed rows and unknown carrier codes
never raise at all.

The API layer maps these to HTTP responses:
- InputError (and DocumentNotFoundError) -> 400 / 404
- PersistenceError -> 500
"""


class StrategyEngineError(Exception):
    """Base class for all strategy engine errors."""


class InputError(StrategyEngineError):
    """Neither source document produced a usable row."""


class DocumentNotFoundError(InputError):
    """Refresh mode found no source documents for the event."""


class NarrativeServiceError(StrategyEngineError):
    """The external text-generation service failed, timed out, or returned nothing."""


class PersistenceError(StrategyEngineError):
    """The summary could not be written to the owning CSP event."""


__all__ = [
    'StrategyEngineError',
    'InputError',
    'DocumentNotFoundError',
    'NarrativeServiceError',
    'PersistenceError',
]
