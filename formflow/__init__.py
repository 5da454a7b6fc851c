"""Dynamic multi-step form engine."""
from formflow.errors import (
    ConfigError,
    FormEngineError,
    Forbidden,
    IllegalTransition,
    MalformedTemplate,
    PersistenceUnavailable,
    ValidationFailed,
)

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "Forbidden",
    "FormEngineError",
    "IllegalTransition",
    "MalformedTemplate",
    "PersistenceUnavailable",
    "ValidationFailed",
]
