"""Domain layer: errors and schemas."""

from .errors import AppFactoryError, ErrorCodes
from .schemas import (
    AppIdentity,
    AppRecord,
    AppSource,
    Phase,
    PromptPayload,
    ValidationResult,
    ViolationReport,
)

__all__ = [
    "AppFactoryError",
    "ErrorCodes",
    "AppIdentity",
    "AppRecord",
    "AppSource",
    "Phase",
    "PromptPayload",
    "ValidationResult",
    "ViolationReport",
]
