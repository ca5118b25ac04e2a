from typing import Optional

from .types import ValidationReport


class AdoptionError(Exception):
    """Base error for adoption operations; the CLI reports it and exits 1."""


class ConfigError(AdoptionError):
    pass


class TemplateError(AdoptionError):
    pass


class PinError(AdoptionError):
    pass


class PreconditionError(AdoptionError):
    """A required file, directory or option is missing or contradictory."""


class ValidationFailed(AdoptionError):
    """Raised when a gate (e.g. pilot preparation) needs a passing validation."""

    def __init__(self, message: str, report: Optional[ValidationReport] = None) -> None:
        super().__init__(message)
        self.report = report
