from typing import Optional, Sequence


class PassportError(Exception):
    """Base class for errors shown to the user as a banner."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ConfigError(PassportError):
    pass


class ValidationError(PassportError):
    """
    Form input rejected before anything is sent to the backend.
    `fields` lists the labels of the offending inputs, if any.
    """

    def __init__(self, message: str, fields: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.fields = list(fields or [])


class BackendError(PassportError):
    """Constraint violation or transport failure reported by Supabase."""

    def __init__(self, message: str, operation: str = ""):
        super().__init__(message)
        self.operation = operation


class ProcedureError(BackendError):
    """Business error returned in-band as {"error": ...} by an accounting procedure."""
