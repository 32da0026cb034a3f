from __future__ import annotations


class FinanceEngineError(Exception):
    """Base class for analytics engine failures."""


class InputDataError(FinanceEngineError):
    """A fetched record is missing a required field or holds a non-numeric value."""

    def __init__(self, kind: str, field: str, value: object = None):
        self.kind = kind
        self.field = field
        self.value = value
        super().__init__(f"invalid {kind}: field {field!r} = {value!r}")


class StorageUnavailable(FinanceEngineError):
    """The data-access boundary could not be reached."""

    def __init__(self, operation: str, cause: BaseException | None = None):
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"storage unavailable during {operation}{detail}")


class NotificationSinkError(FinanceEngineError):
    """Inserting a notification failed."""
