"""Exceptions raised inside measurement loops."""


class Cancelled(Exception):
    """The measurement was stopped on request.

    Expected termination path, deliberately not a ``MeasurementError``.
    """


class MeasurementError(Exception):
    """Base class for failures reported to the user as ``Error: ...``."""


class TransferError(MeasurementError):
    """Non-success HTTP response or a response without a body."""


class ProcessError(MeasurementError):
    """The probe subprocess could not be spawned or failed unexpectedly."""


def describe_error(exc: BaseException) -> str:
    """Short human-readable message for *exc*, never empty."""
    message = str(exc).strip()
    return message or type(exc).__name__
