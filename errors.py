class TallyError(Exception):
    """Base class for errors surfaced by the tally service."""

    status_code = 500


class AuthError(TallyError):
    """Missing, invalid or expired credentials, or an unknown user."""

    status_code = 401


class PayloadValidationError(TallyError):
    """Malformed update payload. Nothing is written."""

    status_code = 400


class StorageError(TallyError):
    """Persistence unavailable or a write lost a race. Safe to retry."""

    status_code = 500
