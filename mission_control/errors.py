"""
Error taxonomy for Mission Control.

Stores raise these; the HTTP layer maps them to status codes:
  NotFound        -> 404
  ValidationError -> 400
  UpstreamIOError -> 500 (logged)
  Aborted         -> superseded client-side search, never reaches the server
"""


class MissionControlError(Exception):
    """Base class for all Mission Control errors."""
    status_code = 500


class NotFound(MissionControlError):
    """Raised when an entity id or slug cannot be resolved."""
    status_code = 404


class ValidationError(MissionControlError):
    """Raised when input is missing a required field or has a bad value."""
    status_code = 400


class UpstreamIOError(MissionControlError):
    """Raised when the backing files cannot be read or written."""
    status_code = 500


class Aborted(MissionControlError):
    """Raised when a newer search query supersedes a pending one."""
    pass
