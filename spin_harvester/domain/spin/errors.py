# spin_harvester/domain/spin/errors.py
from typing import Optional


# Provider codes that mean the session token is no longer accepted.
AUTHORIZATION_EXPIRED_CODES = frozenset({"1200", "1201"})


class HarvestError(Exception):
    """Base class for errors raised while harvesting rounds."""
    pass


class TransportError(HarvestError):
    """Network or HTTP level failure of a single request. Always retryable."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        self.message = message
        super().__init__(message)


class MalformedResponse(TransportError):
    """The service answered, but the body is empty or carries no spin info."""
    pass


class RemoteRejected(HarvestError):
    """The service returned an explicit error code."""
    def __init__(self, code: str, message: Optional[str] = None):
        self.code = code
        self.message = message or "Unknown"
        super().__init__(f"Error {code}: {self.message}")


class AuthorizationExpired(RemoteRejected):
    """The session token expired; the caller must acquire a new session."""
    pass


class RoundTooLong(RemoteRejected):
    """The service kept a round open past the configured spin limit."""
    def __init__(self, spin_count: int, limit: int):
        self.spin_count = spin_count
        self.limit = limit
        super().__init__("round_too_long", f"round still open after {spin_count} spins (limit {limit})")


class RoundIdentityMismatch(HarvestError):
    """The parent round id changed in the middle of a round."""
    def __init__(self, expected: str, actual: str, spin_index: int):
        self.expected = expected
        self.actual = actual
        self.spin_index = spin_index
        super().__init__(
            f"Parent round id mismatch at spin {spin_index}: expected={expected}, actual={actual}"
        )


class SessionAcquisitionError(HarvestError):
    """A session (token and game parameters) could not be obtained."""
    def __init__(self, game_id, message: str):
        self.game_id = game_id
        self.message = message
        super().__init__(f"Failed to acquire session for game {game_id}: {message}")


class HarvestAborted(HarvestError):
    """A harvesting instance gave up after too many consecutive failures."""
    pass
