from __future__ import annotations

from typing import Optional

from .project_constants import AUTH_FAILURE_STATUSES


class SonicRingError(RuntimeError):
    """Base class for everything this tool raises on purpose."""


class ConfigurationError(SonicRingError):
    pass


class AuthenticationError(SonicRingError):
    pass


class RemoteError(SonicRingError):
    """A call to the lottery service failed.

    ``status`` is the HTTP status when the service answered, ``None`` for
    transport failures and malformed bodies.
    """

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status

    @property
    def unauthorized(self) -> bool:
        return self.status in AUTH_FAILURE_STATUSES


class BuildError(RemoteError):
    pass


class ParticipationError(RemoteError):
    pass


class PollError(RemoteError):
    pass


class SubmissionError(SonicRingError):
    pass
