from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping


class GymSyncError(Exception):
    """Base class for every failure raised by the client core."""


class DomainError(GymSyncError):
    """Server-tagged failure whose message is safe to show to the user."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class TransportError(GymSyncError):
    """Network, timeout or protocol failure. Carries no displayable message."""

    def __init__(self, detail: str, status_code: int | None = None):
        super().__init__(detail)
        self.status_code = status_code


class ValidationError(GymSyncError):
    def __init__(self, errors: Mapping[str, str]):
        super().__init__("; ".join(f"{field}: {message}" for field, message in errors.items()))
        self.errors = dict(errors)


class ConstraintRejection(GymSyncError):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


@dataclass(frozen=True)
class NormalizedError:
    title: str


def normalize_error(error: BaseException, fallback: str) -> NormalizedError:
    if isinstance(error, DomainError):
        message = error.message.strip() if isinstance(error.message, str) else ""
        if message:
            return NormalizedError(title=message)
    return NormalizedError(title=fallback)
