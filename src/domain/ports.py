"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the registration domain
requires from infrastructure. Adapters implement these protocols through
structural subtyping.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Protocol


class Flow(str, Enum):
    """Registration journeys supported by the wizard."""

    STUDENT = "student"
    INSTITUTION = "institution"


class SavePolicy(Enum):
    """
    What happens to step advancement when a per-step server save fails.

    - BLOCK: the failure is surfaced and the wizard stays on the step
    - IGNORE: the failure is logged and the wizard advances anyway
    """

    BLOCK = "block"
    IGNORE = "ignore"


@dataclass
class Checkpoint:
    """Remote checkpoint record keyed by email."""

    step: int
    completed_steps: list[int] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class ApiResult:
    """
    Envelope returned by the festival backend.

    The backend answers ``{"success": ..., "data": ..., "message": ...}``;
    ``error_code`` is set for known business failures (e.g. EMAIL_EXISTS).
    """

    success: bool
    data: Any = None
    message: str | None = None
    error_code: str | None = None


class KeyValueStorage(Protocol):
    """Port interface for the synchronous local progress store."""

    def get(self, key: str) -> str | None:
        """Return the stored string for key, or None when absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        ...

    def remove(self, key: str) -> None:
        """Remove key. Removing a missing key is a no-op."""
        ...


class ExpiringStorage(KeyValueStorage, Protocol):
    """Backing store shared by many sessions, able to drop abandoned ones."""

    def purge_expired(self, max_age: timedelta) -> int:
        """
        Remove every session whose keys were all last written before max_age ago.

        Returns:
            Number of keys removed
        """
        ...


class CheckpointStore(Protocol):
    """Port interface for the remote checkpoint endpoint."""

    def load_checkpoint(self, email: str) -> Checkpoint | None:
        """
        Load the checkpoint saved for email.

        Returns:
            Checkpoint, or None when the server has nothing for this email
        """
        ...

    def save_checkpoint(
        self, email: str, step: int, completed_steps: list[int], data: dict[str, Any]
    ) -> None:
        """Save a checkpoint for email (last write wins)."""
        ...

    def clear_checkpoint(self, email: str) -> None:
        """Delete the checkpoint for email."""
        ...


class FestivalApi(Protocol):
    """
    Port interface for the festival REST backend.

    Implementations raise RemoteCallFailed when a call cannot be completed
    (transport error or non-2xx status). Business rejections come back as
    an ApiResult with ``success=False``.
    """

    def save_personal_details(self, payload: dict[str, Any]) -> ApiResult: ...

    def upload_documents(self, email: str, payload: dict[str, Any]) -> ApiResult: ...

    def save_parent_medical(self, payload: dict[str, Any]) -> ApiResult: ...

    def save_sport_assignments(self, payload: dict[str, Any]) -> ApiResult: ...

    def save_progress(self, flow: Flow, progress: dict[str, Any]) -> ApiResult:
        """Save a student or institution progress record."""
        ...

    def validate_registration_email(self, email: str) -> ApiResult: ...

    def send_otp(self, flow: Flow, email: str) -> ApiResult:
        """Send a one-time code for email entry; data carries the ``otp_id``."""
        ...

    def verify_otp(self, otp_id: str, code: str) -> ApiResult: ...

    def verify_otp_with_email(self, email: str, code: str) -> ApiResult: ...

    def get_student_prefill(self, email: str) -> ApiResult:
        """Return details known for a returning student, if any."""
        ...

    def send_email_verification(self, email: str, email_type: str) -> ApiResult:
        """Send a code to an institution or contact person address."""
        ...

    def verify_email_verification(self, email: str, code: str, email_type: str) -> ApiResult: ...

    def complete_student_registration(self, payload: dict[str, Any]) -> ApiResult: ...

    def create_institute(self, payload: dict[str, Any]) -> ApiResult: ...

    def get_institute_by_email(self, email: str) -> ApiResult: ...

    def get_pricing_summary(self) -> ApiResult:
        """Return parent pass pricing grouped by category."""
        ...

    def calculate_fee(self, sport_id: int, discipline_count: int) -> ApiResult: ...

    def list_admin_institutions(self, params: dict[str, Any]) -> ApiResult: ...

    def list_admin_students(self, params: dict[str, Any]) -> ApiResult: ...

    def list_admin_payments(self, params: dict[str, Any]) -> ApiResult: ...

    def get_payments_summary(self) -> ApiResult: ...

    def list_admin_sports(self, params: dict[str, Any]) -> ApiResult: ...

    def list_admin_sponsorships(self) -> ApiResult: ...


class Notifier(Protocol):
    """Port interface for transient user notifications."""

    def notify(self, title: str, description: str, variant: str = "default") -> None:
        """
        Publish a notification.

        Args:
            title: Short headline
            description: Detail text
            variant: "default" or "destructive"
        """
        ...
