"""
Registration state - in-memory progress of one wizard session.
"""

from dataclasses import dataclass, field
from typing import Any

from .payloads import StepPayload, parse_payload
from .ports import Flow
from .transitions import EMAIL_STEP


@dataclass
class VerificationStatus:
    """
    Institution email verification flags (institution flow only).

    A flag is only ever set by a successful code check, and it remembers
    the address that was checked: editing the address afterwards makes the
    flag stop counting for that address.
    """

    institution_email_verified: bool = False
    contact_person_email_verified: bool = False
    institution_email: str = ""
    contact_person_email: str = ""

    def record(self, email_type: str, email: str) -> None:
        """Mark email verified for email_type ("institution" or "contact_person")."""
        email = email.strip().lower()
        if email_type == "institution":
            self.institution_email_verified = True
            self.institution_email = email
        else:
            self.contact_person_email_verified = True
            self.contact_person_email = email

    def is_verified(self, email: str) -> bool:
        """True when email matches an address that passed a code check."""
        email = email.strip().lower()
        if not email:
            return False
        if self.institution_email_verified and self.institution_email == email:
            return True
        if self.contact_person_email_verified and self.contact_person_email == email:
            return True
        return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "institution_email_verified": self.institution_email_verified,
            "contact_person_email_verified": self.contact_person_email_verified,
            "institution_email": self.institution_email,
            "contact_person_email": self.contact_person_email,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "VerificationStatus":
        return cls(
            institution_email_verified=bool(raw.get("institution_email_verified")),
            contact_person_email_verified=bool(raw.get("contact_person_email_verified")),
            institution_email=str(raw.get("institution_email") or ""),
            contact_person_email=str(raw.get("contact_person_email") or ""),
        )


def parse_data(raw: dict[str, Any]) -> tuple[str, dict[str, StepPayload]]:
    """
    Parse an untyped data blob into its email and typed step payloads.

    Entries that are not tagged step payloads are skipped.

    Raises:
        pydantic.ValidationError: a tagged entry does not match its model
    """
    email = ""
    payloads: dict[str, StepPayload] = {}
    for key, value in raw.items():
        if key == "email":
            email = value or ""
            continue
        if isinstance(value, dict) and "step" in value:
            payloads[key] = parse_payload(value)
    return email, payloads


@dataclass
class RegistrationState:
    """
    Progress of one registration session.

    ``completed_steps`` keeps insertion order but never holds a step twice,
    and steps are never removed from it within a session.
    """

    flow: Flow
    current_step: int = EMAIL_STEP
    completed_steps: list[int] = field(default_factory=list)
    data: dict[str, StepPayload] = field(default_factory=dict)
    email: str = ""
    verification: VerificationStatus = field(default_factory=VerificationStatus)

    def mark_completed(self, step: int) -> None:
        if step not in self.completed_steps:
            self.completed_steps.append(step)

    def data_dict(self) -> dict[str, Any]:
        """Aggregate data as plain JSON-ready values, email included."""
        result: dict[str, Any] = {"email": self.email}
        for key, payload in self.data.items():
            result[key] = payload.model_dump(mode="json")
        return result

    def merge_data(self, raw: dict[str, Any]) -> None:
        """
        Merge untyped step data over the current data (incoming wins).

        Every entry is parsed before anything is applied, so a bad entry
        leaves the state untouched.
        """
        email, payloads = parse_data(raw)
        if email:
            self.email = email
        self.data.update(payloads)

    def to_dict(self) -> dict[str, Any]:
        return {
            "flow": self.flow.value,
            "current_step": self.current_step,
            "completed_steps": list(self.completed_steps),
            "email": self.email,
            "data": self.data_dict(),
            "verification": self.verification.to_dict(),
        }
