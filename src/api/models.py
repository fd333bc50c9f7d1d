"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Step payloads themselves are the domain's tagged payload models.
"""

from typing import Any, Literal

from pydantic import BaseModel, EmailStr, Field

from src.domain.registration import FinalOutcome
from src.domain.state import RegistrationState


class EmailRequest(BaseModel):
    """Request model for sending a one-time code to the registration email."""

    email: EmailStr


class OtpVerifyRequest(EmailRequest):
    """Request model for confirming the registration email with its code."""

    code: str = Field(..., min_length=1, max_length=12)


class ContactVerificationRequest(BaseModel):
    """Request model for sending a code to an institution or contact address."""

    email_type: Literal["institution", "contact_person"]
    email: EmailStr


class ContactVerificationConfirm(ContactVerificationRequest):
    code: str = Field(..., min_length=1, max_length=12)


class Notification(BaseModel):
    title: str
    description: str
    variant: str = "default"


class SessionResponse(BaseModel):
    """Current wizard state of one session."""

    session_id: str
    flow: str
    current_step: int
    completed_steps: list[int]
    email: str
    data: dict[str, Any]
    verification: dict[str, Any]
    notifications: list[Notification] = Field(default_factory=list)

    @classmethod
    def from_state(
        cls,
        session_id: str,
        state: RegistrationState,
        notifications: list[dict[str, str]] | None = None,
    ) -> "SessionResponse":
        return cls(
            session_id=session_id,
            notifications=[Notification(**n) for n in notifications or []],
            **state.to_dict(),
        )


class SubmissionResponse(BaseModel):
    """Response model for a completed registration."""

    message: str
    landing_route: str
    record_id: Any = None
    existing: bool = False
    notifications: list[Notification] = Field(default_factory=list)

    @classmethod
    def from_outcome(
        cls, outcome: FinalOutcome, notifications: list[dict[str, str]] | None = None
    ) -> "SubmissionResponse":
        return cls(
            message="Registration complete",
            landing_route=outcome.landing_route,
            record_id=outcome.record_id,
            existing=outcome.existing,
            notifications=[Notification(**n) for n in notifications or []],
        )


class FeeQuoteRequest(BaseModel):
    """Request model for a fee quote."""

    kind: Literal["parents", "sports", "institution"]
    parent_ages: list[int] = Field(default_factory=list)
    sport_ids: list[int] = Field(default_factory=list)
    student_count: int = Field(0, ge=0)
    team_count: int = Field(0, ge=0)


class FeeQuoteResponse(BaseModel):
    total: float
    breakdown: dict[str, float]
    estimated: bool
    warning: str | None = None


class AgeGroupRequest(BaseModel):
    age: int = Field(..., ge=0)
    age_group: str = Field(..., min_length=1)
    use_alt_format: bool = False


class AgeGroupResponse(BaseModel):
    is_valid: bool
    message: str = ""


class PaginationInfo(BaseModel):
    page: int
    per_page: int
    total: int
    total_pages: int
    visible_pages: list[int]
    summary: str


class ListingResponse(BaseModel):
    items: list[dict[str, Any]]
    pagination: PaginationInfo


class PaymentsSummaryResponse(BaseModel):
    """Payment totals for the admin dashboard, as reported by the backend."""

    overall: dict[str, Any] = Field(default_factory=dict)
    student_payments: dict[str, Any] = Field(default_factory=dict)
    institute_payments: dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str


class ValidationErrorDetail(BaseModel):
    message: str
    errors: list[str]


class ValidationErrorResponse(BaseModel):
    """Step validation failure: every field error at once."""

    detail: ValidationErrorDetail
