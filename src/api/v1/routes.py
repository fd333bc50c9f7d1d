"""
API v1 routes.

Defines REST endpoints for the festival registration wizard: one session
per browser tab, driven step by step through the flow's transition table.

Handlers are plain functions: they call the festival backend and the
progress store synchronously, so FastAPI runs them in its threadpool.
"""

import uuid
from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from pydantic import ValidationError

from src.api.dependencies import (
    build_orchestrator,
    get_app_settings,
    get_festival_api,
    get_orchestrator,
    get_replicator,
    get_storage,
)
from src.api.models import (
    AgeGroupRequest,
    AgeGroupResponse,
    ContactVerificationConfirm,
    ContactVerificationRequest,
    EmailRequest,
    ErrorResponse,
    FeeQuoteRequest,
    FeeQuoteResponse,
    ListingResponse,
    OtpVerifyRequest,
    PaginationInfo,
    PaymentsSummaryResponse,
    SessionResponse,
    SubmissionResponse,
    ValidationErrorResponse,
)
from src.config.settings import Settings
from src.domain.exceptions import (
    EmailVerificationFailed,
    RemoteCallFailed,
    StepOutOfOrder,
    StepSaveFailed,
    StepValidationFailed,
    SubmissionFailed,
    UnknownStep,
)
from src.domain.fees import FeeQuote, institution_fees, quote_parent_passes, quote_sports
from src.domain.listing import DEFAULT_PER_PAGE, Page, filter_by, search
from src.domain.payloads import StepPayload, parse_payload
from src.domain.ports import ApiResult, FestivalApi, Flow, KeyValueStorage
from src.domain.registration import FinalOutcome, RegistrationOrchestrator
from src.domain.replication import BestEffortReplicator
from src.domain.validation import validate_age_for_age_group

router = APIRouter(tags=["v1"])

SESSION_RESPONSES: dict[int | str, dict[str, Any]] = {
    404: {"model": ErrorResponse, "description": "Registration session not found"},
}

STEP_RESPONSES: dict[int | str, dict[str, Any]] = {
    404: {"model": ErrorResponse, "description": "Unknown step or session"},
    409: {"model": ErrorResponse, "description": "Step is not open yet"},
    422: {"model": ValidationErrorResponse, "description": "Step validation failed"},
    502: {"model": ErrorResponse, "description": "Festival backend save failed"},
}

VERIFICATION_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Code could not be sent or was rejected"},
    404: {"model": ErrorResponse, "description": "Registration session not found"},
}

LISTING_RESPONSES: dict[int | str, dict[str, Any]] = {
    502: {"model": ErrorResponse, "description": "Festival backend unavailable"},
}


def _session(orchestrator: RegistrationOrchestrator, session_id: str) -> SessionResponse:
    return SessionResponse.from_state(
        session_id, orchestrator.state, orchestrator.notifier.messages
    )


def _submission(
    orchestrator: RegistrationOrchestrator, outcome: FinalOutcome
) -> SubmissionResponse:
    return SubmissionResponse.from_outcome(outcome, orchestrator.notifier.messages)


def _parse_step_payload(
    orchestrator: RegistrationOrchestrator, step: int, raw: dict[str, Any]
) -> StepPayload:
    """Parse a raw step body, tagging it with the step's key when untagged."""
    try:
        rule = orchestrator.definition.rule(step)
    except UnknownStep as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from None

    try:
        return parse_payload({**raw, "step": raw.get("step", rule.key)})
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        ]
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Validation failed", "errors": errors},
        ) from None


def _translate(error: Exception) -> HTTPException:
    """Map a domain failure onto its HTTP response."""
    if isinstance(error, StepValidationFailed):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Validation failed", "errors": error.errors},
        )
    if isinstance(error, UnknownStep):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, StepOutOfOrder):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, EmailVerificationFailed):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(error))


# --- Wizard sessions -----------------------------------------------------


@router.post(
    "/{flow}/sessions",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a registration session",
)
def create_session(
    flow: Flow,
    storage: KeyValueStorage = Depends(get_storage),
    api: FestivalApi = Depends(get_festival_api),
    replicator: BestEffortReplicator = Depends(get_replicator),
) -> SessionResponse:
    """Open a fresh wizard session on the email step."""
    session_id = uuid.uuid4().hex
    orchestrator = build_orchestrator(flow, session_id, storage, api, replicator)
    orchestrator.open()
    return _session(orchestrator, session_id)


@router.get(
    "/{flow}/sessions/{session_id}",
    response_model=SessionResponse,
    responses=SESSION_RESPONSES,
    summary="Mount a registration session",
    description="Restore progress from local storage and reconcile it with the "
    "remote checkpoint saved for the session's email.",
)
def mount_session(
    session_id: str,
    orchestrator: RegistrationOrchestrator = Depends(get_orchestrator),
) -> SessionResponse:
    orchestrator.mount()
    return _session(orchestrator, session_id)


@router.post(
    "/{flow}/sessions/{session_id}/email/otp",
    response_model=SessionResponse,
    responses=VERIFICATION_RESPONSES,
    summary="Send a one-time code to the registration email",
)
def request_otp(
    session_id: str,
    request_data: EmailRequest,
    orchestrator: RegistrationOrchestrator = Depends(get_orchestrator),
) -> SessionResponse:
    try:
        orchestrator.request_otp(request_data.email)
    except EmailVerificationFailed as e:
        raise _translate(e) from None
    return _session(orchestrator, session_id)


@router.post(
    "/{flow}/sessions/{session_id}/email",
    response_model=SessionResponse,
    responses=VERIFICATION_RESPONSES,
    summary="Confirm the registration email",
)
def verify_email(
    session_id: str,
    request_data: OtpVerifyRequest,
    orchestrator: RegistrationOrchestrator = Depends(get_orchestrator),
) -> SessionResponse:
    """
    Check the one-time code sent to the email and enter step 1.

    Any checkpoint previously saved for this email is restored, and a
    returning student's known details are pre-filled.
    """
    try:
        orchestrator.confirm_otp(request_data.email, request_data.code)
    except EmailVerificationFailed as e:
        raise _translate(e) from None
    return _session(orchestrator, session_id)


@router.post(
    "/{flow}/sessions/{session_id}/email-verification",
    response_model=SessionResponse,
    responses={**VERIFICATION_RESPONSES, 409: STEP_RESPONSES[409]},
    summary="Send a code to the institution or contact person email",
)
def send_contact_verification(
    session_id: str,
    request_data: ContactVerificationRequest,
    orchestrator: RegistrationOrchestrator = Depends(get_orchestrator),
) -> SessionResponse:
    try:
        orchestrator.send_contact_verification(request_data.email_type, request_data.email)
    except (EmailVerificationFailed, StepOutOfOrder) as e:
        raise _translate(e) from None
    return _session(orchestrator, session_id)


@router.post(
    "/{flow}/sessions/{session_id}/email-verification/confirm",
    response_model=SessionResponse,
    responses={**VERIFICATION_RESPONSES, 409: STEP_RESPONSES[409]},
    summary="Confirm the institution or contact person email",
)
def confirm_contact_verification(
    session_id: str,
    request_data: ContactVerificationConfirm,
    orchestrator: RegistrationOrchestrator = Depends(get_orchestrator),
) -> SessionResponse:
    """Record the address as verified; institution details require both addresses verified."""
    try:
        orchestrator.confirm_contact_verification(
            request_data.email_type, request_data.email, request_data.code
        )
    except (EmailVerificationFailed, StepOutOfOrder) as e:
        raise _translate(e) from None
    return _session(orchestrator, session_id)


@router.post(
    "/{flow}/sessions/{session_id}/steps/{step}",
    response_model=SessionResponse | SubmissionResponse,
    responses=STEP_RESPONSES,
    summary="Submit a wizard step",
)
def submit_step(
    session_id: str,
    step: int,
    payload: dict[str, Any] = Body(...),
    orchestrator: RegistrationOrchestrator = Depends(get_orchestrator),
) -> SessionResponse | SubmissionResponse:
    """
    Validate, save and complete one step.

    Only the current step or an earlier one may be submitted. Validation
    errors are all reported together. Submitting the last step finalizes
    the registration.
    """
    step_payload = _parse_step_payload(orchestrator, step, payload)
    try:
        outcome = orchestrator.submit_step(step, step_payload)
    except (
        StepValidationFailed,
        StepOutOfOrder,
        StepSaveFailed,
        SubmissionFailed,
        UnknownStep,
    ) as e:
        raise _translate(e) from None

    if isinstance(outcome, FinalOutcome):
        return _submission(orchestrator, outcome)
    return _session(orchestrator, session_id)


@router.post(
    "/{flow}/sessions/{session_id}/back",
    response_model=SessionResponse,
    responses=SESSION_RESPONSES,
    summary="Go back one step",
)
def go_back(
    session_id: str,
    orchestrator: RegistrationOrchestrator = Depends(get_orchestrator),
) -> SessionResponse:
    orchestrator.back()
    return _session(orchestrator, session_id)


@router.delete(
    "/{flow}/sessions/{session_id}",
    response_model=SessionResponse,
    responses=SESSION_RESPONSES,
    summary="Start over",
)
def start_over(
    session_id: str,
    orchestrator: RegistrationOrchestrator = Depends(get_orchestrator),
) -> SessionResponse:
    """Discard local progress and clear the remote checkpoint."""
    orchestrator.start_over()
    return _session(orchestrator, session_id)


@router.post(
    "/{flow}/sessions/{session_id}/submit",
    response_model=SubmissionResponse,
    responses=STEP_RESPONSES,
    summary="Submit the registration",
)
def submit_registration(
    payload: dict[str, Any] = Body(...),
    orchestrator: RegistrationOrchestrator = Depends(get_orchestrator),
) -> SubmissionResponse:
    """
    Finalize with the last step's payload (terms, payment option).

    Every earlier step must be completed first.
    """
    last_step = orchestrator.definition.last_step
    step_payload = _parse_step_payload(orchestrator, last_step, payload)
    try:
        outcome = orchestrator.finalize(step_payload)
    except (StepValidationFailed, StepOutOfOrder, SubmissionFailed, UnknownStep) as e:
        raise _translate(e) from None
    return _submission(orchestrator, outcome)


# --- Reference calculations ----------------------------------------------


@router.post("/fees/quote", response_model=FeeQuoteResponse, summary="Quote registration fees")
def quote_fees(
    request_data: FeeQuoteRequest,
    api: FestivalApi = Depends(get_festival_api),
    settings: Settings = Depends(get_app_settings),
) -> FeeQuoteResponse:
    quote: FeeQuote
    if request_data.kind == "parents":
        quote = quote_parent_passes(api, request_data.parent_ages)
    elif request_data.kind == "sports":
        quote = quote_sports(api, request_data.sport_ids, settings.per_sport_fallback_fee)
    else:
        quote = institution_fees(request_data.student_count, request_data.team_count)
    return FeeQuoteResponse(
        total=quote.total,
        breakdown=quote.breakdown,
        estimated=quote.estimated,
        warning=quote.warning,
    )


@router.post(
    "/validation/age-group",
    response_model=AgeGroupResponse,
    summary="Check an age against an age group",
)
def check_age_group(request_data: AgeGroupRequest) -> AgeGroupResponse:
    result = validate_age_for_age_group(
        request_data.age, request_data.age_group, request_data.use_alt_format
    )
    return AgeGroupResponse(is_valid=result.is_valid, message=result.error_message)


# --- Admin dashboards ----------------------------------------------------

INSTITUTION_SEARCH_FIELDS = ["name", "email", "contact_person_name", "city"]
STUDENT_SEARCH_FIELDS = ["first_name", "last_name", "email", "institute_name"]
SPORT_SEARCH_FIELDS = ["name", "sport_name", "type", "gender"]
SPONSORSHIP_SEARCH_FIELDS = ["institution.name", "institution.email", "type", "reason"]


def _fetch(call: Callable[..., ApiResult], *args: Any) -> dict[str, Any]:
    """Call the backend and return its data object; failures become 502."""
    try:
        result = call(*args)
    except RemoteCallFailed as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from None
    return result.data if isinstance(result.data, dict) else {}


def _listing(noun: str, items: list[dict[str, Any]], window: Page) -> ListingResponse:
    return ListingResponse(
        items=items,
        pagination=PaginationInfo(
            page=window.page,
            per_page=window.per_page,
            total=window.total,
            total_pages=window.total_pages,
            visible_pages=window.visible_pages(),
            summary=window.summary(noun),
        ),
    )


def _server_page(
    noun: str, data: dict[str, Any], page: int, per_page: int
) -> tuple[list[dict[str, Any]], Page]:
    """Items and window for a listing the backend already paginated."""
    items = data.get(noun) or []
    total = data.get("total") or (data.get("pagination") or {}).get("total")
    if not total:
        # no count reported; only what is known so far
        total = (page - 1) * per_page + len(items)
    return items, Page(page=page, per_page=per_page, total=int(total))


@router.get(
    "/admin/institutions",
    response_model=ListingResponse,
    responses=LISTING_RESPONSES,
    summary="List registered institutions",
)
def list_institutions(
    page: int = Query(1, ge=1),
    per_page: int = Query(DEFAULT_PER_PAGE, ge=1, le=100),
    term: str = Query("", alias="search"),
    institution_type: str | None = None,
    payment_status: str | None = None,
    api: FestivalApi = Depends(get_festival_api),
) -> ListingResponse:
    data = _fetch(
        api.list_admin_institutions,
        {
            "skip": (page - 1) * per_page,
            "limit": per_page,
            "search": term,
            "institution_type": institution_type,
            "payment_status": payment_status,
        },
    )
    items, window = _server_page("institutions", data, page, per_page)
    return _listing("institutions", search(items, term, INSTITUTION_SEARCH_FIELDS), window)


@router.get(
    "/admin/students",
    response_model=ListingResponse,
    responses=LISTING_RESPONSES,
    summary="List registered students",
)
def list_students(
    page: int = Query(1, ge=1),
    per_page: int = Query(DEFAULT_PER_PAGE, ge=1, le=100),
    term: str = Query("", alias="search"),
    institution_type: str | None = None,
    payment_status: str | None = None,
    api: FestivalApi = Depends(get_festival_api),
) -> ListingResponse:
    data = _fetch(
        api.list_admin_students,
        {
            "skip": (page - 1) * per_page,
            "limit": per_page,
            "search": term,
            "institution_type": institution_type,
            "payment_status": payment_status,
        },
    )
    items, window = _server_page("students", data, page, per_page)
    return _listing("students", search(items, term, STUDENT_SEARCH_FIELDS), window)


@router.get(
    "/admin/payments",
    response_model=ListingResponse,
    responses=LISTING_RESPONSES,
    summary="List student and institution payments",
)
def list_payments(
    page: int = Query(1, ge=1),
    per_page: int = Query(DEFAULT_PER_PAGE, ge=1, le=100),
    term: str = Query("", alias="search"),
    status_filter: str | None = None,
    type_filter: str | None = None,
    sort_by: str | None = None,
    sort_order: str | None = Query(None, pattern="^(asc|desc)$"),
    api: FestivalApi = Depends(get_festival_api),
) -> ListingResponse:
    """Search, filters and sorting are applied by the festival backend."""
    data = _fetch(
        api.list_admin_payments,
        {
            "page": page,
            "limit": per_page,
            "search": term,
            "status_filter": status_filter,
            "type_filter": type_filter,
            "sort_by": sort_by,
            "sort_order": sort_order,
        },
    )
    items, window = _server_page("payments", data, page, per_page)
    return _listing("payments", items, window)


@router.get(
    "/admin/payments/summary",
    response_model=PaymentsSummaryResponse,
    responses=LISTING_RESPONSES,
    summary="Payment totals",
)
def payments_summary(api: FestivalApi = Depends(get_festival_api)) -> PaymentsSummaryResponse:
    data = _fetch(api.get_payments_summary)
    return PaymentsSummaryResponse(
        overall=data.get("overall") or {},
        student_payments=data.get("student_payments") or {},
        institute_payments=data.get("institute_payments") or {},
    )


@router.get(
    "/admin/sports",
    response_model=ListingResponse,
    responses=LISTING_RESPONSES,
    summary="List festival sports",
)
def list_sports(
    page: int = Query(1, ge=1),
    per_page: int = Query(DEFAULT_PER_PAGE, ge=1, le=100),
    term: str = Query("", alias="search"),
    api: FestivalApi = Depends(get_festival_api),
) -> ListingResponse:
    data = _fetch(api.list_admin_sports, {"skip": (page - 1) * per_page, "limit": per_page})
    items, window = _server_page("sports", data, page, per_page)
    return _listing("sports", search(items, term, SPORT_SEARCH_FIELDS), window)


@router.get(
    "/admin/sponsorships",
    response_model=ListingResponse,
    responses=LISTING_RESPONSES,
    summary="List sponsorship applications",
)
def list_sponsorships(
    page: int = Query(1, ge=1),
    per_page: int = Query(DEFAULT_PER_PAGE, ge=1, le=100),
    term: str = Query("", alias="search"),
    status_filter: str | None = Query(None, alias="status"),
    api: FestivalApi = Depends(get_festival_api),
) -> ListingResponse:
    """The backend returns every application; filtering and paging happen here."""
    data = _fetch(api.list_admin_sponsorships)
    matches = search(
        filter_by(data.get("sponsorships") or [], status=status_filter),
        term,
        SPONSORSHIP_SEARCH_FIELDS,
    )
    window = Page(page=page, per_page=per_page, total=len(matches))
    return _listing("sponsorships", window.slice(matches), window)
