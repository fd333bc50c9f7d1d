"""
Registration domain service - multi-step wizard orchestration.

This module owns the registration progress of one session and drives it
through the flow's transition table (see ``transitions``).

Sources of truth
================

At mount time three sources are reconciled:

1. In-memory default (fresh session, email step)
2. Local storage snapshot (synchronous, always read first)
3. Remote checkpoint keyed by email (loaded when an email is known)

A remote checkpoint with ``step > 0`` wins over local storage. The remote
checkpoint is parsed in full before any of it is applied; a load or parse
failure is logged and local storage stays authoritative.

Email entry
===========

The registration email is confirmed with a one-time code before the first
wizard step opens. Returning students get their known details pre-filled.
Institution and contact person addresses are verified with their own codes;
the step payload never asserts verification itself.

Persistence on every mutation
=============================

- Local storage is written through synchronously after each change.
- The remote checkpoint (and institution progress record) is replicated
  fire-and-forget through ``BestEffortReplicator``; the wizard never
  waits for it.

Per-step save failures
======================

Student steps block advancement when their server save fails. Institution
details block on the email availability check; the sport teams step has
no server save of its own. The policy is kept per step.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from .checkpoint import LocalCheckpoint
from .exceptions import (
    EmailVerificationFailed,
    RemoteCallFailed,
    StepOutOfOrder,
    StepSaveFailed,
    StepValidationFailed,
    SubmissionFailed,
    UnknownStep,
)
from .payloads import (
    Documents,
    InstitutionDetails,
    InstitutionPayment,
    ParentMedical,
    PersonalDetails,
    SportsSelection,
    SportTeams,
    StepPayload,
)
from .ports import (
    ApiResult,
    CheckpointStore,
    FestivalApi,
    Flow,
    KeyValueStorage,
    Notifier,
    SavePolicy,
)
from .replication import BestEffortReplicator
from .state import RegistrationState, parse_data
from .transitions import EMAIL_STEP, START_OVER, TERMINAL, StepRule, get_flow

logger = logging.getLogger(__name__)

LANDING_ROUTES = {
    Flow.STUDENT: "/login",
    Flow.INSTITUTION: "/institution",
}

EMAIL_TYPES = ("institution", "contact_person")


@dataclass
class StepOutcome:
    """Result of a successful step submission."""

    state: RegistrationState
    notice: str | None = None


@dataclass
class FinalOutcome:
    """Result of a successful final submission."""

    landing_route: str
    record_id: Any = None
    existing: bool = False
    submitted: dict[str, Any] = field(default_factory=dict)


@dataclass
class RegistrationOrchestrator:
    """
    Domain service for one registration session.

    Holds the RegistrationState, decides the active step, and maps step
    completion and back-navigation to state transitions.
    """

    flow: Flow
    storage: KeyValueStorage
    checkpoints: CheckpointStore
    api: FestivalApi
    replicator: BestEffortReplicator
    notifier: Notifier

    def __post_init__(self) -> None:
        self.definition = get_flow(self.flow)
        self.local = LocalCheckpoint(self.flow, self.storage)
        self.state = RegistrationState(flow=self.flow)

    # --- Session lifecycle -----------------------------------------------

    def open(self) -> RegistrationState:
        """Open a new session on the email step."""
        self.local.open()
        return self.restore()

    @property
    def is_open(self) -> bool:
        return self.local.is_open()

    def restore(self) -> RegistrationState:
        """Load the session from local storage only."""
        self.state = self.local.read() or RegistrationState(flow=self.flow)
        return self.state

    def mount(self) -> RegistrationState:
        """
        Restore the session from local storage, then reconcile with the
        remote checkpoint when an email is known.

        Storage is only written when the remote checkpoint changed the
        state. The remote load runs inline here; a response is applied even
        if the user progressed meanwhile in another tab (last writer wins).
        """
        self.restore()
        if self.state.email and self._reconcile_remote():
            self.local.write(self.state)
        return self.state

    def request_otp(self, email: str) -> str | None:
        """
        Send a one-time code to the registration email.

        Returns:
            The backend's code id, or None when it verifies by email

        Raises:
            EmailVerificationFailed: the code could not be sent
        """
        normalized_email = self._normalize_email(email)
        try:
            result = self.api.send_otp(self.flow, normalized_email)
        except RemoteCallFailed as e:
            raise self._verification_failed(normalized_email, str(e)) from e
        if not result.success:
            raise self._verification_failed(
                normalized_email, result.message or "Failed to send OTP. Please try again."
            )

        data = result.data if isinstance(result.data, dict) else {}
        otp_id = data.get("otp_id") or data.get("id")
        otp_id = str(otp_id) if otp_id else None
        self.local.write_pending_otp(normalized_email, otp_id)
        self.notifier.notify(
            "OTP Sent!", f"Please check your email ({normalized_email}) for the verification code."
        )
        return otp_id

    def confirm_otp(self, email: str, code: str) -> RegistrationState:
        """
        Check the one-time code sent by request_otp, then enter the wizard.

        Raises:
            EmailVerificationFailed: no code was requested, or it was rejected
        """
        normalized_email = self._normalize_email(email)
        pending = self.local.read_pending_otp(normalized_email)
        if pending is None:
            raise EmailVerificationFailed("Please request a verification code first")

        try:
            if pending.get("otp_id"):
                result = self.api.verify_otp(pending["otp_id"], code)
            else:
                result = self.api.verify_otp_with_email(normalized_email, code)
        except RemoteCallFailed as e:
            raise self._verification_failed(normalized_email, str(e)) from e
        if not result.success:
            raise self._verification_failed(
                normalized_email, result.message or "OTP verification failed"
            )

        self.local.clear_pending_otp()
        return self.verify_email(normalized_email)

    def verify_email(self, email: str) -> RegistrationState:
        """
        Record the verified email and enter the first wizard step.

        A different email than the one in progress starts a fresh session.
        Students with details already on record get them pre-filled.
        """
        normalized_email = self._normalize_email(email)
        if self.state.email and self.state.email != normalized_email:
            self.local.clear()
            self.state = RegistrationState(flow=self.flow)

        self.state.email = normalized_email
        self.state.current_step = self.definition.next_step(EMAIL_STEP)
        self.local.write(self.state)
        self._reconcile_remote()
        if self.flow == Flow.STUDENT:
            self._prefill_returning_student()
        self.local.write(self.state)
        return self.state

    def send_contact_verification(self, email_type: str, email: str) -> None:
        """
        Send a code to the institution or contact person address.

        Raises:
            StepOutOfOrder: no registration email has been entered yet
            EmailVerificationFailed: the code could not be sent
        """
        normalized_email = self._check_contact_verification(email_type, email)
        try:
            result = self.api.send_email_verification(normalized_email, email_type)
        except RemoteCallFailed as e:
            raise self._verification_failed(normalized_email, str(e)) from e
        if not result.success:
            raise self._verification_failed(
                normalized_email, result.message or "Failed to send verification email"
            )
        self.notifier.notify(
            "Verification Email Sent",
            f"Please check {normalized_email} for the verification code.",
        )

    def confirm_contact_verification(
        self, email_type: str, email: str, code: str
    ) -> RegistrationState:
        """
        Check a contact verification code and record the address as verified.

        Raises:
            StepOutOfOrder: no registration email has been entered yet
            EmailVerificationFailed: the code was rejected
        """
        normalized_email = self._check_contact_verification(email_type, email)
        try:
            result = self.api.verify_email_verification(normalized_email, code, email_type)
        except RemoteCallFailed as e:
            raise self._verification_failed(normalized_email, str(e)) from e
        if not result.success:
            raise self._verification_failed(
                normalized_email, result.message or "Invalid verification code"
            )

        self.state.verification.record(email_type, normalized_email)
        self.local.write(self.state)
        label = "Institution email" if email_type == "institution" else "Contact person email"
        self.notifier.notify("Email Verified!", f"{label} has been verified successfully.")
        return self.state

    def start_over(self) -> RegistrationState:
        """Discard all progress locally and, best-effort, remotely."""
        email = self.state.email
        self.local.clear()
        self.state = RegistrationState(flow=self.flow)
        if email:
            self.replicator.submit("checkpoint clear", self.checkpoints.clear_checkpoint, email)
        return self.state

    # --- Step handling ---------------------------------------------------

    def submit_step(self, step: int, payload: StepPayload) -> StepOutcome | FinalOutcome:
        """
        Validate a step payload, save it per the step's policy, and complete it.

        Args:
            step: Wizard step number
            payload: Typed payload for that step

        Returns:
            StepOutcome, or FinalOutcome when the step is terminal

        Raises:
            UnknownStep: step is not in this flow or payload belongs elsewhere
            StepOutOfOrder: step is ahead of the session's current step
            StepValidationFailed: payload has field errors (all reported)
            StepSaveFailed: a blocking server save failed
        """
        rule = self._rule_for(step, payload)
        if step > self.state.current_step:
            raise StepOutOfOrder(
                f"Step {step} is not open yet; the session is on step {self.state.current_step}"
            )
        if rule.on_complete == TERMINAL:
            return self.finalize(payload)

        payload = self._prefill(payload)
        errors = payload.validation_errors()
        if errors:
            raise StepValidationFailed(errors)

        notice = self._save_step(rule, payload)
        self.complete_step(step, payload)
        return StepOutcome(state=self.state, notice=notice)

    def complete_step(self, step: int, payload: StepPayload) -> RegistrationState:
        """
        Merge a validated payload and advance per the transition table.

        Adds the step to completed_steps once, writes local storage, and
        queues remote replication without waiting for it.
        """
        rule = self.definition.rule(step)
        payload = self._prefill(payload)
        self.state.data[rule.key] = payload
        self.state.mark_completed(step)
        if rule.on_complete != TERMINAL:
            self.state.current_step = rule.on_complete

        self.local.write(self.state)
        self._replicate()
        return self.state

    def back(self) -> RegistrationState:
        """Move to the predecessor step; data and completed steps are kept."""
        current = self.state.current_step
        if current == EMAIL_STEP:
            return self.state

        previous = self.definition.previous_step(current)
        if previous == START_OVER:
            return self.start_over()

        self.state.current_step = previous
        self.local.write(self.state)
        return self.state

    def finalize(self, payload: StepPayload) -> FinalOutcome:
        """
        Submit the registration with the final step's payload.

        On success all local keys are cleared and the remote checkpoint is
        cleared best-effort. On failure the session is left untouched.

        Raises:
            StepOutOfOrder: no email yet, or an earlier step is not completed
            StepValidationFailed: final payload has field errors
            SubmissionFailed: the backend rejected or could not take the submission
        """
        rule = self._rule_for(self.definition.last_step, payload)
        if not self.state.email:
            raise StepOutOfOrder("Enter and verify your email before submitting")
        missing = self.definition.incomplete_steps(self.state.completed_steps)
        if missing:
            raise StepOutOfOrder(
                "Complete every step before submitting; missing steps: "
                + ", ".join(str(step) for step in missing)
            )

        errors = payload.validation_errors()
        if errors:
            raise StepValidationFailed(errors)

        self.state.data[rule.key] = payload
        try:
            if self.flow == Flow.INSTITUTION:
                outcome = self._create_institute()
            else:
                outcome = self._complete_student()
        except RemoteCallFailed as e:
            logger.error("Registration submission failed for %s: %s", self.state.email, e)
            self.notifier.notify("Registration Failed", str(e), "destructive")
            raise SubmissionFailed(str(e)) from e

        self.state.mark_completed(rule.number)
        email = self.state.email
        self.local.clear()
        self.replicator.submit("checkpoint clear", self.checkpoints.clear_checkpoint, email)
        self.state = RegistrationState(flow=self.flow)
        return outcome

    # --- Internals -------------------------------------------------------

    def _rule_for(self, step: int, payload: StepPayload) -> StepRule:
        rule = self.definition.rule(step)
        if payload.step != rule.key:
            raise UnknownStep(f"step {step} expects {rule.key}, got {payload.step}")
        return rule

    def _reconcile_remote(self) -> bool:
        """
        Apply the remote checkpoint over the current state.

        Returns:
            True when the remote checkpoint was applied
        """
        try:
            checkpoint = self.checkpoints.load_checkpoint(self.state.email)
            if checkpoint is None or checkpoint.step <= 0:
                return False
            step = self.definition.map_remote_step(checkpoint.step)
            if not self.definition.is_wizard_step(step):
                logger.warning("Ignoring checkpoint at unknown step %s", checkpoint.step)
                return False

            _, remote_data = parse_data(checkpoint.data)
            remote_completed = [int(done) for done in checkpoint.completed_steps]
        except Exception as e:
            logger.warning("Failed to load checkpoint for %s: %s", self.state.email, e)
            return False

        self.state.data.update(remote_data)
        local_completed = self.state.completed_steps
        self.state.completed_steps = []
        for done in [*remote_completed, *local_completed]:
            self.state.mark_completed(done)
        self.state.current_step = step

        self.notifier.notify(
            "Progress Restored!",
            f"Welcome back! We've restored your progress from step {step}.",
        )
        return True

    def _prefill_returning_student(self) -> None:
        """Fill personal details and sports from the student's existing record."""
        if "personal_details" in self.state.data:
            return

        email = self.state.email
        try:
            result = self.api.get_student_prefill(email)
        except RemoteCallFailed as e:
            logger.warning("Failed to check existing data for %s: %s", email, e)
            result = ApiResult(success=False)

        existing = result.data if result.success and isinstance(result.data, dict) else None
        if not existing:
            self.notifier.notify(
                "Email Verified Successfully", "Please complete your personal details."
            )
            return

        def text(name: str) -> str:
            value = existing.get(name)
            return str(value) if value else ""

        self.state.data["personal_details"] = PersonalDetails(
            first_name=text("fname"),
            middle_name=text("mname"),
            last_name=text("lname"),
            email=text("email") or email,
            phone_number=text("phone"),
            address=text("address"),
            date_of_birth=text("dob"),
            gender=text("gender"),
            student_id=text("student_id"),
            institute_name=text("institute_name"),
            institute_type=text("institute_type"),
        )
        if existing.get("sports") and "sports_selection" not in self.state.data:
            try:
                self.state.data["sports_selection"] = SportsSelection(
                    selected_sports=existing["sports"]
                )
            except ValidationError as e:
                logger.warning("Ignoring unreadable sports on record for %s: %s", email, e)

        self.notifier.notify(
            "Existing Data Found!",
            f"Welcome back! We found your existing data from {text('institute_name')}. "
            "Please review and complete any missing information.",
        )

    def _check_contact_verification(self, email_type: str, email: str) -> str:
        if self.flow != Flow.INSTITUTION:
            raise EmailVerificationFailed(
                "Email verification applies to institution registrations"
            )
        if email_type not in EMAIL_TYPES:
            raise EmailVerificationFailed(f"Unknown email type: {email_type}")
        if not self.state.email:
            raise StepOutOfOrder("Enter and verify the registration email first")
        return self._normalize_email(email)

    def _verification_failed(self, email: str, message: str) -> EmailVerificationFailed:
        logger.error("Email verification failed for %s: %s", email, message)
        self.notifier.notify("Verification Failed", message, "destructive")
        return EmailVerificationFailed(message)

    def _replicate(self) -> None:
        if not self.state.email:
            return
        self.replicator.submit(
            "checkpoint save",
            self.checkpoints.save_checkpoint,
            self.state.email,
            self.state.current_step,
            list(self.state.completed_steps),
            self.state.data_dict(),
        )
        if self.flow == Flow.INSTITUTION:
            self.replicator.submit(
                "progress save", self.api.save_progress, self.flow, self._institution_progress()
            )

    def _save_step(self, rule: StepRule, payload: StepPayload) -> str | None:
        """
        Perform the step's own server save.

        Returns:
            Notice text for the user on success, or None when nothing was saved
        """
        if rule.save_policy == SavePolicy.IGNORE:
            return None

        try:
            result, notice = self._call_step_endpoint(rule, payload)
            if result is not None and not result.success:
                raise StepSaveFailed(result.message or f"Failed to save {rule.key}")
            if self.flow == Flow.STUDENT:
                self._require(self.api.save_progress(self.flow, self._student_progress(rule)))
        except RemoteCallFailed as e:
            self._report_save_failure(rule, e)
            raise StepSaveFailed(str(e)) from e
        except StepSaveFailed as e:
            self._report_save_failure(rule, e)
            raise

        if notice:
            self.notifier.notify(notice, f"Step {rule.number} saved.")
        return notice

    def _call_step_endpoint(
        self, rule: StepRule, payload: StepPayload
    ) -> tuple[ApiResult | None, str | None]:
        email = self.state.email
        body = payload.model_dump(mode="json", exclude={"step"})

        if isinstance(payload, PersonalDetails):
            return self.api.save_personal_details(body), "Personal Details Saved!"
        if isinstance(payload, Documents):
            return self.api.upload_documents(email, body), "Documents Uploaded!"
        if isinstance(payload, ParentMedical):
            body.update(email=email, parent_count=payload.parent_count)
            return self.api.save_parent_medical(body), "Parent & Medical Info Saved!"
        if isinstance(payload, SportsSelection):
            return (
                self.api.save_sport_assignments(
                    {"email": email, "selected_sports": body["selected_sports"]}
                ),
                "Sports Selection Saved!",
            )
        if isinstance(payload, InstitutionDetails):
            result = self.api.validate_registration_email(payload.institution_email)
            return result, "Email Available"
        return None, None

    def _report_save_failure(self, rule: StepRule, error: Exception) -> None:
        logger.error("Saving %s for %s failed: %s", rule.key, self.state.email, error)
        self.notifier.notify("Error Saving Information", str(error), "destructive")

    @staticmethod
    def _require(result: ApiResult) -> None:
        if not result.success:
            raise StepSaveFailed(result.message or "Failed to save registration progress")

    def _prefill(self, payload: StepPayload) -> StepPayload:
        if isinstance(payload, PersonalDetails) and self.state.email:
            return payload.model_copy(update={"email": self.state.email})
        if isinstance(payload, InstitutionDetails):
            institution_email = payload.institution_email or self.state.email
            verification = self.state.verification
            return payload.model_copy(
                update={
                    "institution_email": institution_email,
                    "institution_email_verified": verification.is_verified(institution_email),
                    "contact_person_email_verified": verification.is_verified(
                        payload.contact_person_email
                    ),
                }
            )
        return payload

    def _student_progress(self, rule: StepRule) -> dict[str, Any]:
        completed = sorted({*self.state.completed_steps, rule.number})
        return {
            "email": self.state.email,
            "current_phase": rule.number,
            "completed_phases": completed,
            "is_completed": rule.number == self.definition.steps[-2].number,
        }

    def _institution_progress(self) -> dict[str, Any]:
        data = self.state.data_dict()
        return {
            "email": self.state.email,
            "current_phase": self.state.current_step,
            "completed_phases": list(self.state.completed_steps),
            "institution_details": data.get("institution_details"),
            "students": data.get("sport_teams"),
            "payment_info": data.get("institution_payment"),
        }

    def _complete_student(self) -> FinalOutcome:
        submitted = self.state.data_dict()
        result = self.api.complete_student_registration(submitted)
        if not result.success:
            self.notifier.notify(
                "Registration Failed", result.message or "Registration failed", "destructive"
            )
            raise SubmissionFailed(result.message or "Registration failed")

        record_id = (result.data or {}).get("id") if isinstance(result.data, dict) else None
        self.notifier.notify(
            "Registration Complete!", "Welcome! Your account has been created successfully."
        )
        return FinalOutcome(
            landing_route=LANDING_ROUTES[self.flow], record_id=record_id, submitted=submitted
        )

    def _create_institute(self) -> FinalOutcome:
        submitted = self._institute_payload()
        result = self.api.create_institute(submitted)
        institute_id = None
        existing = False

        if result.success:
            institute_id = (result.data or {}).get("id")
        elif result.error_code == "EMAIL_EXISTS":
            try:
                lookup = self.api.get_institute_by_email(self.state.email)
                if lookup.success:
                    institute_id = (lookup.data or {}).get("id")
                    existing = True
            except RemoteCallFailed as e:
                logger.error("Failed to get existing institute: %s", e)

        if not institute_id:
            message = result.message or "Registration failed"
            self.notifier.notify("Registration Failed", message, "destructive")
            raise SubmissionFailed(message)

        title = "Registration Completed!" if existing else "Institution Registration Complete!"
        self.notifier.notify(title, f"Your Institution ID is: {institute_id}")
        return FinalOutcome(
            landing_route=LANDING_ROUTES[self.flow],
            record_id=institute_id,
            existing=existing,
            submitted=submitted,
        )

    def _institute_payload(self) -> dict[str, Any]:
        details = self.state.data.get("institution_details") or InstitutionDetails()
        teams = self.state.data.get("sport_teams") or SportTeams()
        payment = self.state.data.get("institution_payment") or InstitutionPayment()
        return {
            "name": details.institution_name,
            "email": self.state.email,
            "type": details.institution_type,
            "contactPersonName": details.contact_person_name,
            "contactPersonEmail": details.contact_person_email,
            "contactPersonPhone": details.contact_person_phone,
            "contactPersonDesignation": details.contact_person_designation,
            "phone": details.phone_number,
            "website": details.website,
            "principalName": details.principal_name,
            "principalPhone": details.principal_contact,
            "streetAddress": details.street_address,
            "city": details.city,
            "state": details.state,
            "country": details.country,
            "postalCode": details.postal_code,
            "description": details.description,
            "students": teams.model_dump(mode="json", exclude={"step"}),
            "payment": payment.model_dump(mode="json", exclude={"step"}),
        }

    def _normalize_email(self, email: str) -> str:
        """
        Normalize email address for consistent storage and lookup.

        Applies: strip whitespace + lowercase
        """
        return email.strip().lower()
