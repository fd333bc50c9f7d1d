"""
Local checkpoint - write-through mirror of registration state.

The state is spread over a handful of plain string keys holding JSON
values, one set of keys per flow:

    {flow}_registration_step              "3"
    {flow}_registration_completed_steps   "[1, 2]"
    {flow}_registration_data              '{"email": ..., "<step key>": {...}}'
    {flow}_registration_email             "user@example.com"
    {flow}_registration_verification_status   (institution flow only)
    {flow}_registration_pending_otp       '{"email": ..., "otp_id": ...}'

A separate {flow}_registration_session marker records that the session was
opened; clearing progress leaves it in place.

There is no versioning or migration scheme for these values.
"""

import json
import logging
from datetime import datetime, timezone

from pydantic import ValidationError

from .ports import Flow, KeyValueStorage
from .state import RegistrationState, VerificationStatus
from .transitions import EMAIL_STEP, get_flow

logger = logging.getLogger(__name__)


class LocalCheckpoint:
    """Reads and writes one flow's progress keys through a storage port."""

    def __init__(self, flow: Flow, storage: KeyValueStorage) -> None:
        self.flow = flow
        self._storage = storage
        prefix = f"{flow.value}_registration"
        self.step_key = f"{prefix}_step"
        self.completed_key = f"{prefix}_completed_steps"
        self.data_key = f"{prefix}_data"
        self.email_key = f"{prefix}_email"
        self.verification_key = f"{prefix}_verification_status"
        self.pending_otp_key = f"{prefix}_pending_otp"
        self.session_key = f"{prefix}_session"

    @property
    def keys(self) -> tuple[str, ...]:
        keys = (
            self.step_key,
            self.completed_key,
            self.data_key,
            self.email_key,
            self.pending_otp_key,
        )
        if self.flow == Flow.INSTITUTION:
            keys += (self.verification_key,)
        return keys

    def write(self, state: RegistrationState) -> None:
        """Write every key synchronously; storage writes are not expected to fail."""
        self._storage.set(self.step_key, str(state.current_step))
        self._storage.set(self.completed_key, json.dumps(state.completed_steps))
        self._storage.set(self.data_key, json.dumps(state.data_dict()))
        if state.email:
            self._storage.set(self.email_key, state.email)
        if self.flow == Flow.INSTITUTION:
            self._storage.set(self.verification_key, json.dumps(state.verification.to_dict()))

    def open(self) -> None:
        """Mark the session as opened."""
        self._storage.set(self.session_key, datetime.now(timezone.utc).isoformat())

    def is_open(self) -> bool:
        return self._storage.get(self.session_key) is not None

    def write_pending_otp(self, email: str, otp_id: str | None) -> None:
        self._storage.set(self.pending_otp_key, json.dumps({"email": email, "otp_id": otp_id}))

    def read_pending_otp(self, email: str) -> dict | None:
        """Return the pending code request for email, if one was sent."""
        pending = self._load_json(self.pending_otp_key)
        if isinstance(pending, dict) and pending.get("email") == email:
            return pending
        return None

    def clear_pending_otp(self) -> None:
        self._storage.remove(self.pending_otp_key)

    def clear(self) -> None:
        for key in self.keys:
            self._storage.remove(key)

    def read(self) -> RegistrationState | None:
        """
        Rebuild state from storage.

        Resume rules:
        - stored data with an email resumes at the stored step, or step 1
          when the stored step is missing or outside the flow
        - a stored email without data resumes at the email step
        - nothing stored returns None

        Returns:
            Restored RegistrationState, or None when nothing is stored
        """
        raw_data = self._load_json(self.data_key)
        saved_email = self._storage.get(self.email_key)

        if not isinstance(raw_data, dict) or not raw_data.get("email"):
            if saved_email:
                return RegistrationState(
                    flow=self.flow, current_step=EMAIL_STEP, email=saved_email
                )
            return None

        state = RegistrationState(flow=self.flow)
        try:
            state.merge_data(raw_data)
        except ValidationError:
            logger.warning("Discarding unreadable %s registration data", self.flow.value)
            state.data.clear()
        state.email = raw_data["email"]
        state.current_step = self._resume_step()

        completed = self._load_json(self.completed_key)
        if isinstance(completed, list):
            for step in completed:
                state.mark_completed(int(step))

        verification = self._load_json(self.verification_key)
        if isinstance(verification, dict):
            state.verification = VerificationStatus.from_dict(verification)
        return state

    def _resume_step(self) -> int:
        saved = self._storage.get(self.step_key)
        try:
            step = int(saved) if saved is not None else None
        except ValueError:
            step = None
        if step == EMAIL_STEP:
            return EMAIL_STEP
        if step is not None and get_flow(self.flow).is_wizard_step(step):
            return step
        return 1

    def _load_json(self, key: str):
        value = self._storage.get(key)
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed JSON under %s", key)
            return None
