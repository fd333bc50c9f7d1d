"""
Festival REST backend adapter - Implements FestivalApi and CheckpointStore.

This module talks to the festival backend over HTTP using httpx. The
backend wraps results in ``{"success", "data", "message"}``; non-2xx
responses are turned into FestivalApiError carrying the server's own
error text when it sends one.
"""

import logging
from typing import Any
from urllib.parse import quote

import httpx

from src.domain.exceptions import RemoteCallFailed
from src.domain.ports import ApiResult, Checkpoint, Flow

logger = logging.getLogger(__name__)


class FestivalApiError(RemoteCallFailed):
    """HTTP call to the festival backend failed."""

    def __init__(
        self, message: str, status_code: int | None = None, body: dict[str, Any] | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body or {}


class HttpFestivalApi:
    """
    Implements FestivalApi and CheckpointStore protocols via httpx.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: Backend API root, e.g. http://localhost:8000/api/v1
            token: Bearer token sent on every request when set
            timeout: Per-request timeout in seconds
            client: Preconfigured httpx.Client (tests inject a MockTransport)
        """
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = client or httpx.Client(
            base_url=base_url.rstrip("/"), headers=headers, timeout=timeout
        )

    def close(self) -> None:
        self._client.close()

    # --- Checkpoints -----------------------------------------------------

    def load_checkpoint(self, email: str) -> Checkpoint | None:
        try:
            body = self._request("GET", f"/checkpoint/load/{_path(email)}")
        except FestivalApiError as e:
            if e.status_code == 404:
                return None
            raise

        if not body.get("success") or not body.get("data"):
            return None
        data = body["data"]
        return Checkpoint(
            step=int(data.get("step") or 0),
            completed_steps=[int(s) for s in data.get("completed_steps") or []],
            data=data.get("data") or {},
        )

    def save_checkpoint(
        self, email: str, step: int, completed_steps: list[int], data: dict[str, Any]
    ) -> None:
        self._request(
            "POST",
            "/checkpoint/save",
            json={"email": email, "step": step, "completed_steps": completed_steps, "data": data},
        )

    def clear_checkpoint(self, email: str) -> None:
        self._request("DELETE", f"/checkpoint/clear/{_path(email)}")

    # --- Step saves ------------------------------------------------------

    def save_personal_details(self, payload: dict[str, Any]) -> ApiResult:
        return self._result(self._request("POST", "/students/personal-details", json=payload))

    def upload_documents(self, email: str, payload: dict[str, Any]) -> ApiResult:
        form = {"email": email, **{k: str(v) for k, v in payload.items()}}
        return self._result(self._request("POST", "/documents/upload-documents", data=form))

    def save_parent_medical(self, payload: dict[str, Any]) -> ApiResult:
        return self._result(self._request("POST", "/students/parent-medical", json=payload))

    def save_sport_assignments(self, payload: dict[str, Any]) -> ApiResult:
        return self._result(self._request("POST", "/sports/sport-assignments", json=payload))

    def save_progress(self, flow: Flow, progress: dict[str, Any]) -> ApiResult:
        return self._result(
            self._request("POST", f"/registration/{flow.value}/progress", json=progress)
        )

    def validate_registration_email(self, email: str) -> ApiResult:
        return self._result(
            self._request("POST", "/institutes/validate-email", json={"email": email})
        )

    # --- Email verification ----------------------------------------------

    def send_otp(self, flow: Flow, email: str) -> ApiResult:
        name = "Institution" if flow == Flow.INSTITUTION else "Student"
        return self._result(
            self._request(
                "POST",
                f"/otp/send/{flow.value}",
                json={"email": email, "name": name, "purpose": "registration"},
            )
        )

    def verify_otp(self, otp_id: str, code: str) -> ApiResult:
        return self._result(
            self._request("POST", "/otp/verify", json={"otp_id": otp_id, "code": code})
        )

    def verify_otp_with_email(self, email: str, code: str) -> ApiResult:
        return self._result(
            self._request("POST", "/otp/verify", json={"email": email, "code": code})
        )

    def get_student_prefill(self, email: str) -> ApiResult:
        try:
            body = self._request("GET", f"/students/prefill/{_path(email)}")
        except FestivalApiError as e:
            if e.status_code == 404:
                return ApiResult(success=False, message=e.args[0])
            raise
        return self._result(body)

    def send_email_verification(self, email: str, email_type: str) -> ApiResult:
        return self._result(
            self._request(
                "POST",
                "/email-verification/send",
                json={"email": email, "email_type": email_type},
            )
        )

    def verify_email_verification(self, email: str, code: str, email_type: str) -> ApiResult:
        return self._result(
            self._request(
                "POST",
                "/email-verification/verify",
                json={"email": email, "otp_code": code, "email_type": email_type},
            )
        )

    # --- Final submission ------------------------------------------------

    def complete_student_registration(self, payload: dict[str, Any]) -> ApiResult:
        return self._result(
            self._request("POST", "/students/complete-registration", json=payload)
        )

    def create_institute(self, payload: dict[str, Any]) -> ApiResult:
        # EMAIL_EXISTS comes back as a 4xx with an envelope; callers need it
        try:
            body = self._request("POST", "/institutes/", json=payload)
        except FestivalApiError as e:
            if e.status_code in (400, 409) and e.body:
                return self._result(e.body)
            raise
        return self._result(body)

    def get_institute_by_email(self, email: str) -> ApiResult:
        return self._result(self._request("GET", f"/institutes/email/{_path(email)}"))

    # --- Reference data --------------------------------------------------

    def get_pricing_summary(self) -> ApiResult:
        return self._result(self._request("GET", "/parent-passes/pricing-summary"))

    def calculate_fee(self, sport_id: int, discipline_count: int) -> ApiResult:
        return self._result(
            self._request(
                "GET",
                "/fees/calculate-fee",
                params={"sport_id": sport_id, "discipline_count": discipline_count},
            )
        )

    def list_admin_institutions(self, params: dict[str, Any]) -> ApiResult:
        return self._result(self._request("GET", "/admin/institutions", params=_clean(params)))

    def list_admin_students(self, params: dict[str, Any]) -> ApiResult:
        return self._result(self._request("GET", "/admin/students", params=_clean(params)))

    def list_admin_payments(self, params: dict[str, Any]) -> ApiResult:
        return self._result(self._request("GET", "/admin/payments", params=_clean(params)))

    def get_payments_summary(self) -> ApiResult:
        return self._result(self._request("GET", "/admin/payments/summary"))

    def list_admin_sports(self, params: dict[str, Any]) -> ApiResult:
        return self._result(self._request("GET", "/admin/sports", params=_clean(params)))

    def list_admin_sponsorships(self) -> ApiResult:
        body = self._request("GET", "/admin/sponsorships")
        # answered as a bare {"sponsorships": [...]} object
        if "success" not in body:
            return ApiResult(success=True, data=body)
        return self._result(body)

    # --- Transport -------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("API request failed: %s %s - %s", method, path, e)
            raise FestivalApiError(f"Request to {path} failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"success": True, "data": body}

        if response.is_error:
            server_message = body.get("detail") or body.get("message") or body.get("error")
            fallback = f"HTTP error! status: {response.status_code}"
            message = str(server_message) if server_message else fallback
            logger.error("API request failed: %s %s - %s", method, path, message)
            raise FestivalApiError(message, response.status_code, body)

        return body

    @staticmethod
    def _result(body: dict[str, Any]) -> ApiResult:
        return ApiResult(
            success=bool(body.get("success")),
            data=body.get("data"),
            message=body.get("message"),
            error_code=body.get("error_code"),
        )


def _path(value: str) -> str:
    return quote(value, safe="@")


def _clean(params: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in params.items() if v not in (None, "")}
