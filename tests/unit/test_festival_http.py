"""
Unit tests for the festival REST adapter.

Requests are answered by an httpx.MockTransport so no network is used.
"""

import json

import httpx
import pytest

from src.adapters.festival.http import FestivalApiError, HttpFestivalApi
from src.domain.exceptions import RemoteCallFailed
from src.domain.ports import Flow


def make_api(handler) -> tuple[HttpFestivalApi, list[httpx.Request]]:
    """Build an adapter whose transport records requests and calls handler."""
    seen: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = httpx.Client(
        base_url="http://festival.test/api/v1", transport=httpx.MockTransport(record)
    )
    return HttpFestivalApi("http://festival.test/api/v1", client=client), seen


class TestCheckpoints:
    def test_load_checkpoint(self) -> None:
        api, seen = make_api(
            lambda r: httpx.Response(
                200,
                json={
                    "success": True,
                    "data": {"step": "3", "completed_steps": [1, 2], "data": {"a": 1}},
                },
            )
        )

        checkpoint = api.load_checkpoint("amina@example.com")

        assert seen[0].url.path == "/api/v1/checkpoint/load/amina@example.com"
        assert checkpoint.step == 3
        assert checkpoint.completed_steps == [1, 2]
        assert checkpoint.data == {"a": 1}

    def test_missing_checkpoint_is_none(self) -> None:
        api, _ = make_api(lambda r: httpx.Response(404, json={"detail": "Not found"}))
        assert api.load_checkpoint("amina@example.com") is None

    def test_empty_envelope_is_none(self) -> None:
        api, _ = make_api(lambda r: httpx.Response(200, json={"success": True, "data": None}))
        assert api.load_checkpoint("amina@example.com") is None

    def test_save_checkpoint_body(self) -> None:
        api, seen = make_api(lambda r: httpx.Response(200, json={"success": True}))

        api.save_checkpoint("a@b.co", 2, [1], {"email": "a@b.co"})

        assert seen[0].method == "POST"
        assert json.loads(seen[0].content) == {
            "email": "a@b.co",
            "step": 2,
            "completed_steps": [1],
            "data": {"email": "a@b.co"},
        }

    def test_clear_checkpoint(self) -> None:
        api, seen = make_api(lambda r: httpx.Response(200, json={"success": True}))
        api.clear_checkpoint("a@b.co")
        assert seen[0].method == "DELETE"
        assert seen[0].url.path.endswith("/checkpoint/clear/a@b.co")


class TestErrors:
    def test_server_detail_becomes_message(self) -> None:
        api, _ = make_api(lambda r: httpx.Response(422, json={"detail": "Invalid phone"}))

        with pytest.raises(FestivalApiError) as exc_info:
            api.save_personal_details({"email": "a@b.co"})

        assert str(exc_info.value) == "Invalid phone"
        assert exc_info.value.status_code == 422

    def test_generic_message_without_body(self) -> None:
        api, _ = make_api(lambda r: httpx.Response(500, text="oops"))

        with pytest.raises(FestivalApiError, match="HTTP error! status: 500"):
            api.get_pricing_summary()

    def test_transport_error_is_remote_call_failed(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        api, _ = make_api(refuse)

        with pytest.raises(RemoteCallFailed):
            api.calculate_fee(1, 1)


class TestEndpoints:
    def test_envelope_is_unwrapped(self) -> None:
        api, _ = make_api(
            lambda r: httpx.Response(
                200, json={"success": False, "message": "taken", "error_code": "EMAIL_EXISTS"}
            )
        )

        result = api.validate_registration_email("office@rva.example.com")

        assert result.success is False
        assert result.message == "taken"
        assert result.error_code == "EMAIL_EXISTS"

    def test_progress_path_uses_flow(self) -> None:
        api, seen = make_api(lambda r: httpx.Response(200, json={"success": True}))
        api.save_progress(Flow.INSTITUTION, {"email": "a@b.co"})
        assert seen[0].url.path == "/api/v1/registration/institution/progress"

    def test_documents_are_sent_as_form(self) -> None:
        api, seen = make_api(lambda r: httpx.Response(200, json={"success": True}))

        api.upload_documents("a@b.co", {"age_proof_filename": "birth.pdf", "age_proof_size": 10})

        assert seen[0].headers["content-type"] == "application/x-www-form-urlencoded"
        body = seen[0].content.decode()
        assert "email=a%40b.co" in body
        assert "age_proof_filename=birth.pdf" in body

    def test_existing_institute_comes_back_as_result(self) -> None:
        """EMAIL_EXISTS arrives as a 409 but is returned, not raised."""
        api, _ = make_api(
            lambda r: httpx.Response(
                409,
                json={"success": False, "message": "exists", "error_code": "EMAIL_EXISTS"},
            )
        )

        result = api.create_institute({"name": "RVA"})

        assert result.success is False
        assert result.error_code == "EMAIL_EXISTS"

    def test_listing_drops_empty_params(self) -> None:
        api, seen = make_api(lambda r: httpx.Response(200, json={"success": True, "data": {}}))

        api.list_admin_students({"skip": 0, "limit": 10, "search": "", "payment_status": None})

        assert dict(seen[0].url.params) == {"skip": "0", "limit": "10"}

    def test_bare_list_response_is_wrapped(self) -> None:
        api, _ = make_api(lambda r: httpx.Response(200, json=[{"id": 1}]))

        result = api.get_institute_by_email("a@b.co")

        assert result.success is True
        assert result.data == [{"id": 1}]

    def test_token_is_sent(self) -> None:
        api = HttpFestivalApi("http://festival.test/api/v1", token="secret")
        try:
            assert api._client.headers["Authorization"] == "Bearer secret"
        finally:
            api.close()


class TestEmailVerification:
    def test_otp_is_sent_for_flow(self) -> None:
        api, seen = make_api(
            lambda r: httpx.Response(200, json={"success": True, "data": {"otp_id": 5}})
        )

        result = api.send_otp(Flow.INSTITUTION, "office@rva.example.com")

        assert seen[0].url.path == "/api/v1/otp/send/institution"
        assert json.loads(seen[0].content) == {
            "email": "office@rva.example.com",
            "name": "Institution",
            "purpose": "registration",
        }
        assert result.data == {"otp_id": 5}

    def test_otp_verified_by_id_or_email(self) -> None:
        api, seen = make_api(lambda r: httpx.Response(200, json={"success": True}))

        api.verify_otp("5", "123456")
        api.verify_otp_with_email("a@b.co", "123456")

        assert [r.url.path for r in seen] == ["/api/v1/otp/verify", "/api/v1/otp/verify"]
        assert json.loads(seen[0].content) == {"otp_id": "5", "code": "123456"}
        assert json.loads(seen[1].content) == {"email": "a@b.co", "code": "123456"}

    def test_contact_verification_bodies(self) -> None:
        api, seen = make_api(lambda r: httpx.Response(200, json={"success": True}))

        api.send_email_verification("jane@b.co", "contact_person")
        api.verify_email_verification("jane@b.co", "654321", "contact_person")

        assert seen[0].url.path == "/api/v1/email-verification/send"
        assert json.loads(seen[1].content) == {
            "email": "jane@b.co",
            "otp_code": "654321",
            "email_type": "contact_person",
        }

    def test_unknown_student_prefill_is_a_result(self) -> None:
        api, seen = make_api(lambda r: httpx.Response(404, json={"detail": "Student not found"}))

        result = api.get_student_prefill("amina@example.com")

        assert seen[0].url.path == "/api/v1/students/prefill/amina@example.com"
        assert result.success is False
        assert result.message == "Student not found"

    def test_prefill_server_error_raises(self) -> None:
        api, _ = make_api(lambda r: httpx.Response(500, json={}))
        with pytest.raises(RemoteCallFailed):
            api.get_student_prefill("amina@example.com")


class TestAdminEndpoints:
    def test_payments_listing_params(self) -> None:
        api, seen = make_api(lambda r: httpx.Response(200, json={"success": True, "data": {}}))

        api.list_admin_payments({"page": 1, "limit": 10, "status_filter": None})

        assert seen[0].url.path == "/api/v1/admin/payments"
        assert dict(seen[0].url.params) == {"page": "1", "limit": "10"}

    def test_payments_summary(self) -> None:
        api, seen = make_api(
            lambda r: httpx.Response(200, json={"success": True, "data": {"overall": {}}})
        )

        result = api.get_payments_summary()

        assert seen[0].url.path == "/api/v1/admin/payments/summary"
        assert result.data == {"overall": {}}

    def test_sports_listing(self) -> None:
        api, seen = make_api(lambda r: httpx.Response(200, json={"success": True, "data": {}}))
        api.list_admin_sports({"skip": 10, "limit": 10})
        assert str(seen[0].url).endswith("/admin/sports?skip=10&limit=10")

    def test_sponsorships_without_envelope(self) -> None:
        api, _ = make_api(
            lambda r: httpx.Response(200, json={"sponsorships": [{"id": 1, "status": "pending"}]})
        )

        result = api.list_admin_sponsorships()

        assert result.success is True
        assert result.data == {"sponsorships": [{"id": 1, "status": "pending"}]}
