"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- In-memory progress storage and an inline replicator
- A mocked festival backend with successful defaults
- Orchestrator factories and valid payloads for every step
"""

from typing import Any
from unittest.mock import Mock

import pytest

from src.adapters.notify.console import RecordingNotifier
from src.adapters.storage.memory import InMemoryStorage
from src.domain.ports import ApiResult, Flow
from src.domain.registration import RegistrationOrchestrator
from src.domain.replication import BestEffortReplicator


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def replicator() -> BestEffortReplicator:
    """Replicator that runs remote writes inline on the test thread."""
    return BestEffortReplicator(max_workers=0)


@pytest.fixture
def api() -> Mock:
    """Festival backend mock: no checkpoint stored, every save and code check succeeds."""
    mock = Mock()
    mock.load_checkpoint.return_value = None
    ok = ApiResult(success=True, data={"id": 42})
    for name in (
        "save_personal_details",
        "upload_documents",
        "save_parent_medical",
        "save_sport_assignments",
        "save_progress",
        "validate_registration_email",
        "complete_student_registration",
        "create_institute",
        "get_institute_by_email",
        "send_otp",
        "verify_otp",
        "verify_otp_with_email",
        "send_email_verification",
        "verify_email_verification",
    ):
        getattr(mock, name).return_value = ok
    mock.get_student_prefill.return_value = ApiResult(success=False, message="Student not found")
    return mock


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def make_orchestrator(storage, api, replicator, notifier):
    """Factory building an orchestrator for a flow over the shared fixtures."""

    def factory(flow: Flow = Flow.STUDENT) -> RegistrationOrchestrator:
        return RegistrationOrchestrator(
            flow=flow,
            storage=storage,
            checkpoints=api,
            api=api,
            replicator=replicator,
            notifier=notifier,
        )

    return factory


@pytest.fixture
def personal_details() -> dict[str, Any]:
    return {
        "step": "personal_details",
        "first_name": "Amina",
        "last_name": "Otieno",
        "email": "amina@example.com",
        "phone_number": "0712345678",
        "address": "12 Moi Avenue, Nairobi",
        "date_of_birth": "2012-05-04",
        "gender": "Female",
        "student_id": "STU-001",
        "institute_type": "School",
        "institute_name": "Nairobi Academy",
    }


@pytest.fixture
def parent_medical() -> dict[str, Any]:
    return {
        "step": "parent_medical",
        "parents_attending": "yes",
        "parents": [
            {
                "name": "Grace Otieno",
                "relation": "Mother",
                "phone": "+254712345678",
                "age": 41,
                "email": "grace@example.com",
            }
        ],
        "medical_facilities": "no",
        "allergies_conditions": "no",
    }


@pytest.fixture
def institution_details() -> dict[str, Any]:
    return {
        "step": "institution_details",
        "institution_name": "Rift Valley Academy",
        "institution_email": "office@rva.example.com",
        "institution_type": "School",
        "phone_number": "0712345678",
        "principal_name": "Dr. Kamau",
        "principal_contact": "0722000000",
        "contact_person_name": "Jane Wanjiru",
        "contact_person_designation": "Sports Coordinator",
        "contact_person_phone": "0733000000",
        "contact_person_email": "jane@rva.example.com",
        "website": "https://www.rva.example.com",
        "institution_email_verified": True,
        "contact_person_email_verified": True,
    }


@pytest.fixture
def sport_teams() -> dict[str, Any]:
    return {
        "step": "sport_teams",
        "sport_teams": [
            {
                "sport": "Football",
                "sport_id": 1,
                "age_from": "U13",
                "age_to": "U15",
                "gender": "Male",
                "max_students": 7,
                "students": [
                    {
                        "fname": "Brian",
                        "lname": "Mwangi",
                        "student_id": "S1",
                        "email": "brian@example.com",
                        "dob": "2011-01-01",
                        "gender": "Male",
                        "phone": "0712345678",
                    }
                ],
            }
        ],
    }


@pytest.fixture
def documents() -> dict[str, Any]:
    return {"step": "documents", "age_proof_filename": "birth.pdf", "age_proof_size": 2048}


@pytest.fixture
def sports_selection() -> dict[str, Any]:
    return {
        "step": "sports_selection",
        "participation_type": "individual",
        "selected_sports": [{"sport_id": 3, "category_id": 1, "age_from": 12, "age_to": 14}],
    }
