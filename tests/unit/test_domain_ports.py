"""
Unit tests for domain ports and exceptions.

Tests verify:
- Port interfaces are properly defined
- Exceptions are properly structured
- Domain purity (no web, HTTP or database imports)
"""

import subprocess
from enum import Enum

import pytest

from src.adapters.festival.http import FestivalApiError, HttpFestivalApi
from src.adapters.notify.console import ConsoleNotifier
from src.adapters.storage.memory import InMemoryStorage
from src.domain.exceptions import (
    RegistrationError,
    RemoteCallFailed,
    StepSaveFailed,
    StepValidationFailed,
    SubmissionFailed,
    UnknownStep,
)
from src.domain.ports import (
    CheckpointStore,
    FestivalApi,
    Flow,
    KeyValueStorage,
    Notifier,
    SavePolicy,
)


class TestFlowEnum:
    def test_flow_is_str_enum(self) -> None:
        """Flow uses str mixin so it works as a path parameter."""
        assert issubclass(Flow, Enum)
        assert issubclass(Flow, str)
        assert Flow("institution") is Flow.INSTITUTION

    def test_save_policy_values(self) -> None:
        assert {p.value for p in SavePolicy} == {"block", "ignore"}


class TestProtocols:
    """Adapters satisfy the ports structurally."""

    @pytest.mark.parametrize(
        "port,adapter",
        [
            (KeyValueStorage, InMemoryStorage),
            (CheckpointStore, HttpFestivalApi),
            (FestivalApi, HttpFestivalApi),
            (Notifier, ConsoleNotifier),
        ],
    )
    def test_adapter_implements_every_port_method(self, port, adapter) -> None:
        methods = [
            name for name in vars(port) if not name.startswith("_") and callable(vars(port)[name])
        ]
        assert methods
        for name in methods:
            assert callable(getattr(adapter, name, None)), f"{adapter.__name__}.{name} missing"


class TestExceptions:
    @pytest.mark.parametrize(
        "exc", [UnknownStep, StepSaveFailed, RemoteCallFailed, SubmissionFailed]
    )
    def test_inherit_from_registration_error(self, exc) -> None:
        assert issubclass(exc, RegistrationError)

    def test_validation_failure_keeps_every_error(self) -> None:
        error = StepValidationFailed(["A is required", "B is required"])
        assert error.errors == ["A is required", "B is required"]
        assert str(error) == "A is required; B is required"

    def test_adapter_error_is_remote_call_failed(self) -> None:
        error = FestivalApiError("HTTP error! status: 500", 500)
        assert isinstance(error, RemoteCallFailed)
        assert error.body == {}


class TestDomainPurity:
    """Domain layer imports no web framework, HTTP client or database driver."""

    @pytest.mark.parametrize(
        "pattern",
        ["from fastapi", "import fastapi", "from psycopg", "import psycopg", "import httpx"],
    )
    def test_no_infrastructure_imports_in_domain(self, pattern: str) -> None:
        result = subprocess.run(
            ["grep", "-r", pattern, "src/domain/"],
            capture_output=True,
            text=True,
        )
        assert result.returncode != 0, f"Infrastructure import found: {result.stdout}"

    def test_no_adapter_imports_in_domain(self) -> None:
        result = subprocess.run(
            ["grep", "-r", "src.adapters", "src/domain/"],
            capture_output=True,
            text=True,
        )
        assert result.returncode != 0, f"Adapter import found: {result.stdout}"
