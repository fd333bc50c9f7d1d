"""
Domain layer - Registration logic with no web, HTTP or database imports.

This package contains the multi-step registration wizard: step payloads
and their validation, the transition table, progress persistence through
injected ports, best-effort replication, and fee calculation.
"""

from .exceptions import (
    EmailVerificationFailed,
    RegistrationError,
    RemoteCallFailed,
    StepOutOfOrder,
    StepSaveFailed,
    StepValidationFailed,
    SubmissionFailed,
    UnknownStep,
)
from .ports import (
    ApiResult,
    Checkpoint,
    CheckpointStore,
    ExpiringStorage,
    FestivalApi,
    Flow,
    KeyValueStorage,
    Notifier,
    SavePolicy,
)
from .registration import FinalOutcome, RegistrationOrchestrator, StepOutcome
from .replication import BestEffortReplicator
from .state import RegistrationState

__all__ = [
    "ApiResult",
    "BestEffortReplicator",
    "Checkpoint",
    "CheckpointStore",
    "EmailVerificationFailed",
    "ExpiringStorage",
    "FestivalApi",
    "FinalOutcome",
    "Flow",
    "KeyValueStorage",
    "Notifier",
    "RegistrationError",
    "RegistrationOrchestrator",
    "RegistrationState",
    "RemoteCallFailed",
    "SavePolicy",
    "StepOutOfOrder",
    "StepOutcome",
    "StepSaveFailed",
    "StepValidationFailed",
    "SubmissionFailed",
    "UnknownStep",
]
