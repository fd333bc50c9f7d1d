"""
Domain exceptions - Semantic error types for the registration wizard.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
"""


class RegistrationError(Exception):
    """Base class for registration domain errors."""

    pass


class UnknownStep(RegistrationError):
    """Step number is not part of the flow's transition table."""

    pass


class StepValidationFailed(RegistrationError):
    """One or more field errors were found in a step payload."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors


class StepSaveFailed(RegistrationError):
    """A blocking per-step save to the festival backend failed."""

    pass


class RemoteCallFailed(RegistrationError):
    """A call to the festival backend could not be completed."""

    pass


class SubmissionFailed(RegistrationError):
    """Final create/submit call was rejected or could not be completed."""

    pass


class StepOutOfOrder(RegistrationError):
    """Step submitted ahead of the session's current step, or submission is premature."""

    pass


class EmailVerificationFailed(RegistrationError):
    """A one-time code could not be sent or was rejected."""

    pass
