"""Type definitions and errors for lfrcli."""

from typing import Literal, TypedDict

MachineType = Literal["gpu", "std"]
MACHINE_TYPES: tuple[str, ...] = ("gpu", "std")


class InstanceConfig(TypedDict):
    """Parameters for one Lightsail create_instances call."""

    name: str
    zone: str
    blueprint_id: str
    bundle_id: str
    idle_threshold: str
    idle_duration: str


class IamConfig(TypedDict):
    """Identity request, built once the instance ARN is known."""

    user: str
    group: str
    arn: str


class PolicyStatement(TypedDict):
    Effect: str
    Action: list[str]
    Resource: str


class PolicyDocument(TypedDict):
    Version: str
    Statement: list[PolicyStatement]


class IdentityDetails(TypedDict):
    """Result of creating an identity. The password is never included."""

    user: dict
    group: str
    policy_name: str


class StepOutcome(TypedDict):
    """One best-effort step of a teardown."""

    action: str
    resource: str
    ok: bool
    error: str | None


class LfrError(Exception):
    """Base class for errors surfaced to the CLI dispatcher."""


class ConfigurationError(LfrError):
    """Invalid parameters or environment, raised before any provider call."""


class UsageError(LfrError):
    """Missing or contradictory command arguments."""


class AuthError(LfrError):
    """AWS credentials missing, expired or invalid."""


class CreationError(LfrError):
    """A provider refused to create a resource.

    :param resource: Name of the resource being created
    :param step: Which creation step failed (e.g. 'create_user')
    :param cause: The underlying provider exception
    """

    def __init__(self, resource: str, step: str, cause: Exception | None = None):
        self.resource = resource
        self.step = step
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Failed to {step} '{resource}'{detail}")
