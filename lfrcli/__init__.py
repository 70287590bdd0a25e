"""lfrcli - Lightsail for Research lab provisioning."""

from .cascade import CascadeReport, resolve_teardown
from .identities import IdentityManager
from .instances import InstanceManager
from .naming import (
    build_iam_config,
    build_instance_config,
    build_policy_document,
    owns_instance,
)
from .poller import wait_for_state
from .provision import provision_instance, provision_user
from .types import (
    AuthError,
    ConfigurationError,
    CreationError,
    IamConfig,
    IdentityDetails,
    InstanceConfig,
    LfrError,
    UsageError,
)
from .utils import error, log, warn

__all__ = [
    "CascadeReport",
    "resolve_teardown",
    "IdentityManager",
    "InstanceManager",
    "build_iam_config",
    "build_instance_config",
    "build_policy_document",
    "owns_instance",
    "wait_for_state",
    "provision_instance",
    "provision_user",
    "AuthError",
    "ConfigurationError",
    "CreationError",
    "IamConfig",
    "IdentityDetails",
    "InstanceConfig",
    "LfrError",
    "UsageError",
    "log",
    "warn",
    "error",
]
