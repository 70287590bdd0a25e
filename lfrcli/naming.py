"""Deterministic resource names, config structs and policy documents.

Instance names encode their owner as ``<user>-<machine_type>-<size>``. Teardown
relies on this convention to find every instance belonging to a user, so
everything that builds or parses names lives here.
"""

from .types import (
    MACHINE_TYPES,
    ConfigurationError,
    IamConfig,
    InstanceConfig,
    PolicyDocument,
)

DEFAULT_BLUEPRINT = "lfr_ubuntu_1_0"
DEFAULT_IDLE_THRESHOLD = "1"
DEFAULT_IDLE_DURATION = "20"
DEFAULT_POLICY_PREFIX = "lfr"
DEFAULT_GROUP_POLICY = "lfr-student-access"
POLICY_VERSION = "2012-10-17"
POLICY_ACTIONS = ["lightsail:*"]

BUNDLE_TEMPLATES = {
    "gpu": "gpu_nvidia_{size}_1_0",
    "std": "app_standard_{size}_1_0",
}


def instance_name(user: str, machine_type: str, size: str) -> str:
    return f"{user}-{machine_type}-{size}"


def owns_instance(user: str, name: str) -> bool:
    """Check whether an instance name belongs to a user.

    The first ``-`` delimited token must equal the username exactly, so
    'alice' owns 'alice-std-small' but not 'alice2-std-small'.
    """
    return name.split("-", 1)[0] == user


def build_instance_config(
    user: str,
    size: str,
    machine_type: str,
    zone: str,
    *,
    blueprint_id: str = DEFAULT_BLUEPRINT,
    idle_threshold: str = DEFAULT_IDLE_THRESHOLD,
    idle_duration: str = DEFAULT_IDLE_DURATION,
) -> InstanceConfig:
    """Build the create parameters for a user's instance.

    :param user: Owner username, becomes the name prefix
    :param size: Bundle size (e.g. xl, 2xl, 4xl)
    :param machine_type: 'gpu' or 'std'
    :param zone: Availability zone (e.g. us-east-2a)
    :raises ConfigurationError: If machine_type is not gpu or std
    """
    if machine_type not in MACHINE_TYPES:
        raise ConfigurationError(
            f"Invalid machine type '{machine_type}', must be one of: {', '.join(MACHINE_TYPES)}"
        )
    return {
        "name": instance_name(user, machine_type, size),
        "zone": zone,
        "blueprint_id": blueprint_id,
        "bundle_id": BUNDLE_TEMPLATES[machine_type].format(size=size),
        "idle_threshold": idle_threshold,
        "idle_duration": idle_duration,
    }


def build_iam_config(user: str, group: str, arn: str) -> IamConfig:
    missing = [k for k, v in (("user", user), ("group", group), ("arn", arn)) if not v]
    if missing:
        raise ConfigurationError(f"Missing identity fields: {', '.join(missing)}")
    return {"user": user, "group": group, "arn": arn}


def build_policy_document(instance_arn: str) -> PolicyDocument:
    """Render an allow-all-lightsail-actions policy scoped to one instance.

    A new document is returned on every call.

    :param instance_arn: ARN of the single instance the policy grants access to
    :raises ConfigurationError: If the ARN is empty or a wildcard
    """
    if not instance_arn or "*" in instance_arn:
        raise ConfigurationError(
            f"Policy resource must be a single instance ARN, got '{instance_arn}'"
        )
    return {
        "Version": POLICY_VERSION,
        "Statement": [
            {
                "Effect": "Allow",
                "Action": list(POLICY_ACTIONS),
                "Resource": instance_arn,
            }
        ],
    }


def user_policy_name(user: str, prefix: str = DEFAULT_POLICY_PREFIX) -> str:
    return f"{prefix}-{user}-access"


def group_policy_arn(account_id: str, policy_name: str = DEFAULT_GROUP_POLICY) -> str:
    return f"arn:aws:iam::{account_id}:policy/{policy_name}"
