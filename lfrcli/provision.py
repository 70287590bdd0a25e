"""Provisioning flows: an instance paired with its owner's IAM account."""

from typing import TypedDict

from .cascade import CascadeReport
from .identities import IdentityManager
from .instances import InstanceManager
from .naming import DEFAULT_BLUEPRINT, build_iam_config, build_instance_config
from .types import CreationError, IdentityDetails, LfrError
from .utils import log, warn


class ProvisionResult(TypedDict):
    instance: dict
    identity: IdentityDetails


def provision_instance(
    instances: InstanceManager,
    *,
    user: str,
    size: str,
    machine_type: str,
    zone: str,
    blueprint_id: str = DEFAULT_BLUEPRINT,
) -> dict:
    """Create, start and idle-stop one instance named after its owner.

    :return: Lightsail instance details
    """
    config = build_instance_config(
        user, size, machine_type, zone, blueprint_id=blueprint_id
    )
    return instances.create_instance(config)


def provision_user(
    instances: InstanceManager,
    identities: IdentityManager,
    *,
    user: str,
    group: str,
    size: str,
    machine_type: str,
    zone: str,
    blueprint_id: str = DEFAULT_BLUEPRINT,
    rollback: bool = False,
) -> ProvisionResult:
    """Create a user's instance, then an IAM account scoped to that instance.

    Nothing is undone if the instance create fails. If the identity fails
    after the instance exists, rollback=True tears down the partial account
    and the instance; otherwise the instance is left for manual cleanup.

    :raises LfrError: On configuration or creation failure
    """
    instance = provision_instance(
        instances,
        user=user,
        size=size,
        machine_type=machine_type,
        zone=zone,
        blueprint_id=blueprint_id,
    )
    try:
        iam_config = build_iam_config(user, group, instance.get("arn", ""))
        identity = identities.create_identity(iam_config)
    except LfrError as e:
        if rollback:
            # an existing account with the same name must not be deleted
            user_created = not (isinstance(e, CreationError) and e.step == "create user")
            rollback_user(
                instances,
                identities,
                user=user,
                group=group,
                instance_name=instance["name"],
                delete_identity=user_created,
            )
        else:
            warn(
                f"Instance '{instance['name']}' was left in place without an owner; "
                f"delete it with: lfrcli delete --instance {instance['name']}"
            )
        raise

    return {"instance": instance, "identity": identity}


def rollback_user(
    instances: InstanceManager,
    identities: IdentityManager,
    *,
    user: str,
    group: str,
    instance_name: str,
    delete_identity: bool = True,
) -> CascadeReport:
    """Best-effort removal of a half-provisioned user and their new instance."""
    warn(f"Rolling back instance '{instance_name}'...")
    report = CascadeReport()
    if delete_identity:
        identities.delete_identity(user, group, report)
    instances.delete_instance(instance_name, report)
    if report.steps[-1]["ok"]:
        log(f"Rolled back instance '{instance_name}'")
    return report
