"""Teardown dispatch and the per-step report every cascade returns."""

from typing import TYPE_CHECKING

from rich.markup import escape

from .types import StepOutcome, UsageError
from .utils import client_error_code, log, warn

if TYPE_CHECKING:
    from .identities import IdentityManager
    from .instances import InstanceManager


class CascadeReport:
    """Ordered record of best-effort teardown steps.

    Steps are appended as they run; a failed step never stops the cascade.
    """

    def __init__(self) -> None:
        self.steps: list[StepOutcome] = []

    def record(self, action: str, resource: str, exc: Exception | None = None) -> bool:
        """Append one step outcome, logging failures.

        :param action: Provider action (e.g. 'delete_instance')
        :param resource: Name of the resource acted on
        :param exc: Exception raised by the step, None if it succeeded
        :return: True if the step succeeded
        """
        if exc is None:
            self.steps.append(
                {"action": action, "resource": resource, "ok": True, "error": None}
            )
            return True
        detail = f"{client_error_code(exc)}: {exc}"
        warn(f"Failed to {action} '{escape(resource)}' ({escape(detail)})")
        self.steps.append(
            {"action": action, "resource": resource, "ok": False, "error": detail}
        )
        return False

    def merge(self, other: "CascadeReport") -> "CascadeReport":
        if other is not self:
            self.steps.extend(other.steps)
        return self

    @property
    def succeeded(self) -> list[StepOutcome]:
        return [s for s in self.steps if s["ok"]]

    @property
    def failed(self) -> list[StepOutcome]:
        return [s for s in self.steps if not s["ok"]]

    @property
    def ok(self) -> bool:
        return not self.failed

    def __len__(self) -> int:
        return len(self.steps)


def check_teardown_targets(
    *,
    instance: str | None = None,
    user: str | None = None,
    group: str | None = None,
) -> None:
    """Reject missing or contradictory teardown targets before any provider call.

    :raises UsageError: If no target or a contradictory combination is given
    """
    if not (instance or user or group):
        raise UsageError("Nothing to delete: pass --instance, --user with --group, or --group")
    if user and not group:
        raise UsageError(f"Deleting user '{user}' requires --group")
    if instance and (user or group):
        raise UsageError("--instance cannot be combined with --user or --group")


def resolve_teardown(
    instances: "InstanceManager",
    identities: "IdentityManager",
    *,
    instance: str | None = None,
    user: str | None = None,
    group: str | None = None,
) -> CascadeReport:
    """Dispatch a teardown request to the matching cascade.

    - instance only: delete that instance
    - user and group: delete the user's instances, then the user
    - group only: delete every member (instances first), then the group

    :raises UsageError: If no target or a contradictory combination is given
    """
    check_teardown_targets(instance=instance, user=user, group=group)

    if instance:
        log(f"Deleting instance '{instance}'...")
        return instances.delete_instance(instance)

    if user:
        log(f"Deleting user '{user}' and their instances...")
        report = instances.delete_instances_for_user(user)
        return identities.delete_identity(user, group, report)

    log(f"Deleting group '{group}' and all its users...")
    return identities.delete_group(group, instances)
