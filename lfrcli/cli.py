#!/usr/bin/env python3
"""Provision Lightsail for Research instances paired with IAM accounts.

Prerequisites: AWS credentials (profile or environment), LFR_ZONE in .env.

Usage: uv run lfrcli <command> [options]

Examples:
    uv run lfrcli group --name students
    uv run lfrcli new --user bob --group students --size medium --mtype std
    uv run lfrcli instance --user bob --size xl --mtype gpu
    uv run lfrcli get --instance bob-std-medium
    uv run lfrcli delete --user bob --group students
    uv run lfrcli delete --group students
"""

import os
from typing import Literal

import cyclopts
from rich import print
from rich.markup import escape
from rich.table import Table

from .cascade import CascadeReport, check_teardown_targets, resolve_teardown
from .identities import IdentityManager
from .instances import DEFAULT_KEY_FILE, InstanceManager
from .provision import provision_instance, provision_user
from .settings import Settings, check_aws_auth, get_session, load_settings
from .types import LfrError, UsageError
from .utils import error, log, setup_logging, warn

app = cyclopts.App(
    name="lfrcli",
    help="Provision lab instances and IAM accounts on AWS Lightsail for Research",
    sort_key=None,
)


class Context:
    """Settings, session and managers for one command."""

    def __init__(self, profile: str | None = None):
        self.settings: Settings = load_settings()
        session = get_session(profile)
        account_id = check_aws_auth(session)
        if not self.settings.account_id:
            self.settings.account_id = account_id

        self.instances = InstanceManager(
            session.client("lightsail"),
            poll_interval=self.settings.poll_interval,
            poll_timeout=self.settings.poll_timeout,
        )
        self.identities = IdentityManager(
            session.client("iam"),
            session.client("secretsmanager"),
            account_id=self.settings.account_id,
            policy_prefix=self.settings.policy_prefix,
            group_policy=self.settings.group_policy,
        )


def print_instance(instance: dict) -> None:
    print(f"  Name: {instance.get('name')}")
    print(f"  ARN: {instance.get('arn')}")
    print(f"  Zone: {instance.get('location', {}).get('availabilityZone')}")
    print(f"  Bundle: {instance.get('bundleId')}")
    print(f"  State: {instance.get('state', {}).get('name')}")
    if instance.get("publicIpAddress"):
        print(f"  IP: {instance['publicIpAddress']}")


def print_report(report: CascadeReport) -> None:
    """Print teardown steps as a table and warn about failures."""
    if not report.steps:
        log("Nothing was deleted")
        return

    table = Table(title="Teardown")
    table.add_column("Action")
    table.add_column("Resource")
    table.add_column("Result")
    for step in report.steps:
        result = "[green]ok[/green]" if step["ok"] else f"[red]{escape(step['error'])}[/red]"
        table.add_row(escape(step["action"]), escape(step["resource"]), result)
    print(table)

    if report.ok:
        log(f"Teardown complete ({len(report)} step(s))")
    else:
        warn(f"Teardown finished with {len(report.failed)} failed step(s)")


@app.command(name="new")
def new_user(
    *,
    user: str,
    group: str,
    size: str,
    mtype: Literal["gpu", "std"],
    rollback: bool | None = None,
    profile: str | None = None,
):
    """Create an instance for a user, then their IAM account scoped to it.

    :param user: Username, also the instance name prefix
    :param group: Existing IAM group to add the user to
    :param size: Bundle size (e.g. xl, 2xl, 4xl)
    :param mtype: Machine type
    :param rollback: Delete the new instance if the account cannot be created (default: LFR_ROLLBACK_ON_FAILURE)
    :param profile: AWS profile (default: AWS_PROFILE)
    """
    ctx = Context(profile)
    if rollback is None:
        rollback = ctx.settings.rollback_on_failure

    result = provision_user(
        ctx.instances,
        ctx.identities,
        user=user,
        group=group,
        size=size,
        machine_type=mtype,
        zone=ctx.settings.require_zone(),
        blueprint_id=ctx.settings.blueprint_id,
        rollback=rollback,
    )
    log(f"User '{user}' ready")
    print_instance(result["instance"])


@app.command(name="instance")
def new_instance(
    *,
    user: str,
    size: str,
    mtype: Literal["gpu", "std"],
    profile: str | None = None,
):
    """Create an additional instance for an existing user.

    :param user: Owner username
    :param size: Bundle size
    :param mtype: Machine type
    :param profile: AWS profile (default: AWS_PROFILE)
    """
    ctx = Context(profile)
    instance = provision_instance(
        ctx.instances,
        user=user,
        size=size,
        machine_type=mtype,
        zone=ctx.settings.require_zone(),
        blueprint_id=ctx.settings.blueprint_id,
    )
    print_instance(instance)
    # TODO: append the ARN to the user's inline policy instead of asking the operator
    log(
        f"Manually add instance ARN '{instance['arn']}' to policy "
        f"'{ctx.identities.policy_name(user)}'"
    )


@app.command(name="get")
def get(
    *,
    instance: str | None = None,
    key: bool = False,
    profile: str | None = None,
):
    """Show instance details or download the default key pair.

    :param instance: Instance name
    :param key: Save the default key pair private key to lfr-default-key.pem
    :param profile: AWS profile (default: AWS_PROFILE)
    """
    if bool(instance) == key:
        raise UsageError("Pass exactly one of --instance or --key")

    ctx = Context(profile)
    if key:
        path = ctx.instances.download_default_key(DEFAULT_KEY_FILE)
        print(f"  Key: {path}")
        return

    details = ctx.instances.get_instance(instance)
    print("[bold]Instance details:[/bold]")
    print(details)


@app.command(name="delete")
def delete(
    *,
    instance: str | None = None,
    user: str | None = None,
    group: str | None = None,
    profile: str | None = None,
):
    """Delete an instance, a user with their instances, or a whole group.

    :param instance: Delete only this instance
    :param user: Delete this user and every instance named after them (needs --group)
    :param group: Group of --user, or on its own: delete the group and all its users
    :param profile: AWS profile (default: AWS_PROFILE)
    """
    check_teardown_targets(instance=instance, user=user, group=group)

    ctx = Context(profile)
    report = resolve_teardown(
        ctx.instances, ctx.identities, instance=instance, user=user, group=group
    )
    print_report(report)


@app.command(name="group")
def create_group(*, name: str, profile: str | None = None):
    """Create an IAM group with the shared student access policy.

    :param name: Group name
    :param profile: AWS profile (default: AWS_PROFILE)
    """
    ctx = Context(profile)
    ctx.identities.create_group(name)
    log(f"Group '{name}' ready")


def main():
    setup_logging(os.getenv("LFR_LOG_LEVEL", "INFO"))
    try:
        app()
    except UsageError as e:
        warn(str(e))
    except LfrError as e:
        error(str(e))


if __name__ == "__main__":
    main()
