"""IAM account and group lifecycle for lab users."""

import json
from typing import TYPE_CHECKING

from botocore.exceptions import BotoCoreError, ClientError
from rich import print
from rich.markup import escape

from .cascade import CascadeReport
from .naming import (
    DEFAULT_GROUP_POLICY,
    DEFAULT_POLICY_PREFIX,
    build_policy_document,
    group_policy_arn,
    user_policy_name,
)
from .types import CreationError, IamConfig, IdentityDetails
from .utils import log, warn

if TYPE_CHECKING:
    from .instances import InstanceManager

PASSWORD_LENGTH = 8


class IdentityManager:
    """Creates and removes IAM users, login profiles, inline policies and groups.

    :param iam: boto3 IAM client
    :param secrets: boto3 Secrets Manager client, used for password generation
    :param account_id: AWS account id owning the shared group policy
    :param policy_prefix: Prefix of per-user inline policy names
    :param group_policy: Name of the managed policy attached to every group
    """

    def __init__(
        self,
        iam,
        secrets,
        *,
        account_id: str,
        policy_prefix: str = DEFAULT_POLICY_PREFIX,
        group_policy: str = DEFAULT_GROUP_POLICY,
        password_length: int = PASSWORD_LENGTH,
    ):
        self.iam = iam
        self.secrets = secrets
        self.account_id = account_id
        self.policy_prefix = policy_prefix
        self.group_policy = group_policy
        self.password_length = password_length

    @property
    def group_policy_arn(self) -> str:
        return group_policy_arn(self.account_id, self.group_policy)

    def policy_name(self, user: str) -> str:
        return user_policy_name(user, self.policy_prefix)

    def get_identity(self, user: str) -> dict:
        return self.iam.get_user(UserName=user)["User"]

    def _random_password(self) -> str:
        response = self.secrets.get_random_password(PasswordLength=self.password_length)
        return response["RandomPassword"]

    def create_identity(self, config: IamConfig) -> IdentityDetails:
        """Create an IAM user that can only manage its own instance.

        Steps: create user, join group, issue a one-time password with a
        mandatory reset, attach an inline policy scoped to config['arn'].
        The password is printed once to the operator and not returned.

        :param config: Identity request from build_iam_config
        :return: User details, group and inline policy name
        :raises CreationError: If any creation step is rejected
        """
        user = config["user"]
        group = config["group"]
        policy_name = self.policy_name(user)

        step = "create user"
        try:
            self.iam.create_user(UserName=user)
            log(f"Created user '{user}'")

            step = "add user to group"
            self.iam.add_user_to_group(GroupName=group, UserName=user)
            log(f"Added user '{user}' to group '{group}'")

            step = "create login profile for"
            password = self._random_password()
            self.iam.create_login_profile(
                UserName=user, Password=password, PasswordResetRequired=True
            )
            log(f"Created login profile for '{user}'")

            step = "attach access policy to"
            document = build_policy_document(config["arn"])
            self.iam.put_user_policy(
                UserName=user,
                PolicyName=policy_name,
                PolicyDocument=json.dumps(document),
            )
            log(f"Added user access policy '{policy_name}'")
        except (ClientError, BotoCoreError) as e:
            raise CreationError(user, step, e) from e

        print(
            f"[green]Created user '{user}' with one-time password:[/green] "
            f"[bold]{escape(password)}[/bold]"
        )
        try:
            details = self.get_identity(user)
        except (ClientError, BotoCoreError) as e:
            raise CreationError(user, "fetch created user", e) from e
        return {"user": details, "group": group, "policy_name": policy_name}

    def delete_identity(
        self, user: str, group: str, report: CascadeReport | None = None
    ) -> CascadeReport:
        """Remove a user and everything that references it.

        Group membership and the login profile must go before the user itself.
        Each step is attempted even if an earlier one failed.
        """
        report = report if report is not None else CascadeReport()
        policy_name = self.policy_name(user)
        steps = [
            ("remove_user_from_group", f"{user}@{group}",
             lambda: self.iam.remove_user_from_group(GroupName=group, UserName=user)),
            ("delete_login_profile", user,
             lambda: self.iam.delete_login_profile(UserName=user)),
            ("delete_user_policy", policy_name,
             lambda: self.iam.delete_user_policy(UserName=user, PolicyName=policy_name)),
            ("delete_user", user,
             lambda: self.iam.delete_user(UserName=user)),
        ]
        for action, resource, call in steps:
            try:
                call()
            except (ClientError, BotoCoreError) as e:
                report.record(action, resource, e)
            else:
                report.record(action, resource)

        if report.steps[-1]["ok"]:
            log(f"Deleted user '{user}' from group '{group}'")
        return report

    def create_group(self, name: str) -> dict:
        """Create a group with the shared student access policy attached.

        :raises CreationError: If the group or the attachment is rejected
        """
        step = "create group"
        try:
            self.iam.create_group(GroupName=name)
            log(f"Created group '{name}'")
            step = "attach group policy to"
            response = self.iam.attach_group_policy(
                GroupName=name, PolicyArn=self.group_policy_arn
            )
        except (ClientError, BotoCoreError) as e:
            raise CreationError(name, step, e) from e
        log(f"Attached '{self.group_policy}' to group '{name}'")
        return response

    def list_group_users(self, name: str) -> list[str]:
        users = []
        params = {"GroupName": name}
        while True:
            response = self.iam.get_group(**params)
            users.extend(u["UserName"] for u in response.get("Users", []))
            if not response.get("IsTruncated"):
                return users
            params["Marker"] = response["Marker"]

    def delete_group(
        self,
        name: str,
        instances: "InstanceManager",
        report: CascadeReport | None = None,
    ) -> CascadeReport:
        """Delete a group and, member by member, their instances and accounts.

        Each member is torn down completely (instances, then identity) before
        the next; the shared policy is detached and the group deleted last.
        """
        report = report if report is not None else CascadeReport()
        try:
            users = self.list_group_users(name)
        except (ClientError, BotoCoreError) as e:
            report.record("get_group", name, e)
            users = []

        log(f"Group '{name}' has {len(users)} user(s)")
        for user in users:
            instances.delete_instances_for_user(user, report)
            self.delete_identity(user, name, report)

        for action, call in [
            ("detach_group_policy",
             lambda: self.iam.detach_group_policy(GroupName=name, PolicyArn=self.group_policy_arn)),
            ("delete_group",
             lambda: self.iam.delete_group(GroupName=name)),
        ]:
            try:
                call()
            except (ClientError, BotoCoreError) as e:
                report.record(action, name, e)
            else:
                report.record(action, name)

        if report.ok:
            log(f"Deleted group '{name}'")
        else:
            warn(f"Group '{name}' teardown finished with {len(report.failed)} failed step(s)")
        return report
