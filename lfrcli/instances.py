"""Lightsail instance lifecycle: create, idle-stop, list and delete."""

import time
from pathlib import Path
from typing import Callable

from botocore.exceptions import BotoCoreError, ClientError

from .cascade import CascadeReport
from .naming import owns_instance
from .poller import POLL_INTERVAL, wait_for_state
from .types import CreationError, InstanceConfig
from .utils import log, warn

DEFAULT_KEY_FILE = "lfr-default-key.pem"


class InstanceManager:
    """Drives a single Lightsail client through instance lifecycles.

    :param lightsail: boto3 Lightsail client
    :param poll_interval: Seconds between state polls
    :param poll_timeout: Seconds before a state wait gives up (None waits forever)
    :param owner_matcher: Decides whether an instance name belongs to a user
    """

    def __init__(
        self,
        lightsail,
        *,
        poll_interval: float = POLL_INTERVAL,
        poll_timeout: float | None = None,
        owner_matcher: Callable[[str, str], bool] = owns_instance,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.lightsail = lightsail
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout
        self.owner_matcher = owner_matcher
        self._sleep = sleep
        self._clock = clock

    def get_instance_state(self, name: str) -> str:
        response = self.lightsail.get_instance_state(instanceName=name)
        return response["state"]["name"]

    def get_instance(self, name: str) -> dict:
        return self.lightsail.get_instance(instanceName=name)["instance"]

    def list_instances(self) -> list[dict]:
        """List every instance in the region, following page tokens."""
        instances = []
        params = {}
        while True:
            response = self.lightsail.get_instances(**params)
            instances.extend(response.get("instances", []))
            token = response.get("nextPageToken")
            if not token:
                return instances
            params["pageToken"] = token

    def wait_for_state(self, name: str, state: str) -> bool:
        return wait_for_state(
            self.get_instance_state,
            name,
            state,
            interval=self.poll_interval,
            timeout=self.poll_timeout,
            sleep=self._sleep,
            clock=self._clock,
        )

    def create_instance(self, config: InstanceConfig) -> dict:
        """Create an instance, wait until it runs, then stop it until first use.

        Only the create call is fatal. Failures while waiting or stopping are
        logged and the latest instance details are returned regardless.

        :param config: Instance parameters from build_instance_config
        :return: Lightsail instance details (includes 'arn')
        :raises CreationError: If Lightsail rejects the create request
        """
        name = config["name"]
        idle_add_on = {
            "addOnType": "StopInstanceOnIdle",
            "stopInstanceOnIdleRequest": {
                "threshold": config["idle_threshold"],
                "duration": config["idle_duration"],
            },
        }

        log(f"Creating instance '{name}' ('{config['bundle_id']}') in '{config['zone']}'...")
        try:
            self.lightsail.create_instances(
                instanceNames=[name],
                availabilityZone=config["zone"],
                blueprintId=config["blueprint_id"],
                bundleId=config["bundle_id"],
                addOns=[idle_add_on],
            )
        except (ClientError, BotoCoreError) as e:
            raise CreationError(name, "create instance", e) from e
        log(f"Created instance '{name}'")

        try:
            if self.wait_for_state(name, "running"):
                self.lightsail.stop_instance(instanceName=name)
                if self.wait_for_state(name, "stopping"):
                    log(f"Stopping instance '{name}' until first use")
                else:
                    warn(f"Unable to confirm instance '{name}' is stopping")
            else:
                warn(f"Instance '{name}' is not running, skipped stop")
        except (ClientError, BotoCoreError) as e:
            warn(f"Idle-stop setup for '{name}' failed: {e}")

        return self.get_instance(name)

    def delete_instance(self, name: str, report: CascadeReport | None = None) -> CascadeReport:
        """Delete one instance and its add-ons. Single attempt, never raises."""
        report = report if report is not None else CascadeReport()
        try:
            self.lightsail.delete_instance(instanceName=name, forceDeleteAddOns=True)
        except (ClientError, BotoCoreError) as e:
            report.record("delete_instance", name, e)
        else:
            report.record("delete_instance", name)
            log(f"Deleted instance '{name}'")
        return report

    def user_instance_names(self, user: str) -> list[str]:
        return [
            i["name"]
            for i in self.list_instances()
            if i.get("name") and self.owner_matcher(user, i["name"])
        ]

    def delete_instances_for_user(
        self, user: str, report: CascadeReport | None = None
    ) -> CascadeReport:
        """Delete every instance whose name marks it as owned by user."""
        report = report if report is not None else CascadeReport()
        try:
            names = self.user_instance_names(user)
        except (ClientError, BotoCoreError) as e:
            report.record("list_instances", user, e)
            return report

        if not names:
            log(f"No instances found for user '{user}'")
        for name in names:
            self.delete_instance(name, report)
        return report

    def download_default_key(self, path: str | Path = DEFAULT_KEY_FILE) -> Path:
        """Write the region's default key pair private key, overwriting path."""
        response = self.lightsail.download_default_key_pair()
        path = Path(path)
        path.write_text(response["privateKeyBase64"])
        path.chmod(0o600)
        log(f"Saved default key pair to '{path}'")
        return path
