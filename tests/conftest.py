"""Fake AWS clients for lifecycle tests."""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from lfrcli.identities import IdentityManager
from lfrcli.instances import InstanceManager

ACCOUNT_ID = "123456789012"
BOB_ARN = "arn:aws:lightsail:us-east-2:123456789012:Instance/0f1e2d3c-bob"


def client_error(code: str, operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} raised"}}, operation)


def states(*names: str) -> list[dict]:
    """Scripted get_instance_state responses."""
    return [{"state": {"code": 0, "name": n}} for n in names]


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def aws():
    """Parent mock so calls across clients are recorded in one ordered list."""
    return MagicMock()


@pytest.fixture
def lightsail(aws):
    client = aws.lightsail
    client.get_instances.return_value = {"instances": []}
    return client


@pytest.fixture
def iam(aws):
    client = aws.iam
    client.get_group.return_value = {"Users": []}
    return client


@pytest.fixture
def secrets(aws):
    client = aws.secrets
    client.get_random_password.return_value = {"RandomPassword": "Xy7!ab9Q"}
    return client


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def instances(lightsail, clock):
    return InstanceManager(lightsail, sleep=clock.sleep, clock=clock)


@pytest.fixture
def identities(iam, secrets):
    return IdentityManager(iam, secrets, account_id=ACCOUNT_ID)


def provider_calls(aws, *ignore: str) -> list[tuple]:
    """(method, primary resource) for every mutating call, in call order."""
    calls = []
    for name, _args, kwargs in aws.mock_calls:
        method = name.split(".")[-1]
        if not name.count(".") or method.startswith("get_") or method in ignore:
            continue
        resource = (
            kwargs.get("instanceName")
            or kwargs.get("UserName")
            or kwargs.get("GroupName")
        )
        calls.append((method, resource))
    return calls
