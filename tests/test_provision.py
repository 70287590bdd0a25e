import json

import pytest

from lfrcli.provision import provision_instance, provision_user
from lfrcli.types import ConfigurationError, CreationError

from conftest import BOB_ARN, client_error, provider_calls, states


@pytest.fixture
def bob_world(lightsail, iam):
    lightsail.get_instance_state.side_effect = states("pending", "running", "stopping")
    lightsail.get_instance.return_value = {
        "instance": {"name": "bob-std-medium", "arn": BOB_ARN, "state": {"name": "stopping"}}
    }
    iam.get_user.return_value = {"User": {"UserName": "bob"}}


def new_bob(instances, identities, **kwargs):
    return provision_user(
        instances,
        identities,
        user="bob",
        group="students",
        size="medium",
        machine_type="std",
        zone="us-east-2a",
        **kwargs,
    )


def test_new_user_end_to_end(instances, identities, aws, lightsail, iam, secrets, bob_world):
    result = new_bob(instances, identities)

    assert provider_calls(aws) == [
        ("create_instances", None),
        ("stop_instance", "bob-std-medium"),
        ("create_user", "bob"),
        ("add_user_to_group", "bob"),
        ("create_login_profile", "bob"),
        ("put_user_policy", "bob"),
    ]
    assert lightsail.create_instances.call_args.kwargs["instanceNames"] == ["bob-std-medium"]
    assert lightsail.get_instance_state.call_count == 3
    iam.add_user_to_group.assert_called_once_with(GroupName="students", UserName="bob")
    secrets.get_random_password.assert_called_once_with(PasswordLength=8)
    assert iam.create_login_profile.call_args.kwargs["PasswordResetRequired"] is True

    policy = iam.put_user_policy.call_args.kwargs
    assert policy["PolicyName"] == "lfr-bob-access"
    assert json.loads(policy["PolicyDocument"])["Statement"][0]["Resource"] == BOB_ARN

    assert result["instance"]["arn"] == BOB_ARN
    assert result["identity"]["policy_name"] == "lfr-bob-access"


def test_rerun_surfaces_duplicate_instance(instances, identities, lightsail, iam):
    lightsail.create_instances.side_effect = client_error(
        "InvalidInputException", "CreateInstances"
    )

    with pytest.raises(CreationError, match="bob-std-medium"):
        new_bob(instances, identities)
    iam.create_user.assert_not_called()


def test_invalid_machine_type_issues_no_calls(instances, identities, aws):
    with pytest.raises(ConfigurationError):
        provision_user(
            instances,
            identities,
            user="bob",
            group="students",
            size="medium",
            machine_type="tpu",
            zone="us-east-2a",
        )
    assert aws.mock_calls == []


def test_identity_failure_leaves_instance_by_default(
    instances, identities, lightsail, iam, bob_world
):
    iam.create_user.side_effect = client_error("EntityAlreadyExists", "CreateUser")

    with pytest.raises(CreationError, match="create user"):
        new_bob(instances, identities)
    lightsail.delete_instance.assert_not_called()


def test_rollback_keeps_existing_account(instances, identities, lightsail, iam, bob_world):
    iam.create_user.side_effect = client_error("EntityAlreadyExists", "CreateUser")

    with pytest.raises(CreationError):
        new_bob(instances, identities, rollback=True)

    lightsail.delete_instance.assert_called_once_with(
        instanceName="bob-std-medium", forceDeleteAddOns=True
    )
    iam.delete_user.assert_not_called()


def test_rollback_removes_partial_account(instances, identities, aws, lightsail, iam, bob_world):
    iam.put_user_policy.side_effect = client_error("MalformedPolicyDocument", "PutUserPolicy")

    with pytest.raises(CreationError, match="attach access policy"):
        new_bob(instances, identities, rollback=True)

    assert provider_calls(aws, "put_user_policy")[-5:] == [
        ("remove_user_from_group", "bob"),
        ("delete_login_profile", "bob"),
        ("delete_user_policy", "bob"),
        ("delete_user", "bob"),
        ("delete_instance", "bob-std-medium"),
    ]


def test_provision_instance_only(instances, lightsail, iam, bob_world):
    lightsail.get_instance.return_value = {
        "instance": {"name": "bob-gpu-xlarge", "arn": "arn:gpu"}
    }

    instance = provision_instance(
        instances, user="bob", size="xlarge", machine_type="gpu", zone="us-east-2a"
    )

    assert instance["arn"] == "arn:gpu"
    assert lightsail.create_instances.call_args.kwargs["bundleId"] == "gpu_nvidia_xlarge_1_0"
    iam.create_user.assert_not_called()
