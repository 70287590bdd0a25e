"""Environment configuration and AWS session setup."""

import configparser
import os

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from dotenv import find_dotenv, load_dotenv

from .naming import DEFAULT_BLUEPRINT, DEFAULT_GROUP_POLICY, DEFAULT_POLICY_PREFIX
from .poller import POLL_INTERVAL
from .types import AuthError, ConfigurationError
from .utils import log

TRUE_VALUES = {"1", "true", "yes", "on"}


class Settings:
    """Values read from the environment (and .env) for one invocation."""

    def __init__(
        self,
        zone: str | None = None,
        account_id: str | None = None,
        poll_interval: float = POLL_INTERVAL,
        poll_timeout: float | None = None,
        rollback_on_failure: bool = False,
        policy_prefix: str = DEFAULT_POLICY_PREFIX,
        group_policy: str = DEFAULT_GROUP_POLICY,
        blueprint_id: str = DEFAULT_BLUEPRINT,
    ):
        self.zone = zone
        self.account_id = account_id
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout
        self.rollback_on_failure = rollback_on_failure
        self.policy_prefix = policy_prefix
        self.group_policy = group_policy
        self.blueprint_id = blueprint_id

    def require_zone(self) -> str:
        if not self.zone:
            raise ConfigurationError("LFR_ZONE not set (e.g. LFR_ZONE=us-east-2a in .env)")
        return self.zone


def _float_env(name: str, default: float | None) -> float | None:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number of seconds, got '{value}'")


def load_settings() -> Settings:
    """Read LFR_* variables, loading .env first."""
    load_dotenv(find_dotenv(usecwd=True))
    return Settings(
        zone=os.getenv("LFR_ZONE") or None,
        account_id=os.getenv("LFR_ACCOUNT_ID") or None,
        poll_interval=_float_env("LFR_POLL_INTERVAL", POLL_INTERVAL),
        poll_timeout=_float_env("LFR_POLL_TIMEOUT", None),
        rollback_on_failure=os.getenv("LFR_ROLLBACK_ON_FAILURE", "").lower() in TRUE_VALUES,
        policy_prefix=os.getenv("LFR_POLICY_PREFIX") or DEFAULT_POLICY_PREFIX,
        group_policy=os.getenv("LFR_GROUP_POLICY") or DEFAULT_GROUP_POLICY,
        blueprint_id=os.getenv("LFR_BLUEPRINT") or DEFAULT_BLUEPRINT,
    )


def get_aws_config(profile: str | None = None) -> dict:
    """Load AWS configuration for boto3 session initialization.

    Reads profile and region from config files and environment variables.
    Does not validate credentials — call check_aws_auth() for that.

    :param profile: Explicit AWS profile name (overrides AWS_PROFILE env var)
    :return: Dict with profile_name and/or region_name keys for boto3.Session()
    """
    load_dotenv(find_dotenv(usecwd=True))

    aws_config = {}
    available_profiles = set()
    for path in [
        os.path.expanduser("~/.aws/credentials"),
        os.path.expanduser("~/.aws/config"),
    ]:
        if os.path.exists(path):
            cfg = configparser.ConfigParser()
            cfg.read(path)
            for section in cfg.sections():
                if section.startswith("profile "):
                    available_profiles.add(section[8:])
                else:
                    available_profiles.add(section)

    profile_name = profile or os.getenv("AWS_PROFILE")
    if not profile_name and "default" in available_profiles:
        profile_name = "default"
    if profile_name:
        if profile_name in available_profiles:
            aws_config["profile_name"] = profile_name
        else:
            log(f"AWS profile '{profile_name}' not found, using default credential chain...")
            os.environ.pop("AWS_PROFILE", None)

    region = os.getenv("AWS_REGION")
    if region:
        aws_config["region_name"] = region

    return aws_config


def get_session(profile: str | None = None) -> boto3.Session:
    return boto3.Session(**get_aws_config(profile))


def check_aws_auth(session: boto3.Session) -> str:
    """Validate AWS credentials, failing fast if expired or invalid.

    :param session: boto3 session to check
    :return: AWS account id of the caller
    :raises AuthError: If credentials are missing, expired, or invalid
    """
    try:
        identity = session.client("sts").get_caller_identity()
    except ClientError as e:
        error_code = e.response["Error"]["Code"]
        if error_code in ("ExpiredToken", "ExpiredTokenException"):
            profile = session.profile_name
            login_cmd = f"aws sso login --profile {profile}" if profile else "aws sso login"
            raise AuthError(f"AWS credentials expired. Run:\n  {login_cmd}") from e
        raise AuthError(f"AWS authentication failed ({error_code}): {e}") from e
    except BotoCoreError as e:
        raise AuthError(f"AWS authentication failed: {e}") from e

    account_id = identity["Account"]
    log(f"AWS: region={session.region_name}  profile={session.profile_name}  account={account_id}")
    return account_id
