from pydantic import BaseModel, Field
from typing import Optional


class VolumeConfig(BaseModel):
    """
    Runtime configuration for cloud-volumes.

    This configuration is loaded from:
    1. Environment variables (RS_* bootstrap data and CLOUD_VOLUMES_*)
    2. Configuration file (if provided)
    3. Default values (hardcoded)

    Priority: Environment variables > Config file > Defaults
    """

    # Cloud API access
    api_endpoint: str = Field(
        default="",
        description="Cloud API endpoint (e.g., https://my.rightscale.com)"
    )

    account_id: Optional[str] = Field(
        default=None,
        description="Account the instance belongs to"
    )

    instance_token: Optional[str] = Field(
        default=None,
        description="Instance API token"
    )

    request_timeout_sec: float = Field(
        default=60.0,
        gt=0,
        description="Timeout for a single API request (seconds)"
    )

    # Detected platform (read-only context)
    cloud_provider: Optional[str] = Field(
        default=None,
        description="Cloud provider identifier (ec2/cloudstack/rackspace-ng/azure/...)"
    )

    hypervisor: Optional[str] = Field(
        default=None,
        description="Virtualization system or emulator (xen/kvm/virtualpc/...)"
    )

    # Polling and retries
    poll_interval_sec: float = Field(
        default=2.0,
        ge=0,
        description="Interval between status polls (seconds)"
    )

    gateway_retry_delay_sec: float = Field(
        default=2.0,
        ge=0,
        description="Delay before retrying a gateway timeout (seconds)"
    )

    max_gateway_retries: int = Field(
        default=30,
        ge=0,
        description="Maximum consecutive gateway timeout retries per call"
    )

    default_timeout_minutes: float = Field(
        default=15,
        gt=0,
        description="Default deadline for asynchronous operations (minutes)"
    )

    # Local devices
    partitions_file: str = Field(
        default="/proc/partitions",
        description="Partition table used to enumerate block devices"
    )

    scsi_scan_file: str = Field(
        default="/sys/class/scsi_host/host0/scan",
        description="SCSI host scan trigger (rescanned after attach when present)"
    )

    scsi_settle_sec: float = Field(
        default=5.0,
        ge=0,
        description="Wait after a SCSI rescan (seconds)"
    )

    # Persisted state
    state_file: str = Field(
        default="/var/lib/cloud-volumes/state.json",
        description="JSON file holding the last known state per volume name"
    )

    log_level: str = Field(
        default="info",
        description="Logging level (debug/info/warning/error)"
    )

    @classmethod
    def from_env(cls, base: Optional["VolumeConfig"] = None) -> "VolumeConfig":
        """
        Load configuration from environment variables.

        Environment variables override defaults (or the given base config):

        - RS_SERVER: API host name (https:// is assumed when no scheme is given)
        - RS_API_TOKEN: "<account_id>:<instance_token>"
        - CLOUD_VOLUMES_API_ENDPOINT: Full API endpoint URL (overrides RS_SERVER)
        - CLOUD_VOLUMES_PROVIDER: Cloud provider identifier
        - CLOUD_VOLUMES_HYPERVISOR: Virtualization system identifier
        - CLOUD_VOLUMES_POLL_INTERVAL: Poll interval in seconds
        - CLOUD_VOLUMES_STATE_FILE: Persisted state file
        - CLOUD_VOLUMES_LOG_LEVEL: Logging level
        """
        import os

        kwargs = base.model_dump() if base is not None else {}

        # API access
        if "RS_SERVER" in os.environ:
            server = os.environ["RS_SERVER"]
            kwargs["api_endpoint"] = server if "://" in server else f"https://{server}"
        if "CLOUD_VOLUMES_API_ENDPOINT" in os.environ:
            kwargs["api_endpoint"] = os.environ["CLOUD_VOLUMES_API_ENDPOINT"]
        if "RS_API_TOKEN" in os.environ:
            account_id, _, instance_token = os.environ["RS_API_TOKEN"].partition(":")
            kwargs["account_id"] = account_id or None
            kwargs["instance_token"] = instance_token or None

        # Platform
        if "CLOUD_VOLUMES_PROVIDER" in os.environ:
            kwargs["cloud_provider"] = os.environ["CLOUD_VOLUMES_PROVIDER"]
        if "CLOUD_VOLUMES_HYPERVISOR" in os.environ:
            kwargs["hypervisor"] = os.environ["CLOUD_VOLUMES_HYPERVISOR"]

        # Behaviour
        if "CLOUD_VOLUMES_POLL_INTERVAL" in os.environ:
            kwargs["poll_interval_sec"] = float(os.environ["CLOUD_VOLUMES_POLL_INTERVAL"])
        if "CLOUD_VOLUMES_STATE_FILE" in os.environ:
            kwargs["state_file"] = os.environ["CLOUD_VOLUMES_STATE_FILE"]
        if "CLOUD_VOLUMES_LOG_LEVEL" in os.environ:
            kwargs["log_level"] = os.environ["CLOUD_VOLUMES_LOG_LEVEL"]

        return cls(**kwargs)

    @classmethod
    def from_file(cls, config_path: str) -> "VolumeConfig":
        """
        Load configuration from a YAML or JSON file.

        Supported formats: .yaml, .yml, .json
        """
        import yaml

        with open(config_path, "r") as f:
            if config_path.endswith((".yaml", ".yml")):
                data = yaml.safe_load(f)
            elif config_path.endswith(".json"):
                import json
                data = json.load(f)
            else:
                raise ValueError(f"Unsupported config format: {config_path}")

        return cls(**(data or {}))

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "VolumeConfig":
        """Load the config file (if any), then apply environment overrides."""
        base = cls.from_file(config_path) if config_path else None
        return cls.from_env(base)
