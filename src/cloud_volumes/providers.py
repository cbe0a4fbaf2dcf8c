"""
Provider and hypervisor variant policies.

Each cloud or hypervisor that needs special handling (device naming,
minimum sizes, device holes, volume types) is described once here and
looked up by identifier.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from cloud_volumes.types import VolumeStatus

# Statuses that mean a freshly created volume is ready
DEFAULT_CREATED_STATUSES = (VolumeStatus.AVAILABLE.value, VolumeStatus.PROVISIONED.value)


@dataclass(frozen=True)
class ProviderPolicy:
    """
    Cloud provider specific behaviour.

    Attributes:
        name: Provider identifier
        min_volume_size_gb: Smallest volume the provider accepts
        device_exclusions: Device letters that are never handed out
        seed_past_boot_range: Start allocation after /dev/sde when only
            the boot range (a-d) is in use
        hvm_legacy_prefix: Device prefix seen on HVM images (e.g. "hd")
        hvm_prefix: Prefix volumes actually get on HVM images (e.g. "xvd")
        hvm_min_letter: Allocation never starts before this letter on HVM
        volume_type_selection: "by_name", "closest_size" or None
        created_statuses: Statuses that end the create wait
    """

    name: str
    min_volume_size_gb: int = 1
    device_exclusions: Tuple[str, ...] = ()
    seed_past_boot_range: bool = False
    hvm_legacy_prefix: Optional[str] = None
    hvm_prefix: Optional[str] = None
    hvm_min_letter: Optional[str] = None
    volume_type_selection: Optional[str] = None
    created_statuses: Tuple[str, ...] = DEFAULT_CREATED_STATUSES


@dataclass(frozen=True)
class HypervisorPolicy:
    """
    Hypervisor specific behaviour.

    Attributes:
        name: Virtualization system identifier
        uses_lun_numbers: Attachments are addressed by LUN rather than device name
    """

    name: str
    uses_lun_numbers: bool = False


GENERIC_PROVIDER = ProviderPolicy(name="generic")

PROVIDER_POLICIES: Dict[str, ProviderPolicy] = {
    # AWS recommends /dev/sd[f-p] for EBS volumes; HVM roots show up as hda
    "ec2": ProviderPolicy(
        name="ec2",
        seed_past_boot_range=True,
        hvm_legacy_prefix="hd",
        hvm_prefix="xvd",
        hvm_min_letter="e",
    ),
    # /dev/xvdd is the XenServer tools CD-ROM
    "cloudstack": ProviderPolicy(
        name="cloudstack",
        device_exclusions=("d",),
        volume_type_selection="closest_size",
    ),
    "rackspace-ng": ProviderPolicy(
        name="rackspace-ng",
        min_volume_size_gb=100,
        volume_type_selection="by_name",
    ),
}

GENERIC_HYPERVISOR = HypervisorPolicy(name="generic")

HYPERVISOR_POLICIES: Dict[str, HypervisorPolicy] = {
    # Azure / Hyper-V / VirtualPC
    "virtualpc": HypervisorPolicy(name="virtualpc", uses_lun_numbers=True),
}


def get_provider_policy(provider: Optional[str]) -> ProviderPolicy:
    """Return the policy for a cloud provider (generic when unknown)."""
    if not provider:
        return GENERIC_PROVIDER
    return PROVIDER_POLICIES.get(provider, GENERIC_PROVIDER)


def get_hypervisor_policy(hypervisor: Optional[str]) -> HypervisorPolicy:
    """Return the policy for a hypervisor (generic when unknown)."""
    if not hypervisor:
        return GENERIC_HYPERVISOR
    return HYPERVISOR_POLICIES.get(hypervisor, GENERIC_HYPERVISOR)


__all__ = [
    "ProviderPolicy",
    "HypervisorPolicy",
    "PROVIDER_POLICIES",
    "HYPERVISOR_POLICIES",
    "get_provider_policy",
    "get_hypervisor_policy",
]
