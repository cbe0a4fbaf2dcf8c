"""
Unit tests for device path allocation.
"""

import pytest

from cloud_volumes.devices.allocator import DeviceAllocator, lowest_free_lun, next_suffix
from cloud_volumes.errors import InvalidRequestError, UnknownDeviceSchemeError
from cloud_volumes.providers import get_provider_policy


class TestNextSuffix:
    """Tests for letter suffix succession."""

    @pytest.mark.parametrize(
        "suffix,expected",
        [("a", "b"), ("f", "g"), ("z", "aa"), ("az", "ba"), ("zz", "aaa")],
    )
    def test_next_suffix(self, suffix, expected):
        assert next_suffix(suffix) == expected


class TestLetteredDevices:
    """Tests for /dev/sdX style names."""

    def test_next_after_highest(self):
        allocator = DeviceAllocator()

        assert allocator.next_devices(["/dev/sda", "/dev/sdb"], 1, exclusions=[]) == ["/dev/sdc"]

    def test_multiple_devices(self):
        allocator = DeviceAllocator()

        assert allocator.next_devices(["/dev/xvda", "/dev/xvdf"], 3) == [
            "/dev/xvdg",
            "/dev/xvdh",
            "/dev/xvdi",
        ]

    def test_rolls_over_to_two_letters(self):
        allocator = DeviceAllocator()

        assert allocator.next_devices(["/dev/sda", "/dev/sdz"], 2) == ["/dev/sdaa", "/dev/sdab"]

    def test_highest_compares_by_length(self):
        allocator = DeviceAllocator()

        assert allocator.next_devices(["/dev/sda", "/dev/sdz", "/dev/sdaa"], 1) == ["/dev/sdab"]

    def test_explicit_exclusions(self):
        allocator = DeviceAllocator()

        assert allocator.next_devices(["/dev/sda", "/dev/sdb"], 2, exclusions=["c", "e"]) == [
            "/dev/sdd",
            "/dev/sdf",
        ]

    def test_count_zero(self):
        assert DeviceAllocator().next_devices(["/dev/sda"], 0) == []

    def test_deterministic(self):
        allocator = DeviceAllocator(get_provider_policy("ec2"))
        devices = ["/dev/xvda", "/dev/xvdb"]

        assert allocator.next_devices(devices, 2) == allocator.next_devices(devices, 2)

    def test_runs_out_of_names(self):
        allocator = DeviceAllocator()

        with pytest.raises(InvalidRequestError):
            allocator.next_devices(["/dev/sda", "/dev/sdzzz"], 1)


class TestProviderPolicies:
    """Tests for provider specific allocation."""

    def test_ec2_seeds_past_boot_range(self):
        allocator = DeviceAllocator(get_provider_policy("ec2"))
        devices = ["/dev/sda", "/dev/sdb", "/dev/sdc", "/dev/sdd"]

        assert allocator.next_devices(devices, 1) == ["/dev/sdf"]

    def test_ec2_xen_boot_range(self):
        allocator = DeviceAllocator(get_provider_policy("ec2"))

        assert allocator.next_devices(["/dev/xvda", "/dev/xvdb"], 1) == ["/dev/xvdf"]

    def test_ec2_beyond_boot_range(self):
        allocator = DeviceAllocator(get_provider_policy("ec2"))

        assert allocator.next_devices(["/dev/sda", "/dev/sdf"], 1) == ["/dev/sdg"]

    def test_generic_does_not_seed(self):
        allocator = DeviceAllocator()

        assert allocator.next_devices(["/dev/sda", "/dev/sdd"], 1) == ["/dev/sde"]

    def test_ec2_hvm_remaps_prefix(self):
        allocator = DeviceAllocator(get_provider_policy("ec2"))

        assert allocator.next_devices(["/dev/hda"], 1) == ["/dev/xvdf"]

    def test_ec2_hvm_keeps_higher_existing(self):
        allocator = DeviceAllocator(get_provider_policy("ec2"))

        assert allocator.next_devices(["/dev/hda", "/dev/xvdg"], 1) == ["/dev/xvdh"]

    def test_cloudstack_skips_cdrom(self):
        allocator = DeviceAllocator(get_provider_policy("cloudstack"))

        assert allocator.next_devices(["/dev/xvda", "/dev/xvdb"], 3) == [
            "/dev/xvdc",
            "/dev/xvde",
            "/dev/xvdf",
        ]


class TestNumberedDevices:
    """Tests for /dev/xvdN style names."""

    def test_next_numbers(self):
        allocator = DeviceAllocator()

        assert allocator.next_devices(["/dev/xvd1", "/dev/xvd2"], 2) == ["/dev/xvd3", "/dev/xvd4"]

    def test_highest_is_numeric(self):
        allocator = DeviceAllocator()

        assert allocator.next_devices(["/dev/xvd2", "/dev/xvd10"], 1) == ["/dev/xvd11"]


class TestUnknownScheme:
    """Tests for unrecognised device names."""

    def test_unknown_names(self):
        with pytest.raises(UnknownDeviceSchemeError) as exc_info:
            DeviceAllocator().next_devices(["/dev/nvme0n1"], 1)

        assert exc_info.value.device == "/dev/nvme0n1"

    def test_no_devices(self):
        with pytest.raises(UnknownDeviceSchemeError):
            DeviceAllocator().next_devices([], 1)


class TestLowestFreeLun:
    """Tests for LUN numbering."""

    def test_empty(self):
        assert lowest_free_lun([]) == 0

    def test_fills_hole(self):
        assert lowest_free_lun(["0", "1", "3"]) == 2

    def test_non_numeric_counts_as_zero(self):
        assert lowest_free_lun(["/dev/sdc"]) == 1
