#!/usr/bin/env python3
"""
Block device queries for the resource-control benchmark orchestrator.

Everything is read from sysfs. The sysfs root can be overridden so the
lookups can run against a fake tree.
"""

import os
from pathlib import Path
from typing import Tuple

from infra.errors import DeviceResolutionError

SYSFS_ROOT = "/sys"
SECTOR_SIZE = 512


def read_sysfs_text(path: Path) -> str:
    """Read a sysfs attribute, stripped of surrounding whitespace."""
    return path.read_text().strip()


def path_to_devname(path: str, sys_root: str = SYSFS_ROOT) -> str:
    """
    Find the whole-disk block device backing a path.

    Args:
        path: Existing file or directory
        sys_root: sysfs mount point

    Returns:
        Device name, e.g. "nvme0n1"; partitions map to their parent disk

    Raises:
        DeviceResolutionError: If the device can't be determined
    """
    try:
        st_dev = os.stat(path).st_dev
    except OSError as e:
        raise DeviceResolutionError(f"failed to stat {path!r} ({e})") from e

    devnr = f"{os.major(st_dev)}:{os.minor(st_dev)}"
    link = Path(sys_root) / "dev" / "block" / devnr
    if not link.exists():
        raise DeviceResolutionError(f"no block device for {path!r} (device number {devnr})")

    real = Path(os.path.realpath(link))
    if (real / "partition").exists():
        real = real.parent
    return real.name


def devname_to_devnr(devname: str, sys_root: str = SYSFS_ROOT) -> Tuple[int, int]:
    """
    Look up the (major, minor) device number of a block device.

    Raises:
        DeviceResolutionError: If the device doesn't exist
    """
    path = Path(sys_root) / "class" / "block" / devname / "dev"
    try:
        major, minor = read_sysfs_text(path).split(":")
        return int(major), int(minor)
    except (OSError, ValueError) as e:
        raise DeviceResolutionError(f"failed to resolve device number for {devname!r} ({e})") from e


def devname_to_model_fwrev_size(devname: str, sys_root: str = SYSFS_ROOT) -> Tuple[str, str, int]:
    """
    Read the identity of a block device.

    NVMe devices expose the firmware revision as "firmware_rev", SCSI/ATA
    devices as "rev".

    Returns:
        (model, firmware revision, size in bytes)

    Raises:
        DeviceResolutionError: If any of the attributes can't be read
    """
    blk = Path(sys_root) / "block" / devname
    try:
        model = read_sysfs_text(blk / "device" / "model")
        fwrev_path = blk / "device" / "firmware_rev"
        if not fwrev_path.exists():
            fwrev_path = blk / "device" / "rev"
        fwrev = read_sysfs_text(fwrev_path)
        size = int(read_sysfs_text(blk / "size")) * SECTOR_SIZE
    except (OSError, ValueError) as e:
        raise DeviceResolutionError(
            f"failed to resolve model/fwrev/size for {devname!r} ({e})"
        ) from e
    return model, fwrev, size
