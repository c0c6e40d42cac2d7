#!/usr/bin/env python3
"""
Device and calibration negotiation.

Before any benchmark runs, the scratch device is resolved and the stored
calibration data is checked against the device actually present. Applying
one device's cost model to different hardware silently produces bogus
results, so any identity mismatch is fatal. A missing or corrupt calibration
file only means starting from defaults.
"""

import logging
from pathlib import Path
from typing import Optional, Tuple

from infra.devices import SYSFS_ROOT, devname_to_model_fwrev_size, path_to_devname
from infra.errors import (
    DeviceMismatchError,
    DeviceResolutionError,
    LiveIoCostUnavailableError,
    PersistenceError,
)
from models.calibration import BenchKnobs, IoCostSysSave

logger = logging.getLogger(__name__)


def resolve_scratch_device(
    dev_override: Optional[str],
    scratch_path: Path,
    sys_root: str = SYSFS_ROOT,
) -> str:
    """
    Determine which block device benchmarks will hit.

    Args:
        dev_override: Explicit device name (e.g. "nvme0n1"), used as-is
        scratch_path: Scratch directory; it doesn't need to exist yet
        sys_root: sysfs mount point

    Returns:
        Device name

    Raises:
        DeviceResolutionError: If no ancestor of scratch_path exists or the
            backing device can't be determined
    """
    if dev_override:
        return dev_override

    path = Path(scratch_path)
    while not path.exists():
        if path.parent == path:
            raise DeviceResolutionError(
                f"failed to find existing ancestor dir for scratch path {str(scratch_path)!r}"
            )
        path = path.parent

    return path_to_devname(str(path), sys_root=sys_root)


def load_bench_knobs(bench_path: Path) -> BenchKnobs:
    """Load calibration data, falling back to defaults if it's unusable."""
    try:
        return BenchKnobs.load(bench_path)
    except FileNotFoundError:
        return BenchKnobs()
    except (PersistenceError, ValueError, TypeError) as e:
        logger.warning(f"Failed to load {str(bench_path)!r} ({e}), remove the file")
        return BenchKnobs()


def check_identity(bench: BenchKnobs, identity: Tuple[str, str, int]) -> None:
    """
    Verify stored device identity against the detected one.

    Empty/zero stored fields haven't been recorded yet and always pass.

    Raises:
        DeviceMismatchError: On the first mismatching field
    """
    dev_model, dev_fwrev, dev_size = identity
    if bench.iocost_dev_model and bench.iocost_dev_model != dev_model:
        raise DeviceMismatchError("model", bench.iocost_dev_model, dev_model)
    if bench.iocost_dev_fwrev and bench.iocost_dev_fwrev != dev_fwrev:
        raise DeviceMismatchError("firmware revision", bench.iocost_dev_fwrev, dev_fwrev)
    if bench.iocost_dev_size > 0 and bench.iocost_dev_size != dev_size:
        raise DeviceMismatchError("size", bench.iocost_dev_size, dev_size)


def apply_identity(
    bench: BenchKnobs,
    identity: Tuple[str, str, int],
    live: IoCostSysSave,
    use_live: bool,
    devname: str = "",
) -> BenchKnobs:
    """
    Validate and update calibration data for the detected device.

    The passed-in knobs are only modified once every check has passed.

    Raises:
        DeviceMismatchError: If stored identity doesn't match
        LiveIoCostUnavailableError: If use_live but iocost is disabled
    """
    check_identity(bench, identity)
    if use_live and not live.enable:
        raise LiveIoCostUnavailableError(
            f"--iocost-from-sys specified but iocost is disabled for {devname!r}"
        )

    bench.iocost_dev_model, bench.iocost_dev_fwrev, bench.iocost_dev_size = identity

    if use_live:
        bench.iocost_seq += 1
        bench.iocost.model = live.model
        bench.iocost.qos = live.qos
        logger.info("Using iocost parameters from \"/sys/fs/cgroup/io.cost.model,qos\"")
    return bench


def prepare(
    devname: str,
    live: IoCostSysSave,
    use_live: bool,
    bench_path: Path,
    sys_root: str = SYSFS_ROOT,
) -> BenchKnobs:
    """
    Produce validated calibration data for a scratch device.

    Args:
        devname: Scratch device name
        live: iocost parameters the kernel currently applies to the device
        use_live: Take model/QoS from live instead of the bench file
        bench_path: Persisted calibration file
        sys_root: sysfs mount point

    Returns:
        Calibration data with the detected identity recorded

    Raises:
        DeviceResolutionError: If the device identity can't be read
        DeviceMismatchError: If the stored identity belongs to another device
        LiveIoCostUnavailableError: If use_live but iocost is disabled
    """
    identity = devname_to_model_fwrev_size(devname, sys_root=sys_root)
    bench = load_bench_knobs(bench_path)
    apply_identity(bench, identity, live, use_live, devname=devname)
    if not use_live:
        logger.info(f"Using iocost parameters from {str(bench_path)!r}")
    return bench
