"""
Shared fixtures: fake sysfs and cgroup trees for device and calibration tests.
"""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


def make_block_device(sys_root: Path, devname: str, devnr=(259, 0), model="Samsung SSD 970 EVO",
                      fwrev="2B2QEXE7", sectors=1953525168, fwrev_attr="firmware_rev") -> None:
    """Create the sysfs attributes of one block device under sys_root."""
    dev_dir = sys_root / "devices" / "virtual" / devname
    (dev_dir / "device").mkdir(parents=True)
    (dev_dir / "device" / "model").write_text(f"{model}   \n")
    (dev_dir / "device" / fwrev_attr).write_text(f"{fwrev}\n")
    (dev_dir / "size").write_text(f"{sectors}\n")
    (dev_dir / "dev").write_text(f"{devnr[0]}:{devnr[1]}\n")

    for sub in ("block", "class/block"):
        (sys_root / sub).mkdir(parents=True, exist_ok=True)
        (sys_root / sub / devname).symlink_to(dev_dir)


@pytest.fixture
def fake_sysfs(tmp_path):
    """A sysfs tree holding nvme0n1 (259:0)."""
    sys_root = tmp_path / "sys"
    make_block_device(sys_root, "nvme0n1")
    return sys_root


@pytest.fixture
def fake_cgroup(tmp_path):
    """A cgroup2 root with iocost enabled for 259:0 only."""
    root = tmp_path / "cgroup"
    root.mkdir()
    (root / "io.cost.model").write_text(
        "8:0 ctrl=auto model=linear rbps=174019176 rseqiops=41708 rrandiops=370 "
        "wbps=178075866 wseqiops=42705 wrandiops=378\n"
        "259:0 ctrl=user model=linear rbps=2706339840 rseqiops=89698 rrandiops=110036 "
        "wbps=1063126016 wseqiops=135560 wrandiops=130734\n"
    )
    (root / "io.cost.qos").write_text(
        "8:0 enable=0 ctrl=auto rpct=0.00 rlat=250000 wpct=0.00 wlat=250000 min=1.00 max=10000.00\n"
        "259:0 enable=1 ctrl=user rpct=95.00 rlat=5000 wpct=95.00 wlat=5000 min=50.00 max=150.00\n"
    )
    return root
