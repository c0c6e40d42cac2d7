#!/usr/bin/env python3
"""
Calibration data module for the resource-control benchmark orchestrator.

BenchKnobs is the device-specific calibration the agent consumes through
its bench file: the iocost cost model and QoS parameters, the identity of
the device they were measured on, and a sequence number the agent watches
to notice updated parameters.

IoCostSysSave is a snapshot of the iocost configuration the running kernel
currently applies to a device, read from the cgroup2 root.
"""

import re
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from infra.storage import read_json, write_json

CGROUP_ROOT = "/sys/fs/cgroup"


def _from_known_fields(cls, data: Dict[str, Any]):
    """Build a dataclass from a mapping, ignoring unknown keys."""
    if not isinstance(data, dict):
        raise ValueError(f"{cls.__name__} must be a mapping, got {type(data).__name__}")
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in names})


@dataclass
class IoCostModelParams:
    """io.cost.model parameters for the linear cost model."""
    ctrl: str = "auto"
    model: str = "linear"
    rbps: int = 0
    rseqiops: int = 0
    rrandiops: int = 0
    wbps: int = 0
    wseqiops: int = 0
    wrandiops: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IoCostModelParams":
        return _from_known_fields(cls, data)


@dataclass
class IoCostQoSParams:
    """io.cost.qos parameters; latencies in usecs, percentages 0-100."""
    enable: int = 0
    ctrl: str = "auto"
    rpct: float = 0.0
    rlat: int = 0
    wpct: float = 0.0
    wlat: int = 0
    min: float = 100.0
    max: float = 100.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IoCostQoSParams":
        return _from_known_fields(cls, data)


@dataclass
class IoCostKnobs:
    model: IoCostModelParams = field(default_factory=IoCostModelParams)
    qos: IoCostQoSParams = field(default_factory=IoCostQoSParams)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IoCostKnobs":
        return cls(
            model=IoCostModelParams.from_dict(data.get("model", {})),
            qos=IoCostQoSParams.from_dict(data.get("qos", {})),
        )


@dataclass
class BenchKnobs:
    """
    Calibration data stored in the agent's bench file.

    The device identity fields stay empty/zero until the first run validates
    them against the detected scratch device.
    """
    timestamp: Optional[str] = None
    hashd: Dict[str, Any] = field(default_factory=dict)
    iocost: IoCostKnobs = field(default_factory=IoCostKnobs)
    iocost_seq: int = 0
    iocost_dev_model: str = ""
    iocost_dev_fwrev: str = ""
    iocost_dev_size: int = 0

    @property
    def identity(self) -> Tuple[str, str, int]:
        return (self.iocost_dev_model, self.iocost_dev_fwrev, self.iocost_dev_size)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BenchKnobs":
        """
        Build knobs from the bench file's JSON form.

        Raises:
            ValueError: If the document isn't a mapping or has bad field types
        """
        if not isinstance(data, dict):
            raise ValueError(f"bench file must be a mapping, got {type(data).__name__}")
        return cls(
            timestamp=data.get("timestamp"),
            hashd=dict(data.get("hashd") or {}),
            iocost=IoCostKnobs.from_dict(data.get("iocost") or {}),
            iocost_seq=int(data.get("iocost_seq", 0)),
            iocost_dev_model=str(data.get("iocost_dev_model", "")),
            iocost_dev_fwrev=str(data.get("iocost_dev_fwrev", "")),
            iocost_dev_size=int(data.get("iocost_dev_size", 0)),
        )

    @classmethod
    def load(cls, path: Path) -> "BenchKnobs":
        """
        Load knobs from a bench file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            PersistenceError: If the file can't be read
            ValueError: If the content is malformed
        """
        return cls.from_dict(read_json(path))

    def save(self, path: Path) -> None:
        self.timestamp = datetime.now(timezone.utc).isoformat()
        write_json(path, self.to_dict())


_KV_RE = re.compile(r"(\S+)=(\S+)")


def _parse_cgroup_line(content: str, devnr: Tuple[int, int]) -> Optional[Dict[str, str]]:
    """Find the "MAJ:MIN key=val ..." line for a device."""
    prefix = f"{devnr[0]}:{devnr[1]}"
    for line in content.splitlines():
        parts = line.split(None, 1)
        if parts and parts[0] == prefix:
            return dict(_KV_RE.findall(parts[1] if len(parts) > 1 else ""))
    return None


def _coerce(cls, raw: Dict[str, str]):
    """Convert string values to the field types of a params dataclass."""
    out = {}
    for f in fields(cls):
        if f.name not in raw:
            continue
        val = raw[f.name]
        if f.type in (int, "int"):
            out[f.name] = int(float(val))
        elif f.type in (float, "float"):
            out[f.name] = float(val)
        else:
            out[f.name] = val
    return cls(**out)


@dataclass
class IoCostSysSave:
    """iocost configuration the kernel currently applies to one device."""
    enable: bool = False
    model: IoCostModelParams = field(default_factory=IoCostModelParams)
    qos: IoCostQoSParams = field(default_factory=IoCostQoSParams)

    @classmethod
    def read_from_sys(cls, devnr: Tuple[int, int], cgroup_root: str = CGROUP_ROOT) -> "IoCostSysSave":
        """
        Read io.cost.model and io.cost.qos for a device.

        A device without entries in either file is reported as disabled with
        default parameters.

        Args:
            devnr: (major, minor) device number
            cgroup_root: cgroup2 mount point

        Raises:
            OSError: If the files can't be read
            ValueError: If a value can't be parsed
        """
        root = Path(cgroup_root)
        model_kv = _parse_cgroup_line((root / "io.cost.model").read_text(), devnr)
        qos_kv = _parse_cgroup_line((root / "io.cost.qos").read_text(), devnr)

        snap = cls()
        if model_kv is not None:
            snap.model = _coerce(IoCostModelParams, model_kv)
        if qos_kv is not None:
            snap.qos = _coerce(IoCostQoSParams, qos_kv)
            snap.enable = snap.qos.enable != 0
        return snap
