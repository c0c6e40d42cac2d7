"""
Benchmark kind registry.

Each benchmark kind the agent knows how to run is described by a BenchDesc
carrying the capability flags the orchestrator checks when linking specs
and when formatting stored results. The registry is filled once at startup
by init_benchs() and only read afterwards.
"""

from dataclasses import dataclass
from typing import Dict, List

from infra.errors import UnknownKindError


@dataclass(frozen=True)
class BenchDesc:
    """Capabilities of one benchmark kind."""
    kind: str
    about: str = ""
    takes_run_props: bool = False       # accepts properties when running
    takes_format_props: bool = False    # accepts properties when formatting
    takes_format_propsets: bool = False # accepts multiple groups when formatting
    incremental: bool = False           # can continue from a previous result


BUILTIN_BENCHES = [
    BenchDesc(
        kind="iocost-params",
        about="Measure the iocost linear model parameters of the scratch device",
    ),
    BenchDesc(
        kind="hashd-params",
        about="Calibrate rd-hashd load parameters",
    ),
    BenchDesc(
        kind="storage",
        about="Measure memory footprint under storage pressure",
        takes_run_props=True,
    ),
    BenchDesc(
        kind="protection",
        about="Evaluate workload protection under interference",
        takes_run_props=True,
    ),
    BenchDesc(
        kind="iocost-qos",
        about="Run storage benches across iocost QoS configurations",
        takes_run_props=True,
        incremental=True,
    ),
    BenchDesc(
        kind="iocost-tune",
        about="Derive iocost QoS solutions from iocost-qos results",
        takes_run_props=True,
        takes_format_props=True,
        takes_format_propsets=True,
        incremental=True,
    ),
]

BENCH_KINDS: Dict[str, BenchDesc] = {}


def register_bench(desc: BenchDesc) -> None:
    """Add a benchmark kind to the registry, replacing any existing one."""
    BENCH_KINDS[desc.kind] = desc


def init_benchs() -> None:
    """Register the built-in benchmark kinds."""
    for desc in BUILTIN_BENCHES:
        register_bench(desc)


def find_bench(kind: str) -> BenchDesc:
    """
    Look up a benchmark kind.

    Raises:
        UnknownKindError: If the kind isn't registered
    """
    try:
        return BENCH_KINDS[kind]
    except KeyError:
        raise UnknownKindError(kind) from None


def get_supported_kinds() -> List[str]:
    return sorted(BENCH_KINDS.keys())
