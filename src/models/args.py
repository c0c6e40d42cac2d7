#!/usr/bin/env python3
"""
Top-level arguments for the resource-control benchmark orchestrator.

Args are assembled from three layers: built-in defaults, an optional
base-arguments file (YAML or JSON), and the command line. Options given on
the command line mark the arguments as updated so they can be written back
to the base-arguments file once the invocation succeeds.

Job files use the same format as base-arguments files; only their
"job_specs" list is used.
"""

import argparse
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from infra.errors import ParseError, PersistenceError
from infra.storage import is_yaml_path, read_yaml, write_json, write_yaml
from models.jobspec import JobSpec, parse_job_spec

DEFAULT_DIR = "/var/lib/resctl-demo"
DEFAULT_REP_RETENTION = 24 * 3600
DEFAULT_SYSTEMD_TIMEOUT = 120.0
RB_BENCH_FILENAME = "rb-bench.json"


class Mode(str, Enum):
    RUN = "run"
    FORMAT = "format"
    SUMMARY = "summary"


def parse_job_spec_entry(entry: Any) -> JobSpec:
    """
    Convert one job_specs entry (spec string or mapping) into a JobSpec.

    Raises:
        ParseError: If the entry is malformed
    """
    if isinstance(entry, str):
        return parse_job_spec(entry)
    try:
        return JobSpec.from_dict(entry)
    except ValueError as e:
        raise ParseError(str(entry), str(e)) from e


@dataclass
class Args:
    """Resolved top-level configuration."""

    dir: str = DEFAULT_DIR
    dev: Optional[str] = None
    linux_tar: Optional[str] = None
    result: Optional[str] = None
    rep_retention: int = DEFAULT_REP_RETENTION
    systemd_timeout: float = DEFAULT_SYSTEMD_TIMEOUT
    job_specs: List[JobSpec] = field(default_factory=list)

    # Per-invocation, never persisted
    mode: Mode = Mode.RUN
    incremental: bool = False
    keep_reports: bool = False
    clear_reports: bool = False
    iocost_from_sys: bool = False
    verbosity: int = 0
    format_specs: List[JobSpec] = field(default_factory=list)

    PERSISTED = ("dir", "dev", "linux_tar", "result", "rep_retention", "systemd_timeout")
    OPTIONAL_PATHS = ("dev", "linux_tar", "result")

    def demo_bench_path(self) -> Path:
        return Path(self.dir) / RB_BENCH_FILENAME

    def scratch_path(self) -> Path:
        return Path(self.dir) / "scratch"

    def to_dict(self) -> Dict[str, Any]:
        out = {name: getattr(self, name) for name in self.PERSISTED}
        out["job_specs"] = [spec.to_dict() for spec in self.job_specs]
        return out

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], source: Optional[str] = None) -> "Args":
        """
        Build Args from a loaded document; missing keys keep their defaults.

        Raises:
            ParseError: If the document or one of its job specs is malformed
        """
        args = cls()
        if data is None:
            return args
        if not isinstance(data, dict):
            raise ParseError(str(source), "arguments file must hold a mapping", source="file")

        for name in cls.PERSISTED:
            if name in data:
                setattr(args, name, data[name])
        for name in cls.OPTIONAL_PATHS:
            if getattr(args, name) == "":
                setattr(args, name, None)
        try:
            args.rep_retention = int(args.rep_retention)
            args.systemd_timeout = float(args.systemd_timeout)
        except (TypeError, ValueError) as e:
            raise ParseError(str(source), f"invalid value ({e})", source="file") from e

        specs = data.get("job_specs") or []
        if not isinstance(specs, list):
            raise ParseError(str(source), "\"job_specs\" must be a list", source="file")
        args.job_specs = [parse_job_spec_entry(entry) for entry in specs]
        return args

    @classmethod
    def load(cls, path: str) -> "Args":
        """
        Load a base-arguments or job file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            PersistenceError: If it can't be read or isn't valid YAML/JSON
            ParseError: If its content is malformed
        """
        return cls.from_dict(read_yaml(path), source=path)

    def save(self, path: str) -> None:
        if is_yaml_path(path):
            write_yaml(path, self.to_dict())
        else:
            write_json(path, self.to_dict())


def load_jobfile(fname: str) -> List[JobSpec]:
    return Args.load(fname).job_specs


def split_run_tokens(tokens: List[str]) -> Tuple[List[Tuple[str, str]], List[str]]:
    """
    Split the run subcommand's arguments into ordered job sources.

    "-j FILE", "-jFILE", "--job FILE" and "--job=FILE" name job files; every
    other token is a job spec. Everything after "--" is a job spec.

    Returns:
        ([("jobfile"|"spec", value), ...] in command-line order, [errors])
    """
    sources: List[Tuple[str, str]] = []
    errors: List[str] = []
    idx = 0
    only_specs = False
    while idx < len(tokens):
        tok = tokens[idx]
        idx += 1
        if only_specs:
            sources.append(("spec", tok))
        elif tok == "--":
            only_specs = True
        elif tok in ("-j", "--job"):
            if idx >= len(tokens):
                errors.append(f"{tok} requires a job file argument")
                break
            sources.append(("jobfile", tokens[idx]))
            idx += 1
        elif tok.startswith("--job="):
            sources.append(("jobfile", tok[len("--job="):]))
        elif tok.startswith("-j") and not tok.startswith("--"):
            sources.append(("jobfile", tok[2:]))
        elif tok.startswith("-") and len(tok) > 1:
            errors.append(f"unrecognized run option {tok!r}")
        else:
            sources.append(("spec", tok))
    return sources, errors


def collect_job_specs(sources: List[Tuple[str, str]]) -> Tuple[List[JobSpec], List[ParseError]]:
    """
    Parse every job source, keeping command-line order.

    All sources are attempted so every malformed input is reported in one
    pass.

    Returns:
        (specs in command-line order, accumulated errors)
    """
    specs: List[JobSpec] = []
    errors: List[ParseError] = []
    for kind, value in sources:
        try:
            if kind == "spec":
                specs.append(parse_job_spec(value))
            else:
                specs.extend(load_jobfile(value))
        except ParseError as e:
            if e.source is None:
                e = ParseError(e.text, e.reason, source=kind)
            errors.append(e)
        except FileNotFoundError as e:
            errors.append(ParseError(value, f"not found ({e.strerror})", source=kind))
        except PersistenceError as e:
            errors.append(ParseError(value, str(e), source=kind))
    return specs, errors


def process_cmdline(args: Args, ns: argparse.Namespace) -> Tuple[bool, List[ParseError]]:
    """
    Apply parsed command-line options on top of Args.

    An empty value resets the option to its default.

    Returns:
        (whether persisted fields changed, parse errors)
    """
    dfl = Args()
    updated = False
    errors: List[ParseError] = []

    if ns.dir is not None:
        args.dir = ns.dir or dfl.dir
        updated = True
    if ns.dev is not None:
        args.dev = ns.dev or None
        updated = True
    if ns.linux is not None:
        args.linux_tar = ns.linux or None
        updated = True
    if ns.result is not None:
        args.result = ns.result or None
        updated = True
    if ns.rep_retention is not None:
        try:
            args.rep_retention = int(ns.rep_retention) if ns.rep_retention else dfl.rep_retention
        except ValueError:
            errors.append(ParseError(ns.rep_retention, "invalid retention", source="--rep-retention"))
        else:
            updated = True
    if ns.systemd_timeout is not None:
        try:
            args.systemd_timeout = float(ns.systemd_timeout) if ns.systemd_timeout else dfl.systemd_timeout
        except ValueError:
            errors.append(ParseError(ns.systemd_timeout, "invalid timeout", source="--systemd-timeout"))
        else:
            updated = True

    args.incremental = ns.incremental
    args.keep_reports = ns.keep_reports
    args.clear_reports = ns.clear_reports
    args.iocost_from_sys = ns.iocost_from_sys
    args.verbosity = ns.verbose
    args.mode = Mode(ns.mode or Mode.RUN.value)

    if args.mode == Mode.RUN:
        sources, tok_errors = split_run_tokens(getattr(ns, "run_args", None) or [])
        errors.extend(ParseError(" ".join(ns.run_args), msg, source="run") for msg in tok_errors)
        specs, spec_errors = collect_job_specs(sources)
        errors.extend(spec_errors)
        if sources and not errors:
            args.job_specs = specs
            updated = True
    else:
        specs, spec_errors = collect_job_specs([("spec", s) for s in ns.specs])
        errors.extend(spec_errors)
        args.format_specs = specs

    return updated, errors
