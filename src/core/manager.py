#!/usr/bin/env python3
"""
Manager module for the resource-control benchmark orchestrator.

The Program class sequences one invocation:
1. Load the existing result file into the job store
2. run: resolve the scratch device and prepare calibration data
3. run: link the requested job specs to their benchmark kinds
4. run: have the agent clean up expired report files
5. run: execute the jobs one by one, saving results after each
6. format/summary: render stored results
7. Commit updated base arguments

Any error touching result correctness propagates and aborts the whole
invocation. Only report cleanup failures are downgraded to warnings.
"""

import logging
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from core.calibration import prepare, resolve_scratch_device
from core.jobs import JobCtx, JobCtxs, SharedJobCtxs
from core.runner import RunCtx
from infra.agent import AgentCommunicator, AgentConfig
from infra.devices import SYSFS_ROOT, devname_to_devnr
from infra.errors import (
    AgentProcessFailure,
    FormatCompatibilityError,
    NoMatchingResultError,
    PersistenceError,
)
from models.args import RB_BENCH_FILENAME, Args, Mode
from models.calibration import CGROUP_ROOT, BenchKnobs, IoCostSysSave
from models.jobspec import PropGroup
from reporting.formatter import render_jctx

logger = logging.getLogger(__name__)


def make_agent_config(args: Args, bin_path: Optional[str]) -> AgentConfig:
    return AgentConfig(
        bin_path=bin_path,
        dir=args.dir,
        bench_file=RB_BENCH_FILENAME,
        systemd_timeout=args.systemd_timeout,
        dev=args.dev,
        linux_tar=args.linux_tar,
    )


class Program:
    """
    One orchestrator invocation.

    Args are read-only for the lifetime of the program. The calibration data
    is owned here and lent to each job run; the job store is shared with the
    runs behind a lock.
    """

    def __init__(
        self,
        args: Args,
        agent_bin: Optional[str],
        args_path: Optional[str] = None,
        args_updated: bool = False,
        sys_root: str = SYSFS_ROOT,
        cgroup_root: str = CGROUP_ROOT,
        output: Callable[[str], None] = print,
    ):
        self.args = args
        self.args_path = args_path
        self.args_updated = args_updated
        self.agent = AgentCommunicator(make_agent_config(args, agent_bin))
        self.jobs = SharedJobCtxs()
        self.base_bench = BenchKnobs()
        self.sys_root = sys_root
        self.cgroup_root = cgroup_root
        self.output = output

    def load_results(self) -> None:
        """
        Load the existing result file, if any, into the job store.

        Raises:
            PersistenceError: If the file exists but can't be loaded
        """
        if not self.args.result or not Path(self.args.result).exists():
            return
        try:
            jobs = JobCtxs.load(Path(self.args.result))
        except PersistenceError as e:
            raise PersistenceError(
                f"failed to load existing result file {self.args.result!r} ({e})"
            ) from e
        logger.debug(f"Loaded {len(jobs)} entries from result file")
        self.jobs.replace(jobs)

    def commit_args(self) -> None:
        """
        Save command-line changes back to the base-arguments file.

        Raises:
            PersistenceError: If the file can't be written
        """
        if not self.args_updated or not self.args_path:
            return
        try:
            self.args.save(self.args_path)
        except PersistenceError as e:
            raise PersistenceError(f"failed to update args file ({e})") from e
        logger.debug(f"Updated args file {self.args_path!r}")

    def clean_up_report_files(self) -> None:
        """Expire old agent reports; failure only warrants a warning."""
        try:
            self.agent.clean_up_report_files(self.args.rep_retention, reset=self.args.clear_reports)
        except AgentProcessFailure as e:
            logger.warning(f"Failed to clean up report files ({e})")

    def prep_base_bench(self) -> BenchKnobs:
        """
        Resolve the scratch device and validate calibration data for it.

        Raises:
            DeviceResolutionError, DeviceMismatchError,
            LiveIoCostUnavailableError: On any negotiation failure
        """
        devname = resolve_scratch_device(self.args.dev, self.args.scratch_path(), sys_root=self.sys_root)
        devnr = devname_to_devnr(devname, sys_root=self.sys_root)
        try:
            live = IoCostSysSave.read_from_sys(devnr, cgroup_root=self.cgroup_root)
        except (OSError, ValueError) as e:
            if self.args.iocost_from_sys:
                raise PersistenceError(f"failed to read iocost.model,qos ({e})") from e
            logger.debug(f"Can't read iocost.model,qos ({e})")
            live = IoCostSysSave()

        logger.info(f"Scratch device: {devname} ({devnr[0]}:{devnr[1]})")
        return prepare(
            devname,
            live,
            self.args.iocost_from_sys,
            self.args.demo_bench_path(),
            sys_root=self.sys_root,
        )

    def collect_pending(self) -> JobCtxs:
        """
        Link every requested spec, snapshotting prior results.

        Raises:
            UnknownKindError, ParseError: On the first spec that can't be linked
        """
        pending = JobCtxs()
        with self.jobs.borrow() as jobs:
            for spec in self.args.job_specs:
                pending.vec.append(jobs.link(spec))
            logger.debug(
                f"job_ids: pending={pending.format_ids()} prev={jobs.format_ids()}"
            )
        return pending

    def do_run(self) -> None:
        self.base_bench = self.prep_base_bench()

        pending = self.collect_pending()
        logger.debug(f"job_ctxs: nr_to_run={len(pending)}")

        if len(pending) > 0 and not self.args.keep_reports:
            self.clean_up_report_files()

        rctx = RunCtx(self.args, self.base_bench, self.jobs, self.agent)
        for jctx in pending:
            rctx.run_jctx(jctx)
            self.base_bench = rctx.base_bench

        self.commit_args()

    def select_for_format(self) -> List[Tuple[JobCtx, List[PropGroup]]]:
        """
        Pick the stored jobs to render and the property groups for each.

        Without specs every stored job is rendered once, in stored order.

        Raises:
            NoMatchingResultError: If a requested spec has no stored result
            FormatCompatibilityError: If the kind can't take the requested
                properties
        """
        jctxs = self.jobs.take()
        specs = self.args.format_specs
        empty_props: List[PropGroup] = [{}]

        if not specs:
            return [(jctx, empty_props) for jctx in jctxs]

        to_format = []
        for spec in specs:
            jctx = jctxs.pop_matching(spec)
            if jctx is None:
                raise NoMatchingResultError(f"No matching result for {spec}")

            desc = jctx.desc
            if not desc.takes_format_props and spec.has_props():
                raise FormatCompatibilityError(
                    f"Unknown properties specified for formatting {jctx.spec}"
                )
            if not desc.takes_format_propsets and len(spec.props) > 1:
                raise FormatCompatibilityError(
                    f"Multiple property sets not supported for formatting {jctx.spec}"
                )
            to_format.append((jctx, spec.props))
        return to_format

    def do_format(self, mode: Mode) -> None:
        for jctx, props in self.select_for_format():
            for group in props:
                self.output(render_jctx(jctx, mode, group))
        self.commit_args()

    def main(self) -> None:
        self.load_results()
        if self.args.mode == Mode.RUN:
            self.do_run()
        else:
            self.do_format(self.args.mode)
