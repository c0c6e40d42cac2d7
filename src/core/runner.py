#!/usr/bin/env python3
"""
Single job execution.

RunCtx drives one job through the agent: publish the current calibration
through the bench file, run the job, then fold the result back into the
shared job store and the calibration data so later jobs in the same
invocation see it.
"""

import logging
from pathlib import Path
from typing import Optional

from core.jobs import JobCtx, SharedJobCtxs
from infra.agent import AgentCommunicator
from infra.errors import AgentProcessFailure, PersistenceError
from models.args import Args
from models.calibration import BenchKnobs

logger = logging.getLogger(__name__)


class RunCtx:
    """Runs one job against the agent."""

    def __init__(
        self,
        args: Args,
        base_bench: BenchKnobs,
        jobs: SharedJobCtxs,
        agent: AgentCommunicator,
    ):
        self.args = args
        self.base_bench = base_bench
        self.jobs = jobs
        self.agent = agent

    @property
    def bench_path(self) -> Path:
        return self.args.demo_bench_path()

    @property
    def result_path(self) -> Optional[Path]:
        return Path(self.args.result) if self.args.result else None

    def run_jctx(self, jctx: JobCtx) -> JobCtx:
        """
        Run a job and record its result.

        Raises:
            AgentProcessFailure: If the agent fails; the job is marked failed
                and nothing is written back
            PersistenceError: If the bench or result file can't be written
        """
        incremental = self.args.incremental and jctx.desc.incremental and jctx.prev_result is not None
        if incremental:
            logger.info(f"Continuing {jctx.spec} incrementally from the previous result")

        self.base_bench.save(self.bench_path)

        logger.info(f"Running {jctx.spec}")
        jctx.mark_running()
        try:
            reply = self.agent.run_job(jctx.spec, incremental=incremental, prev_result=jctx.prev_result)
        except AgentProcessFailure:
            jctx.mark_failed()
            raise

        jctx.record(reply.result)

        if reply.calibration is not None:
            try:
                updated = BenchKnobs.from_dict(reply.calibration)
            except (TypeError, ValueError) as e:
                raise AgentProcessFailure(f"malformed calibration in agent reply ({e})") from e
            self.base_bench = updated
            self.base_bench.save(self.bench_path)
            logger.debug(f"Calibration updated by {jctx.spec} (iocost_seq={self.base_bench.iocost_seq})")

        with self.jobs.borrow() as jobs:
            jobs.replace_or_append(jctx)
            if self.result_path is not None:
                try:
                    jobs.save(self.result_path)
                except PersistenceError as e:
                    raise PersistenceError(f"failed to save results ({e})") from e

        logger.info(f"Finished {jctx.spec}")
        return jctx
