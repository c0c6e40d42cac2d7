#!/usr/bin/env python3
"""
Agent module for the resource-control benchmark orchestrator.

The resource-control agent (rd-agent) is an external, stateful process that
manipulates cgroups and systemd units and runs the actual workloads. This
module is the only place that knows its command-line contract:

- housekeeping: one bypass+prepare invocation that expires report files
- job execution: one invocation per job; the job request goes to the
  agent's stdin as JSON and the agent answers with a JSON document on
  stdout when the benchmark has finished

Every call blocks until the agent exits.
"""

import json
import logging
import os
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from infra.errors import AgentProcessFailure
from models.jobspec import JobSpec

logger = logging.getLogger(__name__)

AGENT_BIN_NAME = "rd-agent"
AGENT_BIN_ENV = "RCBENCH_AGENT_BIN"
# Skips the agent's linux source tarball download
LINUX_TAR_SKIP = "__SKIP__"
# rd-agent's own default retention for 1min reports
AGENT_DEFAULT_REP_1MIN_RETENTION = 24 * 3600


def find_agent_bin(exe_dir: Optional[str] = None) -> Optional[str]:
    """
    Locate the agent binary.

    Lookup order: $RCBENCH_AGENT_BIN, next to the running executable, $PATH.

    Returns:
        Path to the binary, or None if it can't be found
    """
    env_bin = os.environ.get(AGENT_BIN_ENV)
    if env_bin:
        return env_bin

    if exe_dir is None:
        exe_dir = os.path.dirname(os.path.abspath(sys.argv[0]))
    candidate = Path(exe_dir) / AGENT_BIN_NAME
    if candidate.is_file() and os.access(candidate, os.X_OK):
        return str(candidate)

    return shutil.which(AGENT_BIN_NAME)


@dataclass(frozen=True)
class AgentConfig:
    """Agent settings resolved once at startup."""
    bin_path: Optional[str]
    dir: str
    bench_file: str
    systemd_timeout: float
    dev: Optional[str] = None
    linux_tar: Optional[str] = None

    def base_args(self) -> List[str]:
        args = [
            "--dir", self.dir,
            "--bench-file", self.bench_file,
            "--force",
            "--force-running",
            "--systemd-timeout", f"{self.systemd_timeout}",
        ]
        if self.dev is not None:
            args += ["--dev", self.dev]
        return args


@dataclass
class AgentReply:
    """Decoded reply of a job execution."""
    status: str
    result: Any = None
    error: Optional[str] = None
    calibration: Optional[Dict[str, Any]] = None

    @property
    def success(self) -> bool:
        return self.status == "done"


def coarse_retention(rep_retention: int) -> int:
    """Retention for 1min reports: never shorter than the 1s retention."""
    return max(rep_retention, AGENT_DEFAULT_REP_1MIN_RETENTION)


class AgentCommunicator:
    """Runs the resource-control agent as a local subprocess."""

    def __init__(self, config: AgentConfig):
        self.config = config

    def _bin(self) -> str:
        if not self.config.bin_path:
            raise AgentProcessFailure(
                f"can't find {AGENT_BIN_NAME}, install it or set ${AGENT_BIN_ENV}"
            )
        return self.config.bin_path

    def cleanup_command(self, rep_retention: int, reset: bool = False) -> List[str]:
        cmd = [self._bin()] + self.config.base_args()
        cmd += ["--linux-tar", LINUX_TAR_SKIP]
        cmd += ["--bypass", "--prepare"]
        cmd += ["--rep-retention", f"{rep_retention}"]
        cmd += ["--rep-1min-retention", f"{coarse_retention(rep_retention)}"]
        if reset:
            cmd.append("--reset")
        return cmd

    def clean_up_report_files(self, rep_retention: int, reset: bool = False) -> None:
        """
        Have the agent expire (or with reset, remove) its report files.

        Raises:
            AgentProcessFailure: If the agent can't be started or fails
        """
        cmd = self.cleanup_command(rep_retention, reset)
        logger.debug(f"Cleaning up report files: {' '.join(cmd)}")
        try:
            proc = subprocess.run(cmd)
        except OSError as e:
            raise AgentProcessFailure(f"failed to run {cmd[0]!r} ({e})") from e
        if proc.returncode != 0:
            raise AgentProcessFailure(
                f"failed to clean up rd-agent report files (exit status {proc.returncode})"
            )

    def job_command(self) -> List[str]:
        cmd = [self._bin()] + self.config.base_args()
        if self.config.linux_tar:
            cmd += ["--linux-tar", self.config.linux_tar]
        cmd.append("--run-job")
        return cmd

    def run_job(
        self,
        spec: JobSpec,
        incremental: bool = False,
        prev_result: Any = None,
    ) -> AgentReply:
        """
        Run one job to completion.

        Args:
            spec: Job to run
            incremental: Ask the agent to continue from prev_result
            prev_result: Result of an earlier run of the same job

        Returns:
            The agent's successful reply

        Raises:
            AgentProcessFailure: If the agent can't be started, exits with
                an error, replies with garbage, or reports a failed job
        """
        cmd = self.job_command()
        request = {
            "kind": spec.kind,
            "id": spec.id,
            "props": spec.props,
            "incremental": incremental,
            "prev_result": prev_result if incremental else None,
        }
        logger.debug(f"Running {spec}: {' '.join(cmd)}")
        try:
            proc = subprocess.run(
                cmd,
                input=json.dumps(request),
                stdout=subprocess.PIPE,
                text=True,
            )
        except OSError as e:
            raise AgentProcessFailure(f"failed to run {cmd[0]!r} ({e})") from e

        if proc.returncode != 0:
            raise AgentProcessFailure(f"{AGENT_BIN_NAME} exited with status {proc.returncode}")

        try:
            data = json.loads(proc.stdout)
            if not isinstance(data, dict):
                raise ValueError("reply isn't a JSON object")
            reply = AgentReply(
                status=str(data.get("status", "")),
                result=data.get("result"),
                error=data.get("error"),
                calibration=data.get("calibration"),
            )
        except ValueError as e:
            raise AgentProcessFailure(f"malformed reply from {AGENT_BIN_NAME} ({e})") from e

        if not reply.success:
            raise AgentProcessFailure(
                f"{AGENT_BIN_NAME} reported failure: {reply.error or reply.status or 'unknown error'}"
            )
        return reply
