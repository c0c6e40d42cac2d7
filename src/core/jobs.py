#!/usr/bin/env python3
"""
Job store for the resource-control benchmark orchestrator.

A JobCtx is a JobSpec linked to its benchmark kind, together with the
opaque result payload the agent produced for it. JobCtxs keeps them in
insertion order and persists them to the result file, which lets later
invocations continue incrementally or re-format results without rerunning
anything on the hardware.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Literal, Optional

from core.benches import BenchDesc, find_bench
from infra.errors import ParseError, PersistenceError, UnknownKindError
from infra.storage import parse_or_dump, read_json, write_json
from models.jobspec import JobSpec

JobState = Literal["pending", "running", "done", "failed"]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class JobStatus:
    state: JobState = "pending"
    started_at: Optional[str] = None
    ended_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"state": self.state, "started_at": self.started_at, "ended_at": self.ended_at}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobStatus":
        if data.get("state", "pending") not in ("pending", "running", "done", "failed"):
            raise ValueError(f"invalid job state {data.get('state')!r}")
        return cls(
            state=data.get("state", "pending"),
            started_at=data.get("started_at"),
            ended_at=data.get("ended_at"),
        )


@dataclass
class JobCtx:
    """A job spec linked to its benchmark kind, plus its result."""
    spec: JobSpec
    desc: BenchDesc
    result: Any = None
    status: JobStatus = field(default_factory=JobStatus)
    prev_result: Any = None  # carried over from an earlier run, never persisted

    def matches(self, spec: JobSpec) -> bool:
        """Same kind and exactly the same id (None only matches None)."""
        return self.spec.kind == spec.kind and self.spec.id == spec.id

    def mark_running(self) -> None:
        self.status = JobStatus(state="running", started_at=utc_now_iso())

    def record(self, result: Any) -> None:
        """Store the agent's result payload and mark the job done."""
        self.result = result
        self.status.state = "done"
        self.status.ended_at = utc_now_iso()

    def mark_failed(self) -> None:
        self.status.state = "failed"
        self.status.ended_at = utc_now_iso()

    def to_dict(self) -> Dict[str, Any]:
        return {"spec": self.spec.to_dict(), "status": self.status.to_dict(), "result": self.result}


def link(spec: JobSpec) -> JobCtx:
    """
    Link a job spec to its registered benchmark kind.

    Raises:
        UnknownKindError: If the kind isn't registered
        ParseError: If the job spec has properties the kind doesn't take
    """
    desc = find_bench(spec.kind)
    if spec.has_props() and not desc.takes_run_props:
        raise ParseError(str(spec), f"{spec.kind} doesn't take properties")
    return JobCtx(spec=spec, desc=desc)


def _jctx_from_dict(data: Dict[str, Any]) -> JobCtx:
    if not isinstance(data, dict):
        raise ValueError(f"result entry must be a mapping, got {type(data).__name__}")
    spec = JobSpec.from_dict(data["spec"])
    return JobCtx(
        spec=spec,
        desc=find_bench(spec.kind),
        result=data.get("result"),
        status=JobStatus.from_dict(data.get("status") or {}),
    )


class JobCtxs:
    """Ordered collection of job contexts."""

    def __init__(self, vec: Optional[List[JobCtx]] = None):
        self.vec: List[JobCtx] = vec if vec is not None else []

    def __len__(self) -> int:
        return len(self.vec)

    def __iter__(self) -> Iterator[JobCtx]:
        return iter(self.vec)

    def link(self, spec: JobSpec) -> JobCtx:
        """
        Link a spec and carry over the result of a matching stored job.

        The stored job stays in place until the new run replaces it.
        """
        jctx = link(spec)
        prev = self.find_matching(spec)
        if prev is not None:
            jctx.prev_result = prev.result
        return jctx

    def _index_of(self, spec: JobSpec) -> Optional[int]:
        for idx, jctx in enumerate(self.vec):
            if jctx.matches(spec):
                return idx
        return None

    def find_matching(self, spec: JobSpec) -> Optional[JobCtx]:
        idx = self._index_of(spec)
        return self.vec[idx] if idx is not None else None

    def pop_matching(self, spec: JobSpec) -> Optional[JobCtx]:
        """
        Remove and return the first job matching spec's kind and id.

        Returns:
            The removed job, or None (store untouched) if nothing matches
        """
        idx = self._index_of(spec)
        return self.vec.pop(idx) if idx is not None else None

    def replace_or_append(self, jctx: JobCtx) -> None:
        """Put a job in place of the first matching one, or at the end."""
        idx = self._index_of(jctx.spec)
        if idx is None:
            self.vec.append(jctx)
        else:
            self.vec[idx] = jctx

    def format_ids(self) -> str:
        return " ".join(jctx.spec.ident for jctx in self.vec)

    def to_list(self) -> List[Dict[str, Any]]:
        return [jctx.to_dict() for jctx in self.vec]

    @classmethod
    def load(cls, path: Path) -> "JobCtxs":
        """
        Load a result file.

        Raises:
            PersistenceError: If the file can't be read, an entry is
                malformed, or an entry's benchmark kind isn't registered
        """
        try:
            data = read_json(path)
        except FileNotFoundError as e:
            raise PersistenceError(f"result file {str(path)!r} not found") from e
        if not isinstance(data, list):
            raise PersistenceError(f"result file {str(path)!r} must hold a list")

        vec = []
        for idx, entry in enumerate(data):
            try:
                vec.append(parse_or_dump(entry, _jctx_from_dict))
            except UnknownKindError as e:
                raise PersistenceError(f"result entry {idx}: {e}") from e
            except PersistenceError as e:
                raise PersistenceError(f"result entry {idx}: {e}") from e
        return cls(vec)

    def save(self, path: Path) -> None:
        """
        Write all jobs to a result file, preserving order.

        Raises:
            PersistenceError: If the file can't be written
        """
        write_json(path, self.to_list())


class SharedJobCtxs:
    """
    Lock-protected JobCtxs shared by the orchestrator and its job runs.

    Hold the store only for short bookkeeping, never across an agent call.
    """

    def __init__(self, jobs: Optional[JobCtxs] = None):
        self._lock = threading.Lock()
        self._jobs = jobs if jobs is not None else JobCtxs()

    @contextmanager
    def borrow(self) -> Iterator[JobCtxs]:
        with self._lock:
            yield self._jobs

    def replace(self, jobs: JobCtxs) -> None:
        with self._lock:
            self._jobs = jobs

    def take(self) -> JobCtxs:
        """Move the store out, leaving an empty one behind."""
        with self._lock:
            jobs, self._jobs = self._jobs, JobCtxs()
        return jobs
