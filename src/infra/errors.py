#!/usr/bin/env python3
"""
Error hierarchy for the resource-control benchmark orchestrator.

All errors that should abort an invocation inherit from BenchError, so the
frontend can report them with a single except clause and a non-zero exit.
"""

from typing import Optional


class BenchError(Exception):
    """Base exception for all orchestrator errors."""


class ParseError(BenchError):
    """Malformed job spec, job file or base-arguments file."""

    def __init__(self, text: str, reason: str, source: Optional[str] = None):
        self.text = text
        self.reason = reason
        self.source = source
        where = f"{source} {text!r}" if source else repr(text)
        super().__init__(f"{where}: {reason}")


class UnknownKindError(BenchError):
    """Job spec names a benchmark kind that isn't registered."""

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"unknown benchmark kind {kind!r}")


class DeviceResolutionError(BenchError):
    """Scratch device or its identity couldn't be determined."""


class DeviceMismatchError(BenchError):
    """Stored calibration data belongs to a different device."""

    def __init__(self, field: str, stored, detected):
        self.field = field
        self.stored = stored
        self.detected = detected
        super().__init__(
            f"benchfile device {field} {stored!r} doesn't match detected {detected!r}"
        )


class LiveIoCostUnavailableError(BenchError):
    """Live iocost sourcing requested but iocost is disabled for the device."""


class AgentProcessFailure(BenchError):
    """The resource-control agent couldn't be run or reported a failure."""


class PersistenceError(BenchError):
    """Result, calibration or arguments file couldn't be read or written."""


class FormatCompatibilityError(BenchError):
    """Requested formatting properties aren't supported by the benchmark kind."""


class NoMatchingResultError(BenchError):
    """No stored result matches a spec requested for formatting."""
