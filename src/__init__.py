"""
Resource-control benchmark orchestrator.

Drives the rd-agent through reproducible cgroup resource-control benchmarks
and keeps their results for incremental runs and re-formatting.

Package structure:
- core/: Orchestration logic (benches, jobs, calibration, runner, manager)
- infra/: Agent subprocess, sysfs, persistence, logging, errors
- models/: Data models (job specs, arguments, calibration data)
- reporting/: Result rendering
"""

__version__ = "1.0.0"
