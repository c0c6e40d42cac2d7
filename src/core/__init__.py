"""
Core business logic for the benchmark orchestrator.

Contains:
- benches: Benchmark kind registry
- jobs: Job contexts and the result store
- calibration: Scratch device and calibration negotiation
- runner: Single job execution
- manager: Invocation orchestration
"""
