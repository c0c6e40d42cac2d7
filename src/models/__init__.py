"""
Data models for the benchmark orchestrator.

Contains:
- jobspec: Job spec grammar and JobSpec
- args: Top-level arguments and job files
- calibration: Calibration data and live iocost snapshots
"""
