"""
Infrastructure and I/O for the benchmark orchestrator.

Contains:
- agent: rd-agent subprocess contract
- devices: sysfs block device queries
- storage: JSON/YAML persistence helpers
- logs: Logging setup
- errors: Error hierarchy
"""
