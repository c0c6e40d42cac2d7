"""
Result rendering for the benchmark orchestrator.

Contains:
- formatter: Jinja2 templates for the format and summary subcommands
"""
