#!/usr/bin/env python3
"""
Frontend module for the resource-control benchmark orchestrator.

This module handles command-line argument parsing, merges it with the
optional base-arguments file, and hands the resolved configuration to the
Program in core.manager.

Examples:
    rcbench -r result.json run iocost-params hashd-params
    rcbench -r result.json run -j jobs.yaml iocost-qos:id=qos:vrate-max=125
    rcbench -r result.json format iocost-tune::gran=0.1::gran=0.5
    rcbench -r result.json summary
"""

import argparse
import logging
import sys
from typing import List, Optional

from core.benches import get_supported_kinds, init_benchs
from core.manager import Program
from infra.agent import find_agent_bin
from infra.errors import BenchError, PersistenceError
from infra.logs import setup_logging
from models.args import DEFAULT_DIR, DEFAULT_REP_RETENTION, Args, process_cmdline

logger = logging.getLogger(__name__)


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the command-line argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="rcbench",
        description="Resource control benchmarks",
        epilog=f"Benchmark kinds: {', '.join(get_supported_kinds())}",
    )

    parser.add_argument(
        "-d", "--dir",
        metavar="TOPDIR",
        help=f"Top-level dir for operation and scratch files (default: {DEFAULT_DIR})",
    )
    parser.add_argument(
        "-D", "--dev",
        metavar="DEVICE",
        help="Scratch device override (e.g. nvme0n1)",
    )
    parser.add_argument(
        "-l", "--linux",
        metavar="PATH",
        help="Path to linux.tar, downloaded automatically if not specified",
    )
    parser.add_argument(
        "-r", "--result",
        metavar="PATH",
        help="Record the bench results into the specified json file",
    )
    parser.add_argument(
        "-R", "--rep-retention",
        metavar="SECS",
        help=f"1s report retention in seconds (default: {DEFAULT_REP_RETENTION / 3600:.1f}h)",
    )
    parser.add_argument(
        "-a", "--args",
        metavar="FILE",
        help="Load base command line arguments from FILE",
    )
    parser.add_argument(
        "-I", "--incremental",
        action="store_true",
        help="Run incremental benchmarks if supported",
    )
    parser.add_argument(
        "--clear-reports",
        action="store_true",
        help="Remove existing report files",
    )
    parser.add_argument(
        "--keep-reports",
        action="store_true",
        help="Don't delete expired report files",
    )
    parser.add_argument(
        "--systemd-timeout",
        metavar="SECS",
        help="Timeout for systemd units to start",
    )
    parser.add_argument(
        "--iocost-from-sys",
        action="store_true",
        help="Use iocost parameters from /sys/fs/cgroup/io.cost.model,qos",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Sets the level of verbosity",
    )

    subparsers = parser.add_subparsers(dest="mode", metavar="COMMAND")

    # "-j FILE" and job specs interleave and their relative order matters,
    # so the run arguments are collected raw and split by split_run_tokens().
    run = subparsers.add_parser(
        "run",
        help="Run benchmarks",
        usage="%(prog)s [-j JOBFILE | JOBSPEC]...",
        description="Job specs and job files run in command-line order.",
        prefix_chars="+",
        add_help=False,
    )
    run.add_argument(
        "run_args",
        nargs="*",
        metavar="JOBSPEC",
        help="Benchmark job spec \"BENCH_TYPE[:KEY=VAL...]\" or \"-j JOBFILE\"",
    )
    run.set_defaults(run_parser=run)

    for name, about in (("format", "Format benchmark results"),
                        ("summary", "Summarize benchmark results")):
        sub = subparsers.add_parser(name, help=about)
        sub.add_argument(
            "specs",
            nargs="*",
            metavar="JOBSPEC",
            help="Results to format, all if none given",
        )

    return parser


def load_args(ns: argparse.Namespace) -> tuple:
    """
    Build Args from the base-arguments file and the command line.

    Returns:
        (Args, whether persisted fields changed, parse errors)

    Raises:
        BenchError: If the base-arguments file can't be loaded
    """
    args = Args()
    if ns.args:
        try:
            args = Args.load(ns.args)
        except FileNotFoundError:
            logger.debug(f"Args file {ns.args!r} doesn't exist yet")
        except PersistenceError as e:
            raise PersistenceError(f"Failed to process args file ({e})") from e

    updated, errors = process_cmdline(args, ns)
    return args, updated, errors


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the frontend.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    init_benchs()
    parser = create_argument_parser()
    ns = parser.parse_args(argv)
    setup_logging(ns.verbose)

    if ns.mode == "run" and any(tok in ("-h", "--help") for tok in ns.run_args):
        ns.run_parser.print_help()
        return 0

    try:
        args, updated, errors = load_args(ns)
        if errors:
            for e in errors:
                logger.error(f"{e}")
            return 1

        program = Program(
            args,
            agent_bin=find_agent_bin(),
            args_path=ns.args,
            args_updated=updated,
        )
        program.main()
        return 0

    except BenchError as e:
        logger.error(f"{e}")
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 3


if __name__ == "__main__":
    sys.exit(main())
