#!/usr/bin/env python3
"""
Unit tests for argument layering: base-arguments files, job files and the
command line.
"""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from core.benches import init_benchs
from frontend import create_argument_parser, load_args
from infra.errors import ParseError
from models.args import (
    DEFAULT_DIR,
    DEFAULT_REP_RETENTION,
    Args,
    Mode,
    collect_job_specs,
    process_cmdline,
    split_run_tokens,
)
from models.jobspec import parse_job_spec


@pytest.fixture(autouse=True)
def benches():
    init_benchs()


@pytest.fixture
def jobfile(tmp_path):
    path = tmp_path / "jobs.yaml"
    path.write_text(
        "job_specs:\n"
        "  - storage:id=a:loops=2\n"
        "  - kind: protection\n"
        "    id: p\n"
    )
    return path


def parse_cmdline(argv, args=None):
    ns = create_argument_parser().parse_args(argv)
    args = args if args is not None else Args()
    updated, errors = process_cmdline(args, ns)
    return args, updated, errors


class TestSplitRunTokens:
    """Tests for splitting run arguments into ordered job sources."""

    def test_specs_only(self):
        sources, errors = split_run_tokens(["iocost-params", "hashd-params"])
        assert sources == [("spec", "iocost-params"), ("spec", "hashd-params")]
        assert errors == []

    def test_jobfile_forms(self):
        sources, errors = split_run_tokens(["-j", "a.yaml", "-jb.yaml", "--job", "c.yaml", "--job=d.yaml"])
        assert sources == [("jobfile", f) for f in ("a.yaml", "b.yaml", "c.yaml", "d.yaml")]
        assert errors == []

    def test_order_is_kept(self):
        sources, _ = split_run_tokens(["storage", "-j", "jobs.yaml", "protection"])
        assert sources == [("spec", "storage"), ("jobfile", "jobs.yaml"), ("spec", "protection")]

    def test_double_dash_ends_options(self):
        sources, errors = split_run_tokens(["--", "-j"])
        assert sources == [("spec", "-j")]
        assert errors == []

    def test_missing_jobfile_argument(self):
        _, errors = split_run_tokens(["storage", "-j"])
        assert len(errors) == 1

    def test_unknown_option(self):
        sources, errors = split_run_tokens(["-x", "storage"])
        assert sources == [("spec", "storage")]
        assert len(errors) == 1


class TestCollectJobSpecs:
    """Tests for merging inline specs and job files."""

    def test_merged_in_command_line_order(self, jobfile):
        specs, errors = collect_job_specs([
            ("spec", "iocost-params"),
            ("jobfile", str(jobfile)),
            ("spec", "hashd-params"),
        ])
        assert errors == []
        assert [s.ident for s in specs] == ["iocost-params", "storage:a", "protection:p", "hashd-params"]
        assert specs[1].props == [{"loops": "2"}]

    def test_all_errors_reported(self, tmp_path):
        specs, errors = collect_job_specs([
            ("spec", ":bad"),
            ("jobfile", str(tmp_path / "missing.yaml")),
            ("spec", "storage"),
        ])
        assert [s.kind for s in specs] == ["storage"]
        assert len(errors) == 2
        assert all(isinstance(e, ParseError) for e in errors)
        assert errors[0].source == "spec"
        assert errors[1].source == "jobfile"

    def test_unparsable_jobfile(self, tmp_path):
        path = tmp_path / "jobs.yaml"
        path.write_text("job_specs: [storage\n")
        _, errors = collect_job_specs([("jobfile", str(path))])
        assert len(errors) == 1

    def test_malformed_jobfile_entry(self, tmp_path):
        path = tmp_path / "jobs.yaml"
        path.write_text("job_specs:\n  - ':nokind'\n")
        _, errors = collect_job_specs([("jobfile", str(path))])
        assert len(errors) == 1
        assert errors[0].source == "jobfile"


class TestArgsFile:
    """Tests for loading and saving base-arguments files."""

    def test_defaults_for_missing_keys(self, tmp_path):
        path = tmp_path / "args.yaml"
        path.write_text("result: res.json\n")
        args = Args.load(str(path))
        assert args.result == "res.json"
        assert args.dir == DEFAULT_DIR
        assert args.rep_retention == DEFAULT_REP_RETENTION
        assert args.job_specs == []

    def test_empty_file(self, tmp_path):
        path = tmp_path / "args.yaml"
        path.write_text("")
        assert Args.load(str(path)).dir == DEFAULT_DIR

    @pytest.mark.parametrize("name", ["args.yaml", "args.json"])
    def test_save_and_load(self, tmp_path, name):
        path = tmp_path / name
        args = Args(dir="/tmp/top", dev="sdb", rep_retention=600,
                    job_specs=[parse_job_spec("iocost-qos:id=q:a=1::b=2")])
        args.incremental = True
        args.save(str(path))

        loaded = Args.load(str(path))
        assert loaded.dir == "/tmp/top"
        assert loaded.dev == "sdb"
        assert loaded.rep_retention == 600
        assert loaded.job_specs == args.job_specs
        assert loaded.incremental is False, "Per-invocation options must not persist"

    def test_empty_optional_paths_unset(self, tmp_path):
        path = tmp_path / "args.yaml"
        path.write_text("dev: \"\"\nlinux_tar: \"\"\nresult: \"\"\n")
        args = Args.load(str(path))
        assert args.dev is None
        assert args.linux_tar is None
        assert args.result is None

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "args.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ParseError):
            Args.load(str(path))

    def test_bad_value_type(self, tmp_path):
        path = tmp_path / "args.yaml"
        path.write_text("rep_retention: soon\n")
        with pytest.raises(ParseError):
            Args.load(str(path))

    def test_paths(self):
        args = Args(dir="/top")
        assert args.demo_bench_path() == Path("/top/rb-bench.json")
        assert args.scratch_path() == Path("/top/scratch")


class TestProcessCmdline:
    """Tests for applying command-line options on top of Args."""

    def test_no_options_not_updated(self):
        args, updated, errors = parse_cmdline(["format"])
        assert not updated
        assert errors == []
        assert args.mode == Mode.FORMAT

    def test_options_mark_updated(self):
        args, updated, errors = parse_cmdline(["-d", "/top", "-R", "3600", "--systemd-timeout", "30", "summary"])
        assert updated
        assert errors == []
        assert args.dir == "/top"
        assert args.rep_retention == 3600
        assert args.systemd_timeout == 30.0
        assert args.mode == Mode.SUMMARY

    def test_empty_value_resets_to_default(self):
        base = Args(dir="/top", result="res.json", dev="sdb", rep_retention=60)
        args, updated, _ = parse_cmdline(["-d", "", "-r", "", "-D", "", "-R", "", "format"], base)
        assert updated
        assert args.dir == DEFAULT_DIR
        assert args.result is None
        assert args.dev is None
        assert args.rep_retention == DEFAULT_REP_RETENTION

    def test_invalid_retention(self):
        _, _, errors = parse_cmdline(["-R", "soon", "format"])
        assert len(errors) == 1

    def test_run_specs_replace_stored_specs(self, jobfile):
        base = Args(job_specs=[parse_job_spec("hashd-params")])
        args, updated, errors = parse_cmdline(["run", "iocost-params", "-j", str(jobfile)], base)
        assert errors == []
        assert updated
        assert [s.ident for s in args.job_specs] == ["iocost-params", "storage:a", "protection:p"]

    def test_run_without_specs_keeps_stored_specs(self):
        base = Args(job_specs=[parse_job_spec("hashd-params")])
        args, updated, errors = parse_cmdline(["run"], base)
        assert errors == []
        assert not updated
        assert [s.kind for s in args.job_specs] == ["hashd-params"]

    def test_run_errors_leave_specs_alone(self):
        base = Args(job_specs=[parse_job_spec("hashd-params")])
        args, updated, errors = parse_cmdline(["run", "storage", ":bad", "-x"], base)
        assert len(errors) == 2
        assert [s.kind for s in args.job_specs] == ["hashd-params"]

    def test_per_invocation_flags(self):
        args, _, _ = parse_cmdline(["-I", "--keep-reports", "--clear-reports", "-vv", "run"])
        assert args.incremental
        assert args.keep_reports
        assert args.clear_reports
        assert args.verbosity == 2

    def test_format_specs(self):
        base = Args(job_specs=[parse_job_spec("hashd-params")])
        args, updated, errors = parse_cmdline(["format", "iocost-tune::gran=0.1::gran=0.5"], base)
        assert errors == []
        assert not updated
        assert [str(s) for s in args.format_specs] == ["iocost-tune::gran=0.1::gran=0.5"]
        assert [s.kind for s in args.job_specs] == ["hashd-params"]

    def test_invalid_option_value_still_parses_specs(self):
        _, _, errors = parse_cmdline(["-R", "soon", "--systemd-timeout", "later", "run", ":bad"])
        assert [e.source for e in errors] == ["--rep-retention", "--systemd-timeout", "spec"]

    def test_iocost_from_sys_not_persisted(self, tmp_path):
        path = str(tmp_path / "args.yaml")
        parser = create_argument_parser()

        args, updated, errors = load_args(parser.parse_args(["-a", path, "-r", "res.json", "--iocost-from-sys", "summary"]))
        assert errors == []
        assert args.iocost_from_sys
        assert updated
        args.save(path)

        args, _, _ = load_args(parser.parse_args(["-a", path, "summary"]))
        assert args.result == "res.json"
        assert args.iocost_from_sys is False, "Live iocost sourcing applies to one invocation only"

    def test_iocost_from_sys_alone_not_an_update(self):
        args, updated, _ = parse_cmdline(["--iocost-from-sys", "summary"])
        assert args.iocost_from_sys
        assert not updated
