#!/usr/bin/env python3
"""
Tests for the command-line entry point and its exit codes.
"""

import logging
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from core.benches import init_benchs
from core.jobs import JobCtxs, link
from frontend import main
from infra.logs import verbosity_to_level
from models.args import Args
from models.calibration import BenchKnobs
from models.jobspec import parse_job_spec


@pytest.fixture(autouse=True)
def quiet_logging():
    with patch("frontend.setup_logging"), patch("frontend.find_agent_bin", return_value=None):
        yield


@pytest.fixture
def result_file(tmp_path):
    init_benchs()
    path = tmp_path / "result.json"
    jobs = []
    for text, result in (("iocost-params", {"rbps": 1}), ("storage:id=s", {"mem": 2})):
        jctx = link(parse_job_spec(text))
        jctx.record(result)
        jobs.append(jctx)
    JobCtxs(jobs).save(path)
    return path


class TestMain:
    """Tests for main() exit codes and output."""

    def test_format_all(self, result_file, capsys):
        assert main(["-r", str(result_file), "format"]) == 0
        out = capsys.readouterr().out
        assert "[iocost-params]" in out
        assert "[storage:id=s]" in out
        assert out.index("[iocost-params]") < out.index("[storage:id=s]")

    def test_summary_selected(self, result_file, capsys):
        assert main(["-r", str(result_file), "summary", "storage:id=s"]) == 0
        out = capsys.readouterr().out
        assert "[storage:id=s] done" in out
        assert "iocost-params" not in out

    def test_no_matching_result(self, result_file):
        assert main(["-r", str(result_file), "format", "protection"]) == 1

    def test_parse_errors(self):
        assert main(["run", ":bad", "-j", "/nonexistent/jobs.yaml"]) == 1

    def test_unknown_kind(self, tmp_path):
        with patch("core.manager.Program.prep_base_bench", return_value=BenchKnobs()):
            assert main(["-d", str(tmp_path), "run", "no-such-bench"]) == 1

    def test_run_help(self, capsys):
        assert main(["run", "-h"]) == 0
        assert "JOBSPEC" in capsys.readouterr().out

    def test_args_file_updated(self, tmp_path, result_file):
        args_path = tmp_path / "args.yaml"
        assert main(["-a", str(args_path), "-r", str(result_file), "-R", "600", "summary"]) == 0
        saved = Args.load(str(args_path))
        assert saved.result == str(result_file)
        assert saved.rep_retention == 600

    def test_args_file_supplies_defaults(self, tmp_path, result_file, capsys):
        args_path = tmp_path / "args.yaml"
        Args(result=str(result_file)).save(str(args_path))
        assert main(["-a", str(args_path), "format"]) == 0
        assert "[iocost-params]" in capsys.readouterr().out

    def test_corrupt_args_file(self, tmp_path):
        args_path = tmp_path / "args.yaml"
        args_path.write_text("result: [\n")
        assert main(["-a", str(args_path), "format"]) == 1

    def test_unexpected_error(self, result_file):
        with patch("frontend.Program", side_effect=RuntimeError("boom")):
            assert main(["-r", str(result_file), "format"]) == 3


class TestLogging:
    """Tests for -v handling."""

    def test_levels(self):
        assert verbosity_to_level(0) == logging.INFO
        assert verbosity_to_level(1) == logging.DEBUG
        assert verbosity_to_level(3) == logging.DEBUG

    def test_module_logger(self):
        import frontend
        assert frontend.logger.name == "frontend"
