"""Tests for the command-line entry point."""

import asyncio
import os
import signal
from unittest.mock import MagicMock, patch

import pytest

from proofpack.cli import SignalHandler, _run_verifier, create_argument_parser, main


@pytest.fixture
def stack_env(monkeypatch, tmp_path):
    monkeypatch.setenv("C4_DB_PATH", str(tmp_path / "missing.db"))
    monkeypatch.setenv("C4_BACKEND_PORT", "8787")
    monkeypatch.setenv("C4_HEALTH_ENDPOINT", "/api/health")
    monkeypatch.setenv("C4_BOOTSTRAP_COMMAND", "npm run bootstrap")
    monkeypatch.setenv("C4_DEV_COMMAND", "npm run dev")
    return monkeypatch


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

class TestArgumentParser:

    def test_verifier_choice(self):
        args = create_argument_parser().parse_args(["runtime"])
        assert args.verifier == "runtime"
        assert args.repeat == 1
        assert args.verbose is False

    def test_verbose_and_repeat(self):
        args = create_argument_parser().parse_args(["-v", "backend-contract", "--repeat", "5"])
        assert args.verbose is True
        assert args.repeat == 5

    @pytest.mark.parametrize("argv", [["frontend"], [], ["runtime", "--repeat", "0"], ["runtime", "--repeat", "x"]])
    def test_rejects_bad_arguments(self, argv):
        with pytest.raises(SystemExit) as exc_info:
            create_argument_parser().parse_args(argv)
        assert exc_info.value.code == 2


# ---------------------------------------------------------------------------
# Single runs
# ---------------------------------------------------------------------------

class TestMain:

    def test_missing_env_is_reported(self, capsys):
        assert main(["backend-contract"]) == 1
        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err.startswith(
            "ERROR verify-backend-contract Missing required env var: C4_DB_PATH\n"
        )

    def test_missing_dev_data_exits_2(self, stack_env, capsys):
        assert main(["backend-contract"]) == 2
        assert capsys.readouterr().out == "MISSING_DEV_DATA: run npm run bootstrap\n"

    def test_runtime_without_frontend_port(self, stack_env, capsys):
        assert main(["runtime"]) == 1
        assert "Missing required env var: C4_FRONTEND_PORT" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# Repeat mode
# ---------------------------------------------------------------------------

class TestRepeat:

    def test_stops_at_first_failure(self, capsys):
        with patch("proofpack.cli.run_once", side_effect=[0, 1, 0]) as run_once:
            assert main(["runtime", "--repeat", "3"]) == 1
        assert run_once.call_count == 2
        err = capsys.readouterr().err
        assert "=== RUN 1 ===\nexit=0\n=== RUN 2 ===\nexit=1\nFAILED on run 2\n" in err
        assert "RUN 3" not in err

    def test_all_runs_pass(self, capsys):
        with patch("proofpack.cli.run_once", return_value=0) as run_once:
            assert main(["backend-contract", "--repeat", "2"]) == 0
        assert run_once.call_count == 2
        assert capsys.readouterr().err.endswith("ALL RUNS PASSED\n")

    def test_missing_dev_data_stops_repeat(self):
        with patch("proofpack.cli.run_once", return_value=2) as run_once:
            assert main(["backend-contract", "--repeat", "4"]) == 2
        assert run_once.call_count == 1


# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------

def _verifier(execute):
    verifier = MagicMock()
    verifier.execute = execute
    verifier.report = MagicMock(return_value=1)
    return verifier


@pytest.mark.posix
async def test_sigterm_reports_interrupted():
    async def execute():
        os.kill(os.getpid(), signal.SIGTERM)
        await asyncio.sleep(5)
        return 0

    verifier = _verifier(execute)
    code = await asyncio.wait_for(asyncio.create_task(_run_verifier(verifier)), timeout=2)

    assert code == 1
    outcome = verifier.report.call_args.args[0]
    assert outcome.detail == "interrupted"
    assert outcome.exit_code == 1


async def test_foreign_cancellation_propagates():
    async def execute():
        await asyncio.sleep(5)
        return 0

    verifier = _verifier(execute)
    task = asyncio.create_task(_run_verifier(verifier))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    verifier.report.assert_not_called()


def test_second_signal_does_not_cancel_teardown():
    task = MagicMock()
    handler = SignalHandler(task)

    handler._handle_signal(signal.SIGTERM)
    handler._handle_signal(signal.SIGINT)

    assert handler.interrupted is True
    task.cancel.assert_called_once()
