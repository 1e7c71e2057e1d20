"""Tests for perfcheck.runner — external tool invocation."""

from __future__ import annotations

import subprocess
import unittest
from unittest.mock import patch

from perfcheck.runner import (
    EXIT_NOT_FOUND,
    EXIT_TIMEOUT,
    ToolOutput,
    ToolRunner,
    missing_tools,
)


class TestToolOutput(unittest.TestCase):
    def test_ok(self) -> None:
        self.assertTrue(ToolOutput(["uptime"], 0).ok)
        self.assertFalse(ToolOutput(["uptime"], 1).ok)

    def test_command(self) -> None:
        self.assertEqual(ToolOutput(["free", "-m"], 0).command, "free -m")


class TestToolRunnerEnv(unittest.TestCase):
    def test_forces_c_locale(self) -> None:
        runner = ToolRunner(env={"LC_ALL": "de_DE.UTF-8", "EXTRA": "1"})
        self.assertEqual(runner.env["LC_ALL"], "C")
        self.assertEqual(runner.env["EXTRA"], "1")

    @patch("perfcheck.runner.os.sched_getaffinity", create=True, return_value={0, 2})
    @patch("perfcheck.runner.os.cpu_count", return_value=8)
    def test_cpu_count_honours_affinity(self, _count, _affinity) -> None:
        self.assertEqual(ToolRunner().cpu_count(), 2)

    @patch("perfcheck.runner.os.sched_getaffinity", create=True, side_effect=OSError("nope"))
    @patch("perfcheck.runner.os.cpu_count", return_value=None)
    def test_cpu_count_unknown(self, _count, _affinity) -> None:
        self.assertEqual(ToolRunner().cpu_count(), 0)

    @patch("perfcheck.runner.os.sched_getaffinity", create=True, side_effect=OSError("nope"))
    @patch("perfcheck.runner.os.cpu_count", return_value=8)
    def test_cpu_count_falls_back(self, _count, _affinity) -> None:
        self.assertEqual(ToolRunner().cpu_count(), 8)


class TestToolRunnerRun(unittest.TestCase):
    @patch("perfcheck.runner.subprocess.run")
    def test_success(self, mock_run) -> None:
        mock_run.return_value = subprocess.CompletedProcess(
            args=["uptime"], returncode=0, stdout="load average: 1.00, 1.00, 1.00\n", stderr=""
        )
        runner = ToolRunner(timeout=5)
        out = runner.run(["uptime"])
        self.assertTrue(out.ok)
        self.assertIn("load average", out.stdout)
        kwargs = mock_run.call_args.kwargs
        self.assertEqual(kwargs["timeout"], 5)
        self.assertEqual(kwargs["env"]["LC_ALL"], "C")
        self.assertTrue(kwargs["capture_output"])

    @patch("perfcheck.runner.subprocess.run")
    def test_arguments_stringified(self, mock_run) -> None:
        mock_run.return_value = subprocess.CompletedProcess(args=[], returncode=0, stdout="", stderr="")
        out = ToolRunner().run(["vmstat", 1, 3])
        self.assertEqual(mock_run.call_args.args[0], ["vmstat", "1", "3"])
        self.assertEqual(out.args, ["vmstat", "1", "3"])

    @patch("perfcheck.runner.subprocess.run")
    def test_nonzero_exit(self, mock_run) -> None:
        mock_run.return_value = subprocess.CompletedProcess(
            args=["dmesg"], returncode=1, stdout="", stderr="dmesg: read kernel buffer failed\n"
        )
        with self.assertLogs("perfcheck.runner", level="WARNING"):
            out = ToolRunner().run(["dmesg"])
        self.assertFalse(out.ok)
        self.assertIn("failed", out.stderr)

    @patch("perfcheck.runner.subprocess.run", side_effect=FileNotFoundError("no such file"))
    def test_not_found(self, _mock) -> None:
        with self.assertLogs("perfcheck.runner", level="WARNING"):
            out = ToolRunner().run(["mpstat"])
        self.assertEqual(out.returncode, EXIT_NOT_FOUND)

    @patch(
        "perfcheck.runner.subprocess.run",
        side_effect=subprocess.TimeoutExpired(cmd="sar", timeout=5),
    )
    def test_timeout(self, _mock) -> None:
        with self.assertLogs("perfcheck.runner", level="WARNING"):
            out = ToolRunner(timeout=5).run(["sar", "-n", "DEV", "1", "3"])
        self.assertEqual(out.returncode, EXIT_TIMEOUT)
        self.assertIn("timed out", out.stderr)

    @patch("perfcheck.runner.subprocess.run", side_effect=PermissionError("denied"))
    def test_os_error(self, _mock) -> None:
        with self.assertLogs("perfcheck.runner", level="WARNING"):
            out = ToolRunner().run(["iostat"])
        self.assertFalse(out.ok)


class TestMissingTools(unittest.TestCase):
    @patch("perfcheck.runner.shutil.which")
    def test_keeps_order(self, mock_which) -> None:
        mock_which.side_effect = lambda name, path=None: None if name in ("vmstat", "free") else f"/bin/{name}"
        runner = ToolRunner()
        self.assertEqual(missing_tools(runner, ["uptime", "vmstat", "dmesg", "free"]), ["vmstat", "free"])


if __name__ == "__main__":
    unittest.main()
