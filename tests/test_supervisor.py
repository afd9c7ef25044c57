import os
import sys
import time

import pytest

from agent_bench.core.supervisor import (
	TRUNCATION_MARKER,
	OutputCapture,
	ProcessSupervisor,
	SupervisorState,
	execute,
	truncation_marker,
)
from agent_bench.models.execution import ExecutionStatus


def _py(code: str) -> tuple[str, list[str]]:
	return sys.executable, ["-c", code]


@pytest.mark.asyncio
async def test_agent_finishing_within_timeout_succeeds(tmp_path):
	cmd, args = _py("import time; time.sleep(2); print('done')")
	outcome = await execute(cmd, args, tmp_path, dict(os.environ), 5000)
	assert outcome.status == ExecutionStatus.SUCCESS
	assert outcome.exit_code == 0
	assert "done" in outcome.output
	assert outcome.errors == ()
	assert outcome.duration_ms >= 1900


@pytest.mark.asyncio
async def test_agent_exceeding_timeout_is_killed(tmp_path):
	cmd, args = _py(
	    "import time; print('started', flush=True); time.sleep(10)")
	t0 = time.monotonic()
	outcome = await execute(cmd, args, tmp_path, dict(os.environ), 2000)
	elapsed = time.monotonic() - t0
	assert outcome.status == ExecutionStatus.TIMEOUT
	assert elapsed < 5
	assert "started" in outcome.output
	assert any("timed out after 2000ms" in e.message for e in outcome.errors)


@pytest.mark.asyncio
async def test_timeout_kills_child_processes(tmp_path):
	marker = tmp_path / "grandchild-alive"
	grandchild = (f"import time; time.sleep(3); "
	              f"open({str(marker)!r}, 'w').close()")
	code = ("import subprocess, sys, time\n"
	        f"subprocess.Popen([sys.executable, '-c', {grandchild!r}])\n"
	        "time.sleep(10)\n")
	cmd, args = _py(code)
	outcome = await execute(cmd, args, tmp_path, dict(os.environ), 1000)
	assert outcome.status == ExecutionStatus.TIMEOUT
	time.sleep(3.5)
	assert not marker.exists()


@pytest.mark.asyncio
async def test_nonzero_exit_is_failed_with_output_tail(tmp_path):
	cmd, args = _py("import sys; print('boom'); sys.exit(3)")
	outcome = await execute(cmd, args, tmp_path, dict(os.environ), 5000)
	assert outcome.status == ExecutionStatus.FAILED
	assert outcome.exit_code == 3
	assert "Agent exited with code 3" in outcome.errors[0].message
	assert "boom" in outcome.errors[0].message


@pytest.mark.asyncio
async def test_stderr_is_merged_into_output(tmp_path):
	cmd, args = _py("import sys; print('out'); print('err', file=sys.stderr)")
	outcome = await execute(cmd, args, tmp_path, dict(os.environ), 5000)
	assert "out" in outcome.output
	assert "err" in outcome.output


@pytest.mark.asyncio
async def test_missing_executable_reports_127(tmp_path):
	outcome = await execute("definitely-not-a-real-agent-cli", [], tmp_path,
	                        dict(os.environ), 1000)
	assert outcome.status == ExecutionStatus.FAILED
	assert outcome.exit_code == 127
	assert "Executable not found" in outcome.errors[0].message


@pytest.mark.asyncio
async def test_missing_working_directory_fails_before_start(tmp_path):
	cmd, args = _py("print('x')")
	outcome = await execute(cmd, args, tmp_path / "nope", dict(os.environ),
	                        1000)
	assert outcome.status == ExecutionStatus.FAILED
	assert "Working directory does not exist" in outcome.errors[0].message


@pytest.mark.asyncio
async def test_output_cap_truncates_and_marks(tmp_path):
	cmd, args = _py("import sys; sys.stdout.write('x' * 5000)")
	log_path = tmp_path / "logs" / "terminal.log"
	outcome = await execute(cmd, args, tmp_path, dict(os.environ), 5000,
	                        log_path=log_path, max_output_bytes=1000)
	assert outcome.status == ExecutionStatus.SUCCESS
	assert outcome.truncated is True
	marker = truncation_marker(1000)
	assert marker == "\n[OUTPUT TRUNCATED: Exceeded 1000 bytes limit]"
	assert outcome.output == "x" * 1000 + marker
	assert any("Output truncated" in e.message for e in outcome.errors)
	assert outcome.terminal_log_path == str(log_path)
	assert log_path.read_bytes().endswith(marker.encode())


@pytest.mark.asyncio
async def test_supervisor_runs_only_once(tmp_path):
	cmd, args = _py("pass")
	sup = ProcessSupervisor(cmd, args, tmp_path, dict(os.environ), 5000)
	await sup.run()
	assert sup.state == SupervisorState.COMPLETED
	with pytest.raises(RuntimeError):
		await sup.run()


def test_output_capture_counts_dropped_bytes():
	cap = OutputCapture(max_bytes=4)
	assert cap.feed(b"abc") == b"abc"
	assert cap.feed(b"def") == b"d"
	assert cap.feed(b"ghi") == b""
	assert cap.truncated is True
	assert cap.total_bytes == 9
	assert cap.retained_bytes == 4
	assert cap.text.startswith("abcd")


def test_truncation_marker_names_the_cap():
	assert TRUNCATION_MARKER == "\n[OUTPUT TRUNCATED: Exceeded 10MB limit]"
	assert truncation_marker(64 * 1024) == (
	    "\n[OUTPUT TRUNCATED: Exceeded 64KB limit]")
	cap = OutputCapture(max_bytes=2048)
	cap.feed(b"y" * 3000)
	assert cap.text == "y" * 2048 + "\n[OUTPUT TRUNCATED: Exceeded 2KB limit]"
