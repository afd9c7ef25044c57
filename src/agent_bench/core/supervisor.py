"""
Agent process supervisor.

Runs one external command with an explicit argument vector, merges its
stdout and stderr, keeps at most ``max_output_bytes`` of it and kills the
whole process group when the wall-clock timeout expires. Problems are
reported in the returned ExecutionOutcome; ``execute`` never raises for
a failed, crashed or missing agent.
"""

from __future__ import annotations

import asyncio
import os
import signal
import sys
import time
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import IO, Mapping, Sequence

from agent_bench.models.execution import (
    ErrorRecord,
    ExecutionOutcome,
    ExecutionStatus,
)
from agent_bench.utils.logging import get_logger

logger = get_logger(__name__)

MAX_OUTPUT_BYTES = 10 * 1024 * 1024
MARKER_TEMPLATE = "\n[OUTPUT TRUNCATED: Exceeded {limit} limit]"
READ_CHUNK_BYTES = 64 * 1024
# bound on reading leftover output once the child is gone
DRAIN_TIMEOUT_SECONDS = 2.0
ERROR_TAIL_CHARS = 2000


def format_byte_limit(max_bytes: int) -> str:
	"""Render a byte cap the way the truncation marker names it."""
	for unit, size in (("MB", 1024 * 1024), ("KB", 1024)):
		if max_bytes >= size and max_bytes % size == 0:
			return f"{max_bytes // size}{unit}"
	return f"{max_bytes} bytes"


def truncation_marker(max_bytes: int = MAX_OUTPUT_BYTES) -> str:
	return MARKER_TEMPLATE.format(limit=format_byte_limit(max_bytes))


TRUNCATION_MARKER = truncation_marker()


class SupervisorState(str, Enum):
	"""Lifecycle of a supervised process."""

	PENDING = "pending"
	RUNNING = "running"
	COMPLETED = "completed"
	TIMED_OUT = "timed_out"
	CRASHED = "crashed"


def _now_iso() -> str:
	return datetime.now(timezone.utc).isoformat()


class OutputCapture:
	"""
	Bounded output buffer.

	Every byte fed is counted, but only the first ``max_bytes`` are kept.
	When the cap is crossed the retained part of that chunk is kept, the
	truncation flag is set and everything after it is dropped.
	"""

	def __init__(self, max_bytes: int = MAX_OUTPUT_BYTES) -> None:
		self.max_bytes = max_bytes
		self.total_bytes = 0
		self.truncated = False
		self._buf = bytearray()

	def feed(self, chunk: bytes) -> bytes:
		"""Account for ``chunk`` and return the part that was retained."""
		self.total_bytes += len(chunk)
		if self.truncated:
			return b""
		room = self.max_bytes - len(self._buf)
		if len(chunk) <= room:
			self._buf.extend(chunk)
			return chunk
		kept = chunk[:max(room, 0)]
		self._buf.extend(kept)
		self.truncated = True
		return kept

	@property
	def retained_bytes(self) -> int:
		return len(self._buf)

	@property
	def marker(self) -> str:
		return truncation_marker(self.max_bytes)

	@property
	def text(self) -> str:
		out = self._buf.decode("utf-8", errors="replace")
		if self.truncated:
			out += self.marker
		return out


class ProcessSupervisor:
	"""
	Supervise a single process run.

	Parameters:
		command: Executable name or path.
		args: Argument vector, passed without a shell.
		working_dir: Directory the process runs in.
		env: Complete environment for the child.
		timeout_ms: Wall-clock limit; ``<= 0`` disables it.
		log_path: Optional raw terminal log mirror.
		stream: Echo retained output to stdout while capturing.
		max_output_bytes: Capture cap.
	"""

	def __init__(
	    self,
	    command: str,
	    args: Sequence[str],
	    working_dir: Path | str,
	    env: Mapping[str, str] | None,
	    timeout_ms: int,
	    *,
	    log_path: Path | None = None,
	    stream: bool = False,
	    max_output_bytes: int = MAX_OUTPUT_BYTES,
	) -> None:
		self.command = command
		self.args = list(args)
		self.working_dir = Path(working_dir)
		self.env = dict(env) if env is not None else None
		self.timeout_ms = timeout_ms
		self.log_path = log_path
		self.stream = stream
		self.capture = OutputCapture(max_output_bytes)
		self.state = SupervisorState.PENDING
		self.pid: int | None = None
		self._errors: list[ErrorRecord] = []
		self._started_wall: datetime | None = None
		self._t0 = 0.0

	def _error(self, message: str) -> None:
		self._errors.append(ErrorRecord(message=message, timestamp=_now_iso()))

	def _outcome(self, exit_code: int,
	             status: ExecutionStatus) -> ExecutionOutcome:
		duration_ms = max(int((time.monotonic() - self._t0) * 1000), 0)
		started = self._started_wall
		return ExecutionOutcome(
		    exit_code=exit_code,
		    status=status,
		    output=self.capture.text,
		    truncated=self.capture.truncated,
		    started_at=started,
		    completed_at=started + timedelta(milliseconds=duration_ms),
		    duration_ms=duration_ms,
		    errors=tuple(self._errors),
		    terminal_log_path=str(self.log_path) if self.log_path else None,
		)

	def _prestart_failure(self, exit_code: int,
	                      message: str) -> ExecutionOutcome:
		logger.error("agent could not be started: %s", message)
		self._error(message)
		self.state = SupervisorState.CRASHED
		return self._outcome(exit_code, ExecutionStatus.FAILED)

	def _open_log(self) -> IO[bytes] | None:
		if not self.log_path:
			return None
		try:
			self.log_path.parent.mkdir(parents=True, exist_ok=True)
			return self.log_path.open("wb")
		except OSError as exc:
			logger.warning("cannot write terminal log %s: %s", self.log_path,
			               exc)
			self.log_path = None
			return None

	@staticmethod
	def _kill(proc: asyncio.subprocess.Process) -> None:
		"""SIGKILL the child's process group, falling back to the child."""
		try:
			os.killpg(proc.pid, signal.SIGKILL)
			return
		except ProcessLookupError:
			return
		except (AttributeError, OSError):
			pass
		try:
			proc.kill()
		except ProcessLookupError:
			pass

	async def _pump(self, stream: asyncio.StreamReader,
	                log_fp: IO[bytes] | None) -> None:
		while True:
			chunk = await stream.read(READ_CHUNK_BYTES)
			if not chunk:
				break
			kept = self.capture.feed(chunk)
			if not kept:
				continue
			if log_fp is not None:
				log_fp.write(kept)
			if self.stream:
				sys.stdout.write(kept.decode("utf-8", errors="replace"))
				sys.stdout.flush()

	async def run(self) -> ExecutionOutcome:
		"""Run the process to completion or timeout."""
		if self.state != SupervisorState.PENDING:
			raise RuntimeError("a ProcessSupervisor runs only once")
		self._started_wall = datetime.now(timezone.utc)
		self._t0 = time.monotonic()

		if not self.working_dir.is_dir():
			return self._prestart_failure(
			    1, f"Working directory does not exist: {self.working_dir}")
		try:
			proc = await asyncio.create_subprocess_exec(
			    self.command,
			    *self.args,
			    cwd=str(self.working_dir),
			    env=self.env,
			    stdin=asyncio.subprocess.DEVNULL,
			    stdout=asyncio.subprocess.PIPE,
			    stderr=asyncio.subprocess.STDOUT,
			    start_new_session=True,
			)
		except FileNotFoundError:
			return self._prestart_failure(
			    127, f"Executable not found: {self.command}")
		except PermissionError:
			return self._prestart_failure(
			    126, f"Permission denied executing: {self.command}")
		except OSError as exc:
			return self._prestart_failure(
			    1, f"Failed to start {self.command}: {exc}")

		self.pid = proc.pid
		self.state = SupervisorState.RUNNING
		logger.debug("started %s (pid=%d)", self.command, proc.pid)
		log_fp = self._open_log()
		pump = asyncio.ensure_future(self._pump(proc.stdout, log_fp))
		timeout_s = self.timeout_ms / 1000 if self.timeout_ms > 0 else None
		timed_out = False
		try:
			try:
				await asyncio.wait_for(proc.wait(), timeout=timeout_s)
			except asyncio.TimeoutError:
				timed_out = True
				logger.warning("%s exceeded %dms, killing process group",
				               self.command, self.timeout_ms)
				self._kill(proc)
				await proc.wait()
			try:
				await asyncio.wait_for(pump, timeout=DRAIN_TIMEOUT_SECONDS)
			except asyncio.TimeoutError:
				# a detached grandchild still holds the pipe open
				logger.debug("stopped draining output of %s", self.command)
		finally:
			if proc.returncode is None:
				self._kill(proc)
			if not pump.done():
				pump.cancel()
			if log_fp is not None:
				if self.capture.truncated:
					log_fp.write(self.capture.marker.encode())
				log_fp.close()

		exit_code = proc.returncode
		if self.capture.truncated:
			self._error(f"Output truncated: exceeded {self.capture.max_bytes} "
			            f"bytes ({self.capture.total_bytes} bytes produced)")
		if timed_out:
			self.state = SupervisorState.TIMED_OUT
			self._error(f"Agent execution timed out after {self.timeout_ms}ms")
			return self._outcome(exit_code, ExecutionStatus.TIMEOUT)
		self.state = (SupervisorState.CRASHED
		              if exit_code < 0 else SupervisorState.COMPLETED)
		if exit_code == 0:
			return self._outcome(0, ExecutionStatus.SUCCESS)
		tail = self.capture.text[-ERROR_TAIL_CHARS:].strip()
		msg = f"Agent exited with code {exit_code}"
		if tail:
			msg += f"\nLast output:\n{tail}"
		self._error(msg)
		return self._outcome(exit_code, ExecutionStatus.FAILED)


async def execute(
    command: str,
    args: Sequence[str],
    working_dir: Path | str,
    env: Mapping[str, str] | None,
    timeout_ms: int,
    *,
    log_path: Path | None = None,
    stream: bool = False,
    max_output_bytes: int = MAX_OUTPUT_BYTES,
) -> ExecutionOutcome:
	"""
	Run ``command`` under supervision and return its outcome.

	Parameters:
		command: Executable name or path.
		args: Argument vector, passed without a shell.
		working_dir: Directory the process runs in.
		env: Complete environment for the child (None inherits).
		timeout_ms: Wall-clock limit in milliseconds; ``<= 0`` disables it.
		log_path: Optional raw terminal log file.
		stream: Echo output to stdout while capturing.
		max_output_bytes: Capture cap.

	Returns:
		ExecutionOutcome with status success, failed or timeout.
	"""
	supervisor = ProcessSupervisor(
	    command,
	    args,
	    working_dir,
	    env,
	    timeout_ms,
	    log_path=log_path,
	    stream=stream,
	    max_output_bytes=max_output_bytes,
	)
	return await supervisor.run()


__all__ = [
    "MAX_OUTPUT_BYTES",
    "TRUNCATION_MARKER",
    "truncation_marker",
    "SupervisorState",
    "OutputCapture",
    "ProcessSupervisor",
    "execute",
]
