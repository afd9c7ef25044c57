"""
Workspace store.

Allocates one directory tree per run under a configurable root, guards it
with a PID lock file and populates it with shallow git clones:

	<root>/<run_id>/
	    .lock
	    src-modified/        clone the agent works in
	    src-expected/        optional reference clone
	    artifacts/
	        evaluators/
"""

from __future__ import annotations

import asyncio
import json
import os
import shutil
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from agent_bench.errors import (
    WorkspaceError,
    WorkspaceErrorCode,
    WorkspaceLockedError,
)
from agent_bench.models.workspace import (
    LockInfo,
    SourceRef,
    Workspace,
    WorkspacePaths,
)
from agent_bench.utils.logging import get_logger, redact_secrets
from agent_bench.utils.paths import sanitize_workspace_name

logger = get_logger(__name__)

LOCK_FILE_NAME = ".lock"
MODIFIED_DIR_NAME = "src-modified"
EXPECTED_DIR_NAME = "src-expected"
ARTIFACTS_DIR_NAME = "artifacts"
EVALUATOR_ARTIFACTS_DIR_NAME = "evaluators"


class GitCommandError(Exception):
	"""A git invocation failed or timed out."""

	def __init__(self, args: list[str], message: str,
	             returncode: int | None = None) -> None:
		super().__init__(message)
		self.git_args = args
		self.returncode = returncode


def _git_env() -> dict[str, str]:
	return {**os.environ, "GIT_TERMINAL_PROMPT": "0"}


async def run_git(args: list[str], cwd: Path | None = None,
                  timeout: float | None = None) -> str:
	"""
	Run a git command and return its stdout.

	Parameters:
		args: Arguments after ``git``.
		cwd: Working directory.
		timeout: Seconds before the process is killed.

	Returns:
		Decoded stdout.

	Raises:
		GitCommandError: On non-zero exit, timeout or missing git binary.
	"""
	try:
		proc = await asyncio.create_subprocess_exec(
		    "git",
		    *args,
		    cwd=str(cwd) if cwd else None,
		    stdout=asyncio.subprocess.PIPE,
		    stderr=asyncio.subprocess.PIPE,
		    env=_git_env(),
		)
	except OSError as exc:
		raise GitCommandError(args, f"failed to start git: {exc}") from exc
	try:
		stdout, stderr = await asyncio.wait_for(proc.communicate(),
		                                        timeout=timeout)
	except asyncio.TimeoutError:
		proc.kill()
		await proc.wait()
		raise GitCommandError(
		    args, f"git {args[0]} timed out after {timeout}s") from None
	if proc.returncode != 0:
		detail = redact_secrets(stderr.decode(errors="replace").strip())
		raise GitCommandError(args, detail[:2000] or
		                      f"git exited with {proc.returncode}",
		                      returncode=proc.returncode)
	return stdout.decode(errors="replace")


class WorkspaceStore:
	"""Creates, locks and removes per-run workspaces."""

	def __init__(self, root: Path | str,
	             git_timeout_seconds: int = 300) -> None:
		self.root = Path(root).resolve()
		self.git_timeout_seconds = git_timeout_seconds

	def generate_run_id(self, label: str | None = None) -> str:
		"""Return ``<label>-<date>-<ms>`` or ``run-<date>-<ms>``, unused."""
		date = datetime.now(timezone.utc).strftime("%Y-%m-%d")
		prefix = sanitize_workspace_name(label) if label else "run"
		base = f"{prefix}-{date}-{int(time.time() * 1000)}"
		candidate = base
		n = 1
		while (self.root / candidate).exists():
			candidate = f"{base}-{n}"
			n += 1
		return candidate

	def plan_paths(self, run_id: str,
	               with_expected: bool = False) -> WorkspacePaths:
		"""Compute the layout for ``run_id`` without touching disk."""
		run_dir = self.root / run_id
		artifacts = run_dir / ARTIFACTS_DIR_NAME
		return WorkspacePaths(
		    root=self.root,
		    run_dir=run_dir,
		    modified_dir=run_dir / MODIFIED_DIR_NAME,
		    expected_dir=run_dir / EXPECTED_DIR_NAME if with_expected else None,
		    artifacts_dir=artifacts,
		    evaluator_artifacts_dir=artifacts / EVALUATOR_ARTIFACTS_DIR_NAME,
		    lock_file=run_dir / LOCK_FILE_NAME,
		)

	@staticmethod
	def is_process_running(pid: int) -> bool:
		"""Return True if a process with ``pid`` exists."""
		if pid <= 0:
			return False
		try:
			os.kill(pid, 0)
		except ProcessLookupError:
			return False
		except PermissionError:
			# exists but owned by another user
			return True
		except OSError:
			return False
		return True

	@staticmethod
	def read_lock(lock_file: Path) -> LockInfo:
		"""
		Parse a lock file.

		Raises:
			OSError: If the file cannot be read.
			ValueError: If the content is not a valid lock record.
		"""
		data = json.loads(Path(lock_file).read_text(encoding="utf-8"))
		return LockInfo.model_validate(data)

	def is_locked(self, lock_file: Path) -> bool:
		"""Return True only if the lock exists and its holder is alive."""
		try:
			info = self.read_lock(lock_file)
		except FileNotFoundError:
			return False
		except (OSError, ValueError):
			return False
		return self.is_process_running(info.pid)

	def _check_existing_lock(self, lock_file: Path) -> None:
		if not lock_file.exists():
			return
		try:
			info = self.read_lock(lock_file)
		except (OSError, ValueError) as exc:
			logger.warning("removing unreadable lockfile %s: %s", lock_file,
			               exc)
		else:
			if self.is_process_running(info.pid):
				raise WorkspaceLockedError(lock_file, info.pid)
			logger.warning("removing stale lockfile (PID %d not running)",
			               info.pid)
		try:
			lock_file.unlink()
		except FileNotFoundError:
			pass

	def _acquire_lock(self, lock_file: Path, repo: str) -> None:
		record = LockInfo(
		    pid=os.getpid(),
		    timestamp=datetime.now(timezone.utc).isoformat(),
		    repo=repo,
		)
		try:
			fd = os.open(lock_file, os.O_CREAT | os.O_EXCL | os.O_WRONLY,
			             0o644)
		except FileExistsError:
			try:
				pid = self.read_lock(lock_file).pid
			except (OSError, ValueError):
				pid = -1
			raise WorkspaceLockedError(lock_file, pid) from None
		with os.fdopen(fd, "w", encoding="utf-8") as fp:
			json.dump(record.model_dump(), fp, indent=2)

	async def _clone(self, repo: str, target: Path, branch: str | None,
	                 commit: str | None, timeout: float) -> str:
		args = ["clone", "--depth", "1"]
		if branch:
			args += ["--branch", branch, "--single-branch"]
		args += ["--", repo, str(target)]
		logger.debug("cloning %s into %s", repo, target)
		try:
			await run_git(args, timeout=timeout)
		except GitCommandError as exc:
			raise WorkspaceError(
			    WorkspaceErrorCode.CLONE_FAILED,
			    f"Failed to clone repository '{redact_secrets(repo)}': {exc}",
			    details=str(exc),
			) from exc
		if commit:
			await self._checkout_commit(target, commit, timeout)
		try:
			head = await run_git(["rev-parse", "HEAD"], cwd=target,
			                     timeout=timeout)
		except GitCommandError as exc:
			raise WorkspaceError(WorkspaceErrorCode.CLONE_FAILED,
			                     f"Failed to resolve HEAD: {exc}") from exc
		return head.strip()

	async def _checkout_commit(self, target: Path, commit: str,
	                           timeout: float) -> None:
		try:
			try:
				await run_git(["cat-file", "-e", f"{commit}^{{commit}}"],
				              cwd=target, timeout=timeout)
			except GitCommandError:
				shallow = await run_git(
				    ["rev-parse", "--is-shallow-repository"], cwd=target,
				    timeout=timeout)
				if shallow.strip() == "true":
					await run_git(["fetch", "--unshallow"], cwd=target,
					              timeout=timeout)
				else:
					await run_git(["fetch", "origin", commit], cwd=target,
					              timeout=timeout)
			await run_git(["checkout", "--quiet", commit], cwd=target,
			              timeout=timeout)
		except GitCommandError as exc:
			raise WorkspaceError(
			    WorkspaceErrorCode.CHECKOUT_FAILED,
			    f"Failed to checkout commit '{commit}': {exc}",
			    details=str(exc),
			) from exc

	async def create_workspace(self, source: SourceRef, *,
	                           run_id: str | None = None,
	                           label: str | None = None,
	                           timeout: float | None = None) -> Workspace:
		"""
		Provision a locked workspace and clone the source into it.

		Parameters:
			source: Repository reference to clone.
			run_id: Explicit run id; generated from ``label`` when omitted.
			label: Human label used as the run id prefix.
			timeout: Seconds allowed per git call.

		Returns:
			The ready Workspace.

		Raises:
			WorkspaceLockedError: A live process holds the lock.
			WorkspaceError: Invalid source, clone or checkout failure.
		"""
		if not source.repo or not source.repo.strip():
			raise WorkspaceError(WorkspaceErrorCode.INVALID_CONFIG,
			                     "Repository URL cannot be empty")
		if timeout is not None and timeout <= 0:
			raise WorkspaceError(WorkspaceErrorCode.INVALID_CONFIG,
			                     "Timeout must be a positive number")
		git_timeout = timeout or self.git_timeout_seconds

		rid = run_id or self.generate_run_id(label)
		paths = self.plan_paths(rid, with_expected=bool(source.expected_branch))
		logger.debug("creating workspace %s", rid)

		self._check_existing_lock(paths.lock_file)
		paths.run_dir.mkdir(parents=True, exist_ok=True)
		self._acquire_lock(paths.lock_file, redact_secrets(source.repo))

		try:
			for leftover in (paths.run_dir / MODIFIED_DIR_NAME,
			                 paths.run_dir / EXPECTED_DIR_NAME,
			                 paths.artifacts_dir):
				if leftover.exists():
					logger.debug("removing leftover %s", leftover)
					shutil.rmtree(leftover)
			paths.evaluator_artifacts_dir.mkdir(parents=True, exist_ok=True)

			modified_commit = await self._clone(source.repo,
			                                    paths.modified_dir,
			                                    source.branch, source.commit,
			                                    git_timeout)
			expected_commit = None
			if source.expected_branch:
				try:
					expected_commit = await self._clone(
					    source.repo, paths.expected_dir,
					    source.expected_branch, None, git_timeout)
				except WorkspaceError as exc:
					raise WorkspaceError(
					    WorkspaceErrorCode.EXPECTED_BRANCH_NOT_FOUND,
					    f"Failed to clone expected branch "
					    f"'{source.expected_branch}': {exc.message}",
					    details=exc.details,
					) from exc
		except BaseException:
			self._remove(paths, rid)
			raise

		workspace = Workspace(
		    run_id=rid,
		    paths=paths,
		    source=source,
		    modified_commit=modified_commit,
		    expected_commit=expected_commit,
		)
		logger.info("workspace created: %s", rid)
		return workspace

	def _remove(self, paths: WorkspacePaths, run_id: str) -> None:
		try:
			paths.lock_file.unlink()
		except FileNotFoundError:
			pass
		except OSError as exc:
			logger.warning("failed to remove lockfile %s: %s",
			               paths.lock_file, exc)
		try:
			if paths.run_dir.exists():
				shutil.rmtree(paths.run_dir)
		except OSError as exc:
			logger.warning("failed to remove workspace directory %s: %s",
			               paths.run_dir, exc)
		logger.info("workspace cleaned up: %s", run_id)

	def cleanup(self, workspace: Workspace) -> None:
		"""Remove the lock file, then the whole run directory. Never raises."""
		try:
			self._remove(workspace.paths, workspace.run_id)
		except Exception:
			logger.exception("cleanup failed for workspace %s",
			                 workspace.run_id)

	def release_lock(self, workspace: Workspace) -> None:
		"""Remove only the lock file, keeping the workspace for inspection."""
		try:
			workspace.paths.lock_file.unlink()
		except FileNotFoundError:
			pass
		except OSError as exc:
			logger.warning("failed to release lockfile %s: %s",
			               workspace.paths.lock_file, exc)

	@staticmethod
	def workspace_info(workspace: Workspace) -> dict[str, Any]:
		"""Summarise a workspace for display."""
		p = workspace.paths
		return {
		    "run_id": workspace.run_id,
		    "repo": redact_secrets(workspace.source.repo),
		    "branch": workspace.source.branch,
		    "modified_commit": workspace.modified_commit,
		    "expected_branch": workspace.source.expected_branch,
		    "expected_commit": workspace.expected_commit,
		    "created_at": workspace.created_at.isoformat(),
		    "paths": {
		        "run_dir": str(p.run_dir),
		        "modified_dir": str(p.modified_dir),
		        "expected_dir": str(p.expected_dir) if p.expected_dir else None,
		        "artifacts_dir": str(p.artifacts_dir),
		    },
		}


__all__ = [
    "GitCommandError",
    "WorkspaceStore",
    "run_git",
    "LOCK_FILE_NAME",
    "MODIFIED_DIR_NAME",
    "EXPECTED_DIR_NAME",
]
