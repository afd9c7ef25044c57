import json
import os

import pytest

from agent_bench.core.workspace import (
	GitCommandError,
	WorkspaceStore,
	run_git,
)
from agent_bench.errors import (
	WorkspaceError,
	WorkspaceErrorCode,
	WorkspaceLockedError,
)
from agent_bench.models.workspace import SourceRef


def _dead_pid() -> int:
	pid = 999999
	while True:
		try:
			os.kill(pid, 0)
		except ProcessLookupError:
			return pid
		except PermissionError:
			pass
		pid -= 1


def test_run_id_uses_sanitized_label(tmp_path):
	store = WorkspaceStore(tmp_path)
	rid = store.generate_run_id("My Label!")
	assert rid.startswith("My-Label-")
	assert store.generate_run_id().startswith("run-")


def test_run_id_avoids_existing_directories(tmp_path, monkeypatch):
	monkeypatch.setattr("agent_bench.core.workspace.time.time", lambda: 1.0)
	store = WorkspaceStore(tmp_path)
	first = store.generate_run_id("x")
	(tmp_path / first).mkdir()
	assert store.generate_run_id("x") == f"{first}-1"


def test_plan_paths_layout(tmp_path):
	paths = WorkspaceStore(tmp_path).plan_paths("r1", with_expected=True)
	assert paths.run_dir == tmp_path.resolve() / "r1"
	assert paths.modified_dir.name == "src-modified"
	assert paths.expected_dir.name == "src-expected"
	assert paths.evaluator_artifacts_dir == paths.artifacts_dir / "evaluators"
	assert paths.lock_file.name == ".lock"
	assert WorkspaceStore(tmp_path).plan_paths("r2").expected_dir is None


@pytest.mark.asyncio
async def test_empty_repo_is_invalid_config(tmp_path):
	with pytest.raises(WorkspaceError) as exc_info:
		await WorkspaceStore(tmp_path).create_workspace(SourceRef(repo=" "))
	assert exc_info.value.code == WorkspaceErrorCode.INVALID_CONFIG


@pytest.mark.asyncio
async def test_create_workspace_clones_and_locks(tmp_path, source_repo):
	store = WorkspaceStore(tmp_path / "ws")
	ws = await store.create_workspace(SourceRef(repo=source_repo["url"]),
	                                  label="demo")
	assert (ws.paths.modified_dir / "app.py").exists()
	assert ws.paths.evaluator_artifacts_dir.is_dir()
	assert len(ws.modified_commit) == 40
	lock = json.loads(ws.paths.lock_file.read_text())
	assert lock["pid"] == os.getpid()
	assert store.is_locked(ws.paths.lock_file)
	info = store.workspace_info(ws)
	assert info["run_id"] == ws.run_id

	store.release_lock(ws)
	assert not ws.paths.lock_file.exists()
	assert ws.paths.run_dir.exists()
	store.cleanup(ws)
	assert not ws.paths.run_dir.exists()


@pytest.mark.asyncio
async def test_expected_branch_gets_its_own_clone(tmp_path, source_repo):
	store = WorkspaceStore(tmp_path / "ws")
	ws = await store.create_workspace(
	    SourceRef(repo=source_repo["url"], branch="main",
	              expected_branch="expected"))
	assert "a - b" in (ws.paths.modified_dir / "app.py").read_text()
	assert "a + b" in (ws.paths.expected_dir / "app.py").read_text()
	assert ws.expected_commit and ws.expected_commit != ws.modified_commit
	store.cleanup(ws)


@pytest.mark.asyncio
async def test_checkout_older_commit_in_shallow_clone(tmp_path, source_repo):
	store = WorkspaceStore(tmp_path / "ws")
	ws = await store.create_workspace(
	    SourceRef(repo=source_repo["url"], commit=source_repo["first_commit"]))
	assert ws.modified_commit == source_repo["first_commit"]
	assert not (ws.paths.modified_dir / "notes.txt").exists()
	store.cleanup(ws)


@pytest.mark.asyncio
async def test_missing_expected_branch_removes_workspace(tmp_path,
                                                         source_repo):
	store = WorkspaceStore(tmp_path / "ws")
	with pytest.raises(WorkspaceError) as exc_info:
		await store.create_workspace(SourceRef(repo=source_repo["url"],
		                                       expected_branch="missing"),
		                             run_id="r1")
	assert exc_info.value.code == WorkspaceErrorCode.EXPECTED_BRANCH_NOT_FOUND
	assert not (tmp_path / "ws" / "r1").exists()


@pytest.mark.asyncio
async def test_clone_failure_is_reported(tmp_path, source_repo):
	store = WorkspaceStore(tmp_path / "ws")
	with pytest.raises(WorkspaceError) as exc_info:
		await store.create_workspace(
		    SourceRef(repo=(tmp_path / "no-such-repo").as_uri()), run_id="r1")
	assert exc_info.value.code == WorkspaceErrorCode.CLONE_FAILED
	assert exc_info.value.actions
	assert not (tmp_path / "ws" / "r1").exists()


@pytest.mark.asyncio
async def test_live_lock_blocks_second_run(tmp_path):
	store = WorkspaceStore(tmp_path)
	run_dir = tmp_path / "r1"
	run_dir.mkdir()
	(run_dir / ".lock").write_text(
	    json.dumps({"pid": os.getpid(), "timestamp": "now"}))
	with pytest.raises(WorkspaceLockedError) as exc_info:
		await store.create_workspace(SourceRef(repo="file:///nowhere"),
		                             run_id="r1")
	assert exc_info.value.pid == os.getpid()
	assert (run_dir / ".lock").exists()


@pytest.mark.asyncio
async def test_stale_lock_is_replaced(tmp_path, source_repo):
	store = WorkspaceStore(tmp_path / "ws")
	run_dir = tmp_path / "ws" / "r1"
	run_dir.mkdir(parents=True)
	(run_dir / ".lock").write_text(
	    json.dumps({"pid": _dead_pid(), "timestamp": "then"}))
	(run_dir / "src-modified").mkdir()
	(run_dir / "src-modified" / "leftover.txt").write_text("old")
	ws = await store.create_workspace(SourceRef(repo=source_repo["url"]),
	                                  run_id="r1")
	assert json.loads(ws.paths.lock_file.read_text())["pid"] == os.getpid()
	assert not (ws.paths.modified_dir / "leftover.txt").exists()
	store.cleanup(ws)


def test_is_locked_ignores_garbage(tmp_path):
	lock = tmp_path / ".lock"
	lock.write_text("not json")
	assert WorkspaceStore(tmp_path).is_locked(lock) is False
	assert WorkspaceStore(tmp_path).is_locked(tmp_path / "missing") is False


@pytest.mark.asyncio
async def test_run_git_raises_on_failure(tmp_path, source_repo):
	with pytest.raises(GitCommandError) as exc_info:
		await run_git(["rev-parse", "no-such-ref"], cwd=source_repo["path"])
	assert exc_info.value.returncode != 0
