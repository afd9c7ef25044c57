import pytest

from agent_bench.utils.paths import (
	PACKAGE_DIR,
	ensure_within,
	is_safe_relative_path,
	resolve_asset_path,
	sanitize_workspace_name,
)


def test_ensure_within(tmp_path):
	base = tmp_path / "base"
	child = base / "a" / "b"
	# path may not exist; ensure_within should still allow
	assert ensure_within(base, child) == child


def test_ensure_within_raises(tmp_path):
	base = tmp_path / "base"
	outside = tmp_path.parent / "other"
	with pytest.raises(ValueError):
		ensure_within(base, outside)


def test_ensure_within_rejects_dotdot(tmp_path):
	with pytest.raises(ValueError):
		ensure_within(tmp_path / "base", tmp_path / "base" / ".." / "x")


@pytest.mark.parametrize("value,expected", [
    ("prompts/task.md", True),
    ("task.md", True),
    ("a/./b.md", True),
    ("../task.md", False),
    ("a/../../b", False),
    ("/etc/passwd", False),
    ("\\\\server\\share", False),
    ("C:\\prompts\\task.md", False),
    ("a\\..\\b", False),
    ("", False),
])
def test_is_safe_relative_path(value, expected):
	assert is_safe_relative_path(value) is expected


@pytest.mark.parametrize("label,expected", [
    ("My Label", "My-Label"),
    ("--fix/add!", "fixadd"),
    ("run_1.2", "run_1.2"),
    ("!!!", "workspace"),
])
def test_sanitize_workspace_name(label, expected):
	assert sanitize_workspace_name(label) == expected


def test_sanitize_workspace_name_is_capped():
	assert len(sanitize_workspace_name("a" * 300)) == 100


def test_resolve_asset_path(tmp_path):
	existing = tmp_path / "x.md"
	existing.write_text("x")
	assert resolve_asset_path(str(existing)) == existing
	assert resolve_asset_path("prompts/agentic_judge.md") == (
	    PACKAGE_DIR / "prompts" / "agentic_judge.md")
