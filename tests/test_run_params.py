from pathlib import Path

import pytest

from agent_bench.models.run_params import RunParams


def test_run_params_valid():
	rp = RunParams(config_file="cases/fix.yaml", label="My Run!", timeout=60)
	assert rp.config_file == Path("cases/fix.yaml")
	assert rp.timeout == 60
	assert rp.label_slug == "My-Run"
	assert rp.keep_workspace is None


def test_run_params_accepts_json_and_yml():
	assert RunParams(config_file="a.JSON").config_file.suffix == ".JSON"
	assert RunParams(config_file="a.yml").config_file.name == "a.yml"


def test_run_params_invalid_suffix():
	with pytest.raises(ValueError):
		RunParams(config_file="case.txt")


def test_run_params_positive_timeout():
	with pytest.raises(ValueError):
		RunParams(config_file="case.yaml", timeout=0)


def test_label_slug_absent_without_label():
	assert RunParams(config_file="case.yaml").label_slug is None
