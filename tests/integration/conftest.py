"""
Integration fixtures: tmp_path 안의 프로젝트 (config.yaml + apps/ + prompts/ + .state/).
"""

from pathlib import Path

import pytest

CONFIG_TEMPLATE = """\
paths:
  apps_dir: apps
  prompts_dir: prompts
  state_file: .state/apps.json
  history_dir: .state/history
deploy:
  api_url: https://host
  retry_initial_delay: 0
  retry_max_delay: 0
validation:
  max_size_bytes: {max_size}
"""


@pytest.fixture
def project(tmp_path: Path, apps_root: Path, prompts_dir: Path, monkeypatch) -> Path:
    """config.yaml 경로. 환경변수 오버라이드 제거."""
    monkeypatch.delenv("APP_FACTORY_API_URL", raising=False)
    monkeypatch.delenv("APP_FACTORY_TIMEOUT", raising=False)
    config = tmp_path / "config.yaml"
    config.write_text(CONFIG_TEMPLATE.format(max_size=100000), encoding="utf-8")
    return config


@pytest.fixture
def tiny_project(project: Path) -> Path:
    """max_size_bytes가 아주 작은 프로젝트."""
    project.write_text(CONFIG_TEMPLATE.format(max_size=50), encoding="utf-8")
    return project
