"""
test_cli.py - app-factory CLI 종단 테스트

main([...], http_client=...)로 실행, 종료 코드 + stdout/stderr 확인.
"""

import json

import pytest

from src.app.main import main


pytestmark = pytest.mark.integration


def cli(config, *argv, http_client=None) -> int:
    return main(["--config", str(config), *argv], http_client=http_client)


# =============================================================================
# deploy
# =============================================================================

class TestDeployCli:
    """deploy 서브커맨드."""

    def test_deploy_success(self, project, ok_transport, http_client, capsys):
        code = cli(project, "deploy", "my-widget", http_client=http_client)

        out = capsys.readouterr().out
        assert code == 0
        assert "https://host/live/my-widget" in out
        assert len(ok_transport.requests) == 1
        assert str(ok_transport.requests[0].url) == "https://host/live/my-widget"

    def test_oversize_rejected(self, tiny_project, ok_transport, http_client, capsys):
        code = cli(tiny_project, "deploy", "my-widget", http_client=http_client)

        err = capsys.readouterr().err
        assert code != 0
        assert "[max-size]" in err
        assert ok_transport.requests == []

    def test_missing_app(self, project, http_client, capsys):
        code = cli(project, "deploy", "ghost", http_client=http_client)

        assert code == 1
        assert "App file not found for: ghost" in capsys.readouterr().err

    def test_dry_run(self, project, ok_transport, http_client, capsys):
        code = cli(project, "deploy", "my-widget", "--dry-run", http_client=http_client)

        assert code == 0
        assert "DRY RUN" in capsys.readouterr().out
        assert ok_transport.requests == []

    def test_negative_retries(self, project):
        with pytest.raises(SystemExit) as exc_info:
            cli(project, "deploy", "my-widget", "--retries", "-1")

        assert exc_info.value.code == 2

    def test_env_overrides_api_url(self, project, ok_transport, http_client, monkeypatch, capsys):
        monkeypatch.setenv("APP_FACTORY_API_URL", "https://staging.host")

        code = cli(project, "deploy", "my-widget", http_client=http_client)

        assert code == 0
        assert str(ok_transport.requests[0].url) == "https://staging.host/live/my-widget"


# =============================================================================
# prompt
# =============================================================================

class TestPromptCli:
    """prompt 서브커맨드."""

    def test_prompt_text(self, project, capsys):
        code = cli(project, "prompt", "my-widget")

        out = capsys.readouterr().out
        assert code == 0
        assert "PROMPT FOR: my-widget" in out
        assert "   Phase: plan" in out
        assert "Plan my-widget (widgets): A my widget application" in out

    def test_prompt_json(self, project, valid_app_text, capsys):
        code = cli(project, "prompt", "my-widget", "test", "--format", "json")

        data = json.loads(capsys.readouterr().out)
        assert code == 0
        assert data["phase"] == "test"
        assert data["instructions"] == "Test my-widget in widgets"
        assert data["sourceExcerpt"] == valid_app_text

    def test_unknown_phase(self, project, capsys):
        code = cli(project, "prompt", "my-widget", "reviewed")

        captured = capsys.readouterr()
        assert code != 0
        assert "Unknown phase 'reviewed'" in captured.err
        assert "PROMPT FOR" not in captured.out

    def test_prompt_is_byte_identical(self, project, capsys):
        cli(project, "prompt", "my-widget", "polish")
        first = capsys.readouterr().out
        cli(project, "prompt", "my-widget", "polish")
        second = capsys.readouterr().out

        assert first.encode("utf-8") == second.encode("utf-8")


# =============================================================================
# init / advance / status
# =============================================================================

class TestStateCli:
    """init/advance/status 서브커맨드."""

    def test_lifecycle(self, project, tmp_path, capsys):
        assert cli(project, "init", "my-widget", "widgets") == 0
        assert cli(project, "advance", "my-widget", "--failure", "--reason", "no tests") == 0
        assert cli(project, "advance", "my-widget", "--success") == 0
        capsys.readouterr()

        assert cli(project, "prompt", "my-widget") == 0
        assert "Develop my-widget. Last error: None" in capsys.readouterr().out

        assert cli(project, "status") == 0
        assert "DEVELOP (1)" in capsys.readouterr().out

        state = json.loads((tmp_path / ".state" / "apps.json").read_text(encoding="utf-8"))
        assert state["apps"]["my-widget"]["phase"] == "develop"
        assert (tmp_path / ".state" / "history" / "my-widget.log").exists()

    def test_deploy_updates_registered_app(self, project, tmp_path, http_client):
        cli(project, "init", "my-widget", "widgets")

        assert cli(project, "deploy", "my-widget", http_client=http_client) == 0

        state = json.loads((tmp_path / ".state" / "apps.json").read_text(encoding="utf-8"))
        assert state["apps"]["my-widget"]["liveUrl"] == "https://host/live/my-widget"

    def test_advance_requires_result(self, project):
        with pytest.raises(SystemExit):
            cli(project, "advance", "my-widget")

    def test_state_file_override(self, project, tmp_path, capsys):
        other = tmp_path / "elsewhere" / "apps.json"

        assert cli(project, "--state-file", str(other), "init", "timer", "utility") == 0

        assert other.exists()
        assert (tmp_path / "elsewhere" / "history" / "timer.log").exists()

    def test_next(self, project, capsys):
        assert cli(project, "next") == 0
        assert "No pending apps" in capsys.readouterr().out

        cli(project, "init", "my-widget", "widgets")
        cli(project, "advance", "my-widget", "--failure", "--reason", "no tests")
        capsys.readouterr()

        assert cli(project, "next", "--format", "json") == 0
        data = json.loads(capsys.readouterr().out)
        assert data["app"] == "my-widget"
        assert data["phase"] == "plan"

    def test_api_url_without_scheme(self, project, http_client, ok_transport, monkeypatch, capsys):
        monkeypatch.setenv("APP_FACTORY_API_URL", "staging.host")

        code = cli(project, "deploy", "my-widget", http_client=http_client)

        assert code == 1
        assert "deploy.api_url" in capsys.readouterr().err
        assert ok_transport.requests == []

    def test_bad_config(self, tmp_path, capsys):
        config = tmp_path / "broken.yaml"
        config.write_text("deploy: [oops", encoding="utf-8")

        assert cli(config, "status") == 1
        assert "configuration failed" in capsys.readouterr().err
