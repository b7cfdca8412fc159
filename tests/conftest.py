"""
Pytest fixtures for the app pipeline tests.

구성:
- 정상 앱 소스, 규칙 위반 앱 소스
- tmp_path 기반 apps/ 트리, state 파일, prompts/
- httpx.MockTransport 기반 호스팅 API
"""

from collections.abc import Callable, Generator
from pathlib import Path

import httpx
import pytest

from src.domain.schemas import AppIdentity, AppSource

# =============================================================================
# Source Fixtures
# =============================================================================

VALID_APP = """\
import { useState } from "react";
import { Button } from "@/components/ui/button";

export default function App() {
  const [count, setCount] = useState(0);

  return (
    <div className="min-h-screen p-4">
      <p className="text-4xl font-bold">{count}</p>
      <Button onClick={() => setCount((c) => c + 1)}>Increase</Button>
    </div>
  );
}
"""


@pytest.fixture
def valid_app_text() -> str:
    """모든 규칙을 통과하는 앱 소스."""
    return VALID_APP


@pytest.fixture
def make_source() -> Callable[..., AppSource]:
    """AppSource 생성 헬퍼."""

    def _make(text: str, category: str = "widgets", name: str = "my-widget") -> AppSource:
        identity = AppIdentity(category=category, name=name)
        return AppSource(identity=identity, path=Path(f"apps/{category}/{name}.tsx"), text=text)

    return _make


# =============================================================================
# Filesystem Fixtures
# =============================================================================

@pytest.fixture
def apps_root(tmp_path: Path) -> Path:
    """테스트용 apps/ 루트 (widgets/my-widget.tsx 포함)."""
    root = tmp_path / "apps"
    (root / "widgets").mkdir(parents=True)
    (root / "utility").mkdir()
    (root / "widgets" / "my-widget.tsx").write_text(VALID_APP, encoding="utf-8")
    return root


@pytest.fixture
def write_app(apps_root: Path) -> Callable[..., Path]:
    """apps/<category>/<name>.tsx 작성 헬퍼."""

    def _write(category: str, name: str, text: str) -> Path:
        path = apps_root / category / f"{name}.tsx"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def state_file(tmp_path: Path) -> Path:
    """state 파일 경로 (아직 생성 안 됨)."""
    return tmp_path / ".state" / "apps.json"


@pytest.fixture
def prompt_templates() -> dict[str, str]:
    """phase별 테스트 템플릿 (complete는 의도적으로 없음)."""
    return {
        "plan": "Plan {app-name} ({category}): {app-description}",
        "develop": "Develop {app-name}. Last error: {last-error}",
        "test": "Test {app-name} in {category}",
        "debug": "Debug {app-name}: {last-error}",
        "polish": "Polish {app-name}",
    }


@pytest.fixture
def prompts_dir(tmp_path: Path, prompt_templates: dict[str, str]) -> Path:
    """prompts/<phase>.md 디렉터리."""
    root = tmp_path / "prompts"
    root.mkdir()
    for phase, template in prompt_templates.items():
        (root / f"{phase}.md").write_text(template, encoding="utf-8")
    return root


# =============================================================================
# HTTP Fixtures
# =============================================================================

class RecordingTransport(httpx.MockTransport):
    """요청을 기록하는 MockTransport."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


@pytest.fixture
def ok_transport() -> RecordingTransport:
    """항상 200 + liveUrl 없는 JSON을 돌려주는 호스팅 API."""
    return RecordingTransport(lambda request: httpx.Response(200, json={"ok": True}))


@pytest.fixture
def make_transport() -> Callable[..., RecordingTransport]:
    """handler로 RecordingTransport 생성."""
    return RecordingTransport


@pytest.fixture
def http_client(ok_transport: RecordingTransport) -> Generator[httpx.Client, None, None]:
    client = httpx.Client(transport=ok_transport)
    yield client
    client.close()
