"""
History logging: 앱별 이벤트 로그 (.state/history/<name>.log)

규칙:
- JSON lines, append-only
- 필수 키: timestamp, event
- 이벤트: initialized, phase_complete, phase_failed, deployed
"""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# =============================================================================
# History Events
# =============================================================================

HISTORY_EVENTS = frozenset([
    "initialized",
    "phase_complete",
    "phase_failed",
    "deployed",
])


def history_path(history_dir: Path, app_name: str) -> Path:
    """앱별 history 파일 경로."""
    return history_dir / f"{app_name}.log"


def append_history(
    history_dir: Path,
    app_name: str,
    event: str,
    **details: Any,
) -> Path:
    """
    이벤트 한 줄 기록.

    Args:
        history_dir: .state/history/ 경로
        app_name: 앱 이름
        event: 이벤트 이름 (HISTORY_EVENTS)
        **details: 추가 컨텍스트

    Returns:
        기록된 파일 경로

    Raises:
        ValueError: 알 수 없는 이벤트
    """
    if event not in HISTORY_EVENTS:
        raise ValueError(f"Unknown history event: {event}")

    history_dir.mkdir(parents=True, exist_ok=True)
    log_path = history_path(history_dir, app_name)

    entry = {
        "timestamp": datetime.now(UTC).isoformat(),
        "event": event,
        **details,
    }

    with open(log_path, "a", encoding="utf-8") as f:
        f.write(json.dumps(entry, ensure_ascii=False) + "\n")

    return log_path


def load_history(history_dir: Path, app_name: str) -> list[dict[str, Any]]:
    """
    앱 history 로드.

    Args:
        history_dir: .state/history/ 경로
        app_name: 앱 이름

    Returns:
        이벤트 목록 (기록 순)
    """
    log_path = history_path(history_dir, app_name)
    if not log_path.exists():
        return []

    entries: list[dict[str, Any]] = []
    for line in log_path.read_text(encoding="utf-8").splitlines():
        if line.strip():
            entries.append(json.loads(line))
    return entries
