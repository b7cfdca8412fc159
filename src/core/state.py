"""
State 관리: .state/apps.json

규칙:
- PhaseStore 인터페이스: get(identity) -> phase 이름 | None, set(identity, phase),
  transition(identity, compute) -> (이전, 새 phase)
- transition은 읽기 → 계산 → 쓰기를 한 번의 락 안에서 (동시 실행 간 역행 없음)
- 저장 형식은 원본 도구와 동일: {"apps": {name: {...}}, "lastUpdated": ...}
- 원자적 쓰기: temp → fsync → rename
- read-modify-write는 FileLock으로 보호
"""

import json
import logging
import os
import tempfile
from collections.abc import Callable, Generator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

from filelock import FileLock, Timeout

from src.domain.errors import ErrorCodes, StateError
from src.domain.schemas import AppIdentity, AppRecord

logger = logging.getLogger(__name__)


# =============================================================================
# Phase Store Interface
# =============================================================================

class PhaseStore(Protocol):
    """phase 메타데이터 key-value 인터페이스."""

    def get(self, identity: AppIdentity) -> str | None: ...

    def set(self, identity: AppIdentity, phase: str) -> None: ...

    def transition(
        self,
        identity: AppIdentity,
        compute: Callable[[str | None], str],
    ) -> tuple[str | None, str]: ...


class MemoryPhaseStore:
    """메모리 기반 PhaseStore (임베딩/테스트용)."""

    def __init__(self, initial: dict[AppIdentity, str] | None = None):
        self._phases: dict[AppIdentity, str] = dict(initial or {})
        self.writes = 0

    def get(self, identity: AppIdentity) -> str | None:
        return self._phases.get(identity)

    def set(self, identity: AppIdentity, phase: str) -> None:
        self._phases[identity] = phase
        self.writes += 1

    def transition(
        self,
        identity: AppIdentity,
        compute: Callable[[str | None], str],
    ) -> tuple[str | None, str]:
        previous = self._phases.get(identity)
        phase = compute(previous)
        self.set(identity, phase)
        return previous, phase


# =============================================================================
# Atomic Write
# =============================================================================

def atomic_write_json(path: Path, data: dict) -> None:
    """
    원자적 JSON 쓰기.

    동작:
    - 중간 상태 없음: temp → rename
    - fsync 실패 시 경고 남기고 계속 진행
    - 실패 시 temp 파일 삭제, 기존 파일 보존
    """
    dir_path = path.parent
    dir_path.mkdir(parents=True, exist_ok=True)

    temp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=dir_path,
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        ) as f:
            temp_path = Path(f.name)
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            try:
                os.fsync(f.fileno())
            except OSError as e:
                logger.warning(
                    f"File fsync failed for {path}: {e}. "
                    f"Data may not be durable on power loss."
                )

        os.replace(temp_path, path)

    except Exception:
        if temp_path and temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                pass
        raise


# =============================================================================
# JSON State Store
# =============================================================================

class JsonStateStore:
    """
    .state/apps.json 기반 앱 상태 저장소.

    PhaseStore 인터페이스를 구현하며, 앱 레코드 전체(attempts, lastError,
    liveUrl 등)도 함께 관리한다. 키는 앱 이름.
    """

    LOCK_TIMEOUT = 10.0

    def __init__(self, state_file: Path, lock_timeout: float | None = None):
        """
        Args:
            state_file: apps.json 경로
            lock_timeout: 락 대기 시간(초)
        """
        self.state_file = Path(state_file)
        self.lock_timeout = self.LOCK_TIMEOUT if lock_timeout is None else lock_timeout
        self._lock_path = self.state_file.with_name(self.state_file.name + ".lock")

    # =========================================================================
    # Raw load/save
    # =========================================================================

    def load(self) -> dict[str, Any]:
        """
        state 파일 로드. 없으면 빈 상태.

        Raises:
            StateError: STATE_CORRUPT (JSON 파싱 실패 또는 형식 오류)
        """
        if not self.state_file.exists():
            return {"apps": {}}

        try:
            data = json.loads(self.state_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise StateError(
                ErrorCodes.STATE_CORRUPT,
                path=str(self.state_file),
                error=str(e),
            ) from e

        if not isinstance(data, dict) or not isinstance(data.get("apps", {}), dict):
            raise StateError(
                ErrorCodes.STATE_CORRUPT,
                path=str(self.state_file),
                error="expected an object with an 'apps' mapping",
            )

        data.setdefault("apps", {})
        return data

    def _save(self, data: dict[str, Any]) -> None:
        data["lastUpdated"] = _now()
        atomic_write_json(self.state_file, data)

    @contextmanager
    def _locked(self) -> Generator[None, None, None]:
        """state 파일 락."""
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        lock = FileLock(self._lock_path, timeout=self.lock_timeout)

        try:
            lock.acquire()
        except Timeout as e:
            raise StateError(
                ErrorCodes.STATE_LOCK_TIMEOUT,
                path=str(self.state_file),
                timeout=self.lock_timeout,
            ) from e

        try:
            yield
        finally:
            lock.release()

    # =========================================================================
    # Records
    # =========================================================================

    def get_record(self, name: str) -> AppRecord | None:
        raw = self.load()["apps"].get(name)
        if raw is None:
            return None
        return AppRecord.from_dict(raw)

    def list_records(self) -> list[AppRecord]:
        return [AppRecord.from_dict(raw) for raw in self.load()["apps"].values()]

    def create_record(self, name: str, category: str, phase: str) -> AppRecord:
        """
        새 앱 등록.

        Raises:
            StateError: STATE_APP_EXISTS
        """
        with self._locked():
            data = self.load()
            if name in data["apps"]:
                raise StateError(ErrorCodes.STATE_APP_EXISTS, app=name)

            now = _now()
            record = AppRecord(
                name=name,
                category=category,
                phase=phase,
                created_at=now,
                updated_at=now,
            )
            data["apps"][name] = record.to_dict()
            self._save(data)
            return record

    def update_record(
        self,
        name: str,
        mutate: Callable[[AppRecord], None],
    ) -> AppRecord:
        """
        레코드 read-modify-write (한 번의 쓰기).

        Raises:
            StateError: STATE_APP_UNKNOWN
        """
        with self._locked():
            data = self.load()
            raw = data["apps"].get(name)
            if raw is None:
                raise StateError(ErrorCodes.STATE_APP_UNKNOWN, app=name)

            record = AppRecord.from_dict(raw)
            mutate(record)
            record.updated_at = _now()
            data["apps"][name] = record.to_dict()
            self._save(data)
            return record

    # =========================================================================
    # PhaseStore
    # =========================================================================

    def get(self, identity: AppIdentity) -> str | None:
        record = self.get_record(identity.name)
        if record is None or not record.phase:
            return None
        return record.phase

    def set(self, identity: AppIdentity, phase: str) -> None:
        """phase 기록. 미등록 앱이면 새 레코드 생성."""
        self.transition(identity, lambda _: phase)

    def transition(
        self,
        identity: AppIdentity,
        compute: Callable[[str | None], str],
    ) -> tuple[str | None, str]:
        """
        락 안에서 저장된 phase 읽기 → compute → 쓰기 (load 1회, 쓰기 최대 1회).

        compute가 raise하면 아무것도 쓰지 않는다.

        Args:
            identity: 앱 식별자
            compute: 저장된 phase (없으면 None) → 새 phase

        Returns:
            (이전 phase, 새 phase)
        """
        with self._locked():
            data = self.load()
            raw = data["apps"].get(identity.name)
            previous = (raw.get("phase") or None) if raw is not None else None
            phase = compute(previous)

            now = _now()
            if raw is None:
                record = AppRecord(
                    name=identity.name,
                    category=identity.category,
                    phase=phase,
                    created_at=now,
                )
            else:
                record = AppRecord.from_dict(raw)
                if record.phase != phase:
                    # phase 전환 시 실패 카운터 초기화
                    record.attempts = 0
                    record.last_error = None
                record.phase = phase
            record.updated_at = now
            data["apps"][identity.name] = record.to_dict()
            self._save(data)
            return previous, phase


def _now() -> str:
    return datetime.now(UTC).isoformat()
