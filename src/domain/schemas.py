"""
Data schemas for the app pipeline.

규칙:
- AppIdentity, AppSource, ValidationResult, PromptPayload는 생성 후 불변 (frozen)
- AppRecord만 가변: .state/apps.json 엔트리 (camelCase 키 유지)
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# =============================================================================
# App Identity / Source
# =============================================================================

@dataclass(frozen=True)
class AppIdentity:
    """앱 식별자. apps/{category}/{name}.tsx 를 유일하게 결정."""
    category: str
    name: str

    def __str__(self) -> str:
        return f"{self.category}/{self.name}"


@dataclass(frozen=True)
class AppSource:
    """로드된 앱 소스. 한 번의 실행 동안만 유지 (캐시 금지)."""
    identity: AppIdentity
    path: Path
    text: str


# =============================================================================
# Validation
# =============================================================================

@dataclass(frozen=True)
class ViolationReport:
    """규칙 하나의 위반. line/column은 1부터 시작."""
    rule: str
    message: str
    line: int | None = None
    column: int | None = None

    def format(self) -> str:
        if self.line is None:
            return f"[{self.rule}] {self.message}"
        if self.column is None:
            return f"[{self.rule}] line {self.line}: {self.message}"
        return f"[{self.rule}] line {self.line}, col {self.column}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule": self.rule,
            "message": self.message,
            "line": self.line,
            "column": self.column,
        }


@dataclass(frozen=True)
class ValidationResult:
    """검증 결과. valid == (violations 비어 있음)."""
    violations: tuple[ViolationReport, ...] = ()

    @property
    def valid(self) -> bool:
        return not self.violations

    def rules_violated(self) -> list[str]:
        """위반된 규칙 ID (순서 유지, 중복 제거)."""
        return list(dict.fromkeys(v.rule for v in self.violations))


# =============================================================================
# Phase
# =============================================================================

@dataclass(frozen=True, order=True)
class Phase:
    """정렬 가능한 lifecycle 단계. ordinal 기준으로 비교."""
    ordinal: int
    name: str = field(compare=False)

    def __str__(self) -> str:
        return self.name


# =============================================================================
# Prompt
# =============================================================================

@dataclass(frozen=True)
class PromptPayload:
    """
    외부 생성 프로세스에 넘기는 프롬프트.

    타임스탬프/난수 없음: 같은 입력이면 render()/to_dict() 결과가 항상 동일.
    """
    identity: AppIdentity
    phase: Phase
    instructions: str
    source_excerpt: str
    excerpt_truncated: bool = False

    def render(self) -> str:
        """사람이 읽는 텍스트 형태."""
        bar = "═" * 60
        lines = [
            bar,
            f"PROMPT FOR: {self.identity.name}",
            f"   Category: {self.identity.category}",
            f"   Phase: {self.phase.name}",
            bar,
            "",
            self.instructions.rstrip("\n"),
            "",
            "─" * 60,
            f"CURRENT SOURCE ({self.identity.category}/{self.identity.name}.tsx)"
            + (" [truncated]" if self.excerpt_truncated else ""),
            "─" * 60,
            self.source_excerpt,
        ]
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "app": self.identity.name,
            "category": self.identity.category,
            "phase": self.phase.name,
            "instructions": self.instructions,
            "sourceExcerpt": self.source_excerpt,
            "excerptTruncated": self.excerpt_truncated,
        }


# =============================================================================
# Deploy
# =============================================================================

@dataclass(frozen=True)
class DeployRequest:
    """배포 요청 본문."""
    identity: AppIdentity
    text: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "category": self.identity.category,
            "name": self.identity.name,
            "code": self.text,
            "run": True,
        }


@dataclass(frozen=True)
class DeployResponse:
    """배포 결과. 원격 실패도 예외가 아니라 success=False로 표현."""
    success: bool
    live_url: str | None = None
    error_message: str | None = None
    status_code: int | None = None


# =============================================================================
# State Record (.state/apps.json)
# =============================================================================

@dataclass
class AppRecord:
    """state 파일의 앱 엔트리."""
    name: str
    category: str
    phase: str
    attempts: int = 0
    last_error: str | None = None
    live_url: str | None = None
    code_space_id: str | None = None
    local_file_hash: str | None = None
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "category": self.category,
            "phase": self.phase,
            "attempts": self.attempts,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        # 값이 있을 때만 기록 (원본 state 파일 형식과 동일)
        optional = {
            "lastError": self.last_error,
            "liveUrl": self.live_url,
            "codeSpaceId": self.code_space_id,
            "localFileHash": self.local_file_hash,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppRecord":
        return cls(
            name=data["name"],
            category=data["category"],
            phase=data.get("phase", ""),
            attempts=int(data.get("attempts", 0)),
            last_error=data.get("lastError"),
            live_url=data.get("liveUrl"),
            code_space_id=data.get("codeSpaceId"),
            local_file_hash=data.get("localFileHash"),
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
        )

    @property
    def identity(self) -> AppIdentity:
        return AppIdentity(category=self.category, name=self.name)
