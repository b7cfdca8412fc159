"""
Error definitions for the app pipeline.

규칙:
- 조용한 실패 금지 → AppFactoryError 하위 클래스로 명시적 실패
- 모든 에러는 code + context를 가진다 (CLI 출력 / history 로그 직렬화용)
- 원격 배포 실패는 예외가 아니라 DeployResponse로 전달 (deploy.py 참조)
"""

from typing import Any


class AppFactoryError(Exception):
    """
    파이프라인 에러의 기반 클래스.

    Usage:
        raise NotFoundError(name="my-widget", searched="apps/*/my-widget.tsx")
    """

    code: str = "APP_FACTORY_ERROR"

    def __init__(self, code: str | None = None, **context: Any) -> None:
        if code is not None:
            self.code = code
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"[{self.code}] {ctx_str}" if ctx_str else f"[{self.code}]"

    def to_dict(self) -> dict[str, Any]:
        """로그/JSON 직렬화용."""
        return {
            "code": self.code,
            **self.context,
        }


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCodes:
    """에러 코드 상수."""

    # === Resolve ===
    INVALID_IDENTITY = "INVALID_IDENTITY"
    APP_NOT_FOUND = "APP_NOT_FOUND"
    APP_READ_FAILED = "APP_READ_FAILED"

    # === Validation ===
    VALIDATION_FAILED = "VALIDATION_FAILED"

    # === Phase ===
    UNKNOWN_PHASE = "UNKNOWN_PHASE"
    TERMINAL_PHASE = "TERMINAL_PHASE"

    # === Deploy ===
    TRANSPORT_FAILED = "TRANSPORT_FAILED"

    # === State (.state/apps.json) ===
    STATE_CORRUPT = "STATE_CORRUPT"
    STATE_LOCK_TIMEOUT = "STATE_LOCK_TIMEOUT"
    STATE_APP_EXISTS = "STATE_APP_EXISTS"
    STATE_APP_UNKNOWN = "STATE_APP_UNKNOWN"

    # === Config ===
    CONFIG_INVALID = "CONFIG_INVALID"


# =============================================================================
# Taxonomy
# =============================================================================

class InvalidIdentityError(AppFactoryError):
    """앱 식별자가 비었거나 경로 탈출(.., 절대경로 등)을 포함."""

    code = ErrorCodes.INVALID_IDENTITY


class NotFoundError(AppFactoryError):
    """apps/{category}/{name}.tsx 가 존재하지 않음."""

    code = ErrorCodes.APP_NOT_FOUND


class ReadError(AppFactoryError):
    """파일은 있지만 읽을 수 없음 (권한, 디렉터리, 인코딩)."""

    code = ErrorCodes.APP_READ_FAILED


class ValidationFailure(AppFactoryError):
    """
    구조 검증 실패. 장애가 아니라 보고 대상 결과.

    result에 모든 위반 사항이 담겨 있다.
    """

    code = ErrorCodes.VALIDATION_FAILED

    def __init__(self, result: Any, **context: Any) -> None:
        self.result = result
        super().__init__(
            violations=len(result.violations),
            **context,
        )


class UnknownPhaseError(AppFactoryError):
    """phase 순서에 없거나 템플릿이 매핑되지 않은 phase."""

    code = ErrorCodes.UNKNOWN_PHASE


class TerminalPhaseError(AppFactoryError):
    """이미 마지막 phase에서 advance 시도."""

    code = ErrorCodes.TERMINAL_PHASE


class TransportFailure(AppFactoryError):
    """배포 엔드포인트 연결 실패 또는 non-2xx 응답."""

    code = ErrorCodes.TRANSPORT_FAILED


class StateError(AppFactoryError):
    """state 파일 손상, 락 timeout, 중복/미등록 앱."""

    code = ErrorCodes.STATE_CORRUPT


class ConfigError(AppFactoryError):
    """설정 파일 형식 오류."""

    code = ErrorCodes.CONFIG_INVALID
