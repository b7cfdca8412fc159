"""
앱 위치 해석: (category, name) → apps/{category}/{name}.tsx → 소스 텍스트.

규칙:
- 경로 조립 전에 식별자 검증 (.., 구분자, 절대경로 → InvalidIdentityError)
- 파일은 bytes로 한 번만 읽고 strict UTF-8 디코딩 (개행 변환 없음)
- 캐시 없음: 호출마다 새로 읽는다
"""

import logging
import re
from pathlib import Path

from src.domain.constants import APP_SOURCE_EXTENSION
from src.domain.errors import InvalidIdentityError, NotFoundError, ReadError
from src.domain.schemas import AppIdentity, AppSource

logger = logging.getLogger(__name__)

# 식별자 세그먼트 규칙
SEGMENT_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
SEGMENT_MAX_LENGTH = 100
FORBIDDEN_CHARS = set('/\\:*?"<>|\0')


# =============================================================================
# Identity Validation
# =============================================================================

def validate_segment(value: str, field_name: str) -> None:
    """
    식별자 세그먼트(category 또는 name) 검증.

    규칙:
    - 비어 있지 않음, 최대 100자
    - '..' 포함 금지, 경로 구분자/드라이브 문자/NUL 금지
    - 영숫자로 시작, 이후 영숫자 . _ - 만 허용

    Raises:
        InvalidIdentityError
    """
    if not isinstance(value, str) or not value:
        raise InvalidIdentityError(field=field_name, value=value, reason="empty")

    if len(value) > SEGMENT_MAX_LENGTH:
        raise InvalidIdentityError(
            field=field_name,
            value=value,
            reason=f"exceeds {SEGMENT_MAX_LENGTH} characters",
        )

    if ".." in value:
        raise InvalidIdentityError(field=field_name, value=value, reason="path traversal")

    found_forbidden = set(value) & FORBIDDEN_CHARS
    if found_forbidden or value.startswith("~"):
        raise InvalidIdentityError(
            field=field_name,
            value=value,
            reason="path separator or forbidden character",
        )

    if not SEGMENT_PATTERN.match(value):
        raise InvalidIdentityError(
            field=field_name,
            value=value,
            reason="must start with a letter or digit and contain only [A-Za-z0-9._-]",
        )


def validate_identity(identity: AppIdentity) -> None:
    """AppIdentity 전체 검증."""
    validate_segment(identity.category, "category")
    validate_segment(identity.name, "name")


# =============================================================================
# App Locator
# =============================================================================

class AppLocator:
    """
    앱 소스 파일 해석기.

    구조:
    apps/
    ├── utility/
    │   └── counter.tsx
    └── widgets/
        └── my-widget.tsx
    """

    def __init__(self, apps_root: Path, extension: str = APP_SOURCE_EXTENSION):
        """
        Args:
            apps_root: apps/ 루트 경로
            extension: 소스 파일 확장자
        """
        self.apps_root = Path(apps_root)
        self.extension = extension

    def path_for(self, identity: AppIdentity) -> Path:
        """식별자 → 파일 경로 (검증 포함)."""
        validate_identity(identity)
        return self.apps_root / identity.category / f"{identity.name}{self.extension}"

    def resolve(self, identity: AppIdentity) -> AppSource:
        """
        소스 파일 로드.

        Args:
            identity: 앱 식별자

        Returns:
            AppSource (파일 내용과 바이트 단위로 동일한 text)

        Raises:
            InvalidIdentityError: 식별자 검증 실패 (파일시스템 접근 전)
            NotFoundError: 파일 없음
            ReadError: 디렉터리, 권한, 인코딩 문제
        """
        path = self.path_for(identity)

        try:
            raw = path.read_bytes()
        except FileNotFoundError as e:
            raise NotFoundError(app=str(identity), path=str(path)) from e
        except IsADirectoryError as e:
            raise ReadError(app=str(identity), path=str(path), reason="is a directory") from e
        except OSError as e:
            raise ReadError(app=str(identity), path=str(path), reason=str(e)) from e

        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ReadError(
                app=str(identity),
                path=str(path),
                reason=f"not valid UTF-8 at byte {e.start}",
            ) from e

        logger.debug(f"Resolved {identity} -> {path} ({len(raw)} bytes)")
        return AppSource(identity=identity, path=path, text=text)

    def find(self, name: str, category_hint: str | None = None) -> AppIdentity:
        """
        이름으로 앱 카테고리 찾기.

        1. category_hint (state 파일의 category) 디렉터리 우선
        2. 없으면 모든 카테고리 디렉터리를 정렬 순으로 탐색

        Raises:
            InvalidIdentityError: 이름/힌트 검증 실패
            NotFoundError: 어느 카테고리에도 없음
        """
        validate_segment(name, "name")

        if category_hint:
            hinted = AppIdentity(category=category_hint, name=name)
            if self.path_for(hinted).is_file():
                return hinted

        for category in self.categories():
            candidate = AppIdentity(category=category, name=name)
            if self.path_for(candidate).is_file():
                return candidate

        raise NotFoundError(
            app=name,
            searched=str(self.apps_root / "*" / f"{name}{self.extension}"),
        )

    def categories(self) -> list[str]:
        """apps/ 아래 카테고리 디렉터리 목록 (정렬, 유효한 이름만)."""
        if not self.apps_root.is_dir():
            return []

        return sorted(
            p.name
            for p in self.apps_root.iterdir()
            if p.is_dir() and SEGMENT_PATTERN.match(p.name) and ".." not in p.name
        )
