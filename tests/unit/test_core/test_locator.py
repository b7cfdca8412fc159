"""
test_locator.py - 앱 위치 해석 테스트

DoD:
- 파일 내용과 바이트 단위로 동일한 text 반환
- '..'/절대경로 식별자는 파일시스템 접근 전에 InvalidIdentityError
- 파일 없음 → NotFoundError, 읽기 불가 → ReadError
"""

from pathlib import Path
from unittest.mock import patch

import pytest

from src.core.locator import AppLocator, validate_identity, validate_segment
from src.domain.errors import InvalidIdentityError, NotFoundError, ReadError
from src.domain.schemas import AppIdentity

# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def locator(apps_root: Path) -> AppLocator:
    """AppLocator 인스턴스."""
    return AppLocator(apps_root)


# =============================================================================
# validate_segment 테스트
# =============================================================================

class TestValidateSegment:
    """식별자 세그먼트 검증 테스트."""

    @pytest.mark.parametrize("value", [
        "my-widget",
        "counter",
        "0bfbcae4",
        "bright.nexus.snap.0haz",
        "Todo_App",
    ])
    def test_valid_segments(self, value):
        """유효한 세그먼트는 통과."""
        validate_segment(value, "name")

    @pytest.mark.parametrize("value", [
        "",
        "..",
        "../etc",
        "a..b",
        "/etc/passwd",
        "widgets/my-widget",
        "..\\secret",
        "C:",
        "~root",
        ".hidden",
        "-flag",
        "with space",
        "nul\0byte",
        "a" * 101,
    ])
    def test_invalid_segments(self, value):
        """경로 탈출/금지 문자 → InvalidIdentityError."""
        with pytest.raises(InvalidIdentityError) as exc_info:
            validate_segment(value, "name")

        assert exc_info.value.context["field"] == "name"

    def test_validate_identity_checks_category(self):
        """category도 검증."""
        with pytest.raises(InvalidIdentityError) as exc_info:
            validate_identity(AppIdentity(category="..", name="ok"))

        assert exc_info.value.context["field"] == "category"


# =============================================================================
# resolve 테스트
# =============================================================================

class TestResolve:
    """resolve() 테스트."""

    def test_resolve_returns_exact_text(self, locator, apps_root, valid_app_text):
        """text는 파일 내용과 동일."""
        source = locator.resolve(AppIdentity(category="widgets", name="my-widget"))

        assert source.text == valid_app_text
        assert source.path == apps_root / "widgets" / "my-widget.tsx"
        assert source.identity == AppIdentity(category="widgets", name="my-widget")

    def test_resolve_preserves_crlf_and_unicode(self, locator, apps_root):
        """개행 변환 없음, UTF-8 그대로."""
        raw = 'import React from "react";\r\n// 한글 주석 ✨\r\nexport default function App() {}\r\n'
        path = apps_root / "utility" / "crlf.tsx"
        path.write_bytes(raw.encode("utf-8"))

        source = locator.resolve(AppIdentity(category="utility", name="crlf"))

        assert source.text.encode("utf-8") == path.read_bytes()

    def test_traversal_rejected_before_filesystem_access(self, locator):
        """'..' 식별자는 파일시스템을 건드리지 않는다."""
        with patch.object(Path, "read_bytes") as read_bytes:
            with pytest.raises(InvalidIdentityError):
                locator.resolve(AppIdentity(category="..", name="passwd"))

        read_bytes.assert_not_called()

    def test_absolute_name_rejected(self, locator):
        """절대경로 이름 거절."""
        with pytest.raises(InvalidIdentityError):
            locator.resolve(AppIdentity(category="widgets", name="/etc/passwd"))

    def test_missing_file(self, locator):
        """파일 없음 → NotFoundError."""
        with pytest.raises(NotFoundError) as exc_info:
            locator.resolve(AppIdentity(category="widgets", name="nope"))

        assert exc_info.value.context["path"].endswith("nope.tsx")

    def test_directory_instead_of_file(self, locator, apps_root):
        """디렉터리 → ReadError."""
        (apps_root / "widgets" / "folder.tsx").mkdir()

        with pytest.raises(ReadError):
            locator.resolve(AppIdentity(category="widgets", name="folder"))

    def test_invalid_utf8(self, locator, apps_root):
        """UTF-8 아님 → ReadError."""
        (apps_root / "widgets" / "latin1.tsx").write_bytes(b"export default \xff\xfe")

        with pytest.raises(ReadError) as exc_info:
            locator.resolve(AppIdentity(category="widgets", name="latin1"))

        assert "UTF-8" in exc_info.value.context["reason"]

    def test_permission_error(self, locator):
        """권한 오류 → ReadError."""
        with patch.object(Path, "read_bytes", side_effect=PermissionError("denied")):
            with pytest.raises(ReadError) as exc_info:
                locator.resolve(AppIdentity(category="widgets", name="my-widget"))

        assert "denied" in exc_info.value.context["reason"]


# =============================================================================
# find 테스트
# =============================================================================

class TestFind:
    """find() 테스트."""

    def test_find_by_scanning(self, locator):
        """카테고리 탐색."""
        identity = locator.find("my-widget")

        assert identity == AppIdentity(category="widgets", name="my-widget")

    def test_hint_takes_precedence(self, locator, write_app, valid_app_text):
        """category_hint 디렉터리 우선."""
        write_app("utility", "my-widget", valid_app_text)

        assert locator.find("my-widget").category == "utility"  # 정렬 순 첫 번째
        assert locator.find("my-widget", category_hint="widgets").category == "widgets"

    def test_stale_hint_falls_back_to_scan(self, locator):
        """힌트 위치에 파일이 없으면 탐색."""
        identity = locator.find("my-widget", category_hint="utility")

        assert identity.category == "widgets"

    def test_not_found(self, locator):
        """어디에도 없음 → NotFoundError (탐색 패턴 포함)."""
        with pytest.raises(NotFoundError) as exc_info:
            locator.find("ghost")

        assert exc_info.value.context["searched"].endswith("ghost.tsx")

    def test_find_rejects_traversal(self, locator):
        with pytest.raises(InvalidIdentityError):
            locator.find("../../etc/passwd")

    def test_missing_apps_root(self, tmp_path):
        """apps/ 없으면 NotFoundError."""
        locator = AppLocator(tmp_path / "missing")

        assert locator.categories() == []
        with pytest.raises(NotFoundError):
            locator.find("my-widget")
