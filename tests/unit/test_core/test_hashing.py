"""
test_hashing.py - 해시 계산 테스트

DoD:
- 동일 입력 → 동일 해시 (재현성)
- UTF-8 바이트 기준
"""

import hashlib

from src.core.hashing import compute_text_hash


class TestComputeTextHash:
    """compute_text_hash 테스트."""

    def test_md5_default(self):
        """기본은 md5 (원본 sync 도구 호환)."""
        assert compute_text_hash("hello") == hashlib.md5(b"hello").hexdigest()

    def test_utf8_bytes(self):
        """UTF-8 바이트 기준."""
        text = "// 한글 ✨"
        assert compute_text_hash(text, "sha256") == hashlib.sha256(text.encode("utf-8")).hexdigest()

    def test_deterministic(self):
        assert compute_text_hash("same") == compute_text_hash("same")
        assert compute_text_hash("same") != compute_text_hash("diff")
