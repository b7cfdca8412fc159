"""
Core layer: 파일시스템과 state를 다루는 모듈.

역할:
- 앱 소스 위치 해석 (locator)
- state 파일 (apps.json), 원자적 쓰기, 락
- history 로그, 해시
"""

from .hashing import compute_text_hash
from .locator import AppLocator, validate_identity, validate_segment
from .logging import append_history, load_history
from .state import JsonStateStore, MemoryPhaseStore, PhaseStore, atomic_write_json

__all__ = [
    # locator
    "AppLocator",
    "validate_identity",
    "validate_segment",
    # state
    "PhaseStore",
    "JsonStateStore",
    "MemoryPhaseStore",
    "atomic_write_json",
    # logging
    "append_history",
    "load_history",
    # hashing
    "compute_text_hash",
]
