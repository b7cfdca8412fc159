"""
해시 계산: 배포된 소스의 localFileHash

- 배포 기록의 localFileHash는 원본 sync 도구와 호환되도록 MD5 (UTF-8 바이트 기준)
"""

import hashlib


def compute_text_hash(text: str, algorithm: str = "md5") -> str:
    """
    텍스트 해시 계산.

    Args:
        text: 소스 텍스트
        algorithm: 해시 알고리즘 (기본: md5)

    Returns:
        hex 해시 문자열
    """
    return hashlib.new(algorithm, text.encode("utf-8")).hexdigest()
