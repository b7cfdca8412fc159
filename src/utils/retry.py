"""
재시도 로직 유틸리티.

배포 재시도는 명시적으로 요청한 경우에만 (deploy --retries N).
코어 컴포넌트는 자동 재시도하지 않는다.
"""

import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_with_exponential_backoff(
    func: Callable[..., T],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
    *args: Any,
    **kwargs: Any,
) -> T:
    """
    지수 백오프를 사용한 재시도.

    Args:
        func: 재시도할 함수
        max_retries: 최대 재시도 횟수 (0이면 한 번만 실행)
        initial_delay: 초기 대기 시간(초)
        max_delay: 최대 대기 시간(초)
        exponential_base: 지수 백오프 기수
        exceptions: 재시도할 예외 타입들
        sleep: 대기 함수 (테스트에서 교체)
        *args: func에 전달할 위치 인자
        **kwargs: func에 전달할 키워드 인자

    Returns:
        func의 반환값

    Raises:
        마지막 시도에서 발생한 예외
    """
    if max_retries < 0:
        raise ValueError("max_retries must be >= 0")

    delay = initial_delay

    for attempt in range(max_retries + 1):
        try:
            result = func(*args, **kwargs)
            if attempt > 0:
                logger.info(
                    f"Retry succeeded on attempt {attempt + 1}/{max_retries + 1}"
                )
            return result

        except exceptions as e:
            if attempt == max_retries:
                if max_retries > 0:
                    logger.error(
                        f"All {max_retries + 1} attempts failed. Last error: {e}"
                    )
                raise

            logger.warning(
                f"Attempt {attempt + 1}/{max_retries + 1} failed: {e}. "
                f"Retrying in {delay:.1f}s..."
            )

            sleep(delay)

            # 지수 백오프
            delay = min(delay * exponential_base, max_delay)

    # Should never reach here
    msg = "Unexpected retry logic error"
    raise RuntimeError(msg)
