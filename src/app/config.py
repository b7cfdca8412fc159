"""
설정 로드: default.yaml + .env

우선순위:
1. 환경변수 (APP_FACTORY_API_URL, APP_FACTORY_TIMEOUT): .env 포함
2. default.yaml
3. src/domain/constants.py 기본값

설정은 생성 시점에 각 컴포넌트로 명시적으로 전달 (전역 상태 읽기 금지).
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx
import yaml
from dotenv import load_dotenv

from src.domain.constants import (
    APPS_DIR,
    DEFAULT_API_URL,
    DEFAULT_CATEGORIES,
    DEFAULT_CONFIG_FILENAME,
    DEFAULT_PHASE_ORDER,
    DEFAULT_TIMEOUT_SECONDS,
    DISALLOWED_MODULES,
    HISTORY_DIR,
    MAX_SOURCE_SIZE_BYTES,
    PROMPT_EXCERPT_MAX_CHARS,
    PROMPTS_DIR,
    STATE_DIR,
    STATE_FILENAME,
)
from src.domain.errors import ConfigError

ENV_API_URL = "APP_FACTORY_API_URL"
ENV_TIMEOUT = "APP_FACTORY_TIMEOUT"


# =============================================================================
# Config Sections
# =============================================================================

@dataclass
class PathsConfig:
    """파일시스템 경로."""
    apps_dir: Path = Path(APPS_DIR)
    prompts_dir: Path = Path(PROMPTS_DIR)
    state_file: Path = Path(STATE_DIR) / STATE_FILENAME
    history_dir: Path = Path(STATE_DIR) / HISTORY_DIR


@dataclass
class DeployConfig:
    """배포 엔드포인트 설정."""
    api_url: str = DEFAULT_API_URL
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    code_space_prefix: str = ""
    retry_initial_delay: float = 1.0
    retry_max_delay: float = 30.0


@dataclass
class ValidationConfig:
    """구조 검증 임계값. 규칙 집합/순서 자체는 고정."""
    max_size_bytes: int = MAX_SOURCE_SIZE_BYTES
    disallowed_modules: tuple[str, ...] = DISALLOWED_MODULES
    allowed_categories: tuple[str, ...] | None = None


@dataclass
class PromptConfig:
    """프롬프트 생성 설정."""
    excerpt_max_chars: int = PROMPT_EXCERPT_MAX_CHARS
    templates: dict[str, str] = field(default_factory=dict)
    descriptions: dict[str, str] = field(default_factory=dict)


@dataclass
class AppConfig:
    """전체 설정."""
    paths: PathsConfig = field(default_factory=PathsConfig)
    deploy: DeployConfig = field(default_factory=DeployConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    prompts: PromptConfig = field(default_factory=PromptConfig)
    phases: tuple[str, ...] = DEFAULT_PHASE_ORDER
    categories: tuple[str, ...] = DEFAULT_CATEGORIES


# =============================================================================
# Loading
# =============================================================================

def load_config_file(config_path: Path | None = None) -> dict:
    """
    YAML 설정 파일 로드.

    Args:
        config_path: 설정 파일 경로 (None이면 현재 디렉터리의 default.yaml)

    Returns:
        설정 dict (파일 없으면 빈 dict)

    Raises:
        ConfigError: YAML 파싱 실패 또는 최상위가 mapping이 아님
    """
    if config_path is None:
        config_path = Path(DEFAULT_CONFIG_FILENAME)

    if not config_path.exists():
        return {}

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(path=str(config_path), error=str(e)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(path=str(config_path), error="top level must be a mapping")
    return data


def build_config(
    raw: Mapping[str, Any],
    env: Mapping[str, str] | None = None,
    base_dir: Path | None = None,
) -> AppConfig:
    """
    dict → AppConfig.

    Args:
        raw: YAML에서 읽은 dict
        env: 환경변수 (None이면 os.environ)
        base_dir: 상대 경로 기준 디렉터리 (보통 설정 파일 위치)

    Returns:
        AppConfig
    """
    env = os.environ if env is None else env
    base_dir = base_dir or Path(".")

    paths_raw = _section(raw, "paths")
    deploy_raw = _section(raw, "deploy")
    validation_raw = _section(raw, "validation")
    prompts_raw = _section(raw, "prompts")
    phases_raw = _section(raw, "phases")

    defaults = PathsConfig()
    paths = PathsConfig(
        apps_dir=base_dir / paths_raw.get("apps_dir", defaults.apps_dir),
        prompts_dir=base_dir / paths_raw.get("prompts_dir", defaults.prompts_dir),
        state_file=base_dir / paths_raw.get("state_file", defaults.state_file),
        history_dir=base_dir / paths_raw.get("history_dir", defaults.history_dir),
    )

    deploy = DeployConfig(
        api_url=_as_api_url(env.get(ENV_API_URL) or deploy_raw.get("api_url", DEFAULT_API_URL)),
        timeout=_as_float(
            env.get(ENV_TIMEOUT) or deploy_raw.get("timeout", DEFAULT_TIMEOUT_SECONDS),
            "deploy.timeout",
        ),
        code_space_prefix=str(deploy_raw.get("code_space_prefix", "")),
        retry_initial_delay=_as_float(deploy_raw.get("retry_initial_delay", 1.0), "deploy.retry_initial_delay"),
        retry_max_delay=_as_float(deploy_raw.get("retry_max_delay", 30.0), "deploy.retry_max_delay"),
    )

    allowed = validation_raw.get("allowed_categories")
    validation = ValidationConfig(
        max_size_bytes=_as_int(
            validation_raw.get("max_size_bytes", MAX_SOURCE_SIZE_BYTES),
            "validation.max_size_bytes",
        ),
        disallowed_modules=_as_names(
            validation_raw.get("disallowed_modules", DISALLOWED_MODULES),
            "validation.disallowed_modules",
        ),
        allowed_categories=_as_names(allowed, "validation.allowed_categories") if allowed else None,
    )

    prompts = PromptConfig(
        excerpt_max_chars=_as_int(
            prompts_raw.get("excerpt_max_chars", PROMPT_EXCERPT_MAX_CHARS),
            "prompts.excerpt_max_chars",
        ),
        templates=_as_text_mapping(prompts_raw.get("templates"), "prompts.templates"),
        descriptions=_as_text_mapping(prompts_raw.get("descriptions"), "prompts.descriptions"),
    )

    order = _as_names(phases_raw.get("order", DEFAULT_PHASE_ORDER), "phases.order")
    if not order:
        raise ConfigError(field="phases.order", error="at least one phase is required")
    if len(set(order)) != len(order):
        raise ConfigError(field="phases.order", error="duplicate phase names", order=list(order))

    categories = _as_names(raw.get("categories") or DEFAULT_CATEGORIES, "categories")

    return AppConfig(
        paths=paths,
        deploy=deploy,
        validation=validation,
        prompts=prompts,
        phases=order,
        categories=categories,
    )


def load_config(config_path: Path | None = None, dotenv: bool = True) -> AppConfig:
    """
    설정 파일 + .env 로드.

    상대 경로는 설정 파일이 있는 디렉터리 기준.
    """
    if dotenv:
        load_dotenv()

    if config_path is None:
        config_path = Path(DEFAULT_CONFIG_FILENAME)

    raw = load_config_file(config_path)
    return build_config(raw, base_dir=config_path.parent)


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, Mapping):
        raise ConfigError(field=name, error="section must be a mapping")
    return value


def _as_float(value: Any, field_name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(field=field_name, value=value, error="not a number") from e


def _as_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(field=field_name, value=value, error="not an integer")
    try:
        result = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(field=field_name, value=value, error="not an integer") from e
    if result < 0:
        raise ConfigError(field=field_name, value=value, error="must be >= 0")
    return result


def _as_names(value: Any, field_name: str) -> tuple[str, ...]:
    """YAML 리스트 → 문자열 tuple. 스칼라는 ConfigError."""
    if not isinstance(value, (list, tuple)):
        raise ConfigError(field=field_name, value=value, error="must be a list")
    if not all(isinstance(item, str) and item for item in value):
        raise ConfigError(field=field_name, value=value, error="items must be non-empty strings")
    return tuple(value)


def _as_text_mapping(value: Any, field_name: str) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(field=field_name, error="must be a mapping")
    return {str(k): str(v) for k, v in value.items()}


def _as_api_url(value: Any) -> str:
    """http(s) 절대 URL만 허용. 끝의 '/' 제거."""
    text = str(value).rstrip("/")
    try:
        url = httpx.URL(text)
    except httpx.InvalidURL as e:
        raise ConfigError(field="deploy.api_url", value=text, error=str(e)) from e
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigError(
            field="deploy.api_url",
            value=text,
            error="must be an absolute http(s) URL",
        )
    return text
