"""
Prompt Generation: (소스, phase) → PromptPayload.

규칙:
- phase별 지시문 템플릿은 생성 시점에 명시적으로 주입 (Phase 이름 → 템플릿)
- 템플릿 없는 phase → UnknownPhaseError
- 소스 발췌는 앞부분 N자 그대로 (변형 없음)
- 순수 함수: 타임스탬프/난수 없음, 같은 입력 → 같은 출력

템플릿 placeholder:
- {app-name}, {category}, {app-description}, {last-error}
"""

import logging
import re
from collections.abc import Mapping
from pathlib import Path

from src.domain.constants import PROMPT_EXCERPT_MAX_CHARS, PROMPT_TEMPLATE_EXTENSION
from src.domain.errors import UnknownPhaseError
from src.domain.schemas import AppSource, Phase, PromptPayload

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{(app-name|category|app-description|last-error)\}")


# =============================================================================
# Template Loading
# =============================================================================

def load_prompt_templates(
    prompts_dir: Path,
    phases: list[str],
    inline: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """
    phase 템플릿 로드.

    prompts/<phase>.md 파일을 읽고, inline(설정 파일의 prompts.templates)이
    같은 phase를 정의하면 inline이 우선.

    Args:
        prompts_dir: prompts/ 디렉터리
        phases: 로드할 phase 이름 목록
        inline: 설정에 직접 적힌 템플릿

    Returns:
        {phase 이름: 템플릿}
    """
    templates: dict[str, str] = {}

    for phase in phases:
        path = prompts_dir / f"{phase}{PROMPT_TEMPLATE_EXTENSION}"
        if path.is_file():
            templates[phase] = path.read_text(encoding="utf-8")

    if inline:
        templates.update(inline)

    logger.debug(f"Loaded prompt templates for phases: {sorted(templates)}")
    return templates


def default_description(app_name: str) -> str:
    """설명이 없는 앱의 기본 설명."""
    return f"A {app_name.replace('-', ' ')} application"


# =============================================================================
# Prompt Generator
# =============================================================================

class PromptGenerator:
    """
    phase별 프롬프트 생성기.

    Usage:
        generator = PromptGenerator({"plan": "Plan {app-name} ..."})
        payload = generator.generate(source, phase)
    """

    def __init__(
        self,
        templates: Mapping[str, str],
        descriptions: Mapping[str, str] | None = None,
        excerpt_max_chars: int = PROMPT_EXCERPT_MAX_CHARS,
    ):
        """
        Args:
            templates: {phase 이름: 지시문 템플릿}
            descriptions: {앱 이름: 설명}
            excerpt_max_chars: 소스 발췌 최대 길이
        """
        if excerpt_max_chars < 0:
            raise ValueError("excerpt_max_chars must be >= 0")

        self.templates = dict(templates)
        self.descriptions = dict(descriptions or {})
        self.excerpt_max_chars = excerpt_max_chars

    def describe(self, app_name: str) -> str:
        return self.descriptions.get(app_name) or default_description(app_name)

    def generate(
        self,
        source: AppSource,
        phase: Phase,
        last_error: str | None = None,
    ) -> PromptPayload:
        """
        프롬프트 생성.

        Args:
            source: 검증된 앱 소스
            phase: 대상 phase
            last_error: 직전 실패 사유 (state 파일의 lastError)

        Returns:
            PromptPayload

        Raises:
            UnknownPhaseError: phase에 매핑된 템플릿 없음
        """
        template = self.templates.get(phase.name)
        if template is None:
            raise UnknownPhaseError(
                phase=phase.name,
                reason="no instruction template",
                available=sorted(self.templates),
            )

        identity = source.identity
        values = {
            "app-name": identity.name,
            "category": identity.category,
            "app-description": self.describe(identity.name),
            "last-error": last_error or "None",
        }
        instructions = PLACEHOLDER_PATTERN.sub(lambda m: values[m.group(1)], template)

        excerpt = source.text[: self.excerpt_max_chars]

        return PromptPayload(
            identity=identity,
            phase=phase,
            instructions=instructions,
            source_excerpt=excerpt,
            excerpt_truncated=len(source.text) > self.excerpt_max_chars,
        )
