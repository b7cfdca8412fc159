"""
Structure Validation: 앱 소스 구조 규칙 검사.

규칙 (고정, 이 순서로 항상 전부 실행):
1. default-export      : `export default function App(` 하나만
2. react-import        : "react" import 필수
3. max-size            : UTF-8 크기 상한
4. disallowed-import   : Node 내장 모듈 등 금지 모듈 import 금지
5. no-dom-manipulation : document.getElementById/querySelector/createElement 금지
6. no-console-log      : console.log( 금지
7. naming              : name/category 명명 규칙

- 하나가 실패해도 나머지 규칙은 계속 평가 → 모든 위반을 한 번에 보고
- 규칙은 (text, identity)의 순수 함수: 네트워크/파일시스템 접근 없음
- 파싱 가능한 입력은 절대 raise하지 않음 (위반으로 보고)
- 모든 패턴은 입력 길이에 선형: 크기 초과 파일도 바로 보고
"""

import logging
import re
from bisect import bisect_right
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from functools import cached_property

from src.app.config import ValidationConfig
from src.domain.errors import ReadError
from src.domain.schemas import (
    AppIdentity,
    AppSource,
    ValidationResult,
    ViolationReport,
)

logger = logging.getLogger(__name__)

# =============================================================================
# Patterns
# =============================================================================

DEFAULT_EXPORT_PATTERN = re.compile(r"export\s+default\b")
APP_EXPORT_PATTERN = re.compile(r"export\s+default\s+function\s+App\s*\(")
IMPORT_SOURCE_PATTERN = re.compile(
    r"""(?:\bfrom\s+|\bimport\s+|\brequire\s*\(\s*|\bimport\s*\(\s*)["']([^"']+)["']"""
)
DOM_PATTERN = re.compile(
    r"document\.(getElementById|querySelectorAll|querySelector|createElement)\b"
)
CONSOLE_LOG_PATTERN = re.compile(r"console\.log\s*\(")
NAME_PATTERN = re.compile(r"^[a-z0-9]+(?:[.-][a-z0-9]+)*$")


# =============================================================================
# Rule Context
# =============================================================================

@dataclass(frozen=True)
class RuleContext:
    """규칙 함수에 전달되는 입력."""
    text: str
    identity: AppIdentity
    config: ValidationConfig

    @cached_property
    def line_starts(self) -> list[int]:
        starts = [0]
        starts.extend(m.end() for m in re.finditer("\n", self.text))
        return starts

    @cached_property
    def imports(self) -> list[tuple[str, int]]:
        """(모듈 이름, 모듈 문자열 offset) 목록. 두 규칙이 공유."""
        return [(m.group(1), m.start(1)) for m in IMPORT_SOURCE_PATTERN.finditer(self.text)]

    def locate(self, offset: int) -> tuple[int, int]:
        """문자 offset → (line, column), 1부터 시작."""
        index = bisect_right(self.line_starts, offset) - 1
        return index + 1, offset - self.line_starts[index] + 1


Rule = Callable[[RuleContext], Iterator[ViolationReport]]


# =============================================================================
# Rules
# =============================================================================

def check_default_export(ctx: RuleContext) -> Iterator[ViolationReport]:
    """default export는 정확히 하나, `export default function App(` 형태."""
    exports = list(DEFAULT_EXPORT_PATTERN.finditer(ctx.text))

    if not APP_EXPORT_PATTERN.search(ctx.text):
        yield ViolationReport(
            rule="default-export",
            message="Missing 'export default function App()'",
        )

    if len(exports) > 1:
        for match in exports[1:]:
            line, column = ctx.locate(match.start())
            yield ViolationReport(
                rule="default-export",
                message=f"Multiple default exports ({len(exports)} found); only one rendering unit is allowed",
                line=line,
                column=column,
            )


def check_react_import(ctx: RuleContext) -> Iterator[ViolationReport]:
    """react import 필수."""
    if not any(module == "react" for module, _ in ctx.imports):
        yield ViolationReport(rule="react-import", message="Missing React import")


def check_max_size(ctx: RuleContext) -> Iterator[ViolationReport]:
    """UTF-8 바이트 크기 상한."""
    size = len(ctx.text.encode("utf-8"))
    limit = ctx.config.max_size_bytes
    if size > limit:
        yield ViolationReport(
            rule="max-size",
            message=f"File is {size} bytes, exceeds maximum of {limit} bytes",
        )


def check_disallowed_imports(ctx: RuleContext) -> Iterator[ViolationReport]:
    """금지 모듈 import (node: 접두사 포함)."""
    disallowed = set(ctx.config.disallowed_modules)

    for module, offset in ctx.imports:
        root = module.split("/", 1)[0]
        if module.startswith("node:") or module in disallowed or root in disallowed:
            line, column = ctx.locate(offset)
            yield ViolationReport(
                rule="disallowed-import",
                message=f"Import of disallowed module '{module}'",
                line=line,
                column=column,
            )


def check_dom_manipulation(ctx: RuleContext) -> Iterator[ViolationReport]:
    """직접 DOM 조작 금지."""
    for match in DOM_PATTERN.finditer(ctx.text):
        line, column = ctx.locate(match.start())
        yield ViolationReport(
            rule="no-dom-manipulation",
            message=f"Avoid direct DOM manipulation (document.{match.group(1)}) - use React state",
            line=line,
            column=column,
        )


def check_console_log(ctx: RuleContext) -> Iterator[ViolationReport]:
    """console.log 금지."""
    for match in CONSOLE_LOG_PATTERN.finditer(ctx.text):
        line, column = ctx.locate(match.start())
        yield ViolationReport(
            rule="no-console-log",
            message="Remove console.log statements before deployment",
            line=line,
            column=column,
        )


def check_naming(ctx: RuleContext) -> Iterator[ViolationReport]:
    """name/category 명명 규칙 + 허용 카테고리."""
    identity = ctx.identity

    if not NAME_PATTERN.match(identity.name):
        yield ViolationReport(
            rule="naming",
            message=f"App name '{identity.name}' must be lowercase letters/digits separated by '-' or '.'",
        )

    if not NAME_PATTERN.match(identity.category):
        yield ViolationReport(
            rule="naming",
            message=f"Category '{identity.category}' must be lowercase letters/digits separated by '-' or '.'",
        )

    allowed = ctx.config.allowed_categories
    if allowed is not None and identity.category not in allowed:
        yield ViolationReport(
            rule="naming",
            message=f"Unknown category '{identity.category}' (allowed: {', '.join(allowed)})",
        )


RULES: tuple[tuple[str, Rule], ...] = (
    ("default-export", check_default_export),
    ("react-import", check_react_import),
    ("max-size", check_max_size),
    ("disallowed-import", check_disallowed_imports),
    ("no-dom-manipulation", check_dom_manipulation),
    ("no-console-log", check_console_log),
    ("naming", check_naming),
)


# =============================================================================
# Validator
# =============================================================================

class StructureValidator:
    """
    구조 검증기.

    RULES를 순서대로 모두 실행하고 위반을 모아 ValidationResult 생성.
    """

    def __init__(self, config: ValidationConfig | None = None):
        self.config = config or ValidationConfig()

    @property
    def rule_ids(self) -> list[str]:
        return [rule_id for rule_id, _ in RULES]

    def validate(self, source: AppSource) -> ValidationResult:
        """
        소스 검증.

        Args:
            source: 로드된 앱 소스

        Returns:
            ValidationResult (valid = 위반 없음)

        Raises:
            ReadError: text가 디코딩 불가능한 bytes인 경우
        """
        ctx = RuleContext(
            text=self._decode(source),
            identity=source.identity,
            config=self.config,
        )

        violations: list[ViolationReport] = []
        for _, rule in RULES:
            violations.extend(rule(ctx))

        result = ValidationResult(violations=tuple(violations))
        if result.valid:
            logger.debug(f"{source.identity}: all {len(RULES)} rules passed")
        else:
            logger.info(
                f"{source.identity}: {len(violations)} violation(s) "
                f"in rules {result.rules_violated()}"
            )
        return result

    def _decode(self, source: AppSource) -> str:
        text = source.text
        if isinstance(text, bytes):
            try:
                return text.decode("utf-8")
            except UnicodeDecodeError as e:
                raise ReadError(
                    app=str(source.identity),
                    path=str(source.path),
                    reason=f"not valid UTF-8 at byte {e.start}",
                ) from e
        return text
