"""
Domain Constants: 파이프라인 전역 상수.

파일 경로 정책, phase 기본 순서, 검증 기본값 등.
모든 값은 default.yaml에서 오버라이드 가능 (src/app/config.py 참조).
"""

# =============================================================================
# Project Layout (프로젝트 디렉토리 구조)
# =============================================================================
# <root>/
# ├── apps/<category>/<name>.tsx
# ├── prompts/<phase>.md
# ├── .state/
# │   ├── apps.json
# │   └── history/<name>.log
# └── default.yaml

APPS_DIR = "apps"
APP_SOURCE_EXTENSION = ".tsx"
PROMPTS_DIR = "prompts"
PROMPT_TEMPLATE_EXTENSION = ".md"
STATE_DIR = ".state"
STATE_FILENAME = "apps.json"
HISTORY_DIR = "history"
DEFAULT_CONFIG_FILENAME = "default.yaml"

# =============================================================================
# Phases
# =============================================================================

DEFAULT_PHASE_ORDER = ("plan", "develop", "test", "debug", "polish", "complete")

# =============================================================================
# Categories
# =============================================================================

DEFAULT_CATEGORIES = (
    "utility",
    "visualization",
    "productivity",
    "interactive",
    "health",
    "dogs",
    "lucky",
    "imported",
    "widgets",
)

# =============================================================================
# Validation Defaults
# =============================================================================

MAX_SOURCE_SIZE_BYTES = 100_000

DISALLOWED_MODULES = (
    "fs",
    "path",
    "child_process",
    "os",
    "net",
    "http",
    "https",
    "crypto",
)

# =============================================================================
# Deploy
# =============================================================================

DEFAULT_API_URL = "https://testing.spike.land"
DEFAULT_TIMEOUT_SECONDS = 30.0

# =============================================================================
# Prompt
# =============================================================================

PROMPT_EXCERPT_MAX_CHARS = 4000
