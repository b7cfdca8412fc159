"""
CLI 진입점.

실행:
    uv run app-factory deploy <app-name> [--dry-run] [--retries N]
    uv run app-factory prompt <app-name> [phase] [--format text|json]
    uv run app-factory init <app-name> <category>
    uv run app-factory advance <app-name> --success|--failure [--reason "..."]
    uv run app-factory next [--format text|json]
    uv run app-factory status

종료 코드: 성공 0, 실패 1 (검증/전송/state 오류 모두)
"""

import argparse
import json
import logging
import sys
from pathlib import Path

import httpx

from src.app.commands import (
    CommandOutcome,
    DeployCommand,
    PromptCommand,
    advance_app,
    init_app,
    next_app,
    status_report,
)
from src.app.config import AppConfig, load_config
from src.app.services.deploy import DeploymentClient
from src.app.services.phases import PhaseOrder, PhaseTracker
from src.app.services.prompt import PromptGenerator, load_prompt_templates
from src.app.services.validate import StructureValidator
from src.core.locator import AppLocator
from src.core.state import JsonStateStore
from src.domain.constants import DEFAULT_CONFIG_FILENAME
from src.domain.errors import AppFactoryError

logger = logging.getLogger(__name__)


# =============================================================================
# Parser
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="app-factory",
        description="Validate single-file apps, deploy them, and generate phase prompts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path(DEFAULT_CONFIG_FILENAME),
        help=f"설정 파일 경로 (기본: {DEFAULT_CONFIG_FILENAME})",
    )
    parser.add_argument("--apps-dir", type=Path, help="apps/ 디렉터리 (설정 오버라이드)")
    parser.add_argument("--state-file", type=Path, help="apps.json 경로 (설정 오버라이드)")
    parser.add_argument("-v", "--verbose", action="store_true", help="DEBUG 로그 출력")

    sub = parser.add_subparsers(dest="command", required=True)

    deploy = sub.add_parser("deploy", help="앱 검증 후 live 엔드포인트로 배포")
    deploy.add_argument("app_name")
    deploy.add_argument("--dry-run", action="store_true", help="검증만, 배포 안 함")
    deploy.add_argument(
        "--retries",
        type=int,
        default=0,
        help="전송 실패 시 추가 시도 횟수 (기본: 0)",
    )

    prompt = sub.add_parser("prompt", help="phase별 개발 프롬프트 생성")
    prompt.add_argument("app_name")
    prompt.add_argument("phase", nargs="?", default=None)
    prompt.add_argument("--format", choices=["text", "json"], default="text")

    init = sub.add_parser("init", help="새 앱 등록")
    init.add_argument("app_name")
    init.add_argument("category")

    advance = sub.add_parser("advance", help="phase 완료/실패 기록")
    advance.add_argument("app_name")
    result = advance.add_mutually_exclusive_group(required=True)
    result.add_argument("--success", action="store_true")
    result.add_argument("--failure", action="store_true")
    advance.add_argument("--reason", type=str, default=None)

    next_cmd = sub.add_parser("next", help="다음 작업 대상 앱의 프롬프트")
    next_cmd.add_argument("--format", choices=["text", "json"], default="text")

    sub.add_parser("status", help="전체 앱 상태")

    return parser


# =============================================================================
# Wiring
# =============================================================================

def _apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    if args.apps_dir is not None:
        config.paths.apps_dir = args.apps_dir
    if args.state_file is not None:
        config.paths.state_file = args.state_file
        config.paths.history_dir = args.state_file.parent / "history"
    return config


def _emit(outcome: CommandOutcome) -> int:
    stream = sys.stdout if outcome.success else sys.stderr
    print(outcome.message, file=stream)
    return outcome.exit_code


def _build_generator(config: AppConfig, tracker: PhaseTracker) -> PromptGenerator:
    templates = load_prompt_templates(
        config.paths.prompts_dir,
        tracker.order.names,
        inline=config.prompts.templates,
    )
    return PromptGenerator(
        templates,
        descriptions=config.prompts.descriptions,
        excerpt_max_chars=config.prompts.excerpt_max_chars,
    )


def _emit_prompt(outcome: CommandOutcome, output_format: str) -> int:
    """prompt/next 출력. json이면 payload만."""
    if outcome.success and output_format == "json" and outcome.payload is not None:
        print(json.dumps(outcome.payload.to_dict(), ensure_ascii=False, indent=2))
        return 0
    return _emit(outcome)


def run(
    args: argparse.Namespace,
    config: AppConfig,
    http_client: httpx.Client | None = None,
) -> int:
    """파싱된 인자로 커맨드 실행."""
    paths = config.paths
    locator = AppLocator(paths.apps_dir)
    store = JsonStateStore(paths.state_file)
    tracker = PhaseTracker(store, PhaseOrder(config.phases))
    validator = StructureValidator(config.validation)

    if args.command == "deploy":
        with DeploymentClient(config.deploy, http_client=http_client) as client:
            command = DeployCommand(
                locator,
                validator,
                client,
                store=store,
                history_dir=paths.history_dir,
                retry_initial_delay=config.deploy.retry_initial_delay,
                retry_max_delay=config.deploy.retry_max_delay,
            )
            return _emit(command.run(args.app_name, dry_run=args.dry_run, retries=args.retries))

    if args.command == "prompt":
        generator = _build_generator(config, tracker)
        outcome = PromptCommand(locator, validator, tracker, generator, store=store).run(
            args.app_name, phase=args.phase
        )
        return _emit_prompt(outcome, args.format)

    if args.command == "next":
        generator = _build_generator(config, tracker)
        return _emit_prompt(next_app(store, tracker, locator, generator), args.format)

    if args.command == "init":
        return _emit(init_app(
            store,
            tracker,
            paths.apps_dir,
            args.app_name,
            args.category,
            config.categories,
            history_dir=paths.history_dir,
        ))

    if args.command == "advance":
        return _emit(advance_app(
            store,
            tracker,
            args.app_name,
            success=args.success,
            reason=args.reason,
            history_dir=paths.history_dir,
        ))

    if args.command == "status":
        return _emit(status_report(store, tracker))

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None, http_client: httpx.Client | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "deploy" and args.retries < 0:
        parser.error("--retries must be >= 0")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        config = _apply_overrides(load_config(args.config), args)
    except AppFactoryError as e:
        print(f"❌ configuration failed: {e}", file=sys.stderr)
        return 1

    return run(args, config, http_client=http_client)


if __name__ == "__main__":
    sys.exit(main())
