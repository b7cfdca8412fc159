"""
Command Surface: resolve → validate → (deploy | prompt) 오케스트레이션.

상태:
    IDLE → RESOLVING → VALIDATING → {DEPLOYING | PROMPT_GENERATING} → DONE

규칙:
- RESOLVING/VALIDATING 실패 → 바로 DONE (실패 보고)
- 검증 실패는 첫 번째가 아니라 모든 위반을 나열
- DONE은 항상 성공 payload (live URL / 프롬프트) 또는 구조화된 실패 중 하나
- 부분 성공 없음
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from src.app.services.deploy import DeploymentClient
from src.app.services.phases import PhaseTracker
from src.app.services.prompt import PromptGenerator
from src.app.services.validate import StructureValidator
from src.core.hashing import compute_text_hash
from src.core.locator import AppLocator, validate_segment
from src.core.logging import append_history
from src.core.state import JsonStateStore
from src.domain.errors import (
    AppFactoryError,
    ErrorCodes,
    NotFoundError,
    TransportFailure,
    ValidationFailure,
)
from src.domain.schemas import (
    AppIdentity,
    AppRecord,
    AppSource,
    DeployResponse,
    Phase,
    PromptPayload,
    ValidationResult,
    ViolationReport,
)
from src.utils.retry import retry_with_exponential_backoff

logger = logging.getLogger(__name__)


# =============================================================================
# Outcome
# =============================================================================

class Stage(str, Enum):
    """커맨드 진행 단계."""
    IDLE = "idle"
    RESOLVING = "resolving"
    VALIDATING = "validating"
    DEPLOYING = "deploying"
    PROMPT_GENERATING = "prompt-generating"
    UPDATING_STATE = "updating-state"
    DONE = "done"


@dataclass
class CommandOutcome:
    """
    커맨드 최종 결과.

    stage: 성공이면 마지막으로 수행한 단계, 실패면 실패한 단계.
    """
    success: bool
    stage: Stage
    message: str
    trace: list[Stage] = field(default_factory=list)
    live_url: str | None = None
    payload: PromptPayload | None = None
    violations: tuple[ViolationReport, ...] = ()
    error: dict[str, Any] | None = None

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1


def describe_error(exc: AppFactoryError) -> str:
    """에러 → 사람이 읽는 한 줄."""
    ctx = exc.context
    code = exc.code

    if code == ErrorCodes.INVALID_IDENTITY:
        return f"Invalid app identifier {ctx.get('field', 'name')}={ctx.get('value')!r}: {ctx.get('reason')}"
    if code == ErrorCodes.APP_NOT_FOUND:
        where = ctx.get("searched") or ctx.get("path")
        return f"App file not found for: {ctx.get('app')} (searched in: {where})"
    if code == ErrorCodes.APP_READ_FAILED:
        return f"Could not read {ctx.get('path')}: {ctx.get('reason')}"
    if code == ErrorCodes.UNKNOWN_PHASE:
        reason = ctx.get("reason") or "not a known phase"
        return f"Unknown phase '{ctx.get('phase')}': {reason}"
    if code == ErrorCodes.TERMINAL_PHASE:
        return f"Phase '{ctx.get('phase')}' is the final phase; cannot advance"
    if code == ErrorCodes.TRANSPORT_FAILED:
        return f"Deployment failed: {ctx.get('error')}"
    if code == ErrorCodes.STATE_APP_EXISTS:
        return f"App \"{ctx.get('app')}\" already exists"
    if code == ErrorCodes.STATE_APP_UNKNOWN:
        return f"App \"{ctx.get('app')}\" not found in state"
    return str(exc)


def format_violations(violations: tuple[ViolationReport, ...]) -> list[str]:
    return [f"   • {v.format()}" for v in violations]


# =============================================================================
# Base
# =============================================================================

class _PipelineCommand:
    """resolve + validate 공통 단계."""

    def __init__(
        self,
        locator: AppLocator,
        validator: StructureValidator,
        store: JsonStateStore | None = None,
        history_dir: Path | None = None,
    ):
        self.locator = locator
        self.validator = validator
        self.store = store
        self.history_dir = history_dir
        self.trace: list[Stage] = []
        self.stage = Stage.IDLE

    def _enter(self, stage: Stage) -> None:
        self.stage = stage
        self.trace.append(stage)
        logger.debug(f"stage -> {stage.value}")

    def _reset(self) -> None:
        self.trace = [Stage.IDLE]
        self.stage = Stage.IDLE

    def _resolve(self, name: str) -> tuple[AppSource, AppRecord | None]:
        """RESOLVING: state 레코드(카테고리 힌트) 조회 → 파일 탐색 → 로드."""
        self._enter(Stage.RESOLVING)
        validate_segment(name, "name")

        record = self.store.get_record(name) if self.store is not None else None
        hint = record.category if record is not None else None

        identity = self.locator.find(name, category_hint=hint)
        source = self.locator.resolve(identity)
        logger.info(f"Found: {source.path}")
        return source, record

    def _validate(self, source: AppSource) -> ValidationResult:
        """VALIDATING: 위반이 하나라도 있으면 ValidationFailure."""
        self._enter(Stage.VALIDATING)
        result = self.validator.validate(source)
        if not result.valid:
            raise ValidationFailure(result, app=str(source.identity))
        logger.info("Validation passed")
        return result

    def _fail(self, exc: AppFactoryError) -> CommandOutcome:
        failed_stage = self.stage
        self._enter(Stage.DONE)

        if isinstance(exc, ValidationFailure):
            violations = exc.result.violations
            lines = [f"❌ Validation failed ({len(violations)} violation(s)):"]
            lines.extend(format_violations(violations))
            return CommandOutcome(
                success=False,
                stage=failed_stage,
                message="\n".join(lines),
                trace=list(self.trace),
                violations=violations,
                error=exc.to_dict(),
            )

        return CommandOutcome(
            success=False,
            stage=failed_stage,
            message=f"❌ {failed_stage.value} failed: {describe_error(exc)}",
            trace=list(self.trace),
            error=exc.to_dict(),
        )


# =============================================================================
# Deploy
# =============================================================================

class DeployCommand(_PipelineCommand):
    """deploy <app-name>"""

    def __init__(
        self,
        locator: AppLocator,
        validator: StructureValidator,
        client: DeploymentClient,
        store: JsonStateStore | None = None,
        history_dir: Path | None = None,
        retry_initial_delay: float = 1.0,
        retry_max_delay: float = 30.0,
        sleep: Callable[[float], None] | None = None,
    ):
        super().__init__(locator, validator, store, history_dir)
        self.client = client
        self.retry_initial_delay = retry_initial_delay
        self.retry_max_delay = retry_max_delay
        self._sleep = sleep

    def run(self, name: str, dry_run: bool = False, retries: int = 0) -> CommandOutcome:
        """
        배포 실행.

        Args:
            name: 앱 이름
            dry_run: 검증만 하고 네트워크 요청 없이 대상 URL 보고
            retries: 실패 시 추가 시도 횟수 (기본 0 = 재시도 없음)

        Returns:
            CommandOutcome
        """
        self._reset()
        logger.info(f"Deploying {name}...")

        try:
            source, record = self._resolve(name)
            self._validate(source)
        except AppFactoryError as e:
            return self._fail(e)

        if dry_run:
            live_url = self.client.live_url_for(source.identity)
            self._enter(Stage.DONE)
            size = len(source.text.encode("utf-8"))
            return CommandOutcome(
                success=True,
                stage=Stage.VALIDATING,
                message=(
                    f"📋 DRY RUN - Would deploy to: {live_url}\n"
                    f"   CodeSpace: {self.client.code_space_for(source.identity)}\n"
                    f"   File size: {size} bytes"
                ),
                trace=list(self.trace),
                live_url=live_url,
            )

        self._enter(Stage.DEPLOYING)
        try:
            response = self._deploy_with_retries(source, retries)
        except TransportFailure as e:
            return self._fail(e)

        code_space = self.client.code_space_for(source.identity)
        self._record_deploy(source, record, response, code_space)

        self._enter(Stage.DONE)
        return CommandOutcome(
            success=True,
            stage=Stage.DEPLOYING,
            message=(
                f"✅ Deployed successfully!\n"
                f"   URL: {response.live_url}\n"
                f"   CodeSpace: {code_space}"
            ),
            trace=list(self.trace),
            live_url=response.live_url,
        )

    def _deploy_with_retries(self, source: AppSource, retries: int) -> DeployResponse:
        """client.deploy를 retries번까지 재시도. 최종 실패 시 TransportFailure."""

        def attempt() -> DeployResponse:
            response = self.client.deploy(source)
            if not response.success:
                raise TransportFailure(
                    app=str(source.identity),
                    error=response.error_message,
                    status_code=response.status_code,
                )
            return response

        kwargs: dict[str, Any] = {}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep

        return retry_with_exponential_backoff(
            attempt,
            max_retries=retries,
            initial_delay=self.retry_initial_delay,
            max_delay=self.retry_max_delay,
            exceptions=(TransportFailure,),
            **kwargs,
        )

    def _record_deploy(
        self,
        source: AppSource,
        record: AppRecord | None,
        response: DeployResponse,
        code_space: str,
    ) -> None:
        """등록된 앱이면 liveUrl/codeSpaceId/localFileHash 기록 + history."""
        if self.store is None or record is None:
            return

        code_hash = compute_text_hash(source.text)

        def mutate(r: AppRecord) -> None:
            r.live_url = response.live_url
            r.code_space_id = code_space
            r.local_file_hash = code_hash

        try:
            self.store.update_record(record.name, mutate)
        except AppFactoryError as e:
            # 원격 배포는 이미 끝남: 결과는 성공, 기록 실패만 경고
            logger.warning(f"Deployed {record.name} but could not update state: {e}")
            return

        if self.history_dir is not None:
            append_history(
                self.history_dir,
                record.name,
                "deployed",
                liveUrl=response.live_url,
                codeSpaceId=code_space,
                localFileHash=code_hash,
            )


# =============================================================================
# Prompt
# =============================================================================

class PromptCommand(_PipelineCommand):
    """prompt <app-name> [phase]"""

    def __init__(
        self,
        locator: AppLocator,
        validator: StructureValidator,
        tracker: PhaseTracker,
        generator: PromptGenerator,
        store: JsonStateStore | None = None,
    ):
        super().__init__(locator, validator, store)
        self.tracker = tracker
        self.generator = generator

    def run(self, name: str, phase: str | None = None) -> CommandOutcome:
        """
        프롬프트 생성.

        Args:
            name: 앱 이름
            phase: 명시적 phase (없으면 저장된 phase, 그것도 없으면 첫 phase)

        Returns:
            CommandOutcome (payload 포함)
        """
        self._reset()

        try:
            source, record = self._resolve(name)
            self._validate(source)

            self._enter(Stage.PROMPT_GENERATING)
            if record is not None:
                current = self.tracker.interpret(record.phase, override=phase)
                last_error = record.last_error
            else:
                current = self.tracker.current_phase(source.identity, override=phase)
                last_error = None

            payload = self.generator.generate(source, current, last_error=last_error)
        except AppFactoryError as e:
            return self._fail(e)

        self._enter(Stage.DONE)
        return CommandOutcome(
            success=True,
            stage=Stage.PROMPT_GENERATING,
            message=payload.render(),
            trace=list(self.trace),
            payload=payload,
        )


# =============================================================================
# State Commands (init / advance / next / status)
# =============================================================================

def init_app(
    store: JsonStateStore,
    tracker: PhaseTracker,
    apps_root: Path,
    name: str,
    category: str,
    categories: tuple[str, ...],
    history_dir: Path | None = None,
) -> CommandOutcome:
    """init <app-name> <category>: state 등록 + apps/<category>/ 생성."""
    try:
        identity = AppIdentity(category=category, name=name)
        validate_segment(name, "name")
        validate_segment(category, "category")

        if category not in categories:
            return CommandOutcome(
                success=False,
                stage=Stage.UPDATING_STATE,
                message=f"❌ Invalid category. Must be one of: {', '.join(categories)}",
            )

        first = tracker.order.lowest
        store.create_record(name, category, first.name)
    except AppFactoryError as e:
        return CommandOutcome(
            success=False,
            stage=Stage.UPDATING_STATE,
            message=f"❌ {describe_error(e)}",
            error=e.to_dict(),
        )

    (apps_root / category).mkdir(parents=True, exist_ok=True)
    if history_dir is not None:
        append_history(history_dir, name, "initialized", category=category)

    return CommandOutcome(
        success=True,
        stage=Stage.UPDATING_STATE,
        message=f"✅ Initialized app: {identity.name} ({identity.category})\n   Phase: {first.name}",
    )


def advance_app(
    store: JsonStateStore,
    tracker: PhaseTracker,
    name: str,
    success: bool,
    reason: str | None = None,
    history_dir: Path | None = None,
) -> CommandOutcome:
    """
    advance <app-name> --success|--failure.

    --success: 다음 phase로 전진 (attempts/lastError 초기화)
    --failure: attempts +1, lastError 기록. phase는 그대로 (역행 없음)
    """
    transition: list[Phase] = []

    def complete_phase(r: AppRecord) -> None:
        # TerminalPhaseError는 저장 전에 발생 → 쓰기 없음
        transition.extend(tracker.step(r.phase))
        r.phase = transition[1].name
        r.attempts = 0
        r.last_error = None

    def record_failure(r: AppRecord) -> None:
        r.attempts += 1
        r.last_error = reason or "Unknown failure"

    try:
        updated = store.update_record(name, complete_phase if success else record_failure)
    except AppFactoryError as e:
        return CommandOutcome(
            success=False,
            stage=Stage.UPDATING_STATE,
            message=f"❌ {describe_error(e)}",
            error=e.to_dict(),
        )

    if success:
        previous, new_phase = transition
        if history_dir is not None:
            append_history(
                history_dir, name, "phase_complete",
                **{"from": previous.name, "to": new_phase.name},
            )
        lines = [f"✅ {name}: {previous.name} → {new_phase.name}"]
        if tracker.order.is_terminal(new_phase):
            lines.append(f"\n🎉 App \"{name}\" is complete!")
        return CommandOutcome(
            success=True,
            stage=Stage.UPDATING_STATE,
            message="\n".join(lines),
        )

    if history_dir is not None:
        append_history(
            history_dir, name, "phase_failed",
            phase=updated.phase, attempt=updated.attempts, reason=updated.last_error,
        )
    return CommandOutcome(
        success=True,
        stage=Stage.UPDATING_STATE,
        message=(
            f"❌ {name}: Failed (attempt {updated.attempts})\n"
            f"   Reason: {updated.last_error}"
        ),
    )


def _created_at(record: AppRecord) -> datetime:
    """createdAt 정렬 키. 파싱 불가 → 가장 나중."""
    try:
        created = datetime.fromisoformat(record.created_at)
    except ValueError:
        return datetime.max.replace(tzinfo=UTC)
    return created if created.tzinfo else created.replace(tzinfo=UTC)


def pending_records(records: list[AppRecord], tracker: PhaseTracker) -> list[AppRecord]:
    """
    작업 대기 앱 (마지막 phase가 아닌 앱).

    정렬: attempts 적은 순 → createdAt 오래된 순.
    순서에 없는 phase의 앱은 제외 (status의 UNKNOWN PHASE 참고).
    """
    terminal = tracker.order.highest.name
    pending = []
    for record in records:
        if record.phase and record.phase not in tracker.order:
            logger.warning(f"Skipping {record.name}: unknown phase {record.phase!r}")
            continue
        if record.phase != terminal:
            pending.append(record)
    return sorted(pending, key=lambda r: (r.attempts, _created_at(r)))


def next_app(
    store: JsonStateStore,
    tracker: PhaseTracker,
    locator: AppLocator,
    generator: PromptGenerator,
) -> CommandOutcome:
    """
    next: 다음 작업 대상 앱 + 현재 phase 프롬프트.

    소스 파일이 아직 없으면 (plan 단계) 빈 발췌로 생성. 진행 중인 코드라
    구조 검증은 하지 않는다.
    """
    try:
        pending = pending_records(store.list_records(), tracker)
        if not pending:
            return CommandOutcome(
                success=True,
                stage=Stage.DONE,
                message=(
                    "🎉 No pending apps! All apps are complete.\n\n"
                    "Run 'app-factory init <app-name> <category>' to add a new app."
                ),
            )

        record = pending[0]
        phase = tracker.interpret(record.phase)
        try:
            source = locator.resolve(record.identity)
        except NotFoundError:
            source = AppSource(
                identity=record.identity,
                path=locator.path_for(record.identity),
                text="",
            )
        payload = generator.generate(source, phase, last_error=record.last_error)
    except AppFactoryError as e:
        return CommandOutcome(
            success=False,
            stage=Stage.PROMPT_GENERATING,
            message=f"❌ {describe_error(e)}",
            error=e.to_dict(),
        )

    lines = [
        "═" * 60,
        "📋 NEXT TASK",
        "═" * 60,
        f"App:      {record.name}",
        f"Category: {record.category}",
        f"Phase:    {phase.name.upper()}",
        f"Attempts: {record.attempts}",
    ]
    if record.last_error:
        lines.append(f"\n⚠️  Previous Error: {record.last_error}")
    lines.extend([
        "",
        payload.render(),
        "",
        "When done, run:",
        f"  app-factory advance {record.name} --success",
        f'  app-factory advance {record.name} --failure --reason "description"',
    ])

    return CommandOutcome(
        success=True,
        stage=Stage.PROMPT_GENERATING,
        message="\n".join(lines),
        payload=payload,
    )


def status_report(store: JsonStateStore, tracker: PhaseTracker) -> CommandOutcome:
    """status: phase 순서대로 앱 목록."""
    try:
        records = store.list_records()
    except AppFactoryError as e:
        return CommandOutcome(
            success=False,
            stage=Stage.UPDATING_STATE,
            message=f"❌ {describe_error(e)}",
            error=e.to_dict(),
        )

    if not records:
        return CommandOutcome(
            success=True,
            stage=Stage.DONE,
            message="No apps registered yet.",
        )

    by_phase: dict[str, list[AppRecord]] = {name: [] for name in tracker.order.names}
    unknown: list[AppRecord] = []
    for record in records:
        if record.phase in by_phase:
            by_phase[record.phase].append(record)
        else:
            unknown.append(record)

    lines = ["═" * 70, "📊 APP FACTORY STATUS", "═" * 70]
    for phase_name, phase_apps in by_phase.items():
        if not phase_apps:
            continue
        lines.append(f"\n{phase_name.upper()} ({len(phase_apps)})")
        lines.append("─" * 50)
        for app in sorted(phase_apps, key=lambda r: r.name):
            attempts = f" [{app.attempts} attempts]" if app.attempts > 0 else ""
            lines.append(f"  • {app.name} ({app.category}){attempts}")

    if unknown:
        lines.append(f"\nUNKNOWN PHASE ({len(unknown)})")
        lines.append("─" * 50)
        for app in sorted(unknown, key=lambda r: r.name):
            lines.append(f"  • {app.name} ({app.category}) phase={app.phase!r}")

    terminal = tracker.order.highest.name
    complete = len(by_phase[terminal])
    lines.append("\n" + "═" * 70)
    lines.append(
        f"Total: {len(records)} apps | Complete: {complete} | In Progress: {len(records) - complete}"
    )

    return CommandOutcome(success=True, stage=Stage.DONE, message="\n".join(lines))
