"""
Phase Tracking: 앱 lifecycle 단계 해석 + 전진.

규칙:
- phase 순서는 설정 가능 (기본: plan → develop → test → debug → polish → complete)
- 저장된 phase가 없으면 가장 낮은 phase
- override는 조회일 뿐: 저장 상태를 절대 바꾸지 않음
- advance는 단조 증가, 마지막 phase에서는 TerminalPhaseError (쓰기 없음)
- advance의 읽기/쓰기는 저장소의 transition 한 번으로 (중간에 끼어든 전진을 덮어쓰지 않음)
- 소스 내용으로 phase를 추론하지 않음
"""

import logging
from collections.abc import Iterable, Iterator

from src.core.state import PhaseStore
from src.domain.constants import DEFAULT_PHASE_ORDER
from src.domain.errors import TerminalPhaseError, UnknownPhaseError
from src.domain.schemas import AppIdentity, Phase

logger = logging.getLogger(__name__)


# =============================================================================
# Phase Order
# =============================================================================

class PhaseOrder:
    """정렬된 phase 열거."""

    def __init__(self, names: Iterable[str] = DEFAULT_PHASE_ORDER):
        self._phases = tuple(Phase(ordinal=i, name=name) for i, name in enumerate(names))
        if not self._phases:
            raise ValueError("PhaseOrder requires at least one phase")
        self._by_name = {p.name: p for p in self._phases}
        if len(self._by_name) != len(self._phases):
            raise ValueError("PhaseOrder contains duplicate phase names")

    def __iter__(self) -> Iterator[Phase]:
        return iter(self._phases)

    def __len__(self) -> int:
        return len(self._phases)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    @property
    def names(self) -> list[str]:
        return [p.name for p in self._phases]

    @property
    def lowest(self) -> Phase:
        return self._phases[0]

    @property
    def highest(self) -> Phase:
        return self._phases[-1]

    def get(self, name: str) -> Phase:
        """
        이름 → Phase.

        Raises:
            UnknownPhaseError: 순서에 없는 이름
        """
        try:
            return self._by_name[name]
        except KeyError:
            raise UnknownPhaseError(phase=name, known=self.names) from None

    def next(self, phase: Phase) -> Phase:
        """
        다음 phase.

        Raises:
            TerminalPhaseError: 이미 마지막
        """
        if phase.ordinal >= len(self._phases) - 1:
            raise TerminalPhaseError(phase=phase.name)
        return self._phases[phase.ordinal + 1]

    def is_terminal(self, phase: Phase) -> bool:
        return phase.ordinal == len(self._phases) - 1


# =============================================================================
# Phase Tracker
# =============================================================================

class PhaseTracker:
    """
    phase 조회/전진.

    저장 형식은 PhaseStore가 담당; 여기서는 해석만 한다.
    """

    def __init__(self, store: PhaseStore, order: PhaseOrder | None = None):
        """
        Args:
            store: phase 메타데이터 저장소
            order: phase 순서 (None이면 기본 순서)
        """
        self.store = store
        self.order = order or PhaseOrder()

    def current_phase(
        self,
        identity: AppIdentity,
        override: str | None = None,
    ) -> Phase:
        """
        현재 phase.

        Args:
            identity: 앱 식별자
            override: 명시적 phase 이름 (저장 상태보다 우선, 조회 전용)

        Returns:
            Phase

        Raises:
            UnknownPhaseError: override 또는 저장된 값이 순서에 없음
        """
        if override is not None:
            return self.order.get(override)
        return self.interpret(self.store.get(identity))

    def interpret(self, stored: str | None, override: str | None = None) -> Phase:
        """
        이미 읽어 둔 저장값 해석 (store 재조회 없음).

        Args:
            stored: 저장된 phase 이름 (없으면 None)
            override: 명시적 phase 이름

        Raises:
            UnknownPhaseError
        """
        if override is not None:
            return self.order.get(override)
        if not stored:
            return self.order.lowest
        return self.order.get(stored)

    def step(self, stored: str | None) -> tuple[Phase, Phase]:
        """
        저장값 기준 (현재 phase, 다음 phase). 저장소 접근 없음.

        Raises:
            TerminalPhaseError: 마지막 phase
            UnknownPhaseError: 저장된 값이 순서에 없음
        """
        current = self.interpret(stored)
        return current, self.order.next(current)

    def advance(self, identity: AppIdentity) -> Phase:
        """
        다음 phase로 전진 후 저장.

        읽기 → 계산 → 쓰기는 store.transition 한 번 (JsonStateStore는 락 안에서).

        Returns:
            새 Phase

        Raises:
            TerminalPhaseError: 마지막 phase (저장 상태 변경 없음)
            UnknownPhaseError: 저장된 값이 순서에 없음
        """
        previous, phase = self.store.transition(
            identity,
            lambda stored: self.step(stored)[1].name,
        )
        logger.info(f"{identity}: {previous or self.order.lowest.name} -> {phase}")
        return self.order.get(phase)
