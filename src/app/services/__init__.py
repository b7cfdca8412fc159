"""
Application Services.

역할:
- validate: 앱 소스 구조 규칙 검사
- phases: lifecycle phase 조회/전진
- prompt: phase별 프롬프트 생성
- deploy: 호스팅 API 배포
"""

from .deploy import DeploymentClient
from .phases import PhaseOrder, PhaseTracker
from .prompt import PromptGenerator
from .validate import StructureValidator

__all__ = [
    "StructureValidator",
    "PhaseOrder",
    "PhaseTracker",
    "PromptGenerator",
    "DeploymentClient",
]
