"""
App layer: CLI + 서비스.

역할:
- services/: 구조 검증, phase 추적, 프롬프트 생성, 배포 클라이언트
- commands.py: resolve → validate → (deploy | prompt) 상태 머신
- main.py: argparse CLI (app-factory)

주의: 폴더 구분
- src/app/services/ → 코드
- prompts/ (루트) → phase별 지시문 템플릿 (<phase>.md)
- apps/ (루트) → 앱 소스 (<category>/<name>.tsx)
"""
