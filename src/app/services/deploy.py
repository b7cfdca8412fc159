"""
Deployment Client: 검증된 앱 소스를 호스팅 엔드포인트로 전송.

POST {api_url}/live/{code_space}
  body: {"category", "name", "code", "run": true}

규칙:
- 호출당 요청 1회 (재시도는 호출 측 책임)
- 연결 실패, timeout, non-2xx → DeployResponse(success=False), raise 하지 않음
- 요청 구성 오류(잘못된 URL, 잘못된 입력)는 프로그래머 오류 → raise
"""

import logging
from types import TracebackType

import httpx

from src.app.config import DeployConfig
from src.domain.schemas import AppIdentity, AppSource, DeployRequest, DeployResponse

logger = logging.getLogger(__name__)

# 에러 본문은 앞부분만 보고
ERROR_BODY_MAX_CHARS = 500


class DeploymentClient:
    """
    호스팅 API 클라이언트.

    Usage:
        with DeploymentClient(config) as client:
            response = client.deploy(source)
    """

    def __init__(
        self,
        config: DeployConfig | None = None,
        http_client: httpx.Client | None = None,
    ):
        """
        Args:
            config: 배포 설정 (api_url, timeout, code_space_prefix)
            http_client: 주입할 httpx.Client (테스트에서 MockTransport 사용)
        """
        self.config = config or DeployConfig()
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=self.config.timeout)

    def __enter__(self) -> "DeploymentClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    # =========================================================================
    # URLs
    # =========================================================================

    def code_space_for(self, identity: AppIdentity) -> str:
        return f"{self.config.code_space_prefix}{identity.name}"

    def endpoint_for(self, identity: AppIdentity) -> str:
        return f"{self.config.api_url.rstrip('/')}/live/{self.code_space_for(identity)}"

    def live_url_for(self, identity: AppIdentity) -> str:
        """배포 후 앱이 노출되는 URL."""
        return self.endpoint_for(identity)

    # =========================================================================
    # Deploy
    # =========================================================================

    def deploy(self, source: AppSource) -> DeployResponse:
        """
        소스 배포.

        Args:
            source: 검증을 통과한 앱 소스

        Returns:
            DeployResponse

        Raises:
            TypeError: source가 AppSource가 아님
            httpx.InvalidURL / httpx.UnsupportedProtocol: api_url 설정 오류
        """
        if not isinstance(source, AppSource):
            raise TypeError(f"deploy() expects AppSource, got {type(source).__name__}")

        deploy_request = DeployRequest(identity=source.identity, text=source.text)
        http_request = self._client.build_request(
            "POST",
            self.endpoint_for(source.identity),
            json=deploy_request.to_payload(),
        )

        logger.info(f"Deploying {source.identity} -> {http_request.url}")

        try:
            response = self._client.send(http_request)
        except httpx.UnsupportedProtocol:
            raise
        except httpx.TransportError as e:
            message = f"Transport error: {type(e).__name__}: {e}"
            logger.warning(f"Deploy of {source.identity} failed: {message}")
            return DeployResponse(success=False, error_message=message)

        if not response.is_success:
            body = response.text[:ERROR_BODY_MAX_CHARS]
            message = f"API error: {response.status_code} - {body}"
            logger.warning(f"Deploy of {source.identity} rejected: {message}")
            return DeployResponse(
                success=False,
                error_message=message,
                status_code=response.status_code,
            )

        live_url = self._live_url_from_response(response) or self.live_url_for(source.identity)
        logger.info(f"Deployed {source.identity} -> {live_url}")
        return DeployResponse(
            success=True,
            live_url=live_url,
            status_code=response.status_code,
        )

    def _live_url_from_response(self, response: httpx.Response) -> str | None:
        """응답 JSON의 liveUrl/url (없거나 JSON이 아니면 None)."""
        try:
            data = response.json()
        except ValueError:
            return None

        if not isinstance(data, dict):
            return None

        for key in ("liveUrl", "url"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
        return None
