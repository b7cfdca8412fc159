"""
test_deploy.py - 배포 클라이언트 테스트 (httpx.MockTransport)

DoD:
- 호출당 요청 정확히 1회
- 연결 실패/timeout/non-2xx → DeployResponse(success=False), raise 없음
- 잘못된 입력 → TypeError
"""

import json

import httpx
import pytest

from src.app.config import DeployConfig
from src.app.services.deploy import DeploymentClient

CONFIG = DeployConfig(api_url="https://host", timeout=5.0)


@pytest.fixture
def source(make_source, valid_app_text):
    return make_source(valid_app_text)


# =============================================================================
# 성공
# =============================================================================

class TestDeploySuccess:
    """2xx 응답."""

    def test_posts_payload(self, source, ok_transport, http_client, valid_app_text):
        client = DeploymentClient(CONFIG, http_client=http_client)

        response = client.deploy(source)

        assert response.success is True
        assert response.live_url == "https://host/live/my-widget"
        assert response.status_code == 200
        assert len(ok_transport.requests) == 1

        request = ok_transport.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://host/live/my-widget"
        assert json.loads(request.content) == {
            "category": "widgets",
            "name": "my-widget",
            "code": valid_app_text,
            "run": True,
        }

    def test_live_url_from_response(self, source, make_transport):
        transport = make_transport(
            lambda request: httpx.Response(201, json={"liveUrl": "https://cdn.host/my-widget"})
        )
        with httpx.Client(transport=transport) as http:
            response = DeploymentClient(CONFIG, http_client=http).deploy(source)

        assert response.success is True
        assert response.live_url == "https://cdn.host/my-widget"

    def test_non_json_body(self, source, make_transport):
        transport = make_transport(lambda request: httpx.Response(200, text="ok"))
        with httpx.Client(transport=transport) as http:
            response = DeploymentClient(CONFIG, http_client=http).deploy(source)

        assert response.live_url == "https://host/live/my-widget"

    def test_code_space_prefix(self, source, ok_transport, http_client):
        config = DeployConfig(api_url="https://host/", code_space_prefix="app-")
        client = DeploymentClient(config, http_client=http_client)

        client.deploy(source)

        assert str(ok_transport.requests[0].url) == "https://host/live/app-my-widget"


# =============================================================================
# 실패
# =============================================================================

class TestDeployFailure:
    """실패는 값으로 반환."""

    def test_server_error(self, source, make_transport):
        transport = make_transport(lambda request: httpx.Response(503, text="upstream down"))
        with httpx.Client(transport=transport) as http:
            response = DeploymentClient(CONFIG, http_client=http).deploy(source)

        assert response.success is False
        assert response.status_code == 503
        assert response.error_message == "API error: 503 - upstream down"
        assert response.live_url is None
        assert len(transport.requests) == 1

    def test_error_body_truncated(self, source, make_transport):
        transport = make_transport(lambda request: httpx.Response(400, text="x" * 2000))
        with httpx.Client(transport=transport) as http:
            response = DeploymentClient(CONFIG, http_client=http).deploy(source)

        assert response.error_message == "API error: 400 - " + "x" * 500

    @pytest.mark.parametrize("exc", [
        httpx.ConnectError("connection refused"),
        httpx.ReadTimeout("timed out"),
    ])
    def test_transport_error(self, source, make_transport, exc):
        def handler(request):
            raise exc

        transport = make_transport(handler)
        with httpx.Client(transport=transport) as http:
            response = DeploymentClient(CONFIG, http_client=http).deploy(source)

        assert response.success is False
        assert response.status_code is None
        assert response.error_message.startswith("Transport error: ")
        assert len(transport.requests) == 1


# =============================================================================
# 프로그래머 오류
# =============================================================================

class TestDeployMisuse:
    """잘못된 입력/설정은 raise."""

    def test_not_a_source(self, http_client, ok_transport):
        with pytest.raises(TypeError):
            DeploymentClient(CONFIG, http_client=http_client).deploy("export default function App() {}")

        assert ok_transport.requests == []


class TestClientLifecycle:
    """소유한 클라이언트만 닫는다."""

    def test_injected_client_left_open(self, http_client):
        with DeploymentClient(CONFIG, http_client=http_client):
            pass

        assert http_client.is_closed is False

    def test_owned_client_closed(self):
        client = DeploymentClient(CONFIG)
        client.close()

        assert client._client.is_closed is True
