"""
EmlDownloadOrchestrator 통합 테스트

Graph API는 aiohttp TestServer, MSAL은 가짜 애플리케이션으로 대체하고
인증 → 조회 → (재구성) → 저장 전체 흐름을 확인합니다.
"""

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from infra.core.credential_provider import CredentialProvider
from infra.core.exceptions import DownloadInProgressError, FetchExhaustedError
from modules.eml_download.content_fetcher import ContentFetcher
from modules.eml_download.delivery import EmlDelivery
from modules.eml_download.eml_download_orchestrator import (
    DownloadSession,
    EmlDownloadOrchestrator,
)
from modules.eml_download.eml_download_schema import DownloadState
from modules.eml_download.graph_api_client import GraphAPIClient
from modules.eml_download.host_adapter import CommandLineHost, StatusLevel
from tests.fakes import ACCOUNT, FakeMsalApp, RecordingHost

ITEM_ID = "AAMkAGI2TG93AAA+/x=="
MIME_BYTES = b"From: a@x.com\r\nSubject: Q3 Report\r\n\r\nquarterly body\r\n"


def not_found():
    return web.json_response(
        {"error": {"code": "ErrorItemNotFound", "message": "Not found"}}, status=404
    )


def mime_only(request: web.Request) -> web.StreamResponse:
    if request.path.endswith("/$value"):
        return web.Response(body=MIME_BYTES, content_type="message/rfc822")
    return not_found()


def structured_only(request: web.Request) -> web.StreamResponse:
    if request.path.endswith("/$value") or request.query.get("$select") == "id,subject":
        return not_found()
    return web.json_response(
        {
            "id": "AAMk1",
            "subject": "Hi",
            "from": {"emailAddress": {"address": "a@x.com"}},
            "toRecipients": [],
            "body": {"contentType": "text", "content": "hello"},
            "receivedDateTime": "2025-10-14T08:30:00Z",
        }
    )


def always_not_found(request: web.Request) -> web.StreamResponse:
    return not_found()


def html_gateway(request: web.Request) -> web.StreamResponse:
    if request.path.endswith("/$value"):
        return not_found()
    return web.Response(text="<html>gateway</html>", content_type="text/html")


def graph_app(responder) -> web.Application:
    async def handle(request):
        return responder(request)

    app = web.Application()
    app.router.add_route("GET", "/{tail:.*}", handle)
    return app


def make_orchestrator(server, tmp_path, app: FakeMsalApp) -> EmlDownloadOrchestrator:
    provider = CredentialProvider(
        client_id="client-id-1234",
        scopes=["Mail.Read"],
        cache_path=tmp_path / "msal_token_cache.json",
        app_factory=app.factory,
    )
    fetcher = ContentFetcher(
        graph_client=GraphAPIClient(base_url=str(server.make_url("/v1.0")), timeout=5),
        backoff_seconds=0,
        enable_subject_search=False,
    )
    return EmlDownloadOrchestrator(
        session=DownloadSession(provider),
        fetcher=fetcher,
        delivery=EmlDelivery(tmp_path / "downloads"),
    )


class TestDownloadCurrentMessage:
    """download_current_message() 전체 흐름 테스트"""

    @pytest.mark.asyncio
    async def test_raw_mime_saved_verbatim(self, tmp_path):
        """1번 전략 성공 시 받은 바이트를 그대로 제목 파일명으로 저장"""
        host = RecordingHost(ITEM_ID, "Q3 Report")

        async with TestServer(graph_app(mime_only)) as server:
            async with make_orchestrator(server, tmp_path, FakeMsalApp(accounts=[ACCOUNT])) as orchestrator:
                result = await orchestrator.download_current_message(host)

        saved = tmp_path / "downloads" / "Q3 Report.eml"
        assert result.saved_path == saved
        assert result.filename == "Q3 Report.eml"
        assert result.strategy == "raw_mime"
        assert result.reconstructed is False
        assert saved.read_bytes() == MIME_BYTES
        assert host.statuses[-1][0] is StatusLevel.SUCCESS

    @pytest.mark.asyncio
    async def test_structured_fallback_reconstructed(self, tmp_path):
        """1, 2번 전략이 404이면 구조화 JSON으로 재구성"""
        host = RecordingHost(ITEM_ID, "Hi")

        async with TestServer(graph_app(structured_only)) as server:
            async with make_orchestrator(server, tmp_path, FakeMsalApp(accounts=[ACCOUNT])) as orchestrator:
                result = await orchestrator.download_current_message(host)

        payload = result.saved_path.read_bytes()
        assert result.strategy == "structured_json"
        assert result.reconstructed is True
        assert result.filename == "Hi.eml"
        assert b"From: a@x.com\r\n" in payload
        assert b"Subject: Hi\r\n" in payload
        assert b"Content-Type: text/plain; charset=utf-8\r\n" in payload
        assert payload.endswith(b"\r\n\r\nhello")

    @pytest.mark.asyncio
    async def test_subject_from_record_when_host_has_none(self, tmp_path):
        host = RecordingHost(ITEM_ID, None)

        async with TestServer(graph_app(structured_only)) as server:
            async with make_orchestrator(server, tmp_path, FakeMsalApp(accounts=[ACCOUNT])) as orchestrator:
                result = await orchestrator.download_current_message(host)

        assert result.filename == "Hi.eml"

    @pytest.mark.asyncio
    async def test_interaction_required_then_interactive(self, tmp_path):
        """무음 획득이 상호작용 필요면 대화형 획득을 정확히 한 번 더 시도"""
        app = FakeMsalApp(accounts=[ACCOUNT], silent_results=[{"error": "interaction_required"}])
        host = RecordingHost(ITEM_ID, "Q3 Report")

        async with TestServer(graph_app(mime_only)) as server:
            async with make_orchestrator(server, tmp_path, app) as orchestrator:
                result = await orchestrator.download_current_message(host)

        assert len(app.interactive_calls) == 1
        assert result.saved_path.read_bytes() == MIME_BYTES

    @pytest.mark.asyncio
    async def test_exhausted_reports_and_rearms(self, tmp_path):
        """모든 전략 실패 시 오류를 표시하고 세션은 다시 IDLE"""
        host = RecordingHost(ITEM_ID, "Q3 Report")

        async with TestServer(graph_app(always_not_found)) as server:
            async with make_orchestrator(server, tmp_path, FakeMsalApp(accounts=[ACCOUNT])) as orchestrator:
                with pytest.raises(FetchExhaustedError):
                    await orchestrator.download_current_message(host)
                session = orchestrator.session

        assert session.in_progress is False
        assert session.state is DownloadState.IDLE
        level, message = host.statuses[-1]
        assert level is StatusLevel.ERROR
        assert "[3] structured_json" in message
        assert not (tmp_path / "downloads").exists()

    @pytest.mark.asyncio
    async def test_html_gateway_responses_exhaust(self, tmp_path):
        """JSON 대신 HTML을 돌려주는 2xx 응답도 전략 실패로 처리"""
        host = RecordingHost(ITEM_ID, "Q3 Report")

        async with TestServer(graph_app(html_gateway)) as server:
            async with make_orchestrator(server, tmp_path, FakeMsalApp(accounts=[ACCOUNT])) as orchestrator:
                with pytest.raises(FetchExhaustedError) as exc_info:
                    await orchestrator.download_current_message(host)
                session = orchestrator.session

        assert [failure.strategy for failure in exc_info.value.failures] == [
            "raw_mime",
            "resolved_mime",
            "structured_json",
        ]
        assert session.state is DownloadState.IDLE
        assert host.statuses[-1][0] is StatusLevel.ERROR

    @pytest.mark.asyncio
    async def test_in_progress_guard(self, tmp_path):
        """진행 중이면 재진입 거부"""
        app = FakeMsalApp(accounts=[ACCOUNT])
        host = RecordingHost(ITEM_ID, "Q3 Report")

        async with TestServer(graph_app(mime_only)) as server:
            async with make_orchestrator(server, tmp_path, app) as orchestrator:
                orchestrator.session.in_progress = True
                with pytest.raises(DownloadInProgressError):
                    await orchestrator.download_current_message(host)

                assert app.factory_calls == []
                assert orchestrator.session.in_progress is True

    @pytest.mark.asyncio
    async def test_guard_set_during_download(self, tmp_path):
        """첫 await 이전에 플래그가 설정되어 있는지 확인"""
        observed = []
        host = RecordingHost(ITEM_ID, "Q3 Report")

        async with TestServer(graph_app(mime_only)) as server:
            async with make_orchestrator(server, tmp_path, FakeMsalApp(accounts=[ACCOUNT])) as orchestrator:
                original = host.show_status

                def spy(level, message):
                    observed.append((orchestrator.session.in_progress, orchestrator.session.state))
                    original(level, message)

                host.show_status = spy
                await orchestrator.download_current_message(host)

        assert observed[0] == (True, DownloadState.AUTHENTICATING)
        assert [state for _, state in observed] == [
            DownloadState.AUTHENTICATING,
            DownloadState.FETCHING,
            DownloadState.DELIVERING,
            DownloadState.DONE,
        ]
        assert all(flag for flag, _ in observed)


class TestRunDownload:
    """run_download() 결과 변환 테스트"""

    @pytest.mark.asyncio
    async def test_success_outcome(self, tmp_path):
        host = RecordingHost(ITEM_ID, "Q3 Report")

        async with TestServer(graph_app(mime_only)) as server:
            async with make_orchestrator(server, tmp_path, FakeMsalApp(accounts=[ACCOUNT])) as orchestrator:
                outcome = await orchestrator.run_download(host)

        assert outcome.success is True
        assert outcome.result.filename == "Q3 Report.eml"
        assert outcome.error_code is None
        assert outcome.error_category is None

    @pytest.mark.asyncio
    async def test_missing_item(self, tmp_path):
        """선택된 메일이 없으면 INVALID_IDENTIFIER"""
        host = RecordingHost(None)

        async with TestServer(graph_app(mime_only)) as server:
            async with make_orchestrator(server, tmp_path, FakeMsalApp(accounts=[ACCOUNT])) as orchestrator:
                outcome = await orchestrator.run_download(host)

        assert outcome.success is False
        assert outcome.error_code == "INVALID_IDENTIFIER"
        assert outcome.error_category == "MAIL"
        assert "선택된 메일이 없습니다" in outcome.message

    @pytest.mark.asyncio
    async def test_missing_client_id(self, tmp_path):
        host = RecordingHost(ITEM_ID, "Q3 Report")
        orchestrator = EmlDownloadOrchestrator(
            session=DownloadSession(
                CredentialProvider(client_id="", cache_path=tmp_path / "cache.json", app_factory=FakeMsalApp().factory)
            ),
            fetcher=ContentFetcher(graph_client=GraphAPIClient(base_url="http://127.0.0.1:9"), backoff_seconds=0),
            delivery=EmlDelivery(tmp_path),
        )

        async with orchestrator:
            outcome = await orchestrator.run_download(host)

        assert outcome.success is False
        assert outcome.error_code == "AUTH_INIT_FAILED"
        assert orchestrator.session.state is DownloadState.IDLE

    @pytest.mark.asyncio
    async def test_command_line_host(self, tmp_path, capsys):
        """CommandLineHost는 진행 상태를 출력"""
        host = CommandLineHost(item_id=ITEM_ID, subject="Q3 Report")

        async with TestServer(graph_app(mime_only)) as server:
            async with make_orchestrator(server, tmp_path, FakeMsalApp(accounts=[ACCOUNT])) as orchestrator:
                outcome = await orchestrator.run_download(host)

        output = capsys.readouterr().out
        assert outcome.success is True
        assert "⏳ 인증 중..." in output
        assert "✅ 다운로드 완료" in output
        assert host.history[-1][0] is StatusLevel.SUCCESS


class TestOnHostReady:
    """on_host_ready() 테스트"""

    @pytest.mark.asyncio
    async def test_outlook_initializes(self, tmp_path):
        app = FakeMsalApp()

        async with TestServer(graph_app(mime_only)) as server:
            async with make_orchestrator(server, tmp_path, app) as orchestrator:
                ready = await orchestrator.on_host_ready(RecordingHost(ITEM_ID))

                assert ready is True
                assert orchestrator.session.credential_provider.is_initialized
        assert len(app.factory_calls) == 1

    @pytest.mark.asyncio
    async def test_other_host_ignored(self, tmp_path):
        app = FakeMsalApp()

        async with TestServer(graph_app(mime_only)) as server:
            async with make_orchestrator(server, tmp_path, app) as orchestrator:
                ready = await orchestrator.on_host_ready(RecordingHost(ITEM_ID, host="Word"))

        assert ready is False
        assert app.factory_calls == []

    @pytest.mark.asyncio
    async def test_init_failure_reported(self, tmp_path):
        host = RecordingHost(ITEM_ID)
        orchestrator = EmlDownloadOrchestrator(
            session=DownloadSession(
                CredentialProvider(client_id="", cache_path=tmp_path / "cache.json", app_factory=FakeMsalApp().factory)
            ),
            fetcher=ContentFetcher(graph_client=GraphAPIClient(base_url="http://127.0.0.1:9"), backoff_seconds=0),
            delivery=EmlDelivery(tmp_path),
        )

        async with orchestrator:
            ready = await orchestrator.on_host_ready(host)

        assert ready is False
        assert host.statuses[-1][0] is StatusLevel.ERROR
        assert "인증 초기화에 실패했습니다" in host.statuses[-1][1]


class TestSignOut:
    """sign_out() 테스트"""

    @pytest.mark.asyncio
    async def test_next_download_signs_in_again(self, tmp_path):
        """로그아웃 후 다운로드는 대화형 로그인부터"""
        app = FakeMsalApp(accounts=[ACCOUNT])
        host = RecordingHost(ITEM_ID, "Q3 Report")

        async with TestServer(graph_app(mime_only)) as server:
            async with make_orchestrator(server, tmp_path, app) as orchestrator:
                await orchestrator.sign_out()
                assert app.accounts == []
                await orchestrator.download_current_message(host)

        assert len(app.interactive_calls) == 1
