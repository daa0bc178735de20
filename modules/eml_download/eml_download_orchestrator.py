"""
EML Download 오케스트레이터
인증 → 메일 조회 → (재구성) → 저장 플로우 관리

상태: IDLE → AUTHENTICATING → FETCHING → RECONSTRUCTING(선택) → DELIVERING → DONE
실패 시 어느 단계에서든 FAILED를 거쳐 항상 IDLE로 돌아갑니다.
"""

from typing import List, Optional

from infra.core.credential_provider import CredentialProvider
from infra.core.error_messages import ErrorMessage
from infra.core.exceptions import (
    DownloadInProgressError,
    EmlDownloaderError,
    InitError,
)
from infra.core.logger import get_logger

from .content_fetcher import ContentFetcher
from .delivery import EmlDelivery, sanitize_filename
from .eml_download_helpers import mask_identifier
from .eml_download_schema import (
    ContentKind,
    DownloadArtifact,
    DownloadOutcome,
    DownloadResult,
    DownloadState,
    FetchedContent,
)
from .host_adapter import OUTLOOK_HOST, HostAdapter, StatusLevel
from .message_locator import candidate_encodings
from .message_reconstructor import from_structured

logger = get_logger(__name__)


class DownloadSession:
    """
    다운로드 세션

    프로세스당 한 번 만들어 재사용합니다. 자격 증명 제공자(토큰 캐시)와
    진행 중 플래그만 시도 사이에 유지됩니다.
    """

    def __init__(self, credential_provider: Optional[CredentialProvider] = None):
        self.credential_provider = credential_provider or CredentialProvider()
        self.in_progress = False
        self.state = DownloadState.IDLE

    def transition(self, state: DownloadState) -> None:
        if state != self.state:
            logger.debug(f"상태 전환: {self.state.value} → {state.value}")
        self.state = state


class EmlDownloadOrchestrator:
    """EML 다운로드 오케스트레이터"""

    def __init__(
        self,
        session: Optional[DownloadSession] = None,
        fetcher: Optional[ContentFetcher] = None,
        delivery: Optional[EmlDelivery] = None,
        scopes: Optional[List[str]] = None,
    ):
        self.session = session or DownloadSession()
        self.fetcher = fetcher or ContentFetcher()
        self.delivery = delivery or EmlDelivery()
        self.scopes = scopes

    async def __aenter__(self):
        """컨텍스트 매니저 진입"""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """컨텍스트 매니저 종료 시 리소스 정리"""
        await self.close()

    async def close(self):
        """리소스 정리"""
        await self.fetcher.graph_client.close()
        logger.debug("EmlDownloadOrchestrator 리소스 정리 완료")

    async def on_host_ready(self, host: HostAdapter) -> bool:
        """
        호스트 준비 완료 처리 - Outlook이면 인증 클라이언트를 초기화합니다.

        Returns:
            다운로드를 받을 준비가 되었는지 여부
        """
        info = host.host_info()
        if info.host != OUTLOOK_HOST:
            logger.info(f"Outlook 호스트가 아닙니다: {info.host}")
            return False

        try:
            await self.session.credential_provider.initialize()
        except InitError as e:
            logger.error(f"인증 초기화 실패: {e}")
            host.show_status(StatusLevel.ERROR, ErrorMessage.for_exception(e))
            return False

        logger.info(f"호스트 준비 완료: {info.host} ({info.platform or 'unknown'})")
        return True

    async def sign_out(self) -> None:
        """캐시된 계정을 모두 제거 (다음 다운로드에서 다시 로그인)"""
        await self.session.credential_provider.sign_out()

    async def download_current_message(self, host: HostAdapter) -> DownloadResult:
        """
        현재 열린 메일을 EML 파일로 저장합니다.

        Raises:
            DownloadInProgressError: 이미 다운로드가 진행 중
            InitError / AuthError: 인증 실패
            InvalidIdentifierError: 선택된 메일 없음
            FetchExhaustedError: 모든 조회 전략 실패
            DeliveryError: 파일 저장 실패
        """
        session = self.session
        if session.in_progress:
            error = DownloadInProgressError()
            host.show_status(StatusLevel.ERROR, ErrorMessage.for_exception(error))
            raise error

        # 첫 await 이전에 설정
        session.in_progress = True
        try:
            session.transition(DownloadState.AUTHENTICATING)
            host.show_status(StatusLevel.PROGRESS, "인증 중...")
            provider = session.credential_provider
            await provider.initialize()
            access_token = await provider.get_token(self.scopes)

            item = host.current_item()
            candidates = list(candidate_encodings(item.item_id))
            logger.info(f"다운로드 시작: item_id={mask_identifier(item.item_id)}")

            session.transition(DownloadState.FETCHING)
            host.show_status(StatusLevel.PROGRESS, "메일 내용을 가져오는 중...")
            content = await self.fetcher.fetch_first_success(
                access_token, candidates, item.subject
            )

            artifact = self._build_artifact(content, item.subject)

            session.transition(DownloadState.DELIVERING)
            host.show_status(StatusLevel.PROGRESS, "EML 파일 저장 중...")
            saved_path = self.delivery.deliver(artifact.payload, artifact.filename)

            session.transition(DownloadState.DONE)
            result = DownloadResult(
                filename=saved_path.name,
                saved_path=saved_path,
                strategy=content.strategy,
                size_bytes=len(artifact.payload),
                reconstructed=content.kind is ContentKind.STRUCTURED,
            )
            host.show_status(StatusLevel.SUCCESS, f"다운로드 완료: {saved_path}")
            logger.info(
                f"다운로드 완료: file={result.filename}, strategy={result.strategy}, "
                f"size={result.size_bytes}"
            )
            return result

        except EmlDownloaderError as e:
            session.transition(DownloadState.FAILED)
            logger.error(f"다운로드 실패 ({type(e).__name__}): {e}")
            host.show_status(StatusLevel.ERROR, ErrorMessage.for_exception(e))
            raise

        finally:
            session.in_progress = False
            session.transition(DownloadState.IDLE)

    def _build_artifact(self, content: FetchedContent, subject: Optional[str]) -> DownloadArtifact:
        """조회 결과를 저장할 파일로 변환 (구조화 결과는 재구성)"""
        if content.kind is ContentKind.STRUCTURED:
            self.session.transition(DownloadState.RECONSTRUCTING)
            payload = from_structured(content.record)
            subject = subject or (content.record.subject if content.record else None)
        else:
            payload = content.mime_content or b""

        return DownloadArtifact(filename=sanitize_filename(subject), payload=payload)

    async def run_download(self, host: HostAdapter) -> DownloadOutcome:
        """
        호스트 버튼 핸들러용 래퍼 - 프로젝트 예외를 결과 객체로 변환합니다.
        """
        try:
            result = await self.download_current_message(host)
        except EmlDownloaderError as e:
            return DownloadOutcome(
                success=False,
                message=ErrorMessage.for_exception(e),
                error_code=e.error_code,
                error_category=ErrorMessage.get_category(ErrorMessage.classify(e)),
            )

        return DownloadOutcome(
            success=True,
            message=f"다운로드 완료: {result.saved_path}",
            result=result,
        )
