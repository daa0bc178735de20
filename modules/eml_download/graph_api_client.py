"""
Microsoft Graph API 클라이언트
단일 메일의 MIME 원문, 메타데이터, 구조화 필드 조회 처리

재시도는 하지 않습니다. 실패 시 APIConnectionError를 던지고,
대체 요청 형태로 다시 시도하는 일은 ContentFetcher가 담당합니다.
"""

import asyncio
from typing import Any, Dict, List, Optional

import aiohttp
from yarl import URL

from infra.core.config import get_config
from infra.core.exceptions import APIConnectionError
from infra.core.logger import get_logger

from .eml_download_helpers import mask_identifier, parse_graph_error_response

logger = get_logger(__name__)

# 구조화 JSON 전략에서 요청하는 필드
STRUCTURED_SELECT_FIELDS = (
    "id,subject,from,sender,toRecipients,ccRecipients,bccRecipients,"
    "body,receivedDateTime"
)


class GraphAPIClient:
    """Microsoft Graph API 클라이언트"""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        config = get_config()
        self.base_url = (base_url or config.graph_api_endpoint).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout or config.http_timeout)
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        """세션 생성 또는 반환 (재사용)"""
        if self._session is None or self._session.closed:
            async with self._session_lock:
                if self._session is None or self._session.closed:
                    self._session = aiohttp.ClientSession(timeout=self.timeout)
                    logger.debug("새로운 aiohttp 세션 생성됨")
        return self._session

    async def close(self):
        """세션 정리"""
        if self._session and not self._session.closed:
            await self._session.close()
            logger.debug("aiohttp 세션 정리됨")
        self._session = None

    def _message_url(self, message_id: str, suffix: str = "") -> URL:
        # 인코딩된 ID를 다시 quote하지 않도록 encoded=True
        return URL(f"{self.base_url}/me/messages/{message_id}{suffix}", encoded=True)

    @staticmethod
    def _headers(access_token: str, accept: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Accept": accept,
        }

    async def _request(
        self,
        url: URL,
        headers: Dict[str, str],
        params: Optional[Dict[str, Any]] = None,
        as_bytes: bool = False,
    ) -> Any:
        """
        GET 요청 1회 수행

        Returns:
            as_bytes이면 응답 본문 bytes, 아니면 JSON 객체

        Raises:
            APIConnectionError: 2xx가 아닌 응답, JSON이 아닌 2xx 본문 또는 네트워크 오류
        """
        session = await self._get_session()
        endpoint = str(url)

        try:
            async with session.get(url, headers=headers, params=params) as response:
                if 200 <= response.status < 300:
                    if as_bytes:
                        return await response.read()
                    try:
                        return await response.json(content_type=None)
                    except ValueError as e:
                        # 프록시/게이트웨이가 2xx로 HTML을 돌려주는 경우
                        raise APIConnectionError(
                            "Graph API 응답이 JSON이 아닙니다",
                            api_endpoint=endpoint,
                            status_code=response.status,
                        ) from e

                try:
                    error_info = parse_graph_error_response(
                        await response.json(content_type=None)
                    )
                except (aiohttp.ContentTypeError, ValueError):
                    error_info = {
                        "code": f"HTTP_{response.status}",
                        "message": f"HTTP {response.status} {response.reason or ''}".strip(),
                    }

                raise APIConnectionError(
                    f"Graph API 호출 실패: HTTP {response.status} {error_info['message']}",
                    api_endpoint=endpoint,
                    status_code=response.status,
                    error_code=error_info.get("code"),
                )

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise APIConnectionError(
                f"Graph API 네트워크 오류: {str(e) or type(e).__name__}",
                api_endpoint=endpoint,
            ) from e

    async def get_message_mime(self, access_token: str, message_id: str) -> bytes:
        """
        메일 MIME 원문 조회 (GET /me/messages/{id}/$value)

        Args:
            access_token: 액세스 토큰
            message_id: 경로에 넣을 (이미 인코딩된) 메일 ID

        Returns:
            RFC 822 원문 bytes
        """
        logger.info(f"MIME 원문 조회: message_id={mask_identifier(message_id)}")
        return await self._request(
            self._message_url(message_id, "/$value"),
            self._headers(access_token, "message/rfc822"),
            as_bytes=True,
        )

    async def get_message_metadata(self, access_token: str, message_id: str) -> Dict[str, Any]:
        """
        메일 메타데이터 조회 (GET /me/messages/{id})

        Returns:
            canonical id를 포함한 메타데이터
        """
        logger.info(f"메타데이터 조회: message_id={mask_identifier(message_id)}")
        return await self._request(
            self._message_url(message_id),
            self._headers(access_token, "application/json"),
            params={"$select": "id,subject"},
        )

    async def get_message_fields(
        self,
        access_token: str,
        message_id: str,
        select_fields: str = STRUCTURED_SELECT_FIELDS,
    ) -> Dict[str, Any]:
        """
        구조화 메일 필드 조회 (GET /me/messages/{id}?$select=...)

        Returns:
            Graph message JSON
        """
        logger.info(f"구조화 필드 조회: message_id={mask_identifier(message_id)}")
        return await self._request(
            self._message_url(message_id),
            self._headers(access_token, "application/json"),
            params={"$select": select_fields},
        )

    async def search_messages(
        self, access_token: str, search_query: str, top: int = 5
    ) -> List[Dict[str, Any]]:
        """
        $search를 사용한 메시지 검색

        Args:
            access_token: 액세스 토큰
            search_query: 검색어 (따옴표 없이)
            top: 최대 결과 수

        Returns:
            메시지 목록 (id, subject, receivedDateTime)
        """
        headers = self._headers(access_token, "application/json")
        headers["ConsistencyLevel"] = "eventual"  # $search 사용 시 필수
        params = {
            "$search": f'"{search_query}"',
            "$top": str(min(top, 25)),
            "$select": "id,subject,receivedDateTime",
        }

        logger.info(f"Graph API $search 쿼리: {params}")
        data = await self._request(
            URL(f"{self.base_url}/me/messages", encoded=True), headers, params=params
        )
        if not isinstance(data, dict):
            return []
        return [item for item in data.get("value", []) if isinstance(item, dict)]
