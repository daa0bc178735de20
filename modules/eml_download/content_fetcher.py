"""
메일 내용 조회 전략

Graph API는 방금 도착한 메일에 대해 즉시 일관된 응답을 주지 않는 경우가 있고,
호출 환경에 따라 요구하는 ID 인코딩도 다릅니다. 그래서 요청 형태를 하나로
고정하지 않고 아래 전략을 순서대로 시도해 처음 성공한 결과를 사용합니다.

1. raw_mime         - /$value 로 MIME 원문 조회
2. resolved_mime    - 메타데이터로 canonical ID 확인 후 /$value 조회
3. structured_json  - $select 로 필드를 받아 로컬에서 EML 재구성
4. subject_search   - 제목 $search 로 찾은 첫 메일의 /$value 조회 (선택)
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar

from infra.core.config import get_config
from infra.core.exceptions import APIConnectionError, FetchExhaustedError
from infra.core.logger import get_logger

from .eml_download_helpers import mask_identifier, sanitize_search_term
from .eml_download_schema import (
    ContentKind,
    FetchedContent,
    GraphMessageRecord,
    IdentifierCandidate,
    StrategyFailure,
)
from .graph_api_client import GraphAPIClient
from .message_locator import encode_uri_component

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class FetchStrategy:
    """조회 전략 기술자"""

    name: str
    description: str
    run: Callable[["ContentFetcher", str, str], Awaitable[FetchedContent]]
    # False이면 ID 후보 대신 제목으로 한 번만 실행
    uses_identifier: bool = True


async def first_success(
    attempts: Sequence[Tuple[str, Callable[[], Awaitable[T]]]],
    backoff_seconds: float = 0.0,
) -> Tuple[Optional[T], List[StrategyFailure]]:
    """
    시도를 순서대로 실행해 처음 성공한 결과를 반환합니다.

    각 시도 사이에는 backoff_seconds 만큼 대기합니다.
    APIConnectionError만 실패로 기록하고 다른 예외는 그대로 전파합니다.

    Returns:
        (성공 결과 또는 None, 실패 목록)
    """
    failures: List[StrategyFailure] = []

    for index, (name, attempt) in enumerate(attempts):
        if index > 0 and backoff_seconds > 0:
            await asyncio.sleep(backoff_seconds)
        try:
            return await attempt(), failures
        except APIConnectionError as e:
            failures.append(
                StrategyFailure(strategy=name, reason=e.message, status_code=e.status_code)
            )

    return None, failures


class ContentFetcher:
    """전략 목록을 순서대로 시도하는 메일 내용 조회기"""

    def __init__(
        self,
        graph_client: Optional[GraphAPIClient] = None,
        backoff_seconds: Optional[float] = None,
        enable_subject_search: Optional[bool] = None,
    ):
        config = get_config()
        self.graph_client = graph_client or GraphAPIClient()
        self.backoff_seconds = (
            config.strategy_backoff_seconds if backoff_seconds is None else backoff_seconds
        )
        self.enable_subject_search = (
            config.enable_subject_search if enable_subject_search is None else enable_subject_search
        )

    # ------------------------------------------------------------------
    # 전략 구현
    # ------------------------------------------------------------------

    async def _raw_mime(self, access_token: str, message_id: str) -> FetchedContent:
        payload = await self.graph_client.get_message_mime(access_token, message_id)
        return self._mime_result("raw_mime", message_id, payload)

    async def _resolved_mime(self, access_token: str, message_id: str) -> FetchedContent:
        metadata = await self.graph_client.get_message_metadata(access_token, message_id)
        canonical_id = metadata.get("id") if isinstance(metadata, dict) else None
        if not canonical_id:
            raise APIConnectionError("메타데이터 응답에 id가 없습니다")

        confirmed_id = encode_uri_component(canonical_id)
        logger.debug(f"canonical ID 확인: {mask_identifier(canonical_id)}")
        payload = await self.graph_client.get_message_mime(access_token, confirmed_id)
        return self._mime_result("resolved_mime", confirmed_id, payload)

    async def _structured_json(self, access_token: str, message_id: str) -> FetchedContent:
        data = await self.graph_client.get_message_fields(access_token, message_id)
        if not isinstance(data, dict):
            raise APIConnectionError("구조화 응답이 JSON 객체가 아닙니다")
        return FetchedContent(
            strategy="structured_json",
            kind=ContentKind.STRUCTURED,
            message_id=message_id,
            record=GraphMessageRecord.model_validate(data),
        )

    async def _subject_search(self, access_token: str, subject: str) -> FetchedContent:
        term = sanitize_search_term(subject)
        if not term:
            raise APIConnectionError("검색할 제목이 없습니다")

        messages = await self.graph_client.search_messages(access_token, term)
        # 제목이 정확히 같은 메일을 우선
        match = next((m for m in messages if m.get("subject") == subject), None)
        match = match or (messages[0] if messages else None)
        if not match or not match.get("id"):
            raise APIConnectionError(f"제목 검색 결과가 없습니다: {term}")

        message_id = encode_uri_component(match["id"])
        payload = await self.graph_client.get_message_mime(access_token, message_id)
        return self._mime_result("subject_search", message_id, payload)

    @staticmethod
    def _mime_result(strategy: str, message_id: str, payload: bytes) -> FetchedContent:
        if not payload:
            raise APIConnectionError("MIME 응답 본문이 비어 있습니다")
        return FetchedContent(
            strategy=strategy,
            kind=ContentKind.MIME,
            message_id=message_id,
            mime_content=payload,
        )

    # ------------------------------------------------------------------
    # 공개 API
    # ------------------------------------------------------------------

    def strategies(self, subject: Optional[str] = None) -> List[FetchStrategy]:
        """현재 설정에서 시도할 전략 목록 (우선순위 순)"""
        strategies = [
            FetchStrategy("raw_mime", "MIME 원문 직접 조회", ContentFetcher._raw_mime),
            FetchStrategy("resolved_mime", "canonical ID 확인 후 MIME 조회", ContentFetcher._resolved_mime),
            FetchStrategy("structured_json", "구조화 필드 조회 후 재구성", ContentFetcher._structured_json),
        ]
        if self.enable_subject_search and subject and subject.strip():
            strategies.append(
                FetchStrategy(
                    "subject_search",
                    "제목 검색 후 MIME 조회",
                    ContentFetcher._subject_search,
                    uses_identifier=False,
                )
            )
        return strategies

    async def fetch(self, access_token: str, identifier: str, strategy: FetchStrategy) -> FetchedContent:
        """
        전략 하나를 ID 하나(제목 검색이면 제목)로 실행합니다.

        Raises:
            APIConnectionError: 전략 실패
        """
        return await strategy.run(self, access_token, identifier)

    async def _run_strategy(
        self,
        access_token: str,
        strategy: FetchStrategy,
        candidates: Sequence[IdentifierCandidate],
        subject: Optional[str],
    ) -> FetchedContent:
        """전략 하나를 중복 없는 ID 후보마다 시도, 모두 실패하면 APIConnectionError"""
        if not strategy.uses_identifier:
            return await self.fetch(access_token, subject or "", strategy)

        tried = set()
        attempts = []
        for candidate in candidates:
            if candidate.value in tried:
                continue
            tried.add(candidate.value)
            attempts.append(
                (
                    candidate.encoding.value,
                    lambda value=candidate.value: self.fetch(access_token, value, strategy),
                )
            )

        result, failures = await first_success(attempts)
        if result is not None:
            return result

        # 여기서 failure.strategy는 ID 인코딩 이름
        reason = ", ".join(f"{failure.strategy}: {failure.reason}" for failure in failures)
        status_codes = [failure.status_code for failure in failures if failure.status_code]
        raise APIConnectionError(
            reason,
            status_code=status_codes[-1] if status_codes else None,
        )

    async def fetch_first_success(
        self,
        access_token: str,
        candidates: Iterable[IdentifierCandidate],
        subject: Optional[str] = None,
    ) -> FetchedContent:
        """
        전략을 우선순위대로 시도해 처음 성공한 결과를 반환합니다.

        성공한 전략 이후의 전략은 실행하지 않으며,
        전략 사이에는 backoff_seconds 만큼 대기합니다.

        Raises:
            FetchExhaustedError: 모든 전략 실패 (전략별 실패 사유 포함)
        """
        candidates = list(candidates)
        strategies = self.strategies(subject)

        attempts = [
            (
                strategy.name,
                lambda strategy=strategy: self._run_strategy(access_token, strategy, candidates, subject),
            )
            for strategy in strategies
        ]

        result, failures = await first_success(attempts, backoff_seconds=self.backoff_seconds)
        for failure in failures:
            logger.warning(f"조회 전략 실패: {failure.strategy} - {failure.reason}")

        if result is None:
            raise FetchExhaustedError(failures)

        logger.info(f"조회 성공: strategy={result.strategy}, kind={result.kind.value}")
        return result
