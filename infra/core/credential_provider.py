"""
EML Downloader 프로젝트의 자격 증명 제공자

MSAL PublicClientApplication을 감싸서 Microsoft Graph용 액세스 토큰을 발급합니다.
무음(silent) 획득을 먼저 시도하고, 사용자 상호작용이 필요한 경우에만
대화형(브라우저) 획득으로 한 번 더 시도합니다.
"""

import asyncio
import functools
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import msal

from .config import get_config
from .exceptions import AuthError, InitError
from .logger import get_logger

logger = get_logger(__name__)


# MSAL이 추가 사용자 상호작용을 요구할 때 돌려주는 오류 코드
INTERACTION_REQUIRED_ERRORS = frozenset(
    {"interaction_required", "login_required", "consent_required", "invalid_grant"}
)

# 사용자가 로그인 창을 닫거나 거부한 경우
INTERACTION_CANCELLED_ERRORS = frozenset({"access_denied", "authentication_canceled"})


class TokenFailureKind(Enum):
    """토큰 획득 실패 유형"""
    NEEDS_INTERACTION = "needs_interaction"
    OTHER = "other"


@dataclass(frozen=True)
class TokenFailure:
    """MSAL 결과에서 분류한 토큰 획득 실패"""

    kind: TokenFailureKind
    error: str
    description: str = ""

    @classmethod
    def from_result(cls, result: Optional[Dict[str, Any]]) -> Optional["TokenFailure"]:
        """
        MSAL 결과 딕셔너리를 분류합니다.

        Returns:
            성공(access_token 포함)이면 None, 실패면 TokenFailure
        """
        if result is None:
            # acquire_token_silent는 캐시에 쓸 토큰이 없으면 None을 반환
            return cls(TokenFailureKind.NEEDS_INTERACTION, "no_cached_token")
        if result.get("access_token"):
            return None

        error = result.get("error") or "unknown_error"
        description = result.get("error_description") or ""
        if error in INTERACTION_REQUIRED_ERRORS:
            return cls(TokenFailureKind.NEEDS_INTERACTION, error, description)
        return cls(TokenFailureKind.OTHER, error, description)

    @property
    def needs_interaction(self) -> bool:
        return self.kind is TokenFailureKind.NEEDS_INTERACTION


class CredentialProvider:
    """Azure AD 토큰 발급 및 캐시를 담당하는 클라이언트"""

    def __init__(
        self,
        client_id: Optional[str] = None,
        authority: Optional[str] = None,
        scopes: Optional[List[str]] = None,
        cache_path: Optional[Path] = None,
        app_factory: Optional[Callable[..., Any]] = None,
    ):
        """
        Args:
            client_id: Azure AD 클라이언트 ID (None이면 설정값)
            authority: 인증 엔드포인트 (None이면 설정값)
            scopes: 기본 스코프 (None이면 설정값)
            cache_path: 토큰 캐시 파일 경로 (None이면 설정값)
            app_factory: PublicClientApplication 생성 함수 (테스트에서 교체)
        """
        config = get_config()
        self.client_id = client_id if client_id is not None else config.azure_client_id
        self.authority = authority or config.azure_authority
        self.scopes = list(scopes or config.azure_scopes)
        self.cache_path = Path(cache_path) if cache_path else config.token_cache_path
        self._app_factory = app_factory or msal.PublicClientApplication

        self._app: Optional[Any] = None
        self._cache: Optional[msal.SerializableTokenCache] = None
        self._init_lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._app is not None

    async def _run_blocking(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        """MSAL 호출은 블로킹이므로 기본 executor에서 실행"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))

    async def initialize(self) -> None:
        """
        MSAL 애플리케이션을 생성합니다. 여러 번 호출해도 한 번만 생성됩니다.

        Raises:
            InitError: 클라이언트 ID 누락 또는 MSAL 생성 실패
        """
        if self._app is not None:
            return

        async with self._init_lock:
            if self._app is not None:
                return

            if not self.client_id:
                raise InitError(
                    "AZURE_CLIENT_ID가 설정되지 않았습니다",
                    config_key="AZURE_CLIENT_ID",
                )

            try:
                cache = self._load_cache()
                app = await self._run_blocking(
                    self._app_factory,
                    self.client_id,
                    authority=self.authority,
                    token_cache=cache,
                )
            except Exception as e:
                logger.error(f"MSAL 초기화 실패: {str(e)}")
                raise InitError(f"MSAL 초기화 실패: {str(e)}") from e

            self._cache = cache
            self._app = app
            logger.info(f"MSAL 초기화 완료: client_id={self.client_id[:8]}..., authority={self.authority}")

    def _load_cache(self) -> msal.SerializableTokenCache:
        cache = msal.SerializableTokenCache()
        if self.cache_path.exists():
            cache.deserialize(self.cache_path.read_text(encoding="utf-8"))
            logger.debug(f"토큰 캐시 로드: {self.cache_path}")
        return cache

    def _save_cache(self) -> None:
        if self._cache is None or not self._cache.has_state_changed:
            return
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            self.cache_path.write_text(self._cache.serialize(), encoding="utf-8")
        except OSError as e:
            logger.error(f"토큰 캐시 저장 실패: {self.cache_path}: {str(e)}")
            raise AuthError(
                f"토큰 캐시 저장 실패: {str(e)}",
                details={"cache_path": str(self.cache_path)},
            ) from e
        logger.debug(f"토큰 캐시 저장: {self.cache_path}")

    async def get_cached_account(self) -> Optional[Dict[str, Any]]:
        """캐시에 있는 첫 번째 계정 반환 (없으면 None)"""
        await self.initialize()
        accounts = await self._run_blocking(self._app.get_accounts)
        return accounts[0] if accounts else None

    async def sign_in(self, scopes: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        대화형 로그인 후 로그인한 계정을 반환합니다.

        Raises:
            AuthError: 로그인 실패 또는 취소
        """
        await self.initialize()
        scopes = list(scopes or self.scopes)

        logger.info("캐시된 계정이 없어 대화형 로그인을 시작합니다")
        result = await self._acquire_interactive(scopes)
        failure = TokenFailure.from_result(result)
        if failure is not None:
            raise self._auth_error("로그인 실패", failure)

        self._save_cache()
        account = await self.get_cached_account()
        if account is None:
            raise AuthError("로그인 후 계정 정보를 찾을 수 없습니다")
        logger.info("대화형 로그인 완료")
        return account

    async def get_token(self, scopes: Optional[List[str]] = None) -> str:
        """
        유효한 액세스 토큰을 반환합니다.

        1. 캐시된 계정이 없으면 대화형 로그인
        2. 무음 획득 시도
        3. 상호작용이 필요하다는 실패면 대화형 획득을 한 번 더 시도

        Raises:
            InitError: MSAL 초기화 실패
            AuthError: 상호작용 필요 이외의 사유로 토큰 획득 실패
        """
        await self.initialize()
        scopes = list(scopes or self.scopes)

        account = await self.get_cached_account()
        if account is None:
            account = await self.sign_in(scopes)

        try:
            result = await self._run_blocking(
                self._app.acquire_token_silent, scopes, account=account
            )
        except Exception as e:
            raise AuthError(f"무음 토큰 획득 중 오류: {str(e)}") from e

        failure = TokenFailure.from_result(result)
        if failure is None:
            self._save_cache()
            logger.debug("무음 토큰 획득 성공")
            return result["access_token"]

        if not failure.needs_interaction:
            raise self._auth_error("토큰 획득 실패", failure)

        logger.info(f"사용자 상호작용 필요 ({failure.error}), 대화형 획득으로 전환")
        result = await self._acquire_interactive(scopes, account)
        failure = TokenFailure.from_result(result)
        if failure is not None:
            raise self._auth_error("대화형 토큰 획득 실패", failure)

        self._save_cache()
        logger.info("대화형 토큰 획득 성공")
        return result["access_token"]

    async def _acquire_interactive(
        self, scopes: List[str], account: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {}
        if account and account.get("username"):
            kwargs["login_hint"] = account["username"]
        try:
            return await self._run_blocking(
                self._app.acquire_token_interactive, scopes, **kwargs
            )
        except Exception as e:
            raise AuthError(f"대화형 인증 중 오류: {str(e)}") from e

    async def sign_out(self) -> None:
        """캐시된 모든 계정을 제거합니다."""
        await self.initialize()
        accounts = await self._run_blocking(self._app.get_accounts)
        for account in accounts:
            await self._run_blocking(self._app.remove_account, account)
        self._save_cache()
        logger.info(f"로그아웃 완료: {len(accounts)}개 계정 제거")

    @staticmethod
    def _auth_error(prefix: str, failure: TokenFailure) -> AuthError:
        details = {"error": failure.error, "error_description": failure.description}
        if failure.error in INTERACTION_CANCELLED_ERRORS:
            return AuthError(
                f"{prefix}: 사용자가 로그인을 취소했습니다",
                error_code="INTERACTION_CANCELLED",
                details=details,
            )
        message = f"{prefix}: {failure.description or failure.error}"
        logger.error(message)
        return AuthError(message, details=details)
