"""
EML Downloader 프로젝트의 설정 관리 시스템

환경 변수(.env)를 로드하고 관리하는 설정 클래스를 제공합니다.
레이지 싱글톤 패턴으로 구현되어 어디서든 동일한 설정 객체를 참조할 수 있습니다.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError
from .logging_config import get_logger


logger = get_logger(__name__)

_TRUE_VALUES = ("true", "1", "yes", "on")


class Config:
    """애플리케이션 설정을 관리하는 클래스"""

    def __init__(self):
        """설정 초기화 및 환경 변수 로드"""
        self._load_environment()
        self._validate_settings()

    def _load_environment(self) -> None:
        """환경 변수 파일(.env)을 로드"""
        project_root = Path(__file__).parent.parent.parent
        env_file = project_root / ".env"

        if env_file.exists():
            load_dotenv(env_file)
            logger.debug(f"✅ .env 파일 로드 완료: {env_file}")
        else:
            logger.debug(f".env 파일 없음, 환경변수만 사용: {env_file}")

    def _validate_settings(self) -> None:
        """숫자형 설정값 검증 및 OAuth 설정 누락 경고"""
        for key, getter in (
            ("HTTP_TIMEOUT", lambda: self.http_timeout),
            ("STRATEGY_BACKOFF_SECONDS", lambda: self.strategy_backoff_seconds),
        ):
            try:
                value = getter()
            except ValueError as e:
                raise ConfigurationError(
                    f"숫자 형식이 아닌 설정값입니다: {key}", config_key=key
                ) from e
            if value < 0:
                raise ConfigurationError(
                    f"음수는 허용되지 않습니다: {key}={value}", config_key=key
                )

        if not self.is_oauth_configured():
            # 인증 시점에 InitError로 보고되므로 여기서는 경고만 남긴다
            logger.warning("⚠️ AZURE_CLIENT_ID가 설정되지 않았습니다")

    # Azure AD 설정
    @property
    def azure_client_id(self) -> Optional[str]:
        """Azure AD 애플리케이션(클라이언트) ID"""
        return os.getenv("AZURE_CLIENT_ID")

    @property
    def azure_tenant_id(self) -> str:
        """Azure AD 테넌트 ID"""
        return os.getenv("AZURE_TENANT_ID", "common")

    @property
    def azure_authority(self) -> str:
        """Azure AD 인증 엔드포인트"""
        return f"https://login.microsoftonline.com/{self.azure_tenant_id}"

    @property
    def azure_scopes(self) -> List[str]:
        """Graph API 스코프 (공백 구분)"""
        scopes = os.getenv("AZURE_SCOPES", "Mail.Read")
        return [scope.strip() for scope in scopes.split() if scope.strip()]

    @property
    def token_cache_path(self) -> Path:
        """MSAL 토큰 캐시 파일 경로"""
        return Path(os.getenv("TOKEN_CACHE_PATH", "./data/msal_token_cache.json"))

    # Microsoft Graph API 설정
    @property
    def graph_api_endpoint(self) -> str:
        """Microsoft Graph API 엔드포인트 (끝의 / 제거)"""
        return os.getenv("GRAPH_API_ENDPOINT", "https://graph.microsoft.com/v1.0").rstrip("/")

    @property
    def http_timeout(self) -> int:
        """HTTP 요청 타임아웃(초)"""
        return int(os.getenv("HTTP_TIMEOUT", "30"))

    # 다운로드 설정
    @property
    def eml_output_dir(self) -> Path:
        """EML 파일 저장 디렉터리"""
        return Path(os.getenv("EML_OUTPUT_DIR", "./downloads"))

    @property
    def strategy_backoff_seconds(self) -> float:
        """조회 전략 사이 대기 시간(초)"""
        return float(os.getenv("STRATEGY_BACKOFF_SECONDS", "1.0"))

    @property
    def enable_subject_search(self) -> bool:
        """제목 검색 폴백 전략 사용 여부"""
        return os.getenv("ENABLE_SUBJECT_SEARCH", "true").lower() in _TRUE_VALUES

    # 로깅 설정
    @property
    def log_level(self) -> str:
        """로그 레벨"""
        return os.getenv("LOG_LEVEL", "INFO").upper()

    # 검증 메서드
    def is_oauth_configured(self) -> bool:
        """OAuth 설정이 완료되었는지 확인"""
        return bool(self.azure_client_id)

    def to_dict(self) -> dict:
        """설정을 딕셔너리로 반환 (민감한 정보 제외)"""
        return {
            "azure_tenant_id": self.azure_tenant_id,
            "azure_authority": self.azure_authority,
            "azure_scopes": self.azure_scopes,
            "token_cache_path": str(self.token_cache_path),
            "graph_api_endpoint": self.graph_api_endpoint,
            "http_timeout": self.http_timeout,
            "eml_output_dir": str(self.eml_output_dir),
            "strategy_backoff_seconds": self.strategy_backoff_seconds,
            "enable_subject_search": self.enable_subject_search,
            "log_level": self.log_level,
            "oauth_configured": self.is_oauth_configured(),
        }


@lru_cache(maxsize=1)
def get_config() -> Config:
    """
    설정 인스턴스를 반환하는 레이지 싱글톤 함수

    Returns:
        Config: 설정 인스턴스
    """
    return Config()
