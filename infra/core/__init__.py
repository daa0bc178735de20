"""
EML Downloader 핵심 인프라

- 설정 (.env 기반 Config)
- 로깅 (colorlog 콘솔 + 회전 파일)
- 예외 계층과 사용자 안내 메시지
- MSAL 기반 자격 증명 제공자
"""

from infra.core.logger import get_logger


logger = get_logger(__name__)

try:
    from .config import Config, get_config
    from .credential_provider import CredentialProvider, TokenFailure, TokenFailureKind
    from .error_messages import ErrorCode, ErrorMessage
    from .exceptions import (
        APIConnectionError,
        AuthenticationError,
        AuthError,
        BusinessLogicError,
        ConfigurationError,
        DeliveryError,
        DownloadInProgressError,
        EmlDownloaderError,
        FetchExhaustedError,
        InitError,
        InvalidIdentifierError,
        ValidationError,
    )

except ImportError as e:
    logger.info(f"Infra core 모듈 import 오류: {e}")
    logger.info("프로젝트 루트에서 실행하거나 pip install -e . 로 설치했는지 확인하세요")
    raise

__all__ = [
    # Configuration
    "Config",
    "get_config",
    # Logging
    "get_logger",
    # Credentials
    "CredentialProvider",
    "TokenFailure",
    "TokenFailureKind",
    # Error messages
    "ErrorCode",
    "ErrorMessage",
    # Exceptions
    "EmlDownloaderError",
    "APIConnectionError",
    "FetchExhaustedError",
    "AuthenticationError",
    "AuthError",
    "ConfigurationError",
    "InitError",
    "ValidationError",
    "InvalidIdentifierError",
    "BusinessLogicError",
    "DownloadInProgressError",
    "DeliveryError",
]
