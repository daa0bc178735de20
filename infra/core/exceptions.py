"""
EML Downloader 프로젝트의 표준 예외 클래스 정의

프로젝트 전반에서 사용할 구조화된 예외 계층을 제공합니다.
모든 사용자 정의 예외는 EmlDownloaderError를 상속받습니다.
"""

from typing import Any, Dict, List, Optional


class EmlDownloaderError(Exception):
    """EML Downloader 프로젝트의 최상위 예외 클래스"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """예외 정보를 딕셔너리로 반환"""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class APIConnectionError(EmlDownloaderError):
    """외부 API 연결 오류"""

    def __init__(
        self,
        message: str,
        api_endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.get("details", {})
        if api_endpoint:
            details["api_endpoint"] = api_endpoint
        if status_code:
            details["status_code"] = status_code

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", "API_CONNECTION_ERROR"),
            details=details,
        )
        self.status_code = status_code


class FetchExhaustedError(APIConnectionError):
    """모든 메일 조회 전략이 실패한 경우"""

    def __init__(self, failures: List[Any], **kwargs):
        # failures: StrategyFailure 목록 (전략당 1개)
        self.failures = list(failures)
        entries = [
            f"[{index}] {failure.strategy}: {failure.reason}"
            for index, failure in enumerate(self.failures, 1)
        ]
        super().__init__(
            message="모든 메일 조회 전략이 실패했습니다: " + "; ".join(entries),
            error_code=kwargs.get("error_code", "FETCH_EXHAUSTED"),
            details={"failures": [failure.model_dump() for failure in self.failures]},
        )

    def status_codes(self) -> List[int]:
        """전략별 실패 중 HTTP 상태 코드가 있는 것만 반환"""
        return [f.status_code for f in self.failures if getattr(f, "status_code", None)]


class AuthenticationError(EmlDownloaderError):
    """인증 관련 오류"""

    def __init__(
        self,
        message: str,
        auth_type: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.get("details", {})
        if auth_type:
            details["auth_type"] = auth_type

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", "AUTH_ERROR"),
            details=details,
        )


class AuthError(AuthenticationError):
    """토큰 획득 실패 (사용자 상호작용 필요 이외의 사유)"""

    def __init__(self, message: str = "액세스 토큰을 획득하지 못했습니다", **kwargs):
        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", "TOKEN_ACQUISITION_FAILED"),
            auth_type="msal",
            details=kwargs.get("details", {}),
        )


class ConfigurationError(EmlDownloaderError):
    """설정 관련 오류"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.get("details", {})
        if config_key:
            details["config_key"] = config_key

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", "CONFIG_ERROR"),
            details=details,
        )


class InitError(ConfigurationError):
    """인증 클라이언트 초기화 실패"""

    def __init__(self, message: str = "인증 클라이언트 초기화에 실패했습니다", **kwargs):
        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", "AUTH_INIT_FAILED"),
            **kwargs
        )


class ValidationError(EmlDownloaderError):
    """데이터 검증 오류"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        details = kwargs.get("details", {})
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", "VALIDATION_ERROR"),
            details=details,
        )


class InvalidIdentifierError(ValidationError):
    """선택된 메일 ID가 없거나 비어 있음"""

    def __init__(self, message: str = "선택된 메일의 ID를 확인할 수 없습니다", **kwargs):
        super().__init__(
            message=message,
            field="item_id",
            error_code=kwargs.get("error_code", "INVALID_IDENTIFIER"),
        )


class BusinessLogicError(EmlDownloaderError):
    """비즈니스 로직 관련 오류"""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.get("details", {})
        if operation:
            details["operation"] = operation

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", "BUSINESS_LOGIC_ERROR"),
            details=details,
        )


class DownloadInProgressError(BusinessLogicError):
    """다운로드가 이미 진행 중인 상태에서 재진입 시도"""

    def __init__(self, message: str = "이미 다운로드가 진행 중입니다", **kwargs):
        super().__init__(
            message=message,
            operation="download",
            error_code=kwargs.get("error_code", "DOWNLOAD_IN_PROGRESS"),
        )


class DeliveryError(EmlDownloaderError):
    """EML 파일 저장 실패"""

    def __init__(self, message: str, file_path: Optional[str] = None, **kwargs):
        details = kwargs.get("details", {})
        if file_path:
            details["file_path"] = file_path

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", "DELIVERY_FAILED"),
            details=details,
        )
