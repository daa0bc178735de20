"""
표준화된 에러 메시지 시스템

일관된 에러 메시지 형식과 사용자 친화적인 오류 보고를 제공합니다.
다운로드 실패 시 호스트 화면에 표시할 문구도 여기서 결정합니다.
"""

from enum import Enum
from typing import Any, Dict, Optional

from .exceptions import (
    APIConnectionError,
    AuthError,
    DeliveryError,
    DownloadInProgressError,
    EmlDownloaderError,
    FetchExhaustedError,
    InitError,
    InvalidIdentifierError,
)


class ErrorCode(Enum):
    """표준 에러 코드"""

    # 설정 관련 (1000번대)
    CONFIG_MISSING = 1001
    CONFIG_INVALID = 1002

    # 인증 관련 (2000번대)
    AUTH_INIT_FAILED = 2001
    AUTH_FAILED = 2002
    AUTH_INTERACTION_CANCELLED = 2003

    # API 관련 (4000번대)
    API_REQUEST_FAILED = 4001
    API_UNAUTHORIZED = 4004
    API_FORBIDDEN = 4005
    API_NOT_FOUND = 4006
    API_SERVICE_UNAVAILABLE = 4007

    # 파일 처리 관련 (5000번대)
    FILE_WRITE_ERROR = 5003

    # 메일 처리 관련 (6000번대)
    MAIL_NOT_SELECTED = 6001
    MAIL_FETCH_EXHAUSTED = 6002
    MAIL_DOWNLOAD_IN_PROGRESS = 6003

    # 일반 오류 (9000번대)
    UNKNOWN_ERROR = 9999
    NETWORK_ERROR = 9003


class ErrorMessage:
    """표준화된 에러 메시지"""

    # 에러 메시지 템플릿
    TEMPLATES = {
        # 설정 관련
        ErrorCode.CONFIG_MISSING: "필수 설정이 누락되었습니다: {config_name}",
        ErrorCode.CONFIG_INVALID: "잘못된 설정값입니다: {config_name} = {value}",

        # 인증 관련
        ErrorCode.AUTH_INIT_FAILED: "인증 초기화에 실패했습니다: {reason}",
        ErrorCode.AUTH_FAILED: "인증에 실패했습니다: {reason}",
        ErrorCode.AUTH_INTERACTION_CANCELLED: "로그인이 취소되었습니다",

        # API 관련
        ErrorCode.API_REQUEST_FAILED: "메일 API 요청에 실패했습니다: {reason}",
        ErrorCode.API_UNAUTHORIZED: "메일 API 인증 오류가 발생했습니다",
        ErrorCode.API_FORBIDDEN: "메일 API 접근 권한이 없습니다",
        ErrorCode.API_NOT_FOUND: "메일을 찾을 수 없습니다",
        ErrorCode.API_SERVICE_UNAVAILABLE: "메일 서비스가 일시적으로 응답하지 않습니다",

        # 파일 처리 관련
        ErrorCode.FILE_WRITE_ERROR: "EML 파일 저장에 실패했습니다: {reason}",

        # 메일 처리 관련
        ErrorCode.MAIL_NOT_SELECTED: "선택된 메일이 없습니다",
        ErrorCode.MAIL_FETCH_EXHAUSTED: "메일 내용을 가져오지 못했습니다: {reason}",
        ErrorCode.MAIL_DOWNLOAD_IN_PROGRESS: "이미 다운로드가 진행 중입니다",

        # 일반 오류
        ErrorCode.UNKNOWN_ERROR: "오류가 발생했습니다: {reason}",
        ErrorCode.NETWORK_ERROR: "네트워크 연결 오류가 발생했습니다",
    }

    # 사용자 친화적 메시지
    USER_FRIENDLY_MESSAGES = {
        ErrorCode.CONFIG_MISSING: ".env 파일을 확인하고 필요한 환경변수를 설정해주세요.",
        ErrorCode.AUTH_INIT_FAILED: "AZURE_CLIENT_ID와 AZURE_TENANT_ID 설정을 확인해주세요.",
        ErrorCode.AUTH_FAILED: "다시 로그인해주세요.",
        ErrorCode.API_UNAUTHORIZED: "다시 로그인한 후 시도해주세요.",
        ErrorCode.API_FORBIDDEN: "다시 로그인한 후 시도해주세요.",
        ErrorCode.API_NOT_FOUND: "Outlook을 새로고침한 후 다시 시도해주세요.",
        ErrorCode.API_SERVICE_UNAVAILABLE: "잠시 후 다시 시도해주세요.",
        ErrorCode.MAIL_NOT_SELECTED: "메일을 하나 연 상태에서 다시 시도해주세요.",
        ErrorCode.MAIL_FETCH_EXHAUSTED: "방금 도착한 메일은 반영까지 시간이 걸릴 수 있습니다. 잠시 후 다시 시도해주세요.",
        ErrorCode.MAIL_DOWNLOAD_IN_PROGRESS: "현재 다운로드가 끝난 뒤 다시 시도해주세요.",
        ErrorCode.NETWORK_ERROR: "네트워크 연결을 확인하고 다시 시도해주세요.",
    }

    # HTTP 상태 코드 → 에러 코드
    STATUS_CODE_MAP = {
        401: ErrorCode.API_UNAUTHORIZED,
        403: ErrorCode.API_FORBIDDEN,
        404: ErrorCode.API_NOT_FOUND,
        503: ErrorCode.API_SERVICE_UNAVAILABLE,
    }

    @classmethod
    def format(
        cls,
        code: ErrorCode,
        context: Optional[Dict[str, Any]] = None,
        include_code: bool = True,
        user_friendly: bool = False
    ) -> str:
        """
        에러 메시지 포맷팅

        Args:
            code: 에러 코드
            context: 메시지 포맷팅용 컨텍스트
            include_code: 에러 코드 포함 여부
            user_friendly: 사용자 친화적 메시지 사용 여부

        Returns:
            포맷된 에러 메시지
        """
        template = cls.TEMPLATES.get(code, "오류가 발생했습니다")

        try:
            message = template.format(**(context or {}))
        except KeyError:
            message = template

        if include_code:
            message = f"[{code.name}] {message}"

        if user_friendly and code in cls.USER_FRIENDLY_MESSAGES:
            message += f"\n💡 {cls.USER_FRIENDLY_MESSAGES[code]}"

        return message

    @classmethod
    def code_for_status(cls, status_code: Optional[int]) -> ErrorCode:
        """HTTP 상태 코드를 사용자 안내용 에러 코드로 변환"""
        return cls.STATUS_CODE_MAP.get(status_code, ErrorCode.API_REQUEST_FAILED)

    @classmethod
    def classify(cls, error: Exception) -> ErrorCode:
        """예외를 사용자 안내 카테고리로 분류"""
        if isinstance(error, InitError):
            return ErrorCode.AUTH_INIT_FAILED
        if isinstance(error, AuthError):
            if error.error_code == "INTERACTION_CANCELLED":
                return ErrorCode.AUTH_INTERACTION_CANCELLED
            return ErrorCode.AUTH_FAILED
        if isinstance(error, InvalidIdentifierError):
            return ErrorCode.MAIL_NOT_SELECTED
        if isinstance(error, DownloadInProgressError):
            return ErrorCode.MAIL_DOWNLOAD_IN_PROGRESS
        if isinstance(error, FetchExhaustedError):
            # 401/403이 하나라도 있으면 재인증 안내가 우선
            for status_code in error.status_codes():
                if status_code in (401, 403):
                    return cls.code_for_status(status_code)
            return ErrorCode.MAIL_FETCH_EXHAUSTED
        if isinstance(error, APIConnectionError):
            if error.status_code is None:
                return ErrorCode.NETWORK_ERROR
            return cls.code_for_status(error.status_code)
        if isinstance(error, DeliveryError):
            return ErrorCode.FILE_WRITE_ERROR
        return ErrorCode.UNKNOWN_ERROR

    @classmethod
    def for_exception(cls, error: Exception) -> str:
        """
        예외에 대한 사용자 표시용 메시지 생성

        FetchExhaustedError는 전략별 실패 내역을 그대로 포함합니다.
        """
        code = cls.classify(error)
        reason = error.message if isinstance(error, EmlDownloaderError) else str(error)
        message = cls.format(
            code,
            {"reason": reason},
            include_code=False,
            user_friendly=True,
        )
        if isinstance(error, FetchExhaustedError) and code != ErrorCode.MAIL_FETCH_EXHAUSTED:
            message += f"\n{reason}"
        return message

    @staticmethod
    def get_category(code: ErrorCode) -> str:
        """에러 코드의 카테고리 반환"""
        code_value = code.value

        if 1000 <= code_value < 2000:
            return "CONFIG"
        elif 2000 <= code_value < 3000:
            return "AUTH"
        elif 4000 <= code_value < 5000:
            return "API"
        elif 5000 <= code_value < 6000:
            return "FILE"
        elif 6000 <= code_value < 7000:
            return "MAIL"
        else:
            return "GENERAL"
