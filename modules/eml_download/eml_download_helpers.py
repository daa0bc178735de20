"""
EML Download 모듈 헬퍼 함수들
"""

import re
from typing import Any, Dict, Optional

from .eml_download_schema import Recipient


def parse_graph_error_response(error_response: Any) -> Dict[str, Any]:
    """Graph API 오류 응답 파싱"""
    error_info = {"code": "unknown", "message": "Unknown error", "inner_error": None}

    if isinstance(error_response, dict) and isinstance(error_response.get("error"), dict):
        error_data = error_response["error"]
        error_info["code"] = error_data.get("code", "unknown")
        error_info["message"] = error_data.get("message", "Unknown error")
        error_info["inner_error"] = error_data.get("innerError")

    return error_info


def mask_identifier(value: Optional[str], visible: int = 12) -> str:
    """로그용 ID 축약 (앞부분만 표시)"""
    if not value:
        return "<empty>"
    if len(value) <= visible:
        return value
    return f"{value[:visible]}..."


def sanitize_search_term(value: str) -> str:
    """$search 검색어 정제 - 큰따옴표와 제어 문자 제거"""
    cleaned = re.sub(r'[\x00-\x1f\x7f"]', " ", value or "")
    return re.sub(r"\s+", " ", cleaned).strip()


def format_address(recipient: Optional[Recipient]) -> str:
    """
    수신자 하나를 헤더 값으로 변환

    이름이 있고 주소와 다르면 "name <address>", 아니면 주소만 사용합니다.
    """
    if recipient is None:
        return ""
    name = (recipient.email_address.name or "").strip()
    address = (recipient.email_address.address or "").strip()

    if name and address and name != address:
        return f"{name} <{address}>"
    return address or name
