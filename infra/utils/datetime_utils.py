"""Timezone-aware datetime utilities for consistent UTC handling

이 모듈은 Graph API 시각 문자열을 UTC로 다루고,
메일 헤더용 RFC 2822 형식으로 변환하는 헬퍼 함수를 제공합니다.

사용 원칙:
1. datetime.now() 사용 금지 → utc_now() 사용
2. Graph API의 ISO 8601 문자열 → parse_iso_to_utc() 사용
3. EML Date 헤더 → format_rfc2822() 사용

Examples:
    >>> from infra.utils.datetime_utils import parse_iso_to_utc, format_rfc2822
    >>> format_rfc2822(parse_iso_to_utc('2025-10-14T08:30:00Z'))
    'Tue, 14 Oct 2025 08:30:00 GMT'
"""

from datetime import datetime, timezone
from email.utils import format_datetime


def utc_now() -> datetime:
    """Get current UTC time (timezone-aware)

    Returns:
        datetime with UTC timezone
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Ensure datetime has UTC timezone

    Args:
        dt: datetime (naive or aware)

    Returns:
        datetime with UTC timezone

    Note:
        - naive datetime → UTC로 가정하고 tzinfo 추가
        - aware datetime → UTC로 변환
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_iso_to_utc(iso_str: str) -> datetime:
    """Parse ISO format string to UTC datetime

    Args:
        iso_str: ISO format string (with or without timezone)

    Returns:
        datetime with UTC timezone

    Raises:
        ValueError: If the string is not ISO 8601

    Example:
        >>> parse_iso_to_utc('2025-10-26T11:00:00+09:00').hour
        2
    """
    iso_str_normalized = iso_str.strip().replace('Z', '+00:00')
    dt = datetime.fromisoformat(iso_str_normalized)
    return ensure_utc(dt)


def format_rfc2822(dt: datetime) -> str:
    """Format datetime as an RFC 2822 date in GMT

    Example:
        >>> from datetime import datetime, timezone
        >>> format_rfc2822(datetime(2025, 10, 14, 8, 30, tzinfo=timezone.utc))
        'Tue, 14 Oct 2025 08:30:00 GMT'
    """
    return format_datetime(ensure_utc(dt).replace(microsecond=0), usegmt=True)
