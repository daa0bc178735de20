"""Unit tests for datetime_utils module

이 테스트는 datetime_utils의 모든 함수가 올바르게 동작하는지 검증합니다.
"""

import pytest
from datetime import datetime, timezone, timedelta
from infra.utils.datetime_utils import (
    utc_now,
    ensure_utc,
    parse_iso_to_utc,
    format_rfc2822,
)


class TestUtcNow:
    """utc_now() 함수 테스트"""

    def test_returns_datetime(self):
        """datetime 객체 반환 확인"""
        result = utc_now()
        assert isinstance(result, datetime)

    def test_has_utc_timezone(self):
        """UTC timezone 포함 확인"""
        result = utc_now()
        assert result.tzinfo == timezone.utc


class TestEnsureUtc:
    """ensure_utc() 함수 테스트"""

    def test_naive_assumed_utc(self):
        """naive datetime은 UTC로 가정"""
        naive = datetime(2025, 10, 26, 12, 0, 0)
        result = ensure_utc(naive)
        assert result.tzinfo == timezone.utc
        assert result.hour == 12

    def test_converts_kst(self):
        """KST → UTC 변환"""
        kst = timezone(timedelta(hours=9))
        result = ensure_utc(datetime(2025, 10, 26, 12, 0, 0, tzinfo=kst))
        assert result.tzinfo == timezone.utc
        assert result.hour == 3

    def test_utc_unchanged(self):
        """UTC datetime은 그대로"""
        dt = datetime(2025, 10, 26, 12, 0, 0, tzinfo=timezone.utc)
        assert ensure_utc(dt) == dt


class TestParseIsoToUtc:
    """parse_iso_to_utc() 함수 테스트"""

    def test_z_suffix(self):
        """'Z' suffix 파싱 (Graph API 형식)"""
        result = parse_iso_to_utc('2025-10-14T08:30:00Z')
        assert result == datetime(2025, 10, 14, 8, 30, tzinfo=timezone.utc)

    def test_offset(self):
        """+09:00 오프셋 파싱"""
        result = parse_iso_to_utc('2025-10-26T11:00:00+09:00')
        assert result.hour == 2
        assert result.tzinfo == timezone.utc

    def test_surrounding_whitespace(self):
        """앞뒤 공백 무시"""
        result = parse_iso_to_utc('  2025-10-14T08:30:00Z ')
        assert result.minute == 30

    def test_invalid_raises(self):
        """ISO 형식이 아니면 ValueError"""
        with pytest.raises(ValueError):
            parse_iso_to_utc('yesterday')


class TestFormatRfc2822:
    """format_rfc2822() 함수 테스트"""

    def test_gmt_format(self):
        """GMT 표기 확인"""
        dt = datetime(2025, 10, 14, 8, 30, tzinfo=timezone.utc)
        assert format_rfc2822(dt) == 'Tue, 14 Oct 2025 08:30:00 GMT'

    def test_converts_to_gmt(self):
        """다른 시간대는 GMT로 변환"""
        kst = timezone(timedelta(hours=9))
        dt = datetime(2025, 10, 14, 17, 30, tzinfo=kst)
        assert format_rfc2822(dt) == 'Tue, 14 Oct 2025 08:30:00 GMT'

    def test_drops_microseconds(self):
        """마이크로초는 출력하지 않음"""
        dt = datetime(2025, 10, 14, 8, 30, 0, 999999, tzinfo=timezone.utc)
        assert format_rfc2822(dt) == 'Tue, 14 Oct 2025 08:30:00 GMT'
