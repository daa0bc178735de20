"""
구조화 JSON → EML 재구성

structured_json 전략만 성공했을 때 사용합니다. 결과는 CRLF 줄바꿈의
단일 파트 텍스트 메일입니다:

    Date, From, To/Cc/Bcc (비어 있지 않을 때만), Subject,
    MIME-Version, Content-Type, Content-Transfer-Encoding,
    빈 줄, 본문 그대로

헤더 값은 그대로 씁니다 (folding, RFC 2047 인코딩 없음).
"""

from typing import Any, List, Mapping, Optional, Union

from infra.utils.datetime_utils import format_rfc2822, parse_iso_to_utc

from .eml_download_helpers import format_address
from .eml_download_schema import GraphMessageRecord, Recipient

CRLF = "\r\n"
DEFAULT_SUBJECT = "No Subject"
PLAIN_CONTENT_TYPE = "text/plain; charset=utf-8"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"


def format_received_date(value: Optional[str]) -> str:
    """Graph receivedDateTime → RFC 2822 (GMT), 해석할 수 없는 값은 그대로"""
    if not value:
        return ""
    try:
        return format_rfc2822(parse_iso_to_utc(value))
    except ValueError:
        return value


def join_recipients(recipients: List[Recipient]) -> str:
    return ", ".join(filter(None, (format_address(r) for r in recipients)))


def from_structured(record: Union[GraphMessageRecord, Mapping[str, Any], None]) -> bytes:
    """
    구조화 Graph 메일을 .eml 바이트로 변환

    형식이 어긋난 입력에도 예외를 던지지 않고, 없는 필드는 빈 문자열이나
    기본값으로 씁니다.
    """
    if not isinstance(record, GraphMessageRecord):
        record = GraphMessageRecord.model_validate(dict(record) if isinstance(record, Mapping) else {})

    headers = [
        ("Date", format_received_date(record.received_date_time)),
        ("From", format_address(record.originator)),
    ]
    for name, recipients in (
        ("To", record.to_recipients),
        ("Cc", record.cc_recipients),
        ("Bcc", record.bcc_recipients),
    ):
        value = join_recipients(recipients)
        if value:
            headers.append((name, value))

    body = record.body
    headers.extend(
        [
            ("Subject", record.subject or DEFAULT_SUBJECT),
            ("MIME-Version", "1.0"),
            ("Content-Type", HTML_CONTENT_TYPE if body and body.is_html else PLAIN_CONTENT_TYPE),
            ("Content-Transfer-Encoding", "8bit"),
        ]
    )

    lines = [f"{name}: {value}" for name, value in headers]
    text = CRLF.join(lines) + CRLF + CRLF + (body.content if body else "")
    return text.encode("utf-8", errors="replace")
