"""
EML Download 모듈 스키마 정의
Pydantic v2 기반 데이터 모델

Graph API 응답은 형식이 어긋나도 예외 없이 기본값으로 정리되도록
before 검증기에서 관대하게 변환합니다.
"""

from enum import Enum
from pathlib import Path
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _optional_text(value: Any) -> Optional[str]:
    """문자열이 아니면 문자열로, 컨테이너면 None으로"""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (dict, list, tuple, set)):
        return None
    return str(value)


# ---------------------------------------------------------------------------
# 식별자
# ---------------------------------------------------------------------------


class IdentifierEncoding(str, Enum):
    """메일 ID 인코딩 방식 (시도 순서대로 정의)"""

    IDENTITY = "identity"
    URI_COMPONENT = "uri_component"
    FULL_URI = "full_uri"
    URL_SAFE_BASE64 = "url_safe_base64"


class IdentifierCandidate(BaseModel):
    """API 경로에 넣을 메일 ID 후보"""

    model_config = ConfigDict(frozen=True)

    encoding: IdentifierEncoding = Field(..., description="인코딩 방식")
    value: str = Field(..., description="인코딩된 ID 문자열")


# ---------------------------------------------------------------------------
# Graph 메시지 (구조화 JSON)
# ---------------------------------------------------------------------------


class EmailAddress(BaseModel):
    """Graph emailAddress 객체"""

    name: Optional[str] = None
    address: Optional[str] = None

    @field_validator("name", "address", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return _optional_text(v)


class Recipient(BaseModel):
    """Graph recipient 객체"""

    model_config = ConfigDict(populate_by_name=True)

    email_address: EmailAddress = Field(default_factory=EmailAddress, alias="emailAddress")

    @field_validator("email_address", mode="before")
    @classmethod
    def coerce_address(cls, v):
        return v if isinstance(v, (dict, EmailAddress)) else {}


class MessageBody(BaseModel):
    """Graph itemBody 객체"""

    model_config = ConfigDict(populate_by_name=True)

    content_type: str = Field("text", alias="contentType", description="text 또는 html")
    content: str = Field("", description="본문")

    @field_validator("content_type", mode="before")
    @classmethod
    def coerce_content_type(cls, v):
        return v if isinstance(v, str) and v else "text"

    @field_validator("content", mode="before")
    @classmethod
    def coerce_content(cls, v):
        return _optional_text(v) or ""

    @property
    def is_html(self) -> bool:
        return self.content_type.strip().lower() == "html"


class GraphMessageRecord(BaseModel):
    """$select로 받은 메일 필드"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    subject: Optional[str] = None
    from_address: Optional[Recipient] = Field(None, alias="from")
    sender: Optional[Recipient] = None
    to_recipients: List[Recipient] = Field(default_factory=list, alias="toRecipients")
    cc_recipients: List[Recipient] = Field(default_factory=list, alias="ccRecipients")
    bcc_recipients: List[Recipient] = Field(default_factory=list, alias="bccRecipients")
    body: Optional[MessageBody] = None
    received_date_time: Optional[str] = Field(None, alias="receivedDateTime")

    @field_validator("id", "subject", "received_date_time", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return _optional_text(v)

    @field_validator("from_address", "sender", mode="before")
    @classmethod
    def coerce_recipient(cls, v):
        return v if isinstance(v, (dict, Recipient)) else None

    @field_validator("to_recipients", "cc_recipients", "bcc_recipients", mode="before")
    @classmethod
    def coerce_recipients(cls, v):
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, (dict, Recipient))]

    @field_validator("body", mode="before")
    @classmethod
    def coerce_body(cls, v):
        if isinstance(v, str):
            return {"content": v}
        return v if isinstance(v, (dict, MessageBody)) else None

    @property
    def originator(self) -> Optional[Recipient]:
        """from이 없으면 sender 사용"""
        return self.from_address or self.sender


# ---------------------------------------------------------------------------
# 조회 결과
# ---------------------------------------------------------------------------


class ContentKind(str, Enum):
    """조회 전략이 돌려준 내용의 형태"""

    MIME = "mime"
    STRUCTURED = "structured"


class FetchedContent(BaseModel):
    """조회 전략 하나의 성공 결과"""

    strategy: str = Field(..., description="성공한 전략 이름")
    kind: ContentKind
    message_id: str = Field(..., description="요청에 사용한 메일 ID")
    mime_content: Optional[bytes] = Field(None, description="RFC 822 원문")
    record: Optional[GraphMessageRecord] = Field(None, description="구조화 메일 필드")


class StrategyFailure(BaseModel):
    """조회 전략 하나의 실패 내역"""

    strategy: str
    reason: str
    status_code: Optional[int] = None


# ---------------------------------------------------------------------------
# 호스트 / 다운로드
# ---------------------------------------------------------------------------


class HostInfo(BaseModel):
    """호스트 준비 완료 시 전달되는 정보"""

    host: str = Field(..., description="호스트 종류 (예: Outlook)")
    platform: Optional[str] = None


class MailItemContext(BaseModel):
    """호스트에서 현재 열려 있는 메일"""

    item_id: Optional[str] = None
    subject: Optional[str] = None


class DownloadState(str, Enum):
    """다운로드 시도 상태"""

    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    FETCHING = "fetching"
    RECONSTRUCTING = "reconstructing"
    DELIVERING = "delivering"
    DONE = "done"
    FAILED = "failed"


class DownloadArtifact(BaseModel):
    """저장할 EML 파일"""

    filename: str
    payload: bytes


class DownloadResult(BaseModel):
    """다운로드 성공 결과"""

    filename: str
    saved_path: Path
    strategy: str
    size_bytes: int
    reconstructed: bool = False


class DownloadOutcome(BaseModel):
    """호스트에 표시할 최종 결과"""

    success: bool
    message: str
    result: Optional[DownloadResult] = None
    error_code: Optional[str] = None
    error_category: Optional[str] = None
