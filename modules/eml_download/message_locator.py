"""
메일 ID 후보 생성

호스트가 준 메일 ID는 호출 환경에 따라 요구되는 인코딩이 다르므로
조회 전략마다 아래 순서대로 후보를 시도합니다.

1. identity         - 원본 그대로
2. uri_component    - JavaScript encodeURIComponent 와 동일
3. full_uri         - JavaScript encodeURI 와 동일
4. url_safe_base64  - base64 URL-safe 알파벳 (+ → -, / → _), Outlook REST ID 형식
"""

from typing import Callable, Iterator, Optional, Tuple
from urllib.parse import quote

from infra.core.exceptions import InvalidIdentifierError

from .eml_download_schema import IdentifierCandidate, IdentifierEncoding

# encodeURIComponent가 이스케이프하지 않는 문자 (영숫자 제외)
_URI_COMPONENT_SAFE = "-_.!~*'()"
# encodeURI는 URI 구분 문자도 남긴다
_FULL_URI_SAFE = _URI_COMPONENT_SAFE + ";,/?:@&=+$#"

_URL_SAFE_ALPHABET = str.maketrans("+/", "-_")


def encode_uri_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE, encoding="utf-8")


def encode_uri(value: str) -> str:
    return quote(value, safe=_FULL_URI_SAFE, encoding="utf-8")


def to_url_safe_base64(value: str) -> str:
    return value.translate(_URL_SAFE_ALPHABET)


ENCODERS: Tuple[Tuple[IdentifierEncoding, Callable[[str], str]], ...] = (
    (IdentifierEncoding.IDENTITY, lambda value: value),
    (IdentifierEncoding.URI_COMPONENT, encode_uri_component),
    (IdentifierEncoding.FULL_URI, encode_uri),
    (IdentifierEncoding.URL_SAFE_BASE64, to_url_safe_base64),
)


def candidate_encodings(raw_id: Optional[str]) -> Iterator[IdentifierCandidate]:
    """
    메일 ID의 인코딩 후보를 시도 순서대로 생성합니다.

    원본은 변경하지 않으며 같은 입력에는 항상 같은 결과를 냅니다.
    인코딩 결과가 서로 같을 수 있으므로 중복 제거는 호출 측이 합니다.

    Raises:
        InvalidIdentifierError: ID가 없거나 공백뿐인 경우
    """
    if not isinstance(raw_id, str) or not raw_id.strip():
        raise InvalidIdentifierError()

    return _generate(raw_id)


def _generate(raw_id: str) -> Iterator[IdentifierCandidate]:
    for encoding, encode in ENCODERS:
        yield IdentifierCandidate(encoding=encoding, value=encode(raw_id))
