"""
EML 파일 저장
다운로드한 바이트를 다운로드 디렉토리에 .eml 파일로 저장
"""

import os
import re
import tempfile
from pathlib import Path
from typing import Optional

from infra.core.config import get_config
from infra.core.exceptions import DeliveryError
from infra.core.logger import get_logger

logger = get_logger(__name__)

EML_EXTENSION = ".eml"
DEFAULT_BASENAME = "email"

# 확장자를 뺀 파일명 최대 바이트 (UTF-8). 255바이트 제한 안에 _N 순번과 .eml 여유를 둠
MAX_STEM_BYTES = 200

# 파일명에 쓸 수 없는 문자 + 제어 문자
_UNSAFE_FILENAME_CHARS = re.compile(r'[/\\?%*:|"<>\x00-\x1f\x7f]')


def _truncate_utf8(text: str, max_bytes: int) -> str:
    """UTF-8 기준 max_bytes 이하로 자르기 (문자 경계 유지)"""
    encoded = text.encode("utf-8", errors="ignore")
    if len(encoded) <= max_bytes:
        return text
    return encoded[:max_bytes].decode("utf-8", errors="ignore")


def sanitize_filename(subject: Optional[str], replacement: str = "-") -> str:
    """
    메일 제목으로 안전한 .eml 파일명 생성

    Args:
        subject: 메일 제목 (None/빈 값이면 "email")
        replacement: 사용할 수 없는 문자를 대체할 문자

    Returns:
        항상 ".eml"로 끝나는 파일명
    """
    base = (subject or "").strip() or DEFAULT_BASENAME
    safe = _UNSAFE_FILENAME_CHARS.sub(replacement, base)

    extension = EML_EXTENSION
    if safe.lower().endswith(EML_EXTENSION):
        safe, extension = safe[: -len(EML_EXTENSION)], safe[-len(EML_EXTENSION):]

    stem = _truncate_utf8(safe, MAX_STEM_BYTES).rstrip() or DEFAULT_BASENAME
    return stem + extension


class EmlDelivery:
    """다운로드 디렉토리에 .eml 파일 저장"""

    def __init__(self, output_dir: Optional[Path] = None):
        """
        Args:
            output_dir: .eml 저장 디렉토리 (기본: EML_OUTPUT_DIR)
        """
        self.output_dir = Path(output_dir) if output_dir else get_config().eml_output_dir

    def _unique_path(self, filename: str) -> Path:
        """같은 이름이 있으면 순번 추가 (name_1.eml, name_2.eml ...)"""
        target = self.output_dir / filename
        stem, suffix = target.stem, target.suffix
        counter = 1
        while target.exists():
            target = self.output_dir / f"{stem}_{counter}{suffix}"
            counter += 1
        return target

    def deliver(self, payload: bytes, filename: str) -> Path:
        """
        payload를 filename으로 저장

        임시 파일에 먼저 쓴 뒤 이름을 바꾸므로 일부만 쓰인 .eml은 남지 않습니다.
        임시 파일은 어떤 경우에도 삭제됩니다.

        Args:
            payload: .eml 바이트
            filename: 저장할 파일명 (여기서 다시 정리)

        Returns:
            저장된 파일 경로

        Raises:
            DeliveryError: 파일을 쓸 수 없는 경우
        """
        safe_name = sanitize_filename(filename)
        tmp_path: Optional[str] = None

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=".download-", suffix=".part", dir=self.output_dir
            )
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)

            target = self._unique_path(safe_name)
            os.replace(tmp_path, target)
            tmp_path = None
        except OSError as e:
            raise DeliveryError(
                f"EML 파일 저장 실패: {str(e)}",
                file_path=str(self.output_dir / safe_name),
            ) from e
        finally:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)

        logger.info(f"EML 저장 완료: {target} ({len(payload)} bytes)")
        return target
