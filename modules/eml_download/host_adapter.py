"""
메일 클라이언트 호스트 어댑터

호스트는 현재 열린 메일의 ID와 제목을 제공하고, 다운로드 진행 상태를
사용자에게 보여줍니다. Outlook 추가 기능 창 밖에서 실행할 때는
CommandLineHost가 명령행 인자로 같은 역할을 합니다.
"""

import sys
from enum import Enum
from typing import List, Optional, TextIO, Tuple

from infra.core.logger import get_logger

from .eml_download_schema import HostInfo, MailItemContext

logger = get_logger(__name__)

OUTLOOK_HOST = "Outlook"


class StatusLevel(str, Enum):
    """상태 표시 수준"""

    PROGRESS = "progress"
    SUCCESS = "success"
    ERROR = "error"


class HostAdapter:
    """호스트 어댑터 기본 클래스"""

    def host_info(self) -> HostInfo:
        """준비 완료 시 전달할 호스트 정보"""
        raise NotImplementedError

    def current_item(self) -> MailItemContext:
        """현재 열린 메일"""
        raise NotImplementedError

    def show_status(self, level: StatusLevel, message: str) -> None:
        """진행 상태 표시"""
        raise NotImplementedError


class CommandLineHost(HostAdapter):
    """명령행에서 메일 ID/제목을 받는 호스트"""

    STATUS_ICONS = {
        StatusLevel.PROGRESS: "⏳",
        StatusLevel.SUCCESS: "✅",
        StatusLevel.ERROR: "❌",
    }

    def __init__(
        self,
        item_id: Optional[str],
        subject: Optional[str] = None,
        stream: Optional[TextIO] = None,
        host: str = OUTLOOK_HOST,
    ):
        self._item = MailItemContext(item_id=item_id, subject=subject)
        self._host = host
        self.stream = stream or sys.stdout
        self.history: List[Tuple[StatusLevel, str]] = []

    def host_info(self) -> HostInfo:
        return HostInfo(host=self._host, platform="cli")

    def current_item(self) -> MailItemContext:
        return self._item

    def show_status(self, level: StatusLevel, message: str) -> None:
        self.history.append((level, message))
        print(f"{self.STATUS_ICONS[level]} {message}", file=self.stream)
        logger.debug(f"status[{level.value}]: {message}")
