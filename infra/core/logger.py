"""
EML Downloader 프로젝트의 로거 진입점

모든 모듈은 get_logger(__name__)로 로거를 얻습니다.
핸들러 구성은 logging_config 모듈이 담당합니다.
"""

import logging
from typing import Optional

from .logging_config import get_logger as get_configured_logger
from .logging_config import setup_logging


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    프로젝트용 로거를 반환합니다.

    Args:
        name: 로거 이름 (일반적으로 모듈명)
        level: 로그 레벨 (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    return get_configured_logger(name, level)


def update_all_loggers_level(level: str) -> None:
    """이미 만들어진 프로젝트 로거 전체의 레벨 변경 (--verbose 등)"""
    setup_logging(level=level)
