"""
통합 로깅 설정

- 콘솔: stderr, TTY이면 colorlog 컬러 출력
- 파일: 패키지별 회전 로그 (logs/modules/eml_download.log 등)
- 형식: detailed(기본) 또는 json

환경변수 LOG_LEVEL, LOG_FORMAT, LOG_DIR, ENABLE_FILE_LOGGING,
ENABLE_CONSOLE_LOGGING 으로 조정합니다.
"""

import json
import logging
import os
import sys
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Set, TextIO

import colorlog

from infra.utils.datetime_utils import utc_now

# 패키지 단위로 로그 파일을 나누는 최상위 패키지
_PROJECT_PACKAGES = ("infra", "modules", "entrypoints")


class LogFormat(Enum):
    """로그 출력 형식"""
    DETAILED = "detailed"
    JSON = "json"
    COLORED = "colored"


class StructuredFormatter(logging.Formatter):
    """한 줄 JSON 포매터 (로그 수집기용)"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": utc_now().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.filename}:{record.lineno}",
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def _parse_level(level: Optional[str], default: int = logging.INFO) -> int:
    value = logging.getLevelName((level or "").upper())
    return value if isinstance(value, int) else default


def _env_flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).lower() == "true"


class LoggingConfig:
    """로거별 핸들러 구성"""

    DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
    COLORED_FORMAT = "%(log_color)s%(levelname)-8s%(reset)s %(blue)s%(name)s%(reset)s - %(message)s"

    LOG_COLORS = {
        'DEBUG': 'cyan',
        'INFO': 'green',
        'WARNING': 'yellow',
        'ERROR': 'red',
        'CRITICAL': 'red,bg_white',
    }

    def __init__(
        self,
        level: str = "INFO",
        format_type: LogFormat = LogFormat.DETAILED,
        log_dir: Optional[Path] = None,
        enable_file_logging: bool = True,
        enable_console_logging: bool = True,
        console_stream: Optional[TextIO] = None,
        max_bytes: int = 5 * 1024 * 1024,  # 5MB
        backup_count: int = 3
    ):
        """
        Args:
            level: 로그 레벨 이름
            format_type: 파일/비TTY 콘솔 형식
            log_dir: 로그 디렉토리 (기본 logs)
            enable_file_logging: 회전 파일 로그 사용 여부
            enable_console_logging: 콘솔 로그 사용 여부
            console_stream: 콘솔 스트림 (기본 stderr, stdout은 상태 출력용)
        """
        self.level = _parse_level(level)
        self.format_type = format_type
        self.log_dir = Path(log_dir) if log_dir else Path("logs")
        self.enable_file_logging = enable_file_logging
        self.enable_console_logging = enable_console_logging
        self.console_stream = console_stream or sys.stderr
        self.max_bytes = max_bytes
        self.backup_count = backup_count
        self.configured_loggers: Set[str] = set()

    @classmethod
    def from_env(cls) -> "LoggingConfig":
        """환경변수에서 로깅 설정 생성"""
        try:
            format_type = LogFormat(os.getenv("LOG_FORMAT", "detailed").lower())
        except ValueError:
            format_type = LogFormat.DETAILED

        return cls(
            level=os.getenv("LOG_LEVEL", "INFO"),
            format_type=format_type,
            log_dir=Path(os.getenv("LOG_DIR", "logs")),
            enable_file_logging=_env_flag("ENABLE_FILE_LOGGING"),
            enable_console_logging=_env_flag("ENABLE_CONSOLE_LOGGING"),
        )

    def log_file_for(self, logger_name: str) -> Path:
        """
        로거 이름 → 로그 파일 경로

        Examples:
            infra.core.credential_provider -> logs/infra/core.log
            modules.eml_download.content_fetcher -> logs/modules/eml_download.log
            __main__ -> logs/__main__.log
        """
        parts = logger_name.split('.')
        if len(parts) < 2 or parts[0] not in _PROJECT_PACKAGES:
            return self.log_dir / f"{logger_name.replace('.', '_')}.log"
        return self.log_dir / parts[0] / f"{parts[1]}.log"

    def formatter(self, format_type: LogFormat) -> logging.Formatter:
        if format_type is LogFormat.JSON:
            return StructuredFormatter()
        if format_type is LogFormat.COLORED:
            return colorlog.ColoredFormatter(self.COLORED_FORMAT, log_colors=self.LOG_COLORS)
        return logging.Formatter(self.DETAILED_FORMAT)

    def _handlers(self, logger_name: str, level: int):
        if self.enable_console_logging:
            console = logging.StreamHandler(self.console_stream)
            isatty = getattr(self.console_stream, "isatty", lambda: False)
            use_color = isatty() and not os.getenv('NO_COLOR')
            console.setFormatter(self.formatter(LogFormat.COLORED if use_color else self.format_type))
            console.setLevel(level)
            yield console

        if self.enable_file_logging:
            log_file = self.log_file_for(logger_name)
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=self.max_bytes,
                backupCount=self.backup_count,
                encoding='utf-8'
            )
            file_handler.setFormatter(self.formatter(self.format_type))
            file_handler.setLevel(level)
            yield file_handler

    def configure_logger(self, logger_name: str, level: Optional[str] = None) -> logging.Logger:
        """
        로거에 핸들러를 붙입니다. 같은 이름은 한 번만 구성합니다.

        propagate=False 이므로 상위 로거로 중복 출력되지 않습니다.
        """
        logger = logging.getLogger(logger_name)
        if logger_name in self.configured_loggers:
            return logger

        log_level = _parse_level(level, self.level) if level else self.level
        logger.setLevel(log_level)
        logger.propagate = False
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        for handler in self._handlers(logger_name, log_level):
            logger.addHandler(handler)

        self.configured_loggers.add(logger_name)
        return logger


# 전역 로깅 설정 인스턴스
_logging_config: Optional[LoggingConfig] = None


def get_logging_config() -> LoggingConfig:
    """현재 로깅 설정 반환 (없으면 환경변수로 생성)"""
    global _logging_config

    if _logging_config is None:
        _logging_config = LoggingConfig.from_env()
    return _logging_config


def setup_logging(
    level: str = "INFO",
    format_type: Optional[LogFormat] = None,
    log_dir: Optional[Path] = None,
) -> LoggingConfig:
    """
    로깅 설정을 다시 만들고 이미 생성된 로거도 새 설정으로 구성합니다.

    레벨 외의 값은 지정하지 않으면 환경변수 설정을 따릅니다.
    """
    global _logging_config

    previous = get_logging_config()
    env = LoggingConfig.from_env()
    _logging_config = LoggingConfig(
        level=level,
        format_type=format_type or env.format_type,
        log_dir=log_dir or env.log_dir,
        enable_file_logging=env.enable_file_logging,
        enable_console_logging=env.enable_console_logging,
    )
    for name in sorted(previous.configured_loggers):
        _logging_config.configure_logger(name)
    return _logging_config


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """설정된 로거 반환"""
    return get_logging_config().configure_logger(name, level=level)
