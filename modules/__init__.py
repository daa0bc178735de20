"""
EML Downloader 모듈 패키지
"""

# 각 모듈을 명시적으로 노출
from . import eml_download

__all__ = [
    "eml_download",
]
