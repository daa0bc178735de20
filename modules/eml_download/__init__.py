"""
EML Download 모듈
Microsoft Graph API에서 현재 메일의 원문을 받아 .eml 파일로 저장
"""

from .content_fetcher import ContentFetcher, FetchStrategy, first_success
from .delivery import EmlDelivery, sanitize_filename
from .eml_download_orchestrator import DownloadSession, EmlDownloadOrchestrator
from .eml_download_schema import (
    ContentKind,
    DownloadArtifact,
    DownloadOutcome,
    DownloadResult,
    DownloadState,
    FetchedContent,
    GraphMessageRecord,
    HostInfo,
    IdentifierCandidate,
    IdentifierEncoding,
    MailItemContext,
    StrategyFailure,
)
from .graph_api_client import GraphAPIClient
from .host_adapter import CommandLineHost, HostAdapter, StatusLevel
from .message_locator import candidate_encodings
from .message_reconstructor import from_structured

__all__ = [
    "EmlDownloadOrchestrator",
    "DownloadSession",
    "ContentFetcher",
    "FetchStrategy",
    "first_success",
    "GraphAPIClient",
    "EmlDelivery",
    "sanitize_filename",
    "candidate_encodings",
    "from_structured",
    # 호스트
    "HostAdapter",
    "CommandLineHost",
    "StatusLevel",
    # 스키마
    "ContentKind",
    "DownloadArtifact",
    "DownloadOutcome",
    "DownloadResult",
    "DownloadState",
    "FetchedContent",
    "GraphMessageRecord",
    "HostInfo",
    "IdentifierCandidate",
    "IdentifierEncoding",
    "MailItemContext",
    "StrategyFailure",
]
