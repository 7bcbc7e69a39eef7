"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be overridden for testing
- Configuration is centralized

The offload services are built once per process and shared across
requests: the media library and option store are process state, and the
storage client cache only pays off when it outlives a request.
"""

import logging
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..bootstrap import OffloadServices, build_services
from ..config.settings import Settings, get_settings
from ..core.offload.sync import BatchSync, ConnectionTester
from ..core.offload.uploader import UploadOrchestrator
from ..core.offload.urls import URLRewriter
from ..infrastructure.media.library import InMemoryMediaLibrary
from ..infrastructure.options.store import OffloadOptions

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Shared across requests
_services: Optional[OffloadServices] = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """
    Validate API key from request header.

    Raises 403 if key is invalid or missing.
    """
    if not api_key:
        logger.warning("Request missing API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API key required. Provide X-API-Key header.",
        )

    if api_key not in settings.api_keys_list:
        logger.warning(
            "Invalid API key attempt",
            extra={"key_prefix": api_key[:8]}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_services(
    settings: Annotated[Settings, Depends(get_settings)],
) -> OffloadServices:
    """Provide the shared offload services, building them on first use."""
    global _services

    if _services is None:
        _services = build_services(settings)
        logger.info("Created shared offload services")
    return _services


def reset_services() -> None:
    """Drop the shared services. Tests call this between cases."""
    global _services
    _services = None


def get_options(services: Annotated[OffloadServices, Depends(get_services)]) -> OffloadOptions:
    return services.options


def get_library(services: Annotated[OffloadServices, Depends(get_services)]) -> InMemoryMediaLibrary:
    return services.library


def get_orchestrator(services: Annotated[OffloadServices, Depends(get_services)]) -> UploadOrchestrator:
    return services.orchestrator


def get_rewriter(services: Annotated[OffloadServices, Depends(get_services)]) -> URLRewriter:
    return services.rewriter


def get_batch_sync(services: Annotated[OffloadServices, Depends(get_services)]) -> BatchSync:
    return services.batch_sync


def get_connection_tester(services: Annotated[OffloadServices, Depends(get_services)]) -> ConnectionTester:
    return services.connection_tester


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
OptionsDep = Annotated[OffloadOptions, Depends(get_options)]
LibraryDep = Annotated[InMemoryMediaLibrary, Depends(get_library)]
OrchestratorDep = Annotated[UploadOrchestrator, Depends(get_orchestrator)]
RewriterDep = Annotated[URLRewriter, Depends(get_rewriter)]
BatchSyncDep = Annotated[BatchSync, Depends(get_batch_sync)]
ConnectionTesterDep = Annotated[ConnectionTester, Depends(get_connection_tester)]
