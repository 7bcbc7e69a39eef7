"""
Wiring for the offloader's collaborators.

Both the API and the operator script need the same object graph: an option
store, a storage client factory subscribed to option changes, the media
library, and the orchestrator plus the operations built on it.
"""

import logging
from dataclasses import dataclass

from .config.settings import Settings
from .core.offload.models import UploadLocation
from .core.offload.sync import BatchSync, ConnectionTester
from .core.offload.uploader import UploadOrchestrator
from .core.offload.urls import URLRewriter
from .infrastructure.media.library import InMemoryMediaLibrary
from .infrastructure.options.store import (
    InMemoryOptionStore,
    JsonFileOptionStore,
    OffloadOptions,
    OptionStore,
)
from .infrastructure.storage.client import StorageClientFactory

logger = logging.getLogger(__name__)


@dataclass
class OffloadServices:
    """Everything a request or a script run needs, built once."""
    options: OffloadOptions
    clients: StorageClientFactory
    library: InMemoryMediaLibrary
    location: UploadLocation
    orchestrator: UploadOrchestrator
    rewriter: URLRewriter
    batch_sync: BatchSync
    connection_tester: ConnectionTester


def build_services(settings: Settings) -> OffloadServices:
    store: OptionStore
    if settings.options_file:
        store = JsonFileOptionStore(settings.options_file)
    else:
        store = InMemoryOptionStore()

    options = OffloadOptions(store)
    clients = StorageClientFactory(mock_mode=settings.storage_mock_mode)
    options.subscribe(clients.invalidate)

    seeded = options.seed(**settings.option_seeds)
    if seeded:
        logger.info("Seeded offload settings from environment", extra={"options": seeded})

    library = InMemoryMediaLibrary()
    location = UploadLocation(
        root=settings.upload_root_path,
        base_url=settings.upload_base_url,
    )

    orchestrator = UploadOrchestrator(options, clients, library, location)

    services = OffloadServices(
        options=options,
        clients=clients,
        library=library,
        location=location,
        orchestrator=orchestrator,
        rewriter=URLRewriter(options, location, library),
        batch_sync=BatchSync(orchestrator, library),
        connection_tester=ConnectionTester(orchestrator, library, location, options, clients),
    )

    logger.info(
        "Offload services ready",
        extra={
            "upload_root": location.root,
            "upload_base_url": location.base_url,
            "options_file": settings.options_file,
            "mock_mode": settings.storage_mock_mode,
        }
    )
    return services
