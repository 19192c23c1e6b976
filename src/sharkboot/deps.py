"""Dependency injection singletons for SharkBoot."""

from typing import Optional

import httpx

from sharkboot.assistants.service import AssistantService
from sharkboot.common.config import get_settings
from sharkboot.common.database import DatabaseManager
from sharkboot.facebook.service import FacebookService
from sharkboot.files.service import FileService
from sharkboot.remote.graph_client import GraphClient, GraphConfig
from sharkboot.remote.openai_client import OpenAIClient, OpenAIConfig
from sharkboot.runs.files import RunFileService
from sharkboot.runs.service import RunTracker
from sharkboot.tenants.service import TenantService
from sharkboot.vectorstores.reconciler import VectorStoreReconciler
from sharkboot.whatsapp.service import WhatsAppService

_db: DatabaseManager | None = None
_openai: OpenAIClient | None = None
_graph: GraphClient | None = None
_reconciler: VectorStoreReconciler | None = None
_tenants: TenantService | None = None
_assistants: AssistantService | None = None
_files: FileService | None = None
_run_files: RunFileService | None = None
_runs: RunTracker | None = None
_whatsapp: WhatsAppService | None = None
_facebook: FacebookService | None = None

# Set by tests to route remote calls to in-memory fakes.
_openai_transport: Optional[httpx.AsyncBaseTransport] = None
_graph_transport: Optional[httpx.AsyncBaseTransport] = None


def set_transports(
    openai: Optional[httpx.AsyncBaseTransport] = None,
    graph: Optional[httpx.AsyncBaseTransport] = None,
) -> None:
    """Install transports for clients created after this call."""
    global _openai_transport, _graph_transport
    _openai_transport = openai
    _graph_transport = graph


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_openai_client() -> OpenAIClient:
    global _openai
    if _openai is None:
        _openai = OpenAIClient(OpenAIConfig.from_settings(get_settings()), transport=_openai_transport)
    return _openai


def get_graph_client() -> GraphClient:
    global _graph
    if _graph is None:
        _graph = GraphClient(GraphConfig.from_settings(get_settings()), transport=_graph_transport)
    return _graph


def get_reconciler() -> VectorStoreReconciler:
    global _reconciler
    if _reconciler is None:
        _reconciler = VectorStoreReconciler(get_settings(), get_openai_client())
    return _reconciler


def get_tenant_service() -> TenantService:
    global _tenants
    if _tenants is None:
        _tenants = TenantService(get_settings(), graph_client=get_graph_client())
    return _tenants


def get_assistant_service() -> AssistantService:
    global _assistants
    if _assistants is None:
        _assistants = AssistantService(get_settings(), get_openai_client(), get_reconciler())
    return _assistants


def get_file_service() -> FileService:
    global _files
    if _files is None:
        _files = FileService(
            get_settings(), get_openai_client(), get_assistant_service(), get_reconciler(),
        )
    return _files


def get_run_file_service() -> RunFileService:
    global _run_files
    if _run_files is None:
        _run_files = RunFileService(get_settings(), get_openai_client(), get_assistant_service())
    return _run_files


def get_run_tracker() -> RunTracker:
    global _runs
    if _runs is None:
        _runs = RunTracker(
            get_settings(), get_openai_client(), get_assistant_service(), get_run_file_service(),
        )
    return _runs


def get_whatsapp_service() -> WhatsAppService:
    global _whatsapp
    if _whatsapp is None:
        _whatsapp = WhatsAppService(
            get_settings(), get_graph_client(), get_tenant_service(), get_assistant_service(),
        )
    return _whatsapp


def get_facebook_service() -> FacebookService:
    global _facebook
    if _facebook is None:
        _facebook = FacebookService(get_settings(), get_graph_client(), get_tenant_service())
    return _facebook


async def close_remote_clients() -> None:
    if _openai is not None:
        await _openai.aclose()
    if _graph is not None:
        await _graph.aclose()


def reset_singletons() -> None:
    """Reset all singletons and installed transports (for testing)."""
    global _db, _openai, _graph, _reconciler, _tenants, _assistants
    global _files, _run_files, _runs, _whatsapp, _facebook
    _db = None
    _openai = None
    _graph = None
    _reconciler = None
    _tenants = None
    _assistants = None
    _files = None
    _run_files = None
    _runs = None
    _whatsapp = None
    _facebook = None
    set_transports()
