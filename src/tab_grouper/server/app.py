"""
FastAPI application for the tab grouper backend.

This server provides endpoints for:
- Grouping a single tab or every eligible tab in a window
- Host tab group event notifications (removed, updated)
- Empty group cleanup on demand
- Grouping stats and user settings
"""

from contextlib import asynccontextmanager
from datetime import datetime, UTC
from typing import Optional

from fastapi import FastAPI, Query, BackgroundTasks
from fastapi.middleware.cors import CORSMiddleware

from tab_grouper.config import get_logger, get_settings, set_debug_logging, setup_logging
from tab_grouper.grouping.cleanup import CleanupScheduler
from tab_grouper.grouping.errors import GroupingError, error_message, to_grouping_error
from tab_grouper.grouping.models import GroupingSettings, GroupingStats, Tab, TabGroup
from tab_grouper.grouping.tab_grouping_service import TabGroupingService
from tab_grouper.host.base import HostTabAPI
from tab_grouper.host.http_client import HttpHostClient
from tab_grouper.storage.base import GroupingStore
from tab_grouper.storage.database import SQLiteGroupingStore
from tab_grouper.server.models import (
    GroupTabRequest,
    GroupTabResponse,
    BatchGroupRequest,
    BatchGroupResponse,
    GroupedStatusResponse,
    GroupRemovedEvent,
    GroupUpdatedEvent,
    EventAckResponse,
    CleanupRequest,
    CleanupResponse,
    HealthResponse,
)

logger = get_logger(__name__)

# ============================================================================
# Global State
# ============================================================================

_host: HostTabAPI | None = None
_store: GroupingStore | None = None
_service: TabGroupingService | None = None
_scheduler: CleanupScheduler | None = None


def get_host() -> HostTabAPI:
    """Get or create the global host client."""
    global _host
    if _host is None:
        settings = get_settings()
        _host = HttpHostClient(settings.host_api_url, timeout=settings.host_timeout_seconds)
    return _host


def get_store() -> GroupingStore:
    """Get or create the global grouping store."""
    global _store
    if _store is None:
        _store = SQLiteGroupingStore(get_settings().db_path)
    return _store


def get_service() -> TabGroupingService:
    """Get or create the global TabGroupingService."""
    global _service
    if _service is None:
        _service = TabGroupingService(get_host(), get_store())
    return _service


def get_scheduler() -> CleanupScheduler:
    """Get or create the global cleanup scheduler."""
    global _scheduler
    if _scheduler is None:
        settings = get_settings()
        _scheduler = CleanupScheduler(
            get_service(),
            get_store(),
            interval_seconds=settings.cleanup_interval_seconds,
            grace_ms=settings.cleanup_grace_ms,
        )
    return _scheduler


async def close_resources() -> None:
    """Stop background work and release the host client and store."""
    global _host, _store, _service, _scheduler
    if _scheduler is not None:
        await _scheduler.stop()
    if _host is not None:
        await _host.close()
    if _store is not None:
        _store.close()
    _host = _store = _service = _scheduler = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.log_level)

    try:
        await get_service().initialize()
    except GroupingError as e:
        # group_tab retries the load lazily
        logger.error(f"Failed to load grouping state at startup: {e.message}")

    get_scheduler().start()
    yield
    await close_resources()


# ============================================================================
# FastAPI App Initialization
# ============================================================================

app = FastAPI(
    title="Tab Grouper API",
    description="Category-based tab grouping with per-category colors",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for browser extension
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "chrome-extension://*",
        "http://localhost:*",
        "https://localhost:*",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def _load_settings() -> GroupingSettings:
    settings = await get_store().read_settings()
    set_debug_logging(settings.debug_logging)
    return settings


async def _find_tab(host: HostTabAPI, tab_id: Optional[int], window_id: Optional[int]) -> Optional[Tab]:
    """Find the requested tab, or the window's active tab when no ID is given."""
    if tab_id is not None:
        tabs = await host.query_tabs(window_id=window_id)
        return next((t for t in tabs if t.id == tab_id), None)

    tabs = await host.query_tabs(window_id=window_id, active=True)
    return tabs[0] if tabs else None


# ============================================================================
# API Endpoints
# ============================================================================


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC).isoformat(),
    )


@app.post("/api/tabs/group", response_model=GroupTabResponse)
async def group_tab(request: GroupTabRequest):
    """
    Group one tab into its category's group.

    The category is the explicit override if given, otherwise it is resolved
    from the metadata (or the tab title).

    Args:
        request: Tab to group and optional metadata / category override

    Returns:
        The category, color and group ID, or success=false with the error
    """
    service = get_service()

    try:
        settings = await _load_settings()
        if not settings.extension_enabled:
            return GroupTabResponse(success=False, error="Tab grouping is disabled")

        tab = await _find_tab(service.host, request.tab_id, request.window_id)
        if tab is None:
            return GroupTabResponse(success=False, error="No tab found to group")

        category = service.resolve_category(tab, settings, request.metadata, request.category)
        result = await service.group_tab(tab, category, settings.enabled_color_list())
    except Exception as e:
        error = to_grouping_error(e)
        return GroupTabResponse(success=False, error=error_message(error), code=error.code)

    return GroupTabResponse(
        success=True,
        category=result.category,
        color=result.color,
        group_id=result.group_id,
    )


@app.post("/api/tabs/batch-group", response_model=BatchGroupResponse)
async def batch_group_tabs(request: BatchGroupRequest):
    """
    Group every eligible tab in a window.

    Tabs are grouped one after another; a failing tab does not stop the batch.

    Returns:
        Number of grouped tabs plus per-tab errors; success=false only if
        every tab failed
    """
    service = get_service()

    try:
        settings = await _load_settings()
        if not settings.extension_enabled:
            return BatchGroupResponse(success=False, error="Tab grouping is disabled")

        tabs = await service.host.query_tabs(window_id=request.window_id)
        eligible = [tab for tab in tabs if service.is_eligible(tab)]
        result = await service.group_tabs(eligible, settings)
    except Exception as e:
        logger.error(f"Batch grouping failed: {error_message(e)}")
        return BatchGroupResponse(success=False, error=error_message(e))

    if result.count == 0 and result.errors:
        return BatchGroupResponse(success=False, error="; ".join(result.errors))

    return BatchGroupResponse(
        success=True,
        count=result.count,
        errors=result.errors or None,
    )


@app.get("/api/tabs/grouped", response_model=GroupedStatusResponse)
async def get_grouped_status(window_id: int | None = Query(default=None)):
    """Report whether the window's active tab is in a group."""
    service = get_service()

    try:
        tab = await _find_tab(service.host, None, window_id)
    except Exception as e:
        return GroupedStatusResponse(success=False, error=error_message(e))

    if tab is None:
        return GroupedStatusResponse(success=False, error="No active tab found")
    return GroupedStatusResponse(success=True, grouped=tab.group_id is not None)


@app.post("/api/groups/removed", response_model=EventAckResponse)
async def group_removed(event: GroupRemovedEvent, background_tasks: BackgroundTasks):
    """Host notification: a tab group was removed."""
    await get_service().handle_group_removed(event.group_id)
    background_tasks.add_task(get_scheduler().tick)
    return EventAckResponse(success=True)


@app.post("/api/groups/updated", response_model=EventAckResponse)
async def group_updated(event: GroupUpdatedEvent, background_tasks: BackgroundTasks):
    """Host notification: a tab group was renamed or recolored."""
    group = TabGroup(id=event.id, window_id=event.window_id, title=event.title, color=event.color)
    await get_service().handle_group_updated(group)
    background_tasks.add_task(get_scheduler().tick)
    return EventAckResponse(success=True)


@app.post("/api/groups/cleanup", response_model=CleanupResponse)
async def cleanup_groups(request: CleanupRequest):
    """
    Run the empty group sweep now.

    Args:
        request: Optional grace period override (defaults to the stored setting)

    Returns:
        Groups removed and groups still inside their grace period
    """
    try:
        grace_ms = request.grace_ms
        if grace_ms is None:
            grace_ms = (await _load_settings()).auto_cleanup_grace_ms
        report = await get_service().auto_cleanup_empty_groups(grace_ms)
    except Exception as e:
        return CleanupResponse(success=False, error=error_message(e))

    return CleanupResponse(success=True, removed=report.removed, pending=report.pending)


@app.get("/api/stats", response_model=GroupingStats)
async def get_stats():
    """Get grouping statistics."""
    return await get_service().stats.get_stats()


@app.post("/api/stats/reset", response_model=GroupingStats)
async def reset_stats():
    """Zero the grouping statistics."""
    return await get_service().stats.reset()


@app.get("/api/settings", response_model=GroupingSettings)
async def get_grouping_settings():
    """Get the stored grouping settings (defaults if none were saved)."""
    return await get_store().read_settings()


@app.put("/api/settings", response_model=GroupingSettings)
async def update_grouping_settings(settings: GroupingSettings):
    """
    Replace the grouping settings.

    The settings are normalized before they are stored (e.g. an all-disabled
    palette is restored, blank channel categories become the fallback).

    Returns:
        The normalized settings as stored
    """
    await get_store().write_settings(settings)
    set_debug_logging(settings.debug_logging)
    logger.info("Grouping settings updated")
    return settings
