"""FastAPI app: report listing, search and tagging with proper error handling.

Resources are created in the lifespan, stored on ``app.state`` and closed on
shutdown. The startup ingestion scan runs before the app accepts traffic.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import APIRouter, Body, Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from fastapi.staticfiles import StaticFiles
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from .config import Settings, get_settings
from .db import Database, get_session
from .errors import (
    IndexTimeout,
    IndexUnavailable,
    MalformedInput,
    NotFound,
    ReportSearchError,
    StoreTimeout,
    StoreUnavailable,
)
from .logging_config import setup_logging
from .pipelines.ingest import IngestionSummary, ReportReconciler
from .pipelines.tag_sync import TagAssignment, sync_report_tags
from .repository import ReportRepository
from .search import SearchIndex, search_reports

logger = logging.getLogger(__name__)


# Pydantic response models
class CamelModel(BaseModel):
    """Serializes with camelCase keys, accepts either casing."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class HealthResponse(CamelModel):
    """Health check response."""
    status: str
    version: str
    store: str
    index: str


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    detail: str | None = None


class ReportListItemDTO(CamelModel):
    """Report without text; ``score`` is only set for search results."""
    id: int
    name: str
    author: str
    file_name: str
    synopsis: str
    score: float | None = None


class ReportDTO(CamelModel):
    """Full report including text."""
    id: int
    name: str
    author: str
    file_name: str
    synopsis: str
    text: str


class TagDTO(CamelModel):
    """Catalog tag."""
    id: int
    name: str
    color: str | None = None


class ReportTagDTO(TagDTO):
    """Tag association for one report."""
    active: bool


class TagListsResponse(CamelModel):
    """Partition of the catalog for one report."""
    active_tag_list: list[ReportTagDTO]
    inactive_tag_list: list[ReportTagDTO]
    unassigned_tag_list: list[TagDTO]


class TagAssignmentDTO(CamelModel):
    """Client-submitted tag state."""
    tag_id: int = Field(validation_alias=AliasChoices("tagId", "tag_id", "id"))
    active: bool


class IngestionOutcomeDTO(CamelModel):
    file_name: str
    status: str
    report_id: int | None = None
    error: str | None = None


class IngestionSummaryResponse(CamelModel):
    """Result of the startup ingestion scan."""
    directory: str
    created: int
    skipped: int
    failed: int
    error: str | None = None
    outcomes: list[IngestionOutcomeDTO]


def _error_response(status_code: int, exc: ReportSearchError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=exc.to_dict(),
    )


# Exception handlers
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Unparseable path/query parameters or bodies are malformed input."""
    detail = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    logger.warning(f"Malformed request to {request.url.path}: {detail}")
    return _error_response(status.HTTP_400_BAD_REQUEST, MalformedInput(detail))


async def malformed_input_handler(request: Request, exc: MalformedInput) -> JSONResponse:
    logger.warning(f"Malformed input: {exc}")
    return _error_response(status.HTTP_400_BAD_REQUEST, exc)


async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
    logger.info(f"Not found: {exc}")
    return _error_response(status.HTTP_404_NOT_FOUND, exc)


async def timeout_handler(request: Request, exc: ReportSearchError) -> JSONResponse:
    """Handle store and index timeouts."""
    logger.error(f"Timeout: {exc}")
    return _error_response(status.HTTP_504_GATEWAY_TIMEOUT, exc)


async def unavailable_handler(request: Request, exc: ReportSearchError) -> JSONResponse:
    """Handle store/index failures and any other service error."""
    logger.error(f"{exc.code}: {exc}")
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, exc)


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unexpected error handling {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(error="internal_error", detail=str(exc)).model_dump(),
    )


# Dependencies
async def get_repository(session: AsyncSession = Depends(get_session)) -> ReportRepository:
    return ReportRepository(session)


def get_search_index(request: Request) -> SearchIndex:
    return request.app.state.search_index


router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Health check endpoint; pings the store and the index."""
    settings: Settings = request.app.state.settings

    store_status = "ok"
    try:
        await request.app.state.database.ping()
    except StoreUnavailable as e:
        logger.warning(f"Store health check failed: {e}")
        store_status = "unavailable"

    index_status = "ok"
    try:
        await request.app.state.search_index.ping()
    except IndexUnavailable as e:
        logger.warning(f"Index health check failed: {e}")
        index_status = "unavailable"

    return HealthResponse(
        status="ok" if store_status == index_status == "ok" else "degraded",
        version=settings.version,
        store=store_status,
        index=index_status,
    )


@router.get(
    "/reports",
    response_model=list[ReportListItemDTO],
    response_model_exclude_none=True,
)
async def list_reports(
    search_term: str | None = Query(default=None, alias="searchTerm"),
    repository: ReportRepository = Depends(get_repository),
    search_index: SearchIndex = Depends(get_search_index),
) -> list[ReportListItemDTO]:
    """List every report by name, or rank them against ``searchTerm``."""
    logger.info(f"Listing reports (searchTerm={search_term!r})")

    reports = await search_reports(repository, search_index, search_term)
    items = [ReportListItemDTO.model_validate(report) for report in reports]

    logger.info(f"Returning {len(items)} reports")
    return items


@router.get("/reports/{report_id}", response_model=ReportDTO)
async def get_report(
    report_id: int,
    repository: ReportRepository = Depends(get_repository),
) -> ReportDTO:
    """Full report including its text."""
    report = await repository.find_by_id(report_id)
    if report is None:
        raise NotFound(f"Report {report_id} does not exist")
    return ReportDTO.model_validate(report)


@router.get("/reports/{report_id}/tags", response_model=list[ReportTagDTO])
async def get_report_tags(
    report_id: int,
    repository: ReportRepository = Depends(get_repository),
) -> list[ReportTagDTO]:
    """Tag associations for a report ordered by tag name."""
    tags = await repository.list_tags_for_report(report_id)
    return [ReportTagDTO.model_validate(tag) for tag in tags]


@router.get("/reports/{report_id}/tagLists", response_model=TagListsResponse)
async def get_report_tag_lists(
    report_id: int,
    repository: ReportRepository = Depends(get_repository),
) -> TagListsResponse:
    """Active, inactive and unassigned tags for a report."""
    assigned = [ReportTagDTO.model_validate(tag) for tag in await repository.list_tags_for_report(report_id)]
    unassigned = await repository.list_unassigned_tags_for_report(report_id)

    return TagListsResponse(
        active_tag_list=[tag for tag in assigned if tag.active],
        inactive_tag_list=[tag for tag in assigned if not tag.active],
        unassigned_tag_list=[TagDTO.model_validate(tag) for tag in unassigned],
    )


@router.put("/reports/{report_id}/tags", response_class=PlainTextResponse)
async def update_report_tags(
    report_id: int,
    tag_list: list[TagAssignmentDTO] = Body(...),
    session: AsyncSession = Depends(get_session),
) -> Response:
    """Replace the report's tag state with the submitted list."""
    logger.info(f"Updating tags for report {report_id} with {len(tag_list)} entries")

    client = [TagAssignment(tag_id=dto.tag_id, active=dto.active) for dto in tag_list]
    try:
        await sync_report_tags(session, report_id, client)
    except NotFound as e:
        logger.warning(f"Tag update rejected: {e}")
        return _error_response(status.HTTP_400_BAD_REQUEST, e)

    return PlainTextResponse(f"Successfully updated the tags for report {report_id}.")


@router.get("/tags", response_model=list[TagDTO])
async def list_tags(repository: ReportRepository = Depends(get_repository)) -> list[TagDTO]:
    """The whole tag catalog ordered by name."""
    return [TagDTO.model_validate(tag) for tag in await repository.list_tags()]


@router.get("/ingestion", response_model=IngestionSummaryResponse)
async def get_ingestion_summary(request: Request) -> IngestionSummaryResponse:
    """Outcome of the startup ingestion scan."""
    summary: IngestionSummary | None = request.app.state.ingestion_summary
    if summary is None:
        raise NotFound("Ingestion has not run")

    return IngestionSummaryResponse(
        directory=summary.directory,
        created=summary.created,
        skipped=summary.skipped,
        failed=summary.failed,
        error=summary.error,
        outcomes=[
            IngestionOutcomeDTO(
                file_name=outcome.file_name,
                status=outcome.status.value,
                report_id=outcome.report_id,
                error=outcome.error,
            )
            for outcome in summary.outcomes
        ],
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown logic."""
    settings: Settings = app.state.settings

    # Startup
    setup_logging(settings.logging)
    logger.info(f"Application starting up: {settings.app_name} v{settings.version}")

    database = Database.from_settings(settings.db)
    search_index = SearchIndex.from_settings(settings.search)
    app.state.database = database
    app.state.search_index = search_index
    app.state.ingestion_summary = None

    try:
        if settings.ingest.on_startup:
            reconciler = ReportReconciler(
                database,
                search_index,
                settings.ingest.directory,
                encoding=settings.ingest.encoding,
            )
            app.state.ingestion_summary = await reconciler.reconcile_all()

        yield
    finally:
        # Shutdown
        logger.info("Application shutting down")
        await search_index.close()
        await database.close()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application; resources are opened by the lifespan."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        description="Plain-text report ingestion, full-text search and tagging",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.ingestion_summary = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "PUT", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(MalformedInput, malformed_input_handler)
    app.add_exception_handler(NotFound, not_found_handler)
    app.add_exception_handler(StoreTimeout, timeout_handler)
    app.add_exception_handler(IndexTimeout, timeout_handler)
    app.add_exception_handler(ReportSearchError, unavailable_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.include_router(router, prefix=settings.api.prefix)

    static_directory = Path(settings.api.static_directory)
    if static_directory.is_dir():
        app.mount("/static", StaticFiles(directory=static_directory), name="static")
    else:
        logger.warning(f"Static directory {static_directory} not found; /static is not served")

    return app


app = create_app()
