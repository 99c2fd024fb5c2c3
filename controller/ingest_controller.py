# controller/ingest_controller.py
from fastapi import APIRouter, Depends, status
from controller.controller_dependencies import get_ingestion_service, rate_limiter
from model.api import (
    DeleteDocumentResponse,
    ErrorResponse,
    IngestRequest,
    IngestResponse,
    ServiceHealthResponse,
)
from service.ingestion_service import IngestionService
from util.constants import InternalURIs
from util.functions import utc_now_iso

ingest_router = APIRouter(tags=["ingest"])

_errors = {
    400: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    413: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


@ingest_router.post(
    InternalURIs.INGEST,
    response_model=IngestResponse,
    status_code=status.HTTP_200_OK,
    responses=_errors,
    dependencies=[Depends(rate_limiter)],
)
async def ingest(
    payload: IngestRequest,
    service: IngestionService = Depends(get_ingestion_service),
) -> IngestResponse:
    return await service.ingest(payload)


@ingest_router.get(InternalURIs.INGEST_HEALTH, response_model=ServiceHealthResponse)
async def ingest_health() -> ServiceHealthResponse:
    return ServiceHealthResponse(status="healthy", service="ingest", timestamp=utc_now_iso())


@ingest_router.delete(
    InternalURIs.DOCUMENT,
    response_model=DeleteDocumentResponse,
    responses=_errors,
    dependencies=[Depends(rate_limiter)],
)
async def delete_document(
    doc_id: str,
    service: IngestionService = Depends(get_ingestion_service),
) -> DeleteDocumentResponse:
    return await service.delete_document(doc_id)
