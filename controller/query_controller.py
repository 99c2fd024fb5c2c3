# controller/query_controller.py
from fastapi import APIRouter, Depends
from controller.controller_dependencies import get_query_service, rate_limiter
from model.api import (
    ErrorResponse,
    QueryRequest,
    QueryResponse,
    ServiceHealthResponse,
    StatsResponse,
)
from service.query_service import QueryService
from util.constants import InternalURIs
from util.functions import utc_now_iso

query_router = APIRouter(tags=["query"])


@query_router.post(
    InternalURIs.QUERY,
    response_model=QueryResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    dependencies=[Depends(rate_limiter)],
)
async def query(
    payload: QueryRequest,
    service: QueryService = Depends(get_query_service),
) -> QueryResponse:
    return await service.query(payload)


@query_router.get(InternalURIs.QUERY_HEALTH, response_model=ServiceHealthResponse)
async def query_health() -> ServiceHealthResponse:
    return ServiceHealthResponse(status="healthy", service="query", timestamp=utc_now_iso())


@query_router.get(
    InternalURIs.QUERY_STATS,
    response_model=StatsResponse,
    responses={500: {"model": ErrorResponse}},
)
async def query_stats(service: QueryService = Depends(get_query_service)) -> StatsResponse:
    return await service.stats()
