# controller/system_controller.py
from fastapi import APIRouter, Depends, Response, status
from controller.controller_dependencies import get_store
from core.vector_store import QdrantVectorStore
from model.api import HealthResponse, HealthServices, RootResponse
from util.constants import ApiInfo, InternalURIs
from util.functions import utc_now_iso
import logging

logger = logging.getLogger(__name__)

system_router = APIRouter(tags=["system"])


@system_router.get(InternalURIs.ROOT, response_model=RootResponse)
async def root() -> RootResponse:
    return RootResponse(
        message=ApiInfo.NAME,
        version=ApiInfo.VERSION,
        status="healthy",
        endpoints={
            "ingest": f"POST {InternalURIs.INGEST}",
            "query": f"POST {InternalURIs.QUERY}",
            "health": f"GET {InternalURIs.HEALTH}",
            "stats": f"GET {InternalURIs.QUERY_STATS}",
            "delete": f"DELETE {InternalURIs.DOCUMENT}",
        },
        timestamp=utc_now_iso(),
    )


@system_router.get(
    InternalURIs.HEALTH,
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse}},
)
async def health(
    response: Response, store: QdrantVectorStore = Depends(get_store)
) -> HealthResponse:
    healthy = await store.health_check()
    if not healthy:
        logger.warning("health.vectorstore.unhealthy")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return HealthResponse(
        status="healthy" if healthy else "unhealthy",
        services=HealthServices(
            api="healthy", vectorstore="healthy" if healthy else "unhealthy"
        ),
        timestamp=utc_now_iso(),
    )
