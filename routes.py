# routes.py
from fastapi import FastAPI
from controller.ingest_controller import ingest_router
from controller.query_controller import query_router
from controller.system_controller import system_router


def register_routes(app: FastAPI) -> None:
    """Register & Access control controllers here."""
    app.include_router(system_router)
    app.include_router(ingest_router)
    app.include_router(query_router)
