"""Control application factory for the run command.

This module provides a factory function for creating the in-process
FastAPI control application that exposes the service control endpoints.
"""

from fastapi import FastAPI

from emerald_services.services import ServiceOrchestrator, create_control_router


def create_control_app(orchestrator: ServiceOrchestrator) -> FastAPI:
    """Create the FastAPI control application.

    Args:
        orchestrator: The ServiceOrchestrator instance to control.

    Returns:
        A FastAPI application with service control endpoints.
    """
    app = FastAPI(
        title="Emerald Services Control",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.include_router(create_control_router(orchestrator))
    return app
