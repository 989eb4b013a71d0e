"""FastAPI control endpoints for the service orchestrator.

This module provides REST API endpoints for controlling and monitoring
the geth backend and the emerald connector.
"""

# pyright: reportUnusedFunction=false
# FastAPI route handlers are registered via decorators, not direct calls

from typing import Never

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from emerald_services.exceptions import ServiceError, ServiceNotFoundError

from ._models import ServiceName
from ._orchestrator import ServiceOrchestrator  # noqa: TC001 - Used in runtime type annotations


class ServiceStatusResponse(BaseModel):
    """Response model for service status."""

    name: str
    status: str
    ready: bool
    pid: int | None
    last_exit_code: int | None
    started_at: str | None
    stopped_at: str | None


class SetupResponse(BaseModel):
    """Response model for the resolved launch setup."""

    connector_mode: str
    rpc_mode: str
    chain: str
    chain_id: int


class ServicesStatusResponse(BaseModel):
    """Response model for overall status."""

    setup: SetupResponse
    rpc_url: str | None
    services: dict[str, ServiceStatusResponse]


class MessageResponse(BaseModel):
    """Response model for simple message responses."""

    message: str


def _build_service_status(
    orchestrator: ServiceOrchestrator, name: ServiceName
) -> ServiceStatusResponse:
    state = orchestrator.state(name)
    return ServiceStatusResponse(
        name=name.value,
        status=state.status.value,
        ready=state.status.display == "ready",
        pid=state.pid,
        last_exit_code=state.last_exit_code,
        started_at=state.started_at,
        stopped_at=state.stopped_at,
    )


def _lookup_service(name: str) -> ServiceName:
    """Map a path parameter to a service name.

    Raises:
        ServiceNotFoundError: If the name is not a managed service.
    """
    try:
        return ServiceName(name)
    except ValueError as e:
        msg = f"Service '{name}' not found"
        raise ServiceNotFoundError(msg, service_name=name, cause=e) from e


def _raise_not_found(name: str, cause: ServiceNotFoundError) -> Never:
    """Raise HTTP 404 for service not found.

    Raises:
        HTTPException: Always raises with 404 status.
    """
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Service '{name}' not found",
    ) from cause


def _raise_server_error(cause: BaseException) -> Never:
    """Raise HTTP 500 for internal server error.

    Raises:
        HTTPException: Always raises with 500 status.
    """
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(cause),
    ) from cause


def create_control_router(orchestrator: ServiceOrchestrator) -> APIRouter:
    """Create a FastAPI router for service control endpoints.

    Args:
        orchestrator: The ServiceOrchestrator instance to control.

    Returns:
        A FastAPI APIRouter with control endpoints.
    """
    router = APIRouter(prefix="/services", tags=["services"])

    @router.get("/status", response_model=ServicesStatusResponse)
    async def get_services_status() -> ServicesStatusResponse:
        """Get the setup and the status of both services."""
        setup = orchestrator.setup
        return ServicesStatusResponse(
            setup=SetupResponse(
                connector_mode=setup.connector_mode.value,
                rpc_mode=setup.rpc_mode.value,
                chain=setup.chain,
                chain_id=setup.chain_id,
            ),
            rpc_url=orchestrator.rpc_url,
            services={
                name.value: _build_service_status(orchestrator, name)
                for name in ServiceName
            },
        )

    @router.get("/{name}", response_model=ServiceStatusResponse)
    async def get_service_status(name: str) -> ServiceStatusResponse:
        """Get status of a specific service."""
        try:
            service_name = _lookup_service(name)
        except ServiceNotFoundError as e:
            _raise_not_found(name, e)

        return _build_service_status(orchestrator, service_name)

    @router.post("/start", response_model=MessageResponse)
    async def start_services() -> MessageResponse:
        """Start both services."""
        try:
            _ = await orchestrator.start()
        except (ServiceError, ExceptionGroup) as e:
            _raise_server_error(e)

        return MessageResponse(message="Services started")

    @router.post("/shutdown", response_model=MessageResponse)
    async def shutdown_services() -> MessageResponse:
        """Stop both services."""
        try:
            await orchestrator.shutdown()
        except (ServiceError, ExceptionGroup) as e:
            _raise_server_error(e)

        return MessageResponse(message="Services stopped")

    @router.post("/report", response_model=MessageResponse)
    async def report_status() -> MessageResponse:
        """Send the current status to the notifier."""
        orchestrator.report_status()
        return MessageResponse(message="Status reported")

    return router
