"""API endpoints for the smart order router."""

import asyncio
import functools

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from sor.core import RouteResult, route
from sor.errors import SorError
from sor.models.route import ErrorResponse, RouteRequest, RouteResponse
from sor.pools.base import SwapType
from sor.service import SOR, create_default_sor

logger = structlog.get_logger()

router = APIRouter()

_default_sor: SOR | None = None


def get_sor() -> SOR:
    """Dependency provider for the router service.

    Override this in tests to inject a service with known pools:
        app.dependency_overrides[get_sor] = lambda: sor

    Returns:
        The process-wide service, created from the environment on first use.
    """
    global _default_sor
    if _default_sor is None:
        _default_sor = create_default_sor()
    return _default_sor


def _route(request: RouteRequest, sor: SOR) -> RouteResult:
    snapshot = request.snapshot
    if snapshot is None:
        exact_in = request.swap_type is SwapType.EXACT_IN
        cost_token = request.token_out if exact_in else request.token_in
        options = request.to_options(
            default_max_pools=sor.config.max_pools,
            default_cost=sor.execution_cost(cost_token),
        )
        return sor.get_swaps(
            request.token_in, request.token_out, request.swap_type, request.amount, options
        )

    options = request.to_options(
        default_max_pools=sor.config.max_pools,
        default_cost=sor.config.default_execution_cost,
    )
    return route(
        request.token_in,
        request.token_out,
        request.swap_type,
        request.amount,
        snapshot,
        options,
        config=sor.config,
    )


def _error_response(kind: str, message: str, context: dict[str, str]) -> JSONResponse:
    body = ErrorResponse(error=kind, message=message, context=context)
    return JSONResponse(status_code=422, content=body.model_dump())


@router.post(
    "/route",
    response_model=RouteResponse,
    responses={422: {"model": ErrorResponse}},
)
async def route_swap(
    request: RouteRequest,
    sor: SOR = Depends(get_sor),
) -> RouteResponse | JSONResponse:
    """Route a swap.

    Args:
        request: Tokens, swap type, amount and optionally an inline snapshot
        sor: Injected router service (via FastAPI Depends)

    Returns:
        The route, or an ErrorResponse with status 422.

    Error Handling:
        - Invalid request schema: 422 Validation Error (Pydantic)
        - Routing failure (e.g. insufficient liquidity): 422 with the error kind
        - Malformed request values (negative amount, equal tokens): 422
    """
    logger.info(
        "received_route_request",
        token_in=request.token_in,
        token_out=request.token_out,
        swap_type=request.swap_type.value,
        amount=str(request.amount),
        inline_pools=request.pools is not None,
    )

    loop = asyncio.get_running_loop()
    try:
        result = await loop.run_in_executor(None, functools.partial(_route, request, sor))
    except SorError as err:
        logger.warning("route_failed", error=type(err).__name__, message=err.message, **err.context)
        return _error_response(type(err).__name__, err.message, err.context)
    except ValueError as err:
        logger.warning("route_rejected", error=str(err))
        return _error_response("ValueError", str(err), {})

    logger.info(
        "returning_route",
        return_amount=str(result.return_amount),
        paths=len(result.swaps),
    )
    return RouteResponse.from_result(result)
