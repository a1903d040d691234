"""Smart Order Router - splits token swaps across AMM pools."""

from sor.core import RouteOptions, RouteResult, route
from sor.pools.base import PoolFilter, SwapType
from sor.service import SOR, create_default_sor

__version__ = "0.1.0"
__all__ = [
    "SOR",
    "PoolFilter",
    "RouteOptions",
    "RouteResult",
    "SwapType",
    "create_default_sor",
    "route",
    "__version__",
]
