"""Path discovery, limits and split optimization.

- filter: pools of interest, one- and two-hop paths, pool pruning
- paths: composed path pricing and path limits
- optimizer: marginal-price equalization over a set of paths
- router: choice of the number of paths, net of execution cost
- assembler: sequential simulation into swap steps
"""

from sor.routing.assembler import Simulation, SwapStep, simulate_allocation, token_addresses
from sor.routing.filter import (
    PoolsOfInterest,
    bound_pools,
    filter_hop_pools,
    filter_pools_of_interest,
    tradable_tokens,
)
from sor.routing.optimizer import (
    amount_for_rate,
    distribute_residual,
    equalize_marginal_prices,
)
from sor.routing.paths import (
    Hop,
    Path,
    calculate_path_limits,
    get_limit_amount_swap_for_path,
    path_liquidity,
)
from sor.routing.router import RouterResult, quantize_amounts, smart_order_router

__all__ = [
    # Paths
    "Hop",
    "Path",
    "calculate_path_limits",
    "get_limit_amount_swap_for_path",
    "path_liquidity",
    # Filter
    "PoolsOfInterest",
    "bound_pools",
    "filter_hop_pools",
    "filter_pools_of_interest",
    "tradable_tokens",
    # Optimizer
    "amount_for_rate",
    "distribute_residual",
    "equalize_marginal_prices",
    # Router
    "RouterResult",
    "quantize_amounts",
    "smart_order_router",
    # Assembler
    "Simulation",
    "SwapStep",
    "simulate_allocation",
    "token_addresses",
]
