"""Router-wide constants."""

from decimal import Decimal

# Address standing in for the chain's native asset (ETH on mainnet)
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Wrapped native token on mainnet
WETH_ADDRESS = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"

# Maximum share of a pool balance a single swap may take in or out.
# Empirical safety margin, overridable per pool family via LimitRatios.
DEFAULT_LIMIT_RATIO = Decimal("0.3")

# Default number of pools a route may touch
DEFAULT_MAX_POOLS = 4

# Root search caps
STABLE_MAX_ITERATIONS = 255
ROOT_SEARCH_MAX_ITERATIONS = 100
PATH_INVERSION_MAX_ITERATIONS = 80

# Convergence tolerance for the marginal-price search, relative to the
# requested amount
DEFAULT_TOLERANCE = Decimal("1e-18")

# Gas consumed by one swap path, used to price execution cost in the native
# token
DEFAULT_SWAP_COST = 100_000
