"""Swap venues used by the flash-loan orchestrator.

``OracleDexSwapExecutor`` fills exact-output orders at oracle prices plus a
pool fee. ``RoutedAggregatorSwapExecutor`` routes each order to the cheapest of
several pools, or to the pool pinned in ``routing_data["route"]``.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from ..common.protocol_constants import ONE_HUNDRED_PERCENT_BPS, Rounding, base_to_token, mul_div, token_to_base
from ..models.collaborators import PriceOracle, SwapExecutor
from ..models.enums import SwapVenue
from ..models.exceptions import ConfigurationError, ExternalCallError
from .token_ledger import TokenLedger


logger = logging.getLogger(__name__)

DEX_ADDRESS = "oracle-dex"


class OracleDexSwapExecutor(SwapExecutor):
    """Single pool pricing swaps from the oracle with a flat fee."""

    def __init__(self, ledger: TokenLedger, oracle: PriceOracle, fee_bps: int = 0, address: str = DEX_ADDRESS) -> None:
        if not 0 <= fee_bps < ONE_HUNDRED_PERCENT_BPS:
            raise ConfigurationError("Swap fee must be within [0, 10000)", fee_bps=fee_bps)
        self.address = address
        self.fee_bps = fee_bps
        self._ledger = ledger
        self._oracle = oracle

    def reserve_of(self, token: str) -> int:
        return self._ledger.balance_of(token, self.address)

    def quote_exact_output(self, token_in: str, token_out: str, desired_out: int) -> int:
        """Input needed to buy ``desired_out``, rounded up in the pool's favour."""
        price_in, _ = self._oracle.get_price(token_in)
        price_out, _ = self._oracle.get_price(token_out)
        out_base = token_to_base(desired_out, price_out, self._ledger.decimals(token_out), Rounding.CEIL)
        in_base = mul_div(out_base, ONE_HUNDRED_PERCENT_BPS + self.fee_bps, ONE_HUNDRED_PERCENT_BPS, Rounding.CEIL)
        return base_to_token(in_base, price_in, self._ledger.decimals(token_in), Rounding.CEIL)

    def swap_exact_output(
        self,
        account: str,
        token_in: str,
        token_out: str,
        desired_out: int,
        max_in: int,
        routing_data: Optional[Mapping[str, Any]] = None,
    ) -> int:
        if desired_out <= 0:
            raise ExternalCallError("Desired output must be > 0", desired_out=desired_out)
        amount_in = self.quote_exact_output(token_in, token_out, desired_out)
        if amount_in > max_in:
            raise ExternalCallError("Swap needs more input than allowed", amount_in=amount_in, max_in=max_in)
        reserve = self.reserve_of(token_out)
        if reserve < desired_out:
            raise ExternalCallError("Insufficient pool liquidity", reserve=reserve, desired_out=desired_out)
        self._ledger.transfer(token_in, account, self.address, amount_in)
        self._ledger.transfer(token_out, self.address, account, desired_out)
        logger.debug(
            "Swap pool=%s %s %s -> %s %s for %s",
            self.address,
            amount_in,
            token_in,
            desired_out,
            token_out,
            account,
        )
        return amount_in


class RoutedAggregatorSwapExecutor(SwapExecutor):
    """Routes exact-output swaps across named pools."""

    def __init__(self, pools: Mapping[str, OracleDexSwapExecutor]) -> None:
        if not pools:
            raise ConfigurationError("Aggregator needs at least one pool")
        self._pools: Dict[str, OracleDexSwapExecutor] = dict(pools)

    @property
    def pools(self) -> Mapping[str, OracleDexSwapExecutor]:
        return dict(self._pools)

    def best_route(self, token_in: str, token_out: str, desired_out: int) -> Tuple[str, int]:
        """Cheapest pool with enough liquidity and its input quote."""
        quotes = [
            (pool.quote_exact_output(token_in, token_out, desired_out), name)
            for name, pool in self._pools.items()
            if pool.reserve_of(token_out) >= desired_out
        ]
        if not quotes:
            raise ExternalCallError("No route with enough liquidity", desired_out=desired_out)
        amount_in, name = min(quotes)
        return name, amount_in

    def swap_exact_output(
        self,
        account: str,
        token_in: str,
        token_out: str,
        desired_out: int,
        max_in: int,
        routing_data: Optional[Mapping[str, Any]] = None,
    ) -> int:
        route = (routing_data or {}).get("route")
        if route is None:
            route, _ = self.best_route(token_in, token_out, desired_out)
        pool = self._pools.get(route)
        if pool is None:
            raise ExternalCallError("Unknown route", route=route)
        logger.info("Aggregator routing %s %s via %s", desired_out, token_out, route)
        return pool.swap_exact_output(account, token_in, token_out, desired_out, max_in)


def build_swap_executor(
    venue: SwapVenue,
    ledger: TokenLedger,
    oracle: PriceOracle,
    pool_fees_bps: Sequence[int] = (0,),
) -> SwapExecutor:
    """Construct the swap venue selected in configuration.

    ``oracle_dex`` uses the first fee; ``aggregator`` builds one pool per fee.
    """
    fees = list(pool_fees_bps) or [0]
    if venue is SwapVenue.ORACLE_DEX:
        return OracleDexSwapExecutor(ledger, oracle, fee_bps=fees[0])
    if venue is SwapVenue.AGGREGATOR:
        pools = {
            "pool-{0}".format(index): OracleDexSwapExecutor(
                ledger, oracle, fee_bps=fee, address="{0}-pool-{1}".format(DEX_ADDRESS, index)
            )
            for index, fee in enumerate(fees)
        }
        return RoutedAggregatorSwapExecutor(pools)
    raise ConfigurationError("Unsupported swap venue", venue=str(venue))


def pool_addresses(executor: SwapExecutor) -> Sequence[str]:
    """Ledger accounts holding the liquidity of ``executor``."""
    if isinstance(executor, RoutedAggregatorSwapExecutor):
        return tuple(pool.address for pool in executor.pools.values())
    if isinstance(executor, OracleDexSwapExecutor):
        return (executor.address,)
    return ()
