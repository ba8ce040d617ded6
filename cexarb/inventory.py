# cexarb/inventory.py
import asyncio
import logging
import math

from .config import ExecutionConfig
from .errors import SettlementTimeout, VenueError
from .venue import ExchangeAdapter


def round_down(value: float, decimals: int) -> float:
    factor = 10 ** decimals
    return math.floor(round(value * factor, 9)) / factor


class InventoryEngine:
    """
    Reads balances for order sizing and bridges asynchronous settlement
    between venues by polling until funds become spendable.
    """
    def __init__(self, config: ExecutionConfig, logger: logging.Logger):
        self.cfg = config
        self.logger = logger

    def spendable(self, free: float) -> float:
        """Free balance minus the in-flight fee reserve."""
        reserve = self.cfg.settlement_reserve_pct / 100 * free
        return free - reserve

    async def buy_size(self, venue: ExchangeAdapter, quote: str, trade_amount: float, buy_price: float) -> float:
        """
        Base-asset size of the buy leg, from the configured input amount or
        from the currently free quote balance.
        """
        if self.cfg.sizing == "balance":
            balance = await venue.get_balance_by_asset(quote)
            self.logger.info(f"👛 {quote} balance on {venue.name}: {balance.free}")
            notional = balance.free
        else:
            notional = trade_amount
        return round_down(notional / buy_price, self.cfg.order_precision)

    async def wait_for_settlement(self, venue: ExchangeAdapter, asset: str) -> float:
        """
        Polls `venue` until the spendable `asset` balance is positive and
        returns it. Raises SettlementTimeout after `max_poll_attempts`.
        """
        attempts = 0
        spendable = 0.0
        while attempts < self.cfg.max_poll_attempts:
            attempts += 1
            try:
                balance = await venue.get_balance_by_asset(asset)
            except VenueError as e:
                self.logger.warning(f"⏳ {venue.name.upper()} balance check failed ({attempts}): {e}")
            else:
                spendable = self.spendable(balance.free)
                if spendable > 0:
                    self.logger.info(f"✅ Spendable {asset} on {venue.name}: {spendable:.6f}")
                    return spendable
                self.logger.info(
                    f"⏳ Spendable {asset} on {venue.name}: {spendable:.6f} ({attempts}) - waiting for balance to update..."
                )

            if attempts < self.cfg.max_poll_attempts:
                await asyncio.sleep(self.cfg.poll_interval_seconds)

        raise SettlementTimeout(
            f"{asset} on {venue.name} not settled after {attempts} checks",
            venue=venue.name,
            asset=asset,
            attempts=attempts,
            details={"last_spendable": spendable},
        )
