# cexarb/execution.py
import logging
from typing import Dict

from .config import ExecutionConfig, SymbolMap, WalletBook
from .errors import OrderRejected, VenueError, WithdrawalRejected
from .inventory import InventoryEngine
from .models import ArbitragePlan, ExecutionReport, ExecutionResult, ExecutionState
from .venue import ExchangeAdapter


class ExecutionService:
    """
    Runs one arbitrage plan through buy -> withdraw -> sell.

    The sequence is strictly linear. Settlement waits block until funds
    arrive or the polling budget runs out. Any failure moves the run to
    FAILED and leaves the effects of earlier legs in place; there is no
    automatic unwind across venues.
    """
    def __init__(self, venues: Dict[str, ExchangeAdapter], inventory: InventoryEngine,
                 symbols: SymbolMap, wallets: WalletBook, config: ExecutionConfig,
                 logger: logging.Logger, dry_run: bool = False):
        self.venues = venues
        self.inventory = inventory
        self.symbols = symbols
        self.wallets = wallets
        self.cfg = config
        self.logger = logger
        self.dry_run = dry_run

    def _transition(self, report: ExecutionReport, state: ExecutionState):
        self.logger.info(f"   ➡️  {report.plan.symbol}: {report.state.value} -> {state.value}")
        report.last_state = report.state
        report.state = state

    def _fail(self, report: ExecutionReport, reason: str) -> ExecutionReport:
        report.reason = reason
        report.last_state = report.state
        report.state = ExecutionState.FAILED
        self.logger.error(f"   🔴 {report.plan.symbol} FAILED during {report.last_state.value}: {reason}")
        return report

    async def execute(self, plan: ArbitragePlan) -> ExecutionReport:
        report = ExecutionReport(plan=plan)

        if self.dry_run:
            return self._simulate(report)

        buy_venue = self.venues[plan.buy_venue]
        sell_venue = self.venues[plan.sell_venue]

        self.logger.info(
            f"⚡ EXECUTION TRIGGERED: {plan.symbol} | Buy {plan.buy_venue} -> Sell {plan.sell_venue} | Amt: {plan.trade_amount} {plan.quote}"
        )
        try:
            await self._buy_leg(report, buy_venue)

            self._transition(report, ExecutionState.AWAIT_BUY_SETTLEMENT)
            base_on_buy = self.symbols.local(buy_venue.name, plan.base)
            settled = await self.inventory.wait_for_settlement(buy_venue, base_on_buy)

            await self._withdraw_leg(report, buy_venue, sell_venue, plan.base, settled)

            self._transition(report, ExecutionState.AWAIT_DEPOSIT_SETTLEMENT)
            base_on_sell = self.symbols.local(sell_venue.name, plan.base)
            sellable = await self.inventory.wait_for_settlement(sell_venue, base_on_sell)

            await self._sell_leg(report, sell_venue, sellable)
        except VenueError as e:
            return self._fail(report, str(e))

        self._transition(report, ExecutionState.DONE)
        self.logger.info(f"✅ SUCCESS: {plan.symbol} round trip complete, sold {report.sold_amount} {plan.base} on {plan.sell_venue}")

        if self.cfg.return_quote:
            await self._return_quote(report, sell_venue, buy_venue)
        return report

    async def _buy_leg(self, report: ExecutionReport, venue: ExchangeAdapter):
        plan = report.plan
        quote = self.symbols.local(venue.name, plan.quote)
        size = await self.inventory.buy_size(venue, quote, plan.trade_amount, plan.buy_price)
        report.buy_size = size
        if size <= 0:
            raise OrderRejected(f"Buy size for {plan.base} on {venue.name} rounds to zero", venue=venue.name)

        self._transition(report, ExecutionState.BUY_PLACED)
        self.logger.info(f"🛒 Starting buy action on {venue.name}, buy size: {size} {plan.base}")
        base = self.symbols.local(venue.name, plan.base)
        result = await venue.spot_trade_tokens(base, quote, "BUY", size, price=plan.buy_price)
        report.results.append(result)
        if not result.ok:
            raise OrderRejected(f"Action buy error code ({result.code}): {result.message}",
                                venue=venue.name, code=result.code)
        self.logger.info(f"💰 Buy {plan.base} on {venue.name} success: {result.message}")

    async def _resolve_address(self, destination: ExchangeAdapter, asset: str) -> str:
        network = self.cfg.network
        address = self.wallets.address(destination.name, asset, network)
        if not address:
            local = self.symbols.local(destination.name, asset)
            address = await destination.get_wallet_address(local, network)
        if not address:
            raise WithdrawalRejected(
                f"No {asset} deposit address on {destination.name} for network {network}",
                venue=destination.name,
            )
        return address

    def _withdrawable(self, source: ExchangeAdapter, asset: str, settled: float) -> float:
        """Settled amount minus the flat buffer held back for `asset`."""
        amount = settled - self.cfg.buffer_for(asset)
        if amount <= 0:
            raise WithdrawalRejected(
                f"{settled:.6f} {asset} on {source.name} does not cover the withdraw buffer of {self.cfg.buffer_for(asset):g}",
                venue=source.name,
            )
        return amount

    async def _withdraw_leg(self, report: ExecutionReport, source: ExchangeAdapter,
                            destination: ExchangeAdapter, asset: str, settled: float):
        amount = self._withdrawable(source, asset, settled)
        address = await self._resolve_address(destination, asset)

        self._transition(report, ExecutionState.WITHDRAW_INITIATED)
        self.logger.info(f"🔁 Withdrawing {amount:.6f} {asset} from {source.name} to {destination.name} ({self.cfg.network})")
        local = self.symbols.local(source.name, asset)
        result = await source.withdraw_token(local, amount, address, self.cfg.network)
        report.results.append(result)
        if not result.ok:
            raise WithdrawalRejected(f"Withdraw error code ({result.code}): {result.message}",
                                     venue=source.name, code=result.code)
        report.withdrawn_amount = amount

    async def _sell_leg(self, report: ExecutionReport, venue: ExchangeAdapter, amount: float):
        plan = report.plan
        self._transition(report, ExecutionState.SELL_PLACED)
        self.logger.info(f"🔄 Selling {amount:.6f} {plan.base} on {venue.name}")
        base = self.symbols.local(venue.name, plan.base)
        quote = self.symbols.local(venue.name, plan.quote)
        result = await venue.spot_trade_tokens(base, quote, "SELL", amount)
        report.results.append(result)
        if not result.ok:
            raise OrderRejected(f"Action sell error code ({result.code}): {result.message}",
                                venue=venue.name, code=result.code)
        report.sold_amount = amount

    async def _return_quote(self, report: ExecutionReport, source: ExchangeAdapter, destination: ExchangeAdapter):
        """
        Moves the quote proceeds back to the buy venue. Runs only after DONE;
        its outcome is recorded on the report without changing the final state.
        """
        quote = report.plan.quote
        try:
            local = self.symbols.local(source.name, quote)
            settled = await self.inventory.wait_for_settlement(source, local)
            amount = self._withdrawable(source, quote, settled)
            address = await self._resolve_address(destination, quote)
            self.logger.info(f"🔁 Transfer back {amount:.4f} {quote} from {source.name} to {destination.name}")
            result = await source.withdraw_token(local, amount, address, self.cfg.network)
        except VenueError as e:
            result = ExecutionResult.failure(str(e))

        report.return_result = result
        if result.ok:
            self.logger.info(f"💵 Return transfer submitted: {result.message}")
        else:
            self.logger.error(f"⚠️ Return transfer of {quote} failed: {result.message}")

    def _simulate(self, report: ExecutionReport) -> ExecutionReport:
        plan = report.plan
        self.logger.info(
            f"🔵 DRY RUN: Buy {plan.base} on {plan.buy_venue} @ {plan.buy_price:.4f} -> "
            f"withdraw to {plan.sell_venue} -> sell @ {plan.sell_price:.4f}"
        )
        report.simulated = True
        report.buy_size = plan.trade_amount / plan.buy_price
        report.sold_amount = report.buy_size
        report.last_state = ExecutionState.SELL_PLACED
        report.state = ExecutionState.DONE
        return report
