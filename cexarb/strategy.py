# cexarb/strategy.py
import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sequence

from rich.console import Console

from .aggregator import PriceAggregator
from .config import FeeTable
from .dashboard import format_flow, format_report, format_summary, generate_report
from .errors import ArbitrageError, InsufficientData
from .execution import ExecutionService
from .margin import build_plan, compute_margin
from .models import ArbitragePlan, Decision, MarginResult, TickOutcome
from .risk_engine import RiskEngine

Confirm = Callable[[ArbitragePlan, MarginResult], Awaitable[bool]]


async def auto_confirm(plan: ArbitragePlan, margin: MarginResult) -> bool:
    return True


class StrategyEngine:
    """
    Polling strategy.
    Each tick re-derives the world from scratch: rank venues, price the
    round trip, decide, and optionally execute. Nothing carries over.
    """
    def __init__(self, aggregator: PriceAggregator, risk: RiskEngine, execution: ExecutionService,
                 fees: FeeTable, notifier, logger: logging.Logger,
                 confirm: Confirm = auto_confirm, console: Optional[Console] = None):
        self.aggregator = aggregator
        self.risk = risk
        self.execution = execution
        self.fees = fees
        self.notifier = notifier
        self.logger = logger
        self.confirm = confirm
        self.console = console

    async def evaluate(self, base: str, quote: str, trade_amount: float) -> TickOutcome:
        """
        One scan tick. Never raises: every failure becomes a skipped tick
        with a logged reason.
        """
        base, quote = base.upper(), quote.upper()
        outcome = TickOutcome(base=base, quote=quote)
        try:
            await self._evaluate(outcome, trade_amount)
        except InsufficientData as e:
            outcome.skipped_reason = str(e)
            self.logger.warning(f"   ⚠️  {e}")
        except ArbitrageError as e:
            outcome.skipped_reason = str(e)
            self.logger.error(f"❌ Error in arbitrage calculation for {base}/{quote}: {e}")
        except Exception as e:
            outcome.skipped_reason = repr(e)
            self.logger.exception(f"❌ Unexpected error in tick for {base}/{quote}: {e!r}")
        return outcome

    async def _evaluate(self, outcome: TickOutcome, trade_amount: float):
        base, quote = outcome.base, outcome.quote
        ranked = await self.aggregator.fetch_ranked(base, quote)

        plan = build_plan(ranked, base, quote, trade_amount, self.fees)
        outcome.plan = plan
        if not self.risk.pre_trade_check(plan):
            outcome.skipped_reason = "plan rejected by pre-trade check"
            return

        margin = compute_margin(plan, self.fees.sell_side_withdraw_fee)
        outcome.margin = margin
        if self.console is not None:
            self.console.print(generate_report(plan, margin, self.fees.sell_side_withdraw_fee))

        decision = self.risk.decide(margin)
        outcome.decision = decision
        summary = format_summary(plan, margin)

        if decision is Decision.ALERT:
            self.logger.warning(f"📉 Large loss on {plan.symbol}: {margin.net_profit:.4f} {quote}")
            self.notifier.notify(summary)
            return

        if decision is Decision.SKIP:
            self.logger.info(
                f"❌ No profitable arbitrage found on {base} {quote}, P/L: {margin.net_profit:.4f} {quote}"
            )
            return

        self.logger.info(summary)
        self.logger.info(format_flow(plan, margin, self.fees.sell_side_withdraw_fee))
        self.notifier.notify(summary)

        outcome.confirmed = await self.confirm(plan, margin)
        if not outcome.confirmed:
            self.logger.info("   ❌ Trade Canceled.")
            return

        report = await self.execution.execute(plan)
        outcome.report = report
        message = format_report(report)
        if report.succeeded:
            self.logger.info(message)
        else:
            self.logger.error(message)
        self.notifier.notify(message)

    async def run_pair(self, base: str, quote: str, trade_amount: float, tick_delay: float,
                       iterations: Optional[int] = None):
        """
        Re-checks one pair forever (or `iterations` times), sleeping
        `tick_delay` seconds between ticks.
        """
        self.logger.info(f"🚀 Starting arbitrage scan: {base} -> {quote} (Amount: {trade_amount} {quote})")
        done = 0
        while iterations is None or done < iterations:
            await self.evaluate(base, quote, trade_amount)
            done += 1
            if iterations is not None and done >= iterations:
                break
            self.logger.info(f"🔄 Rechecking arbitrage in {tick_delay:g} seconds...")
            await asyncio.sleep(tick_delay)

    async def run_universe(self, assets: Sequence[str], quote: str, trade_amount: float,
                           asset_delay: float, tick_delay: float, iterations: Optional[int] = None):
        """
        Sweeps every base asset against one quote asset, pausing
        `asset_delay` between assets to respect venue rate limits, then
        starts the next sweep after `tick_delay`.
        """
        if not assets:
            raise ValueError("run_universe needs at least one asset")
        sweeps = 0
        while iterations is None or sweeps < iterations:
            remaining = len(assets)
            self.logger.info(f"✅ Total tokens to scan: {remaining}")
            for asset in assets:
                remaining -= 1
                self.logger.info(f"✅ Checking opportunity: {asset}-{quote} | Tokens left to scan: {remaining}")
                await self.evaluate(asset, quote, trade_amount)
                if remaining:
                    await asyncio.sleep(asset_delay)
            sweeps += 1
            if iterations is not None and sweeps >= iterations:
                break
            await asyncio.sleep(tick_delay)
