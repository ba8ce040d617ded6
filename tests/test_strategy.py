"""
Tests for the scan tick and the scan loops
"""

from typing import List

import pytest

from cexarb.aggregator import PriceAggregator
from cexarb.execution import ExecutionService
from cexarb.inventory import InventoryEngine
from cexarb.models import Decision, ExecutionState
from cexarb.risk_engine import RiskEngine
from cexarb.strategy import StrategyEngine


class RecordingNotifier:
    def __init__(self):
        self.messages: List[str] = []

    def notify(self, message: str):
        self.messages.append(message)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def engine_factory(btse, coinex, symbol_map, wallet_book, fee_table, execution_config,
                   strategy_config, notifier, logger):
    def build(confirm=None, dry_run=True):
        risk = RiskEngine(strategy_config, logger)
        aggregator = PriceAggregator([btse, coinex], symbol_map, risk, logger)
        execution = ExecutionService(
            {"btse": btse, "coinex": coinex}, InventoryEngine(execution_config, logger),
            symbol_map, wallet_book, execution_config, logger, dry_run=dry_run,
        )
        kwargs = {"confirm": confirm} if confirm else {}
        return StrategyEngine(aggregator, risk, execution, fee_table, notifier, logger, **kwargs)
    return build


class TestEvaluate:
    @pytest.mark.asyncio
    async def test_profitable_plan_is_executed(self, engine_factory, notifier):
        outcome = await engine_factory().evaluate("xmr", "usdt", 1000.0)

        assert outcome.decision is Decision.EXECUTE
        assert outcome.plan.buy_venue == "btse"
        assert outcome.plan.sell_venue == "coinex"
        assert outcome.margin.net_profit == pytest.approx(44.876575)
        assert outcome.confirmed is True
        assert outcome.report.state is ExecutionState.DONE
        assert len(notifier.messages) == 2
        assert notifier.messages[0].startswith("✅ Arbitrage opportunity for XMR USDT !")
        assert "DRY RUN" in notifier.messages[1]

    @pytest.mark.asyncio
    async def test_live_execution_runs_the_legs(self, engine_factory, btse, coinex):
        btse.set_balance("XMR", 5.0)
        coinex.set_balance("XMR", 2.0)

        outcome = await engine_factory(dry_run=False).evaluate("XMR", "USDT", 1000.0)

        assert outcome.report.succeeded
        assert btse.called("spot_trade_tokens")[0][3] == "BUY"
        assert coinex.called("spot_trade_tokens")[0][3] == "SELL"

    @pytest.mark.asyncio
    async def test_small_trade_is_skipped(self, engine_factory, notifier, btse, coinex):
        outcome = await engine_factory().evaluate("XMR", "USDT", 10.0)

        assert outcome.decision is Decision.SKIP
        assert outcome.margin.net_profit == pytest.approx(-2.5454645)
        assert outcome.report is None
        assert notifier.messages == []
        assert not btse.called("spot_trade_tokens")

    @pytest.mark.asyncio
    async def test_large_loss_raises_an_alert(self, engine_factory, notifier, btse):
        # btse charges 4.54 TRUMP to withdraw, far more than 10 USDT buys
        outcome = await engine_factory().evaluate("TRUMP", "USDT", 10.0)

        assert outcome.decision is Decision.ALERT
        assert outcome.margin.net_profit <= -5.0
        assert outcome.report is None
        assert len(notifier.messages) == 1
        assert not btse.called("spot_trade_tokens")

    @pytest.mark.asyncio
    async def test_rejected_confirmation_cancels_the_trade(self, engine_factory, notifier):
        seen = []

        async def reject(plan, margin):
            seen.append(plan.symbol)
            return False

        outcome = await engine_factory(confirm=reject).evaluate("XMR", "USDT", 1000.0)

        assert seen == ["XMR/USDT"]
        assert outcome.decision is Decision.EXECUTE
        assert outcome.confirmed is False
        assert outcome.report is None
        assert len(notifier.messages) == 1

    @pytest.mark.asyncio
    async def test_one_quote_skips_the_tick(self, engine_factory, coinex, notifier):
        coinex.price = None

        outcome = await engine_factory().evaluate("XMR", "USDT", 1000.0)

        assert outcome.decision is None
        assert outcome.plan is None
        assert "Not enough data" in outcome.skipped_reason
        assert notifier.messages == []

    @pytest.mark.asyncio
    async def test_unexpected_error_never_escapes(self, engine_factory, monkeypatch):
        engine = engine_factory()

        async def boom(base, quote):
            raise RuntimeError("exchange exploded")

        monkeypatch.setattr(engine.aggregator, "fetch_ranked", boom)

        outcome = await engine.evaluate("XMR", "USDT", 1000.0)

        assert "exchange exploded" in outcome.skipped_reason

    @pytest.mark.asyncio
    async def test_ticks_are_independent(self, engine_factory, coinex):
        engine = engine_factory()

        first = await engine.evaluate("XMR", "USDT", 1000.0)
        coinex.price = 99.0
        second = await engine.evaluate("XMR", "USDT", 1000.0)

        assert first.plan.sell_venue == "coinex"
        assert second.plan.sell_venue == "btse"


class TestLoops:
    @pytest.mark.asyncio
    async def test_run_pair_stops_after_iterations(self, engine_factory, btse):
        engine = engine_factory()

        await engine.run_pair("XMR", "USDT", 10.0, tick_delay=0, iterations=3)

        assert len(btse.called("get_price")) == 3

    @pytest.mark.asyncio
    async def test_run_universe_sweeps_every_asset(self, engine_factory, monkeypatch):
        engine = engine_factory()
        seen = []

        async def record(base, quote, amount):
            seen.append((base, quote, amount))

        monkeypatch.setattr(engine, "evaluate", record)

        await engine.run_universe(["XMR", "TRUMP"], "USDT", 10.0, asset_delay=0, tick_delay=0, iterations=2)

        assert seen == [
            ("XMR", "USDT", 10.0),
            ("TRUMP", "USDT", 10.0),
            ("XMR", "USDT", 10.0),
            ("TRUMP", "USDT", 10.0),
        ]

    @pytest.mark.asyncio
    async def test_run_universe_survives_failing_asset(self, engine_factory, coinex, btse):
        engine = engine_factory()
        coinex.price_error = RuntimeError("down")

        await engine.run_universe(["XMR", "TRUMP"], "USDT", 10.0, asset_delay=0, tick_delay=0, iterations=1)

        assert len(btse.called("get_price")) == 2

    @pytest.mark.asyncio
    async def test_run_universe_needs_assets(self, engine_factory):
        with pytest.raises(ValueError):
            await engine_factory().run_universe([], "USDT", 10.0, 0, 0, iterations=1)
