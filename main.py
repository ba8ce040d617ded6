# main.py
import argparse
import asyncio
import sys
from typing import List, Optional

import questionary
from dotenv import load_dotenv
from rich.console import Console

from cexarb.aggregator import PriceAggregator
from cexarb.config import Settings, load_config
from cexarb.errors import ConfigError
from cexarb.execution import ExecutionService
from cexarb.inventory import InventoryEngine
from cexarb.logger import setup_console_logger
from cexarb.market_engine import MarketEngine
from cexarb.models import ArbitragePlan, MarginResult
from cexarb.notifier import build_notifier
from cexarb.risk_engine import RiskEngine
from cexarb.strategy import StrategyEngine, auto_confirm

# --- CLI HELPERS ---

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Two-venue spot arbitrage bot")
    parser.add_argument("base", nargs="?", default="XMR", help="Base asset to trade (default: XMR)")
    parser.add_argument("quote", nargs="?", default=None, help="Quote asset (default: strategy.quote_asset)")
    parser.add_argument("amount", nargs="?", type=float, default=None, help="Trade amount in quote asset")
    parser.add_argument("--config", default="config.yaml", help="Path to the YAML config")
    parser.add_argument("--scan", action="store_true", help="Sweep strategy.scan_assets instead of one pair")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--manual", dest="mode", action="store_const", const="manual",
                      help="Ask for confirmation before every trade")
    mode.add_argument("--auto", dest="mode", action="store_const", const="auto",
                      help="Execute profitable plans without asking")
    parser.add_argument("--sizing", choices=["input", "balance"], default=None,
                        help="Size the buy leg from the input amount or the free balance")
    parser.add_argument("--dry-run", action="store_true", help="Log the legs instead of trading")
    return parser.parse_args(argv)


async def manual_confirm(plan: ArbitragePlan, margin: MarginResult) -> bool:
    """Blocks for an operator yes/no before the buy leg."""
    answer = await questionary.confirm(
        "⚠️  System running on manual mode, proceed with this trade?", default=False
    ).ask_async()
    return bool(answer)


# --- MAIN CONTROLLER ---

class ArbitrageBot:
    def __init__(self, settings: Settings, args: argparse.Namespace):
        self.settings = settings
        self.args = args
        self.logger = setup_console_logger("cexarb", settings.system.log_level, settings.system.log_file)
        self.market = MarketEngine(settings, self.logger)
        self.notifier = build_notifier(settings.notifications, self.logger)
        self.risk = RiskEngine(settings.strategy, self.logger)

    def _build_strategy(self) -> StrategyEngine:
        s = self.settings
        venues = self.market.ordered_venues()
        inventory = InventoryEngine(s.execution, self.logger)
        executor = ExecutionService(
            {v.name: v for v in venues}, inventory, s.symbols, s.wallets,
            s.execution, self.logger, dry_run=s.system.dry_run,
        )
        aggregator = PriceAggregator(venues, s.symbols, self.risk, self.logger)
        confirm = manual_confirm if s.execution.mode == "manual" else auto_confirm
        return StrategyEngine(aggregator, self.risk, executor, s.fees, self.notifier,
                              self.logger, confirm=confirm, console=Console())

    async def run(self):
        s = self.settings
        quote = (self.args.quote or s.strategy.quote_asset).upper()
        amount = self.args.amount if self.args.amount is not None else s.strategy.trade_amount
        try:
            print("Initializing Diagnostic Checks...")
            await self.notifier.start()
            is_healthy = await self.market.initialize()
            if not is_healthy:
                print("❌ Diagnostic Failed. Check API Keys.")
                return

            strategy = self._build_strategy()
            self.logger.info(
                f"Mode: {s.execution.mode} | Sizing: {s.execution.sizing} | Dry run: {s.system.dry_run}"
            )
            if self.args.scan:
                await strategy.run_universe(
                    s.strategy.scan_assets, quote, amount,
                    s.strategy.asset_delay_seconds, s.strategy.tick_delay_seconds,
                )
            else:
                await strategy.run_pair(self.args.base.upper(), quote, amount, s.strategy.tick_delay_seconds)
        finally:
            print("Shutting down resources...")
            await self.market.shutdown()
            await self.notifier.close()


def apply_cli_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    if args.mode:
        settings.execution.mode = args.mode
    if args.sizing:
        settings.execution.sizing = args.sizing
    if args.dry_run:
        settings.system.dry_run = True
    return settings


if __name__ == "__main__":
    load_dotenv()
    cli_args = parse_args()
    try:
        conf = apply_cli_overrides(load_config(cli_args.config), cli_args)
    except ConfigError as e:
        print(f"❌ Configuration error: {e}")
        sys.exit(2)

    if cli_args.scan and not conf.strategy.scan_assets:
        print("❌ --scan needs strategy.scan_assets in the config.")
        sys.exit(2)

    try:
        bot = ArbitrageBot(conf, cli_args)
        try:
            import uvloop
            asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
        except ImportError:
            pass
        asyncio.run(bot.run())
    except KeyboardInterrupt:
        print("\n🛑 Bot Stopped by User.")
        sys.exit()
