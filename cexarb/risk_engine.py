# cexarb/risk_engine.py
import logging

from .config import StrategyConfig
from .models import ArbitragePlan, Decision, MarginResult, Quote


class RiskEngine:
    """
    Validates market data and plans, and turns a margin into a decision.
    Separates the decision 'Should we trade?' from the logic of finding the trade.
    Holds no state between ticks.
    """
    def __init__(self, config: StrategyConfig, logger: logging.Logger):
        self.cfg = config
        self.logger = logger

    def validate_quote(self, quote: Quote) -> bool:
        """Zero, negative or NaN prices are treated as missing data."""
        return quote.price == quote.price and quote.price > 0

    def pre_trade_check(self, plan: ArbitragePlan) -> bool:
        """
        The Final Gatekeeper: can this plan be executed at all?
        """
        if plan.buy_venue == plan.sell_venue:
            self.logger.warning(f"⛔ REJECTED: {plan.symbol} buy and sell venue are both {plan.buy_venue}")
            return False

        if plan.buy_price <= 0 or plan.sell_price <= 0:
            self.logger.warning(f"⛔ REJECTED: {plan.symbol} has a non-positive price")
            return False

        if plan.trade_amount <= 0:
            self.logger.warning(f"⛔ REJECTED: trade amount {plan.trade_amount} must be positive")
            return False

        return True

    def decide(self, margin: MarginResult) -> Decision:
        """
        Three-way split: execute above the profit threshold, alert at or below
        the loss threshold, stay silent in between.
        """
        if margin.net_profit > self.cfg.profit_threshold:
            return Decision.EXECUTE
        if margin.net_profit <= self.cfg.loss_alert_threshold:
            return Decision.ALERT
        return Decision.SKIP
