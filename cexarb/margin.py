# cexarb/margin.py
from .config import FeeTable
from .models import ArbitragePlan, MarginResult, RankedPair


def build_plan(ranked: RankedPair, base: str, quote: str, trade_amount: float, fees: FeeTable) -> ArbitragePlan:
    """Turns a ranked venue pair into an immutable plan for this tick."""
    return ArbitragePlan(
        base=base,
        quote=quote,
        trade_amount=float(trade_amount),
        buy_venue=ranked.buy.venue,
        sell_venue=ranked.sell.venue,
        buy_price=ranked.buy.price,
        sell_price=ranked.sell.price,
        buy_fee_pct=ranked.buy_fee.maker_fee_pct,
        sell_fee_pct=ranked.sell_fee.maker_fee_pct,
        # base asset leaves the buy venue, so its flat fee applies
        withdraw_fee_base=fees.withdraw_fee(ranked.buy.venue, base),
    )


def compute_margin(plan: ArbitragePlan, sell_side_withdraw_fee: float) -> MarginResult:
    """
    Fee-adjusted result of one full round trip, in quote-asset units.

    The steps run in a fixed order, each feeding the next:
    buy fee, buy, flat base withdrawal fee, sell fee, sell,
    flat quote withdrawal fee back to the buy venue.
    Pure: the same plan always yields the same result.
    """
    tradeable_buy_amount = plan.trade_amount * (1 - plan.buy_fee_pct / 100)
    base_received = tradeable_buy_amount / plan.buy_price
    base_after_withdraw_fee = base_received - plan.withdraw_fee_base
    tradeable_sell_amount = base_after_withdraw_fee * (1 - plan.sell_fee_pct / 100)
    quote_received = tradeable_sell_amount * plan.sell_price
    final_quote_amount = quote_received - sell_side_withdraw_fee

    net_profit = final_quote_amount - plan.trade_amount
    profit_pct = net_profit / plan.trade_amount * 100

    return MarginResult(
        tradeable_buy_amount=tradeable_buy_amount,
        base_received=base_received,
        base_after_withdraw_fee=base_after_withdraw_fee,
        tradeable_sell_amount=tradeable_sell_amount,
        quote_received=quote_received,
        final_quote_amount=final_quote_amount,
        net_profit=net_profit,
        profit_pct=profit_pct,
    )
