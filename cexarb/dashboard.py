# cexarb/dashboard.py
from rich.console import Group
from rich.panel import Panel
from rich.table import Table

from .models import ArbitragePlan, ExecutionReport, MarginResult


def price_table(plan: ArbitragePlan) -> Table:
    table = Table(title="📡 Price table")
    table.add_column("Pair", style="cyan")
    table.add_column("Buy Exchange", style="green")
    table.add_column("Buy Price", justify="right")
    table.add_column("Buy Fee %", justify="right")
    table.add_column("Sell Exchange", style="red")
    table.add_column("Sell Price", justify="right")
    table.add_column("Sell Fee %", justify="right")
    table.add_row(
        plan.symbol,
        plan.buy_venue,
        f"{plan.buy_price:.4f}",
        f"{plan.buy_fee_pct:g}",
        plan.sell_venue,
        f"{plan.sell_price:.4f}",
        f"{plan.sell_fee_pct:g}",
    )
    return table


def trade_table(plan: ArbitragePlan, margin: MarginResult, sell_side_withdraw_fee: float) -> Table:
    table = Table(title="💰 Trade table")
    table.add_column("Amount In", justify="right")
    table.add_column(f"{plan.base} Bought", justify="right")
    table.add_column("Buy-side Withdraw Fee", justify="right")
    table.add_column(f"{plan.quote} Out", justify="right")
    table.add_column("Sell-side Withdraw Fee", justify="right")
    table.add_column("P/L", justify="right")

    style = "green" if margin.net_profit > 0 else "red"
    table.add_row(
        f"{plan.trade_amount:g} {plan.quote}",
        f"{margin.base_received:.4f} {plan.base}",
        f"{plan.withdraw_fee_base:g} {plan.base}",
        f"{margin.final_quote_amount:.4f} {plan.quote}",
        f"{sell_side_withdraw_fee:g} {plan.quote}",
        f"[{style}]{margin.net_profit:.4f} {plan.quote} ({margin.profit_pct:.2f}%)[/{style}]",
    )
    return table


def generate_report(plan: ArbitragePlan, margin: MarginResult, sell_side_withdraw_fee: float) -> Group:
    """
    Both tables plus a one-line verdict panel for the console.
    """
    colour = "green" if margin.net_profit > 0 else "red"
    footer = Panel(
        f"[bold {colour}]Estimated P/L: {margin.net_profit:.4f} {plan.quote} ({margin.profit_pct:.2f} %)[/bold {colour}]",
        style="white on blue",
    )
    return Group(price_table(plan), trade_table(plan, margin, sell_side_withdraw_fee), footer)


def format_summary(plan: ArbitragePlan, margin: MarginResult) -> str:
    """Plain-text summary used for chat notifications."""
    return (
        f"✅ Arbitrage opportunity for {plan.base} {plan.quote} !\n"
        f"   💰 Trading Amount: {plan.trade_amount:g} {plan.quote}\n"
        f"   🟢 Buy {plan.base} on {plan.buy_venue} at {plan.buy_price:.4f}\n"
        f"   🔴 Sell {plan.base} on {plan.sell_venue} at {plan.sell_price:.4f}\n"
        f"   💵 Estimated Profit: {margin.net_profit:.4f} {plan.quote} ({margin.profit_pct:.2f} %)"
    )


def format_flow(plan: ArbitragePlan, margin: MarginResult, sell_side_withdraw_fee: float) -> str:
    """Step-by-step narration of the round trip the plan would make."""
    return (
        f"🔢 Arbitrage flow:\n"
        f"   🔢 Convert {plan.trade_amount:g} {plan.quote} -> {plan.base}, receive {margin.base_received:.4f} {plan.base} "
        f"on {plan.buy_venue} (BUY, Fee: {plan.buy_fee_pct:g}%)\n"
        f"   🔁 Transfer {plan.base} to {plan.sell_venue} (Fee: {plan.withdraw_fee_base:g} {plan.base})\n"
        f"   🔄 Convert back {plan.base} -> {plan.quote}, receive {margin.quote_received:.4f} {plan.quote} "
        f"on {plan.sell_venue} (SELL, Fee: {plan.sell_fee_pct:g}%)\n"
        f"   🔁 Transfer back {plan.quote} to {plan.buy_venue} (Fee: {sell_side_withdraw_fee:g} {plan.quote})\n"
        f"   💰 Final {plan.quote} amount: {margin.final_quote_amount:.4f}, PNL: {margin.net_profit:.4f}"
    )


def format_report(report: ExecutionReport) -> str:
    plan = report.plan
    if report.succeeded:
        prefix = "🔵 DRY RUN" if report.simulated else "✅ DONE"
        return f"{prefix}: {plan.symbol} bought {report.buy_size:g} on {plan.buy_venue}, sold {report.sold_amount:g} on {plan.sell_venue}"
    return f"🔴 FAILED: {plan.symbol} during {report.last_state.value}: {report.reason}"
