# cexarb/aggregator.py
import asyncio
import logging
from typing import List, Sequence, Tuple

from .config import SymbolMap
from .errors import InsufficientData, QuoteUnavailable
from .models import FeeQuote, Quote, RankedPair
from .risk_engine import RiskEngine
from .venue import ExchangeAdapter


class PriceAggregator:
    """
    Queries every venue concurrently and ranks them by price.
    One venue failing never fails the others.
    """
    def __init__(self, venues: Sequence[ExchangeAdapter], symbols: SymbolMap,
                 risk: RiskEngine, logger: logging.Logger):
        if len(venues) < 2:
            raise ValueError("PriceAggregator needs at least two venues")
        self.venues = list(venues)
        self.symbols = symbols
        self.risk = risk
        self.logger = logger

    async def _fetch_one(self, venue: ExchangeAdapter, base: str, quote: str) -> Tuple[Quote, FeeQuote]:
        local_base = self.symbols.local(venue.name, base)
        local_quote = self.symbols.local(venue.name, quote)
        price, fee = await asyncio.gather(
            venue.get_price(local_base, local_quote),
            venue.get_trading_fee_rate(local_base, local_quote),
            return_exceptions=True,
        )

        if isinstance(price, BaseException) or price is None:
            raise QuoteUnavailable(
                f"{venue.name} returned no price for {local_base}/{local_quote}",
                venue=venue.name,
                details={"error": repr(price)} if isinstance(price, BaseException) else {},
            )
        quote_obj = Quote(venue=venue.name, price=float(price))
        if not self.risk.validate_quote(quote_obj):
            raise QuoteUnavailable(f"{venue.name} quoted an invalid price {price}", venue=venue.name)

        if isinstance(fee, BaseException) or fee is None:
            if isinstance(fee, BaseException):
                self.logger.warning(f"{venue.name.upper()} | fee lookup failed ({fee}); assuming 0%")
            fee = FeeQuote(venue=venue.name, maker_fee_pct=0.0, taker_fee_pct=0.0)
        return quote_obj, fee

    async def fetch_quotes(self, base: str, quote: str) -> List[Tuple[Quote, FeeQuote]]:
        """All valid (quote, fee) pairs, in venue order."""
        results = await asyncio.gather(
            *(self._fetch_one(v, base, quote) for v in self.venues),
            return_exceptions=True,
        )
        valid: List[Tuple[Quote, FeeQuote]] = []
        for venue, res in zip(self.venues, results):
            if isinstance(res, QuoteUnavailable):
                self.logger.warning(f"   ⚠️  {venue.name.upper()}: {res}")
                continue
            if isinstance(res, BaseException):
                self.logger.error(f"   ⚠️  {venue.name.upper()}: unexpected quote error: {res!r}")
                continue
            valid.append(res)
        return valid

    async def fetch_ranked(self, base: str, quote: str) -> RankedPair:
        """
        Highest price first: index 0 is where the asset is sold,
        index 1 where it is bought. Equal prices keep venue order.
        """
        valid = await self.fetch_quotes(base, quote)
        if len(valid) < 2:
            raise InsufficientData(
                f"Not enough data for arbitrage on {base}/{quote}: {len(valid)} valid quote(s)",
                {"venues": [q.venue for q, _ in valid]},
            )

        # sorted() is stable, so ties keep configuration order
        ranked = sorted(valid, key=lambda item: item[0].price, reverse=True)
        (sell, sell_fee), (buy, buy_fee) = ranked[0], ranked[1]
        return RankedPair(sell=sell, buy=buy, sell_fee=sell_fee, buy_fee=buy_fee)
