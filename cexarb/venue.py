# cexarb/venue.py
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import ccxt.async_support as ccxt

from .errors import VenueError
from .models import Balance, ExecutionResult, FeeQuote


class ExchangeAdapter(ABC):
    """
    Uniform capability set the engine needs from a venue.
    Symbols passed in are already venue-local.
    """

    name: str

    @abstractmethod
    async def get_price(self, base: str, quote: str) -> Optional[float]:
        """Last traded price, or None when the venue has no usable data."""

    @abstractmethod
    async def get_trading_fee_rate(self, base: str, quote: str) -> Optional[FeeQuote]:
        """Maker/taker fee in percent, or None when unavailable."""

    @abstractmethod
    async def get_balance_by_asset(self, asset: str) -> Balance:
        ...

    @abstractmethod
    async def spot_trade_tokens(self, base: str, quote: str, side: str, size: float,
                                price: Optional[float] = None) -> ExecutionResult:
        """Market order of `size` base units. `price` is the reference price some venues need to cost a market buy."""

    @abstractmethod
    async def withdraw_token(self, asset: str, amount: float, address: str, network: str) -> ExecutionResult:
        ...

    @abstractmethod
    async def get_wallet_address(self, asset: str, network: str) -> Optional[str]:
        ...

    async def close(self):
        pass


class CcxtVenue(ExchangeAdapter):
    """
    ExchangeAdapter on top of a ccxt async client.
    Price and fee lookups fail soft; trades and withdrawals map ccxt errors
    to a failure ExecutionResult carrying the venue's message.
    """

    def __init__(self, name: str, client: ccxt.Exchange, logger: logging.Logger):
        self.name = name
        self.client = client
        self.logger = logger

    @staticmethod
    def _symbol(base: str, quote: str) -> str:
        return f"{base}/{quote}"

    async def get_price(self, base: str, quote: str) -> Optional[float]:
        symbol = self._symbol(base, quote)
        try:
            ticker = await self.client.fetch_ticker(symbol)
        except ccxt.BaseError as e:
            self.logger.warning(f"{self.name.upper()} | price lookup failed for {symbol}: {e}")
            return None

        price = ticker.get('last')
        if not price and ticker.get('bid') and ticker.get('ask'):
            price = (ticker['bid'] + ticker['ask']) / 2
        if not price or price <= 0:
            return None
        return float(price)

    async def get_trading_fee_rate(self, base: str, quote: str) -> Optional[FeeQuote]:
        symbol = self._symbol(base, quote)
        fee: Dict[str, Any] = {}
        try:
            if self.client.has.get('fetchTradingFee'):
                fee = await self.client.fetch_trading_fee(symbol)
            elif self.client.markets and symbol in self.client.markets:
                fee = self.client.markets[symbol]
        except ccxt.BaseError as e:
            self.logger.warning(f"{self.name.upper()} | fee lookup failed for {symbol}: {e}")
            return None

        if fee.get('maker') is None:
            return None
        # ccxt reports fractions (0.001); the engine works in percent
        taker = fee.get('taker')
        return FeeQuote(
            venue=self.name,
            maker_fee_pct=float(fee['maker']) * 100,
            taker_fee_pct=float(taker if taker is not None else fee['maker']) * 100,
        )

    async def get_balance_by_asset(self, asset: str) -> Balance:
        try:
            balance = await self.client.fetch_balance()
        except ccxt.BaseError as e:
            raise VenueError(f"Balance lookup failed for {asset}: {e}", venue=self.name) from e

        entry = balance.get(asset) or {}
        return Balance(
            free=float(entry.get('free') or 0.0),
            locked=float(entry.get('used') or 0.0),
        )

    def _precise_amount(self, symbol: str, size: float) -> float:
        if self.client.markets and symbol in self.client.markets:
            return float(self.client.amount_to_precision(symbol, size))
        return size

    async def spot_trade_tokens(self, base: str, quote: str, side: str, size: float,
                                price: Optional[float] = None) -> ExecutionResult:
        symbol = self._symbol(base, quote)
        try:
            amount = self._precise_amount(symbol, size)
            # venues with createMarketBuyOrderRequiresPrice cost the buy as amount * price
            order = await self.client.create_order(symbol, 'market', side.lower(), amount, price)
        except ccxt.BaseError as e:
            return ExecutionResult.failure(f"({self.name.upper()}) {e}")

        status = order.get('status') or 'submitted'
        return ExecutionResult(code=0, message=f"order {order.get('id')} {status}")

    async def withdraw_token(self, asset: str, amount: float, address: str, network: str) -> ExecutionResult:
        try:
            tx = await self.client.withdraw(asset, amount, address, None, {'network': network})
        except ccxt.BaseError as e:
            return ExecutionResult.failure(f"({self.name.upper()}) {e}")
        return ExecutionResult(code=0, message=f"withdrawal {tx.get('id')} {tx.get('status') or 'submitted'}")

    async def get_wallet_address(self, asset: str, network: str) -> Optional[str]:
        try:
            info = await self.client.fetch_deposit_address(asset, {'network': network})
        except ccxt.BaseError as e:
            self.logger.error(f"{self.name.upper()} | deposit address lookup failed for {asset} ({network}): {e}")
            return None
        return info.get('address') or None

    async def close(self):
        await self.client.close()
