# cexarb/market_engine.py
import logging
from typing import Dict, List

import ccxt.async_support as ccxt

from .config import Settings, VenueCredentials
from .venue import CcxtVenue


class MarketEngine:
    """
    Manages REST API connections to the two venues.
    Responsible for initial diagnostics, authentication verification,
    and handing ready-to-use adapters to the rest of the engine.
    """
    def __init__(self, settings: Settings, logger: logging.Logger):
        self.settings = settings
        self.logger = logger
        self.venues: Dict[str, CcxtVenue] = {}

    def _build_client(self, creds: VenueCredentials) -> ccxt.Exchange:
        if not hasattr(ccxt, creds.name):
            raise ValueError(f"ccxt has no exchange named '{creds.name}'")
        ex_class = getattr(ccxt, creds.name)
        options = {'defaultType': 'spot'}
        options.update(creds.options)
        client = ex_class({
            'apiKey': creds.api_key,
            'secret': creds.secret,
            'password': creds.password,  # OKX/KuCoin require password
            'timeout': self.settings.system.network_timeout_ms,
            'enableRateLimit': True,
            'options': options,
        })
        if self.settings.system.environment == 'testnet':
            client.set_sandbox_mode(True)
        return client

    async def initialize(self) -> bool:
        """
        Connects to every venue and performs a connectivity test.
        Returns False if ANY venue fails the diagnostic.
        """
        all_connected = True
        self.logger.info("📡 TESTING EXCHANGE CONNECTIONS...")

        for creds in self.settings.venues:
            name = creds.name
            try:
                client = self._build_client(creds)
            except ValueError as e:
                self.logger.critical(f"   ❌ {name.upper():<10} | {e}")
                all_connected = False
                continue

            try:
                # Public API: connectivity and market metadata
                await client.load_markets()
                # Private API: key validity and permissions
                await client.fetch_balance()

                self.venues[name] = CcxtVenue(name, client, self.logger)
                self.logger.info(f"   ✅ {name.upper():<10} | Markets: {len(client.markets)} | Auth: OK")
                continue

            except ccxt.AuthenticationError:
                self.logger.critical(f"   ❌ {name.upper():<10} | AUTH FAILED: Invalid API Key or Secret.")
            except ccxt.PermissionDenied:
                self.logger.critical(f"   ❌ {name.upper():<10} | PERMISSION DENIED: Key missing 'Spot Trading', 'Withdraw' or 'IP Whitelist' permissions.")
            except ccxt.AccountSuspended:
                self.logger.critical(f"   ❌ {name.upper():<10} | ACCOUNT SUSPENDED: Contact support immediately.")
            except ccxt.RequestTimeout:
                self.logger.error(f"   ❌ {name.upper():<10} | TIMEOUT: Exchange API is slow or down.")
            except ccxt.ExchangeNotAvailable:
                self.logger.error(f"   ❌ {name.upper():<10} | MAINTENANCE: Exchange is currently offline.")
            except ccxt.BaseError as e:
                self.logger.critical(f"   ❌ {name.upper():<10} | UNKNOWN ERROR: {e}")

            all_connected = False
            await client.close()

        return all_connected

    def ordered_venues(self) -> List[CcxtVenue]:
        """Venues in configuration order, which is also the price tie-break order."""
        return [self.venues[c.name] for c in self.settings.venues if c.name in self.venues]

    async def shutdown(self):
        """
        Gracefully closes all REST API sessions.
        """
        for venue in self.venues.values():
            await venue.close()
        self.venues.clear()
