# cexarb/config.py
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .errors import ConfigError

DEFAULT_WITHDRAW_FEE = 0.005
DEFAULT_SELL_SIDE_WITHDRAW_FEE = 2.5

EXECUTION_MODES = ("auto", "manual")
SIZING_MODES = ("input", "balance")


class FeeTable:
    """
    Flat withdrawal fees, in units of the withdrawn asset, per venue.
    Lookup order: venue+asset, venue default, global default.
    """

    def __init__(self, withdraw: Optional[Dict[str, Dict[str, float]]] = None,
                 default: float = DEFAULT_WITHDRAW_FEE,
                 sell_side_withdraw_fee: float = DEFAULT_SELL_SIDE_WITHDRAW_FEE):
        self._withdraw = {
            venue.lower(): {asset.upper(): float(fee) for asset, fee in (fees or {}).items()}
            for venue, fees in (withdraw or {}).items()
        }
        self.default = float(default)
        self.sell_side_withdraw_fee = float(sell_side_withdraw_fee)

    def withdraw_fee(self, venue: str, asset: str) -> float:
        fees = self._withdraw.get(venue.lower(), {})
        if asset.upper() in fees:
            return fees[asset.upper()]
        return fees.get("DEFAULT", self.default)


class SymbolMap:
    """Canonical ticker -> venue-local ticker. Unmapped symbols pass through."""

    def __init__(self, mapping: Optional[Dict[str, Dict[str, str]]] = None):
        self._map = {
            venue.lower(): {k.upper(): v.upper() for k, v in (symbols or {}).items()}
            for venue, symbols in (mapping or {}).items()
        }

    def local(self, venue: str, asset: str) -> str:
        asset = asset.upper()
        return self._map.get(venue.lower(), {}).get(asset, asset)


class WalletBook:
    """Static deposit addresses: venue -> asset -> network -> address."""

    def __init__(self, wallets: Optional[Dict[str, Dict[str, Dict[str, str]]]] = None):
        self._wallets = {
            venue.lower(): {
                asset.upper(): {net.upper(): addr for net, addr in (networks or {}).items()}
                for asset, networks in (assets or {}).items()
            }
            for venue, assets in (wallets or {}).items()
        }

    def address(self, venue: str, asset: str, network: str) -> Optional[str]:
        return self._wallets.get(venue.lower(), {}).get(asset.upper(), {}).get(network.upper())


@dataclass
class VenueCredentials:
    name: str
    api_key: str = ""
    secret: str = ""
    password: str = ""
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SystemConfig:
    environment: str = "live"
    dry_run: bool = False
    log_level: str = "INFO"
    log_file: Optional[str] = None
    network_timeout_ms: int = 10000


@dataclass
class StrategyConfig:
    quote_asset: str = "USDT"
    trade_amount: float = 10.0
    profit_threshold: float = 1.0
    loss_alert_threshold: float = -5.0
    tick_delay_seconds: float = 10.0
    asset_delay_seconds: float = 2.0
    scan_assets: List[str] = field(default_factory=list)


@dataclass
class ExecutionConfig:
    mode: str = "auto"
    sizing: str = "input"
    network: str = "ERC20"
    order_precision: int = 2
    settlement_reserve_pct: float = 0.02
    poll_interval_seconds: float = 3.0
    max_poll_attempts: int = 200
    withdraw_buffer: Dict[str, float] = field(default_factory=lambda: {"USDT": 2.5})
    return_quote: bool = False

    def buffer_for(self, asset: str) -> float:
        return float(self.withdraw_buffer.get(asset.upper(), self.withdraw_buffer.get("DEFAULT", 0.0)))


@dataclass
class NotificationConfig:
    enabled: bool = False
    bot_token: str = ""
    chat_id: str = ""
    timeout_seconds: float = 10.0


@dataclass
class Settings:
    venues: List[VenueCredentials]
    system: SystemConfig = field(default_factory=SystemConfig)
    strategy: StrategyConfig = field(default_factory=StrategyConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    fees: FeeTable = field(default_factory=FeeTable)
    symbols: SymbolMap = field(default_factory=SymbolMap)
    wallets: WalletBook = field(default_factory=WalletBook)

    @property
    def venue_names(self) -> List[str]:
        return [v.name for v in self.venues]


def _section(raw: Mapping[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping", {"section": name})
    return value


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "y", "on")


def apply_env_overrides(settings: Settings, env: Mapping[str, str]) -> Settings:
    """Environment variables win over the YAML file."""
    if env.get("OPPORTUNITY_FIND"):
        settings.execution.mode = env["OPPORTUNITY_FIND"].strip().lower()
    if env.get("TRADING_AMOUNT_BY"):
        settings.execution.sizing = env["TRADING_AMOUNT_BY"].strip().lower()
    if env.get("TELEGRAM_BOT_TOKEN"):
        settings.notifications.bot_token = env["TELEGRAM_BOT_TOKEN"]
    if env.get("TELEGRAM_CHAT_ID"):
        settings.notifications.chat_id = env["TELEGRAM_CHAT_ID"]
    if env.get("TELEGRAM_MSG"):
        settings.notifications.enabled = _env_flag(env["TELEGRAM_MSG"])
    if env.get("DRY_RUN"):
        settings.system.dry_run = _env_flag(env["DRY_RUN"])

    for venue in settings.venues:
        prefix = venue.name.upper()
        venue.api_key = env.get(f"{prefix}_API_KEY", venue.api_key)
        venue.secret = env.get(f"{prefix}_SECRET", venue.secret)
        venue.password = env.get(f"{prefix}_PASSWORD", venue.password)
    return settings


def validate(settings: Settings) -> Settings:
    if len(settings.venues) != 2:
        raise ConfigError(
            f"Exactly two venues are required, got {len(settings.venues)}",
            {"venues": settings.venue_names},
        )
    if settings.venues[0].name == settings.venues[1].name:
        raise ConfigError("Venues must differ", {"venues": settings.venue_names})
    if settings.execution.mode not in EXECUTION_MODES:
        raise ConfigError(f"Unknown execution mode '{settings.execution.mode}'. Use 'auto' or 'manual'.")
    if settings.execution.sizing not in SIZING_MODES:
        raise ConfigError(f"Unknown sizing mode '{settings.execution.sizing}'. Use 'input' or 'balance'.")
    if settings.strategy.profit_threshold <= 0:
        raise ConfigError("profit_threshold must be positive")
    if settings.strategy.loss_alert_threshold > settings.strategy.profit_threshold:
        raise ConfigError("loss_alert_threshold must not exceed profit_threshold")
    if settings.execution.max_poll_attempts < 1:
        raise ConfigError("max_poll_attempts must be at least 1")
    if not 0 <= settings.execution.settlement_reserve_pct < 100:
        raise ConfigError("settlement_reserve_pct must be within [0, 100)")
    return settings


def parse_config(raw: Mapping[str, Any], env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from an already-parsed YAML mapping."""
    exchanges = _section(raw, "exchanges")
    venues = [
        VenueCredentials(
            name=name.lower(),
            api_key=str(creds.get("api_key", "") or ""),
            secret=str(creds.get("secret", "") or ""),
            password=str(creds.get("password", "") or ""),
            options=dict(creds.get("options") or {}),
        )
        for name, creds in ((n, c or {}) for n, c in exchanges.items())
    ]

    fees_raw = _section(raw, "fees")
    execution_raw = dict(_section(raw, "execution"))
    if "withdraw_buffer" in execution_raw:
        buf = execution_raw["withdraw_buffer"]
        if not isinstance(buf, dict):
            buf = {"DEFAULT": buf}
        execution_raw["withdraw_buffer"] = {k.upper(): float(v) for k, v in buf.items()}

    try:
        settings = Settings(
            venues=venues,
            system=SystemConfig(**_section(raw, "system")),
            strategy=StrategyConfig(**_section(raw, "strategy")),
            execution=ExecutionConfig(**execution_raw),
            notifications=NotificationConfig(**_section(_section(raw, "notifications"), "telegram")),
            fees=FeeTable(
                withdraw=fees_raw.get("withdraw"),
                default=fees_raw.get("default_withdraw_fee", DEFAULT_WITHDRAW_FEE),
                sell_side_withdraw_fee=fees_raw.get("sell_side_withdraw_fee", DEFAULT_SELL_SIDE_WITHDRAW_FEE),
            ),
            symbols=SymbolMap(raw.get("symbols")),
            wallets=WalletBook(raw.get("wallets")),
        )
    except TypeError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    settings.execution.mode = settings.execution.mode.lower()
    settings.execution.sizing = settings.execution.sizing.lower()
    settings.strategy.quote_asset = settings.strategy.quote_asset.upper()
    settings.strategy.scan_assets = [a.upper() for a in settings.strategy.scan_assets]

    if env is not None:
        apply_env_overrides(settings, env)
    return validate(settings)


def load_config(path: str = "config.yaml", env: Optional[Mapping[str, str]] = None) -> Settings:
    if not os.path.exists(path):
        raise ConfigError(f"Config file not found: {path}", {"path": path})
    with open(path, "r") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a mapping", {"path": path})
    return parse_config(raw, os.environ if env is None else env)
