"""
Tests for YAML parsing, environment overrides and validation
"""

import pytest
import yaml

from cexarb.config import load_config, parse_config
from cexarb.errors import ConfigError


def raw_config(**sections):
    raw = {
        "exchanges": {"btse": {"api_key": "k1", "secret": "s1"}, "coinex": {}},
        "strategy": {"trade_amount": 25, "scan_assets": ["trump", "mubi"]},
        "execution": {"withdraw_buffer": 1.5},
        "fees": {"withdraw": {"btse": {"TRUMP": 4.54}}, "sell_side_withdraw_fee": 3},
        "symbols": {"coinex": {"TRUMP": "MAGATRUMP"}},
    }
    raw.update(sections)
    return raw


class TestParseConfig:
    def test_sections_are_parsed(self):
        settings = parse_config(raw_config())

        assert settings.venue_names == ["btse", "coinex"]
        assert settings.venues[0].api_key == "k1"
        assert settings.strategy.trade_amount == 25
        assert settings.strategy.scan_assets == ["TRUMP", "MUBI"]
        assert settings.strategy.profit_threshold == 1.0
        assert settings.strategy.loss_alert_threshold == -5.0
        assert settings.execution.mode == "auto"
        assert settings.execution.max_poll_attempts == 200
        assert settings.fees.withdraw_fee("btse", "TRUMP") == 4.54
        assert settings.fees.sell_side_withdraw_fee == 3.0
        assert settings.symbols.local("coinex", "TRUMP") == "MAGATRUMP"
        assert settings.symbols.local("btse", "TRUMP") == "TRUMP"
        assert settings.notifications.enabled is False

    def test_scalar_withdraw_buffer_becomes_default(self):
        settings = parse_config(raw_config())

        assert settings.execution.buffer_for("XMR") == 1.5

    def test_default_buffer_only_holds_back_quote(self):
        settings = parse_config(raw_config(execution={}))

        assert settings.execution.buffer_for("USDT") == 2.5
        assert settings.execution.buffer_for("XMR") == 0.0

    def test_per_asset_withdraw_buffer(self):
        settings = parse_config(raw_config(execution={"withdraw_buffer": {"DEFAULT": 2.5, "usdt": 1}}))

        assert settings.execution.buffer_for("USDT") == 1.0
        assert settings.execution.buffer_for("XMR") == 2.5

    def test_unknown_key_is_a_config_error(self):
        with pytest.raises(ConfigError):
            parse_config(raw_config(strategy={"trade_amnt": 5}))

    def test_section_must_be_a_mapping(self):
        with pytest.raises(ConfigError):
            parse_config(raw_config(system=["live"]))


class TestValidation:
    def test_exactly_two_venues(self):
        with pytest.raises(ConfigError, match="Exactly two venues"):
            parse_config(raw_config(exchanges={"btse": {}}))

    def test_unknown_execution_mode(self):
        with pytest.raises(ConfigError):
            parse_config(raw_config(execution={"mode": "yolo"}))

    def test_profit_threshold_must_be_positive(self):
        with pytest.raises(ConfigError):
            parse_config(raw_config(strategy={"profit_threshold": 0}))

    def test_alert_threshold_above_profit_threshold(self):
        with pytest.raises(ConfigError):
            parse_config(raw_config(strategy={"profit_threshold": 1, "loss_alert_threshold": 2}))

    def test_poll_budget_must_be_positive(self):
        with pytest.raises(ConfigError):
            parse_config(raw_config(execution={"max_poll_attempts": 0}))


class TestEnvOverrides:
    def test_environment_wins(self):
        env = {
            "OPPORTUNITY_FIND": "MANUAL",
            "TRADING_AMOUNT_BY": "balance",
            "TELEGRAM_MSG": "YES",
            "TELEGRAM_BOT_TOKEN": "123:abc",
            "TELEGRAM_CHAT_ID": "42",
            "DRY_RUN": "true",
            "COINEX_API_KEY": "ck",
            "COINEX_SECRET": "cs",
        }
        settings = parse_config(raw_config(), env)

        assert settings.execution.mode == "manual"
        assert settings.execution.sizing == "balance"
        assert settings.notifications.enabled is True
        assert settings.notifications.bot_token == "123:abc"
        assert settings.notifications.chat_id == "42"
        assert settings.system.dry_run is True
        assert settings.venues[1].api_key == "ck"
        assert settings.venues[1].secret == "cs"
        assert settings.venues[0].api_key == "k1"

    def test_telegram_flag_off(self):
        settings = parse_config(raw_config(notifications={"telegram": {"enabled": True}}), {"TELEGRAM_MSG": "NO"})

        assert settings.notifications.enabled is False

    def test_invalid_env_value_is_rejected(self):
        with pytest.raises(ConfigError):
            parse_config(raw_config(), {"TRADING_AMOUNT_BY": "everything"})


class TestLoadConfig:
    def test_reads_yaml_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(raw_config()))

        settings = load_config(str(path), env={})

        assert settings.venue_names == ["btse", "coinex"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(str(tmp_path / "nope.yaml"), env={})

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigError):
            load_config(str(path), env={})
