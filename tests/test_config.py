"""Tests for TOML configuration loading and validation."""

import argparse
import asyncio
from dataclasses import replace

import pytest

from makanx_map.api import MakanxApi
from makanx_map.config import (
    ConfigurationError,
    create_config_from_args,
    get_unknown_keys,
    load_default_config,
    merge_cli_args,
    process_toml_config,
    validate_config,
)
from makanx_map.polling import OrderStatusWatcher, VendorOrdersPoller
from makanx_map.sessions import (
    AnchorEditorSession,
    CustomerMapSession,
    SchedulerSession,
    VendorMapSession,
)


def args(**values):
    defaults = dict(
        config=None,
        api_base_url=None,
        storage_path=None,
        log_dir=None,
        log_level_console=None,
        log_json_console=False,
        log_rotation=None,
        log_retention=None,
    )
    defaults.update(values)
    return argparse.Namespace(**defaults)


class TestDefaults:
    """Tests for the bundled default.toml."""

    def test_default_config_is_valid(self):
        """The defaults load completely and pass validation."""
        config = load_default_config()
        assert validate_config(config) == []
        assert config.api_base_url == "http://127.0.0.1:8800"
        assert config.tap_move_px == 8.0
        assert config.storage_path is None
        assert config.log_dir is None

    def test_profiles(self):
        """The view profiles carry the configured bounds."""
        config = load_default_config()
        viewing = config.viewing_profile()
        assert (viewing.bounds.min_scale, viewing.bounds.max_scale) == (0.5, 3.0)
        assert viewing.max_fit_scale is None
        authoring = config.authoring_profile()
        assert (authoring.bounds.min_scale, authoring.bounds.max_scale) == (0.2, 5.0)
        assert authoring.max_fit_scale == 1.0

    def test_debounce_seconds(self):
        """The autosave debounce is exposed in seconds."""
        assert load_default_config().autosave_debounce == pytest.approx(0.35)


class TestValidation:
    """Tests for validate_config."""

    def test_bad_values(self):
        """Each invalid value is reported."""
        config = replace(
            load_default_config(),
            api_base_url="ftp://nope",
            tap_move_px=0,
            view_min_scale=4.0,
            log_level_console="LOUD",
        )
        errors = validate_config(config)
        assert len(errors) == 4
        assert any("api_base_url" in e for e in errors)
        assert any("tap_move_px" in e for e in errors)
        assert any("view_min_scale" in e for e in errors)
        assert any("log_level_console" in e for e in errors)

    def test_focus_outside_bounds(self):
        """The focus scale must lie within the viewing bounds."""
        config = replace(load_default_config(), focus_scale=3.5)
        assert any("focus_scale" in e for e in validate_config(config))


class TestUserConfig:
    """Tests for user TOML files and CLI overrides."""

    def test_process_and_unknown_keys(self):
        """Unknown keys are dropped and empty optionals become None."""
        data = {"tap_move_px": 10, "log_dir": "", "bogus": 1}
        assert process_toml_config(data) == {"tap_move_px": 10, "log_dir": None}
        assert get_unknown_keys(data) == ["bogus"]

    def test_user_file_overrides_defaults(self, tmp_path, capsys):
        """Changed keys are applied and reported; unknown keys warn."""
        path = tmp_path / "client.toml"
        path.write_text('tap_move_px = 12.0\nfocus_scale = 1.2\nbogus = "x"\n')

        config, overrides = create_config_from_args(args(config=path))
        assert config.tap_move_px == 12.0
        assert [o.key for o in overrides] == ["tap_move_px"]
        assert overrides[0].default_value == 8.0
        assert "bogus" in capsys.readouterr().err

    def test_invalid_user_file(self, tmp_path):
        """A user file that breaks validation raises ConfigurationError."""
        path = tmp_path / "client.toml"
        path.write_text("view_min_scale = 5.0\n")
        with pytest.raises(ConfigurationError) as excinfo:
            create_config_from_args(args(config=path))
        assert excinfo.value.errors

    def test_missing_user_file(self, tmp_path):
        """A missing --config file is an error."""
        with pytest.raises(FileNotFoundError):
            create_config_from_args(args(config=tmp_path / "nope.toml"))

    def test_cli_wins(self, tmp_path):
        """CLI flags override both defaults and the user file."""
        path = tmp_path / "client.toml"
        path.write_text('api_base_url = "http://file:1"\n')
        config, _ = create_config_from_args(
            args(
                config=path,
                api_base_url="https://cli:2",
                log_dir=tmp_path / "logs",
                log_json_console=True,
            )
        )
        assert config.api_base_url == "https://cli:2"
        assert config.log_dir == str(tmp_path / "logs")
        assert config.log_json_console is True

    def test_merge_without_flags(self):
        """No flags leaves the config object untouched."""
        config = load_default_config()
        assert merge_cli_args(config, args()) is config


class TestConfigWiring:
    """Tests for building clients and sessions from a config."""

    def test_from_config_factories(self):
        """Editing, polling and toast settings reach the objects that use them."""
        config = replace(
            load_default_config(),
            api_base_url="http://api.test:9000/",
            request_timeout=3.0,
            view_max_scale=2.5,
            author_max_scale=4.0,
            min_booth_size=30.0,
            autosave_debounce_ms=500,
            order_poll_interval=9.0,
            wait_time_poll_interval=20.0,
            vendor_orders_poll_interval=4.0,
            notification_ttl=5.0,
        )

        async def main():
            async with MakanxApi.from_config(config, token="tok") as api:
                return (
                    api,
                    SchedulerSession.from_config(api, "demo-fair", config),
                    AnchorEditorSession.from_config(api, "demo-fair", config),
                    CustomerMapSession.from_config(api, "demo-fair", config),
                    VendorMapSession.from_config(api, "v-satay", config),
                    OrderStatusWatcher.from_config(api, "ord-1", config),
                    VendorOrdersPoller.from_config(api, config),
                )

        api, scheduler, anchors, customer, vendor, watcher, orders = asyncio.run(main())

        assert api.base_url == "http://api.test:9000"
        assert api.token == "tok"

        assert scheduler.canvas.viewport.bounds.max_scale == 4.0
        assert scheduler.canvas.viewport.profile.max_fit_scale == 1.0
        assert scheduler.canvas.min_booth_size == 30.0
        assert scheduler.form.debounce == pytest.approx(0.5)
        assert scheduler.notifier.ttl == 5.0

        assert anchors.canvas.viewport.bounds.max_scale == 4.0
        assert anchors.notifier.ttl == 5.0

        assert customer.canvas.viewport.bounds.max_scale == 2.5
        assert customer.wait_times.poller.interval == 20.0
        assert vendor.canvas.viewport.view_only
        assert vendor.canvas.viewport.bounds.max_scale == 2.5

        assert watcher.poller.interval == 9.0
        assert orders.poller.interval == 4.0
        assert orders.notifier.ttl == 5.0
