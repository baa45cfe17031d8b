"""Unit tests for pingguard/cli/parser.py — Argparse configuration and cli_main."""
# PingGuard - UDP keep-alive process watchdog
# Copyright (C) 2026 PingGuard Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from pingguard import __version__
from pingguard.cli.parser import build_parser, cli_main, parse_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "PINGGUARD_LISTEN_ADDR",
        "PINGGUARD_TIMEOUT_SECS",
        "PINGGUARD_GRACE_SECS",
        "PINGGUARD_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


class TestParseConfig:
    """Command line → WatchdogConfig."""

    def test_defaults(self):
        _, config = parse_config(["/bin/sleep", "10"])
        assert str(config.listen_address) == "0.0.0.0:12345"
        assert config.timeout == 5.0
        assert config.command == "/bin/sleep"
        assert config.args == ("10",)
        assert config.grace_period == 0.0

    def test_short_options(self):
        _, config = parse_config(["-l", "127.0.0.1:9999", "-t", "2.5", "/bin/true"])
        assert config.listen_address.port == 9999
        assert config.timeout == 2.5
        assert config.args == ()

    def test_long_options(self):
        args, config = parse_config([
            "--listen-addr", "[::1]:7000",
            "--timeout-secs", "3",
            "--grace-secs", "1",
            "--log-level", "DEBUG",
            "/bin/true",
        ])
        assert config.listen_address.is_ipv6
        assert config.grace_period == 1.0
        assert args.log_level == "DEBUG"

    def test_child_flags_pass_through_verbatim(self):
        _, config = parse_config(["/bin/echo", "-t", "99", "--help", "x"])
        assert config.timeout == 5.0
        assert config.args == ("-t", "99", "--help", "x")

    def test_leading_double_dash_is_dropped(self):
        _, config = parse_config(["/bin/echo", "--", "-n", "hi"])
        assert config.args == ("-n", "hi")

    def test_env_defaults(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PINGGUARD_LISTEN_ADDR", "127.0.0.1:4000")
        monkeypatch.setenv("PINGGUARD_TIMEOUT_SECS", "9")
        _, config = parse_config(["/bin/true"])
        assert config.listen_address.port == 4000
        assert config.timeout == 9.0

    def test_cli_overrides_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PINGGUARD_TIMEOUT_SECS", "9")
        _, config = parse_config(["-t", "1", "/bin/true"])
        assert config.timeout == 1.0

    @pytest.mark.parametrize(
        "argv",
        [
            ["-t", "0", "/bin/true"],
            ["-t", "soon", "/bin/true"],
            ["-t", "nan", "/bin/true"],
            ["-t", "inf", "/bin/true"],
            ["-l", "not-an-address", "/bin/true"],
            ["--grace-secs", "-1", "/bin/true"],
            [],
        ],
    )
    def test_invalid_arguments_exit_2(self, argv, capsys):
        with pytest.raises(SystemExit) as exc_info:
            parse_config(argv)
        assert exc_info.value.code == 2
        assert "error" in capsys.readouterr().err


class TestInformational:
    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["-V"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_help_lists_exit_codes(self, capsys):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--help"])
        out = capsys.readouterr().out
        assert "--listen-addr" in out
        assert "124" in out
        assert "cannot be told apart from the watchdog" in " ".join(out.split())


class TestCliMain:
    def test_exit_code_is_propagated(self):
        with (
            patch("dotenv.load_dotenv"),
            patch("pingguard.logging_config.setup_logging") as mock_setup,
            patch(
                "pingguard.supervisor.run_watchdog", new=AsyncMock(return_value=124),
            ) as mock_run,
        ):
            with pytest.raises(SystemExit) as exc_info:
                cli_main(["-t", "1", "--log-level", "WARNING", "/bin/sleep", "5"])

        assert exc_info.value.code == 124
        mock_setup.assert_called_once_with(level="WARNING", log_file=None)
        config = mock_run.call_args.args[0]
        assert config.command == "/bin/sleep"
        assert config.args == ("5",)
        assert mock_run.call_args.kwargs == {"handle_signals": True}
