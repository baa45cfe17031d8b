"""Unit tests for pingguard/config/models.py — address parsing and validation."""
# PingGuard - UDP keep-alive process watchdog
# Copyright (C) 2026 PingGuard Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import pytest
from pydantic import ValidationError

from pingguard.config import ListenAddress, WatchdogConfig
from pingguard.exceptions import ConfigError


class TestListenAddressParse:
    def test_ipv4(self):
        addr = ListenAddress.parse("0.0.0.0:12345")
        assert addr.host == "0.0.0.0"
        assert addr.port == 12345
        assert addr.as_tuple() == ("0.0.0.0", 12345)
        assert str(addr) == "0.0.0.0:12345"

    def test_ipv6_bracketed(self):
        addr = ListenAddress.parse("[::1]:9000")
        assert addr.host == "::1"
        assert addr.port == 9000
        assert addr.is_ipv6
        assert str(addr) == "[::1]:9000"

    def test_hostname(self):
        addr = ListenAddress.parse("localhost:80")
        assert addr.host == "localhost"
        assert not addr.is_ipv6

    def test_ephemeral_port_allowed(self):
        assert ListenAddress.parse("127.0.0.1:0").port == 0

    @pytest.mark.parametrize(
        "text",
        [
            "12345",             # no host
            "127.0.0.1",         # no port
            "127.0.0.1:abc",     # bad port
            "127.0.0.1:70000",   # port out of range
            "127.0.0.1:-1",
            ":8080",             # empty host
            "::1:8080",          # unbracketed IPv6
            "[::1]8080",         # missing colon
            "[127.0.0.1]:8080",  # brackets on IPv4
            "[nothost]:8080",
        ],
    )
    def test_invalid(self, text):
        with pytest.raises(ConfigError):
            ListenAddress.parse(text)

    def test_frozen(self):
        addr = ListenAddress.parse("127.0.0.1:1")
        with pytest.raises(ValidationError):
            addr.port = 2


class TestWatchdogConfig:
    def test_from_values(self):
        config = WatchdogConfig.from_values(
            listen_addr="0.0.0.0:12345",
            timeout_secs="5",
            command="/bin/sleep",
            args=["10"],
        )
        assert config.timeout == 5.0
        assert config.command == "/bin/sleep"
        assert config.args == ("10",)
        assert config.grace_period == 0.0
        assert config.kill_confirm == pytest.approx(0.1)

    def test_sub_second_timeout(self):
        config = WatchdogConfig.from_values(
            listen_addr="127.0.0.1:0", timeout_secs=0.25, command="x",
        )
        assert config.timeout == 0.25

    @pytest.mark.parametrize("timeout", [0, -1, "0", "abc", "nan", "inf", float("nan")])
    def test_rejects_non_positive_or_non_finite_timeout(self, timeout):
        with pytest.raises(ConfigError):
            WatchdogConfig.from_values(
                listen_addr="127.0.0.1:0", timeout_secs=timeout, command="x",
            )

    def test_rejects_negative_grace(self):
        with pytest.raises(ConfigError):
            WatchdogConfig.from_values(
                listen_addr="127.0.0.1:0", timeout_secs=1, command="x", grace_secs=-1,
            )

    def test_rejects_empty_command(self):
        with pytest.raises(ConfigError):
            WatchdogConfig.from_values(
                listen_addr="127.0.0.1:0", timeout_secs=1, command="",
            )

    def test_bad_address_surfaces_as_config_error(self):
        with pytest.raises(ConfigError, match="Invalid listen address"):
            WatchdogConfig.from_values(
                listen_addr="nope", timeout_secs=1, command="x",
            )

    def test_frozen(self):
        config = WatchdogConfig.from_values(
            listen_addr="127.0.0.1:0", timeout_secs=1, command="x",
        )
        with pytest.raises(ValidationError):
            config.timeout = 3
