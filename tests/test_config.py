"""Tests for collector and hub settings."""

import pytest

from nodepulse.config import CollectorConfig, HubConfig
from nodepulse.errors import ConfigError


def test_collector_defaults():
    cfg = CollectorConfig()
    assert cfg.node == "localhost:8890"
    assert cfg.hubs == ["ws://localhost:3000/nodes"]
    assert cfg.node_name == "unknown"
    assert cfg.interval_seconds == 2.0
    assert cfg.rpc_token == "rpcadmin"
    assert cfg.hub_token is None


def test_collector_from_options_parses_hub_list():
    cfg = CollectorConfig.from_options(hubs="hub1:3000,hub2:3000", node_name="alpha")
    assert cfg.hubs == ["ws://hub1:3000/nodes", "ws://hub2:3000/nodes"]
    assert cfg.node_name == "alpha"


def test_blank_node_name_becomes_sentinel():
    assert CollectorConfig(node_name="   ").node_name == "unknown"


@pytest.mark.parametrize("interval", [0, -1.5])
def test_interval_must_be_positive(interval):
    with pytest.raises(ConfigError):
        CollectorConfig(interval_seconds=interval)


def test_empty_hub_list_rejected():
    with pytest.raises(ConfigError):
        CollectorConfig.from_options(hubs="")


def test_empty_node_rejected():
    with pytest.raises(ConfigError):
        CollectorConfig(node=" ")


def test_ping_threshold_must_be_positive():
    with pytest.raises(ConfigError):
        CollectorConfig(max_average_ping_ms=0)


def test_hub_defaults():
    cfg = HubConfig()
    assert cfg.port == 3000
    assert cfg.admin_password is None
    assert cfg.push_to_viewers is True


@pytest.mark.parametrize("port", [0, 70000])
def test_hub_port_range(port):
    with pytest.raises(ConfigError):
        HubConfig(port=port)


def test_empty_admin_password_disables_reset():
    assert HubConfig(admin_password="").admin_password is None
