"""Tests for the click entry point."""

from click.testing import CliRunner

from nodepulse import __version__
from nodepulse import main as main_mod
from nodepulse.main import cli


def test_version_flag():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_help_lists_commands():
    result = CliRunner().invoke(cli, ["--help"])
    assert result.exit_code == 0
    for command in ("collector", "hub", "watch", "fake-node"):
        assert command in result.output


def test_collector_bad_interval_exits_nonzero():
    result = CliRunner().invoke(cli, ["collector", "--interval", "0"])
    assert result.exit_code == 1
    assert "Poll interval" in result.output


def test_collector_reads_environment(monkeypatch):
    captured = {}

    class StopPoller(main_mod.Poller):
        def run(self):
            captured["node_name"] = self._node_name
            captured["interval"] = self._interval

    class IdlePublisher(main_mod.FanoutPublisher):
        def __init__(self, targets, token=None):
            captured["hubs"] = list(targets)
            captured["token"] = token
            super().__init__(targets, token=token)

        def start(self):
            pass

    monkeypatch.setattr(main_mod, "Poller", StopPoller)
    monkeypatch.setattr(main_mod, "FanoutPublisher", IdlePublisher)
    monkeypatch.setattr(main_mod.signal, "signal", lambda *args: None)

    result = CliRunner().invoke(
        cli,
        ["collector", "--mock"],
        env={
            "COLLECTOR_HUBS": "a:3000,b:3000",
            "COLLECTOR_NODE_NAME": "alpha",
            "COLLECTOR_INTERVAL": "5",
            "COLLECTOR_HUB_TOKEN": "tok",
        },
    )

    assert result.exit_code == 0, result.output
    assert captured == {
        "hubs": ["ws://a:3000/nodes", "ws://b:3000/nodes"],
        "token": "tok",
        "node_name": "alpha",
        "interval": 5.0,
    }


def test_collector_exits_nonzero_on_fatal(monkeypatch):
    class FatalPoller(main_mod.Poller):
        def run(self):
            raise main_mod.ProcessFatal("hub rejected collector")

    class IdlePublisher(main_mod.FanoutPublisher):
        def start(self):
            pass

    monkeypatch.setattr(main_mod, "Poller", FatalPoller)
    monkeypatch.setattr(main_mod, "FanoutPublisher", IdlePublisher)
    monkeypatch.setattr(main_mod.signal, "signal", lambda *args: None)

    result = CliRunner().invoke(cli, ["collector", "--mock"])
    assert result.exit_code == 1


def test_hub_bad_port_exits_nonzero():
    result = CliRunner().invoke(cli, ["hub", "--port", "0"])
    assert result.exit_code == 1
    assert "Port out of range" in result.output
