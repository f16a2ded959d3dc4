from typer.testing import CliRunner

from w3gw import __version__
from w3gw.cli.commands import app

runner = CliRunner()


def _isolate(monkeypatch, tmp_path):
    import os

    monkeypatch.setenv("HOME", str(tmp_path))
    for key in list(os.environ):
        if key.startswith("W3GW_"):
            monkeypatch.delenv(key, raising=False)


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_ethers_requires_provider_url(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    result = runner.invoke(app, ["ethers"])
    assert result.exit_code == 2


def test_ethers_requires_seed_phrase(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    result = runner.invoke(app, ["ethers", "http://127.0.0.1:8545", "8600"])
    assert result.exit_code == 2


def test_reef_requires_graph_url(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    monkeypatch.setenv("W3GW_SEED_PHRASE", "//Alice")
    result = runner.invoke(app, ["reef", "ws://127.0.0.1:9944"])
    assert result.exit_code == 2


def test_ethers_serves_configured_backend(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    monkeypatch.setenv("W3GW_SEED_PHRASE", "test test test test test test test test test test test junk")
    served = {}

    def fake_run_server(app, host, port, **kwargs):
        served.update(app=app, host=host, port=port)

    monkeypatch.setattr("w3gw.api.server.run_server", fake_run_server)
    monkeypatch.setattr("w3gw.cli.commands.is_port_in_use", lambda host, port: False)
    result = runner.invoke(app, ["ethers", "http://127.0.0.1:8545", "8600", "--host", "127.0.0.1"])
    assert result.exit_code == 0, result.output
    assert served["port"] == 8600
    assert served["host"] == "127.0.0.1"
    assert served["app"].state.backend.name == "ethers"


def test_seed_phrase_cleared_from_config_before_serving(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    monkeypatch.setenv("W3GW_SEED_PHRASE", "test test test test test test test test test test test junk")
    from w3gw.cli import commands

    loaded = []
    real_load = commands.load_config

    def recording_load(*args, **kwargs):
        config = real_load(*args, **kwargs)
        loaded.append(config)
        return config

    seen_at_serve = []
    monkeypatch.setattr("w3gw.cli.commands.load_config", recording_load)
    monkeypatch.setattr("w3gw.cli.commands.is_port_in_use", lambda host, port: False)
    monkeypatch.setattr(
        "w3gw.api.server.run_server",
        lambda app, host, port, **kwargs: seen_at_serve.append(loaded[0].seed_phrase),
    )
    result = runner.invoke(app, ["ethers", "http://127.0.0.1:8545", "8600"])
    assert result.exit_code == 0, result.output
    assert seen_at_serve == [""]
