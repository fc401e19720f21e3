import json

import httpx
import pytest
import yaml

from twelvedata_provider import cli
from twelvedata_provider import TwelveDataClient, TwelveDataConfig
from twelvedata_provider.config import clear_cached_api_key

DAILY = {
    "meta": {"symbol": "AAPL", "interval": "1day", "currency": "USD", "exchange_timezone": "America/New_York"},
    "values": [
        {"datetime": "2024-01-03", "open": "184.2", "high": "185.8", "low": "183.4", "close": "184.2", "volume": "58414500"},
        {"datetime": "2024-01-02", "open": "187.1", "high": "188.4", "low": "183.8", "close": "185.6", "volume": "82488700"},
    ],
    "status": "ok",
}


@pytest.fixture(autouse=True)
def _env(monkeypatch, tmp_path):
    monkeypatch.setenv("DISABLE_DOTENV", "true")
    monkeypatch.setenv("TWELVEDATA_CONFIG_DIR", str(tmp_path / "cfg"))
    monkeypatch.delenv("TWELVEDATA_API_KEY", raising=False)
    clear_cached_api_key()
    yield
    clear_cached_api_key()


def _install_fake_client(monkeypatch, payload, seen):
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(dict(request.url.params))
        return httpx.Response(200, json=payload)

    def build():
        return TwelveDataClient(
            TwelveDataConfig.from_env(require_api_key=False),
            http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        )

    monkeypatch.setattr(cli, "_build_client", build)


def test_series_prints_csv(monkeypatch, capsys):
    seen = []
    _install_fake_client(monkeypatch, DAILY, seen)

    code = cli.main(["series", "AAPL", "--outputsize", "2", "--apikey", "k"])

    out = capsys.readouterr().out.splitlines()
    assert code == 0
    assert out[0] == "datetime,open,high,low,close,volume"
    assert out[1].startswith("2024-01-03,184.2,")
    assert seen == [{"symbol": "AAPL", "interval": "1day", "outputsize": "2", "apikey": "k"}]


def test_series_time_indexed_writes_index(monkeypatch, capsys):
    _install_fake_client(monkeypatch, DAILY, [])

    code = cli.main(["series", "AAPL", "-f", "time-indexed", "--apikey", "k"])

    out = capsys.readouterr().out.splitlines()
    assert code == 0
    assert out[0].startswith("datetime,open")
    assert out[1].startswith("2024-01-03")


def test_series_raw_prints_json(monkeypatch, capsys):
    _install_fake_client(monkeypatch, DAILY, [])

    code = cli.main(["series", "AAPL", "--format", "raw", "--apikey", "k"])

    assert code == 0
    assert json.loads(capsys.readouterr().out) == DAILY


def test_series_reports_remote_error(monkeypatch, capsys):
    _install_fake_client(monkeypatch, {"code": 401, "message": "Invalid API key", "status": "error"}, [])

    code = cli.main(["series", "AAPL", "--apikey", "bad"])

    assert code == 2
    assert capsys.readouterr().err.strip().splitlines()[-1] == "Error: Invalid API key"


def test_series_without_key_reports_configuration_error(monkeypatch, capsys):
    seen = []
    _install_fake_client(monkeypatch, DAILY, seen)

    code = cli.main(["series", "AAPL"])

    assert code == 2
    assert "No Twelve Data API key" in capsys.readouterr().err
    assert seen == []


def test_set_key_writes_config_file(tmp_path, capsys):
    target = tmp_path / "custom.yaml"

    code = cli.main(["set-key", "abc123", "--config", str(target)])

    assert code == 0
    assert yaml.safe_load(target.read_text(encoding="utf-8")) == {"api_key": "abc123"}
    assert str(target) in capsys.readouterr().out


def test_stored_key_is_used_by_series(monkeypatch):
    seen = []
    _install_fake_client(monkeypatch, DAILY, seen)

    assert cli.main(["set-key", "stored"]) == 0
    assert cli.main(["series", "AAPL", "-i", "1week"]) == 0

    assert seen[0]["apikey"] == "stored"
    assert seen[0]["interval"] == "1week"


def test_invalid_interval_is_rejected_by_parser():
    with pytest.raises(SystemExit):
        cli.main(["series", "AAPL", "-i", "2min"])
