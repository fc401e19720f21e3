import pytest
import yaml

from twelvedata_provider import config as td_config
from twelvedata_provider.config import (
    TwelveDataConfig,
    cached_api_key,
    clear_cached_api_key,
    default_config_path,
    load_api_key_from_file,
    resolve_api_key,
    save_api_key,
)
from twelvedata_provider.errors import TwelveDataInvalidArgumentError, TwelveDataNotConfiguredError


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch, tmp_path):
    monkeypatch.setenv("TWELVEDATA_CONFIG_DIR", str(tmp_path / "cfg"))
    for name in (
        "TWELVEDATA_API_KEY",
        "TWELVEDATA_BASE_URL",
        "TWELVEDATA_TIMEOUT_SECONDS",
        "TWELVEDATA_TIME_INDEX_SUPPORT",
        "TWELVEDATA_DEFAULT_TIMEZONE",
    ):
        monkeypatch.delenv(name, raising=False)
    clear_cached_api_key()
    yield
    clear_cached_api_key()


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_default_config_path_honours_override(tmp_path):
    assert default_config_path() == tmp_path / "cfg" / "config.yaml"


def test_default_config_path_uses_xdg(monkeypatch, tmp_path):
    monkeypatch.delenv("TWELVEDATA_CONFIG_DIR")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))

    assert default_config_path() == tmp_path / "xdg" / "twelvedata" / "config.yaml"


def test_explicit_key_wins_over_everything(monkeypatch):
    monkeypatch.setenv("TWELVEDATA_API_KEY", "from-env")
    _write(default_config_path(), "api_key: from-file\n")

    assert resolve_api_key("  explicit  ") == "explicit"


def test_file_wins_over_environment(monkeypatch):
    monkeypatch.setenv("TWELVEDATA_API_KEY", "from-env")
    _write(default_config_path(), "api_key: from-file\n")

    assert resolve_api_key() == "from-file"


def test_dcf_style_api_line_is_read():
    _write(default_config_path(), "api: dcf-key\n")

    assert load_api_key_from_file() == "dcf-key"


def test_environment_used_when_no_file(monkeypatch):
    monkeypatch.setenv("TWELVEDATA_API_KEY", "from-env")

    assert resolve_api_key() == "from-env"


def test_missing_everywhere_raises():
    with pytest.raises(TwelveDataNotConfiguredError, match="TWELVEDATA_API_KEY"):
        resolve_api_key()


def test_cache_is_filled_once(monkeypatch):
    monkeypatch.setenv("TWELVEDATA_API_KEY", "first")
    assert cached_api_key() == "first"

    monkeypatch.setenv("TWELVEDATA_API_KEY", "second")
    assert resolve_api_key() == "first"

    clear_cached_api_key()
    assert resolve_api_key() == "second"


def test_cache_loads_file_a_single_time(monkeypatch):
    calls = []
    real = td_config.load_api_key_from_file

    def counting(path=None):
        calls.append(path)
        return real(path)

    monkeypatch.setattr(td_config, "load_api_key_from_file", counting)
    monkeypatch.setenv("TWELVEDATA_API_KEY", "k")

    resolve_api_key()
    resolve_api_key()

    assert len(calls) == 1


def test_explicit_config_path_bypasses_cache(monkeypatch, tmp_path):
    monkeypatch.setenv("TWELVEDATA_API_KEY", "cached")
    assert cached_api_key() == "cached"

    other = tmp_path / "other.yaml"
    _write(other, "api_key: other-file\n")

    assert resolve_api_key(config_path=other) == "other-file"


def test_non_mapping_file_rejected():
    _write(default_config_path(), "- just\n- a list\n")

    with pytest.raises(TwelveDataNotConfiguredError, match="mapping"):
        load_api_key_from_file()


def test_empty_file_means_no_key():
    _write(default_config_path(), "")

    assert load_api_key_from_file() is None


def test_save_api_key_round_trips_and_keeps_other_entries(monkeypatch):
    _write(default_config_path(), "api: old\nnote: keep me\n")
    monkeypatch.setenv("TWELVEDATA_API_KEY", "env")
    assert cached_api_key() == "old"

    path = save_api_key("new-key")

    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert data == {"api_key": "new-key", "note": "keep me"}
    assert resolve_api_key() == "new-key"


def test_save_api_key_rejects_blank():
    with pytest.raises(TwelveDataNotConfiguredError):
        save_api_key("  ")


def test_from_env_reads_settings(monkeypatch):
    monkeypatch.setenv("TWELVEDATA_API_KEY", "abc")
    monkeypatch.setenv("TWELVEDATA_BASE_URL", "https://proxy.example.com")
    monkeypatch.setenv("TWELVEDATA_TIMEOUT_SECONDS", "5")
    monkeypatch.setenv("TWELVEDATA_TIME_INDEX_SUPPORT", "Fallback")
    monkeypatch.setenv("TWELVEDATA_DEFAULT_TIMEZONE", "Europe/Berlin")

    cfg = TwelveDataConfig.from_env()

    assert cfg.api_key == "abc"
    assert cfg.base_url == "https://proxy.example.com"
    assert cfg.timeout_seconds == 5.0
    assert cfg.time_index_support == "fallback"
    assert cfg.default_timezone == "Europe/Berlin"


def test_from_env_bad_timeout_falls_back_to_default(monkeypatch):
    monkeypatch.setenv("TWELVEDATA_TIMEOUT_SECONDS", "soon")

    cfg = TwelveDataConfig.from_env(api_key="abc")

    assert cfg.timeout_seconds == 30.0


def test_from_env_requires_key_by_default():
    with pytest.raises(TwelveDataNotConfiguredError):
        TwelveDataConfig.from_env()


def test_from_env_can_skip_key():
    assert TwelveDataConfig.from_env(require_api_key=False).api_key == ""


def test_config_rejects_unknown_time_index_support():
    with pytest.raises(TwelveDataInvalidArgumentError, match="time_index_support"):
        TwelveDataConfig(api_key="k", time_index_support="sometimes")


def test_from_env_rejects_unknown_time_index_support(monkeypatch):
    monkeypatch.setenv("TWELVEDATA_TIME_INDEX_SUPPORT", "Sometimes")

    with pytest.raises(TwelveDataInvalidArgumentError, match="'sometimes'"):
        TwelveDataConfig.from_env(api_key="abc")
