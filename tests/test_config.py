import pytest

from packages.config.env import load_cfg, load_sync_yaml
from packages.sync.controller import build_controller

ENV_KEYS = ("SOURCE_URL", "STORE_BACKEND", "STORE_PATH", "REFRESH_INTERVAL_SEC", "STALE_THRESHOLD_SEC",
            "MAX_RECORDS", "FETCH_TIMEOUT_SEC", "SOURCE_RPS")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # setenv first so teardown restores the pre-test state, undoing what load_dotenv writes
    for k in ENV_KEYS:
        monkeypatch.setenv(k, "")
        monkeypatch.delenv(k)


def test_load_cfg_from_env_file(tmp_path):
    env = tmp_path / ".env.testnet"
    env.write_text("SOURCE_URL=https://gw.test/games\nSTORE_BACKEND=memory\nSTALE_THRESHOLD_SEC=60\n")
    cfg = load_cfg(str(env))
    assert cfg.source_url == "https://gw.test/games"
    assert cfg.store_backend == "memory"
    assert cfg.stale_threshold_sec == 60
    assert cfg.refresh_interval_sec == 30
    assert cfg.max_records == 1000


def test_yaml_overrides_tuning(tmp_path):
    env = tmp_path / ".env"
    env.write_text("SOURCE_URL=https://gw.test/games\nSTORE_BACKEND=memory\n")
    yml = tmp_path / "leaderboard.yml"
    yml.write_text("sync:\n  refresh_interval_sec: 5\n  max_records: 50\n  unknown_knob: 1\n")
    cfg = load_cfg(str(env), str(yml))
    assert cfg.refresh_interval_sec == 5
    assert cfg.max_records == 50
    assert cfg.source_url == "https://gw.test/games"


def test_missing_yaml_means_no_overrides(tmp_path):
    assert load_sync_yaml(str(tmp_path / "nope.yml")) == {}


def test_missing_source_url_fails(tmp_path):
    env = tmp_path / ".env"
    env.write_text("STORE_BACKEND=memory\n")
    with pytest.raises(KeyError):
        load_cfg(str(env))


def test_build_controller_wires_cfg(tmp_path):
    env = tmp_path / ".env"
    env.write_text(f"SOURCE_URL=https://gw.test/games\nSTORE_BACKEND=file\nSTORE_PATH={tmp_path / 'c'}\n"
                   "MAX_RECORDS=7\nFETCH_TIMEOUT_SEC=3\n")
    ctl = build_controller(load_cfg(str(env)))
    assert ctl.max_records == 7
    assert ctl.fetch_timeout_sec == 3
    assert ctl.source.url == "https://gw.test/games"
    assert ctl.get_leaderboard() == []
