import importlib

import pytest

import wisp.config as config


def test_defaults():
    cfg = config.ServerConfig(host="127.0.0.1", port=5000, tick_rate=30)
    assert cfg.tick_period == pytest.approx(1 / 30)
    assert config.MAX_PLAYER_SLOTS == 3
    cfg.validate()


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("WISP_PORT", "6123")
    monkeypatch.setenv("WISP_HANDSHAKE_REPEAT", "4")
    monkeypatch.setenv("WISP_STEP_SIZE", "0.5")
    try:
        reloaded = importlib.reload(config)
        cfg = reloaded.ServerConfig()
        assert cfg.port == 6123
        assert cfg.handshake_repeat == 4
        assert cfg.step_size == 0.5
    finally:
        monkeypatch.undo()
        importlib.reload(config)
