"""Unit tests for environment configuration helpers."""

import pytest

from controllers.webrtc_controller import build_ice_servers
from tools import config


def test_parse_url_list_drops_blanks() -> None:
    assert config.parse_url_list(" stun:a:1 , ,turn:b:2 ") == ["stun:a:1", "turn:b:2"]
    assert config.parse_url_list("") == []


def test_numeric_env_parsing(monkeypatch) -> None:
    monkeypatch.setenv("TEARDOWN_DELAY_SECONDS", "0.5")
    monkeypatch.setenv("MAX_RENEGOTIATION_ATTEMPTS", "")

    assert config._parse_float_env("TEARDOWN_DELAY_SECONDS", 3.0) == 0.5
    assert config._parse_int_env("MAX_RENEGOTIATION_ATTEMPTS", 3) == 3


def test_invalid_numeric_env_fails_loudly(monkeypatch) -> None:
    monkeypatch.setenv("COORDINATOR_PORT", "not-a-port")

    with pytest.raises(ValueError):
        config._parse_int_env("COORDINATOR_PORT", 3001)


def test_defaults() -> None:
    assert config.parse_url_list(config.DEFAULT_ICE_SERVERS) == [
        "stun:stun.l.google.com:19302",
        "stun:stun1.l.google.com:19302",
    ]


def test_build_ice_servers() -> None:
    assert build_ice_servers(urls=[]) == []

    servers = build_ice_servers(urls=["turn:turn.example.com:3478"], username="u", credential="p")

    assert len(servers) == 1
    assert servers[0].urls == ["turn:turn.example.com:3478"]
    assert servers[0].username == "u"
