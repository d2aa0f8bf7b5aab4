from __future__ import annotations

import logging

from bedrock_bridge.config import DEFAULT_BEDROCK_MODEL, Settings, configure_logging


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("AWS_REGION", "eu-west-1")
    monkeypatch.setenv("PROFILE", "research")
    monkeypatch.setenv("PROXY_API_KEY", "  key-with-spaces  ")
    monkeypatch.setenv("PORT", "9090")

    settings = Settings(_env_file=None)

    assert settings.aws_region == "eu-west-1"
    assert settings.aws_profile == "research"
    assert settings.proxy_api_key == "key-with-spaces"
    assert settings.port == 9090


def test_blank_values_disable_optional_settings(monkeypatch):
    monkeypatch.setenv("PROXY_API_KEY", "   ")
    monkeypatch.setenv("BEDROCK_API_KEY", "")
    monkeypatch.delenv("DEFAULT_BEDROCK_MODEL", raising=False)

    settings = Settings(_env_file=None)

    assert settings.proxy_api_key is None
    assert settings.bedrock_api_key is None
    assert settings.default_bedrock_model == DEFAULT_BEDROCK_MODEL


def test_configure_logging_levels():
    configure_logging("debug")
    assert logging.getLogger().level == logging.DEBUG

    configure_logging("none")
    assert logging.getLogger().level > logging.CRITICAL

    configure_logging("bogus")
    assert logging.getLogger().level == logging.INFO
