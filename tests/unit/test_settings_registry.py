from pathlib import Path

import pytest

from config import AppConfig, load_config, resolve_registry
from config.settings import Settings
from practice_session.generator import GENERATOR_SCHEMAS, PRACTICE_STARTER_KEY

ROOT = Path(__file__).resolve().parents[2]


def test_settings_defaults():
    settings = Settings(_env_file=None)
    assert settings.DB_PATH.endswith(".db")
    assert settings.GENERATION_MAX_ATTEMPTS == 2
    assert settings.PERSONA_DEFAULT == "Alex"
    assert settings.DEFAULT_MAX_EXCHANGES == 6


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("SILENCE_TIMEOUT_S", "3.5")
    monkeypatch.setenv("DEFAULT_MAX_EXCHANGES", "4")
    settings = Settings(_env_file=None)
    assert settings.SILENCE_TIMEOUT_S == 3.5
    assert settings.DEFAULT_MAX_EXCHANGES == 4


def test_app_config_resolves_every_generator_route():
    cfg = load_config(ROOT / "app_config.json")
    registry = resolve_registry(cfg, GENERATOR_SCHEMAS)

    assert set(registry) == set(GENERATOR_SCHEMAS)
    route, schema = registry[PRACTICE_STARTER_KEY]
    assert route.name == "openai_chat"
    assert schema is GENERATOR_SCHEMAS[PRACTICE_STARTER_KEY]
    assert cfg.flow.starter_temperature == 1.0
    assert cfg.flow.short_answer_words == 8


def test_resolve_registry_reports_missing_entries():
    cfg = AppConfig(llm_routes={}, registry={})
    with pytest.raises(KeyError):
        resolve_registry(cfg, GENERATOR_SCHEMAS)

    cfg = AppConfig(llm_routes={}, registry={key: "absent_route" for key in GENERATOR_SCHEMAS})
    with pytest.raises(KeyError, match="absent_route"):
        resolve_registry(cfg, GENERATOR_SCHEMAS)
