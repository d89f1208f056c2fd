import pytest

from config.settings import Settings, settings
from util.errors import ConfigurationError


def test_require_returns_configured_value(monkeypatch) -> None:
    monkeypatch.setattr(settings, "CREATOMATE_API_KEY", "abc")
    assert settings.require("CREATOMATE_API_KEY") == "abc"


def test_require_names_the_environment_variable(monkeypatch) -> None:
    monkeypatch.setattr(settings, "SUPABASE_URL", None)
    with pytest.raises(ConfigurationError) as exc:
        settings.require("SUPABASE_URL")
    assert exc.value.message == "Missing required environment variable: NEXT_PUBLIC_SUPABASE_URL"
    assert exc.value.status_code == 500


def test_empty_string_counts_as_missing(monkeypatch) -> None:
    monkeypatch.setattr(settings, "PEXELS_API_KEY", "")
    with pytest.raises(ConfigurationError, match="PEXELS_API_KEY"):
        settings.require("PEXELS_API_KEY")


def test_environment_aliases(monkeypatch) -> None:
    monkeypatch.setenv("NEXT_PUBLIC_APP_HOST", "https://shop.example.com")
    monkeypatch.setenv("APP_ENV", "prod")
    fresh = Settings()
    assert fresh.APP_HOST == "https://shop.example.com"
    assert fresh.is_production


def test_missing_integrations_lists_unset_groups(monkeypatch, provider_keys) -> None:
    assert settings.missing_integrations() == []
    monkeypatch.setattr(settings, "TIKTOK_API_SECRET", None)
    monkeypatch.setattr(settings, "RUNWAY_API_KEY", "")
    assert settings.missing_integrations() == ["tiktok", "runway"]


def test_level_overrides_skip_garbage() -> None:
    from util.logger import parse_level_overrides

    parsed = parse_level_overrides("core.polling=debug, repository=WARNING,bad,x=LOUD,=INFO")
    assert parsed == {"core.polling": 10, "repository": 30}
    assert parse_level_overrides("") == {}
