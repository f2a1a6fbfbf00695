from settings import Settings, get_settings


def test_defaults():
    settings = Settings()
    assert settings.quote_validity_days == 30
    assert settings.default_installation_cost == 1200
    assert settings.log_level == "INFO"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("QUOTE_COMPANY_NAME", "Bright Homes Energy")
    monkeypatch.setenv("QUOTE_QUOTE_VALIDITY_DAYS", "45")

    settings = get_settings()

    assert settings.company_name == "Bright Homes Energy"
    assert settings.quote_validity_days == 45


def test_cached():
    assert get_settings() is get_settings()
