import pytest

from speechscore.config import DEFAULT_SCORE_SCALE, SettingsError, load_settings


def _set_required_envs(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://project.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-key")
    for name in ["SCORE_SCALE", "CATEGORY_RANGES", "INVERTED_CATEGORIES"]:
        monkeypatch.delenv(name, raising=False)


def test_missing_required_envs_raise_actionable_error(monkeypatch):
    for name in ["SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY"]:
        monkeypatch.delenv(name, raising=False)

    with pytest.raises(SettingsError) as exc:
        load_settings()

    message = str(exc.value)
    assert "Missing required environment variable" in message
    assert "SUPABASE_URL" in message


def test_invalid_urls_are_rejected(monkeypatch):
    _set_required_envs(monkeypatch)
    monkeypatch.setenv("SUPABASE_URL", "not-a-url")

    with pytest.raises(SettingsError) as exc:
        load_settings()

    assert "Invalid URL for SUPABASE_URL" in str(exc.value)


def test_defaults_apply_when_optional_envs_are_unset(monkeypatch):
    _set_required_envs(monkeypatch)

    settings = load_settings()

    assert settings.score_scale == DEFAULT_SCORE_SCALE
    assert settings.category_ranges is None
    assert settings.inverted_categories == ("Nervousness",)


def test_score_scale_must_be_positive(monkeypatch):
    _set_required_envs(monkeypatch)
    monkeypatch.setenv("SCORE_SCALE", "0")

    with pytest.raises(SettingsError) as exc:
        load_settings()

    assert "SCORE_SCALE must be positive" in str(exc.value)


def test_score_scale_rejects_non_numbers(monkeypatch):
    _set_required_envs(monkeypatch)
    monkeypatch.setenv("SCORE_SCALE", "ten")

    with pytest.raises(SettingsError) as exc:
        load_settings()

    assert "Invalid number for SCORE_SCALE" in str(exc.value)


def test_category_ranges_are_parsed(monkeypatch):
    _set_required_envs(monkeypatch)
    monkeypatch.setenv("CATEGORY_RANGES", '{"Voice": [1, 10], "Language": [11, 20]}')

    settings = load_settings()

    assert settings.category_ranges == {"Voice": (1, 10), "Language": (11, 20)}


@pytest.mark.parametrize(
    "raw",
    ['{"Voice": [10, 1]}', '{"Voice": [1]}', '{"Voice": "1-10"}', "[1, 2]", "{not json"],
)
def test_invalid_category_ranges_are_rejected(monkeypatch, raw):
    _set_required_envs(monkeypatch)
    monkeypatch.setenv("CATEGORY_RANGES", raw)

    with pytest.raises(SettingsError):
        load_settings()


def test_inverted_categories_are_comma_separated(monkeypatch):
    _set_required_envs(monkeypatch)
    monkeypatch.setenv("INVERTED_CATEGORIES", "Nervousness, Voice ,")

    settings = load_settings()

    assert settings.inverted_categories == ("Nervousness", "Voice")
