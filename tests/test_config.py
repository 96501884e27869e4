import pytest

from esports_sim.app import build_app
from esports_sim.config import DEFAULT_HTTP_TIMEOUT, load_settings
from esports_sim.errors import MissingConfigurationError


def test_missing_backend_settings_are_fatal() -> None:
    with pytest.raises(MissingConfigurationError, match="Missing Supabase environment variables"):
        load_settings({})
    with pytest.raises(MissingConfigurationError):
        load_settings({"SUPABASE_URL": "https://backend.test", "SUPABASE_ANON_KEY": "   "})


def test_build_app_halts_without_configuration() -> None:
    with pytest.raises(MissingConfigurationError):
        build_app({"SUPABASE_ANON_KEY": "key"})


def test_front_end_variable_names_are_accepted() -> None:
    settings = load_settings(
        {"VITE_SUPABASE_URL": "https://backend.test/", "VITE_SUPABASE_ANON_KEY": "anon"}
    )
    assert settings.supabase_url == "https://backend.test"
    assert settings.supabase_anon_key == "anon"


def test_optional_settings_fall_back_on_bad_values() -> None:
    settings = load_settings(
        {
            "SUPABASE_URL": "https://backend.test",
            "SUPABASE_ANON_KEY": "anon",
            "ESPORTS_SIM_HTTP_TIMEOUT": "soon",
            "ESPORTS_SIM_LOG_FORMAT": "xml",
            "ESPORTS_SIM_LOG_LEVEL": "debug",
            "ESPORTS_SIM_PORT": "9001",
        }
    )
    assert settings.http_timeout == DEFAULT_HTTP_TIMEOUT
    assert settings.log_format == "text"
    assert settings.log_level == "DEBUG"
    assert settings.port == 9001
