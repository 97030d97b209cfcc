# tests/test_config.py
import pytest
from pydantic import ValidationError

from conftest import make_settings


def test_short_secret_rejected(tmp_path):
    with pytest.raises(ValidationError):
        make_settings(tmp_path, secret_key="too-short")


def test_unknown_environment_rejected(tmp_path):
    with pytest.raises(ValidationError):
        make_settings(tmp_path, environment="qa")


def test_log_level_is_normalized(tmp_path):
    assert make_settings(tmp_path, log_level="debug").log_level == "DEBUG"
    with pytest.raises(ValidationError):
        make_settings(tmp_path, log_level="chatty")


def test_comma_separated_lists(tmp_path):
    settings = make_settings(tmp_path, allowed_origins="https://securepent.com, https://www.securepent.com ,")
    assert settings.origins() == ["https://securepent.com", "https://www.securepent.com"]
    assert "OPTIONS" in settings.methods()


def test_derived_flags(tmp_path):
    settings = make_settings(tmp_path)
    assert settings.is_testing
    assert settings.is_sqlite
    assert not settings.smtp_configured
    assert make_settings(tmp_path, smtp_host="smtp.securepent.com", smtp_username="mailer").smtp_configured
