from __future__ import annotations

import pytest

from shudenout.config.settings import Settings, mask_secret


def test_blank_credentials_are_treated_as_missing() -> None:
    settings = Settings(_env_file=None, rakuten_app_id="   ", rakuten_affiliate_id="", jalan_api_key=" key ")

    assert settings.rakuten_app_id is None
    assert settings.rakuten_affiliate_id is None
    assert settings.jalan_api_key == "key"
    assert settings.has_primary_credentials() is False


def test_production_never_serves_sample_data() -> None:
    production = Settings(_env_file=None, environment=" Production ", allow_sample_data=True)
    development = Settings(_env_file=None, environment="development", allow_sample_data=True)

    assert production.is_production()
    assert production.sample_data_enabled() is False
    assert development.sample_data_enabled() is True


def test_environment_reads_prefixed_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHUDENOUT_RAKUTEN_APP_ID", "1234567890")
    monkeypatch.setenv("SHUDENOUT_VACANCY_CHUNK_SIZE", "10")

    settings = Settings(_env_file=None)

    assert settings.rakuten_app_id == "1234567890"
    assert settings.vacancy_chunk_size == 10


def test_chunk_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        Settings(_env_file=None, vacancy_chunk_size=0)


def test_masking_hides_the_application_id() -> None:
    assert mask_secret("1234567890") == "123...90"
    assert mask_secret("abc") == "***"
    assert mask_secret(None) == ""
    assert Settings(_env_file=None, rakuten_app_id="abcdefghij").masked_app_id() == "abc...ij"
