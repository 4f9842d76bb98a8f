"""
Settings loading from PARTS_PRICING_* environment variables.
"""
import pytest
from pydantic import ValidationError

from parts_pricing.config.settings import Settings

ENV_VARS = [
    'PARTS_PRICING_DATA_DIR',
    'PARTS_PRICING_CACHE_TTL_SECONDS',
    'PARTS_PRICING_FETCH_WORKERS',
    'PARTS_PRICING_LOG_LEVEL',
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults(tmp_path):
    settings = Settings.load(tmp_path)

    assert settings.project_root == tmp_path
    assert settings.data_dir == tmp_path / 'data'
    assert settings.cache_ttl_seconds == 30.0
    assert settings.fetch_workers == 3
    assert settings.log_level == 'INFO'


def test_env_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv('PARTS_PRICING_DATA_DIR', str(tmp_path / 'elsewhere'))
    monkeypatch.setenv('PARTS_PRICING_CACHE_TTL_SECONDS', '5')
    monkeypatch.setenv('PARTS_PRICING_FETCH_WORKERS', '1')
    monkeypatch.setenv('PARTS_PRICING_LOG_LEVEL', 'debug')

    settings = Settings.load(tmp_path)

    assert settings.data_dir == tmp_path / 'elsewhere'
    assert settings.cache_ttl_seconds == 5.0
    assert settings.fetch_workers == 1
    assert settings.log_level == 'DEBUG'


@pytest.mark.parametrize("name,value", [
    ('PARTS_PRICING_CACHE_TTL_SECONDS', 'thirty'),
    ('PARTS_PRICING_CACHE_TTL_SECONDS', '-1'),
    ('PARTS_PRICING_FETCH_WORKERS', '0'),
])
def test_invalid_env_values_rejected(tmp_path, monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        Settings.load(tmp_path)
