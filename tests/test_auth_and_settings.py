import logging

import pytest

from servicedesk.core.config import Settings, UserProfile
from servicedesk.core.logging import build_logging_config, init_tracer, parse_otlp_headers
from servicedesk.dependencies.auth import TokenRegistry, parse_api_tokens
from servicedesk.requests import AdminPrincipal, GeoLocation, Role, UserPrincipal
from servicedesk.services.postgres import to_asyncpg_dsn, to_sqlalchemy_url


def test_parse_api_tokens_builds_principals():
    principals = parse_api_tokens(
        "adm:admin:admin-1:Vendor Admin, usr:user:user-1:Mei Tan",
        {"user-1": UserProfile(lat=1.35, lng=103.82, address="10 Orchard Road")},
    )

    assert principals["adm"] == AdminPrincipal(id="admin-1", display_name="Vendor Admin")
    user = principals["usr"]
    assert isinstance(user, UserPrincipal)
    assert user.role is Role.USER
    assert user.location == GeoLocation(lat=1.35, lng=103.82)
    assert user.address == "10 Orchard Road"


def test_user_without_profile_has_no_location():
    user = parse_api_tokens("t:user:u-2:Ravi: Kumar")["t"]

    assert user.location is None
    assert user.display_name == "Ravi: Kumar"


@pytest.mark.parametrize("raw", ["broken", "t:superuser:u:Name", "t:user::Name"])
def test_malformed_token_entries(raw):
    with pytest.raises(ValueError):
        parse_api_tokens(raw)


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("API_TOKENS", "adm:admin:admin-1:Vendor Admin")
    monkeypatch.setenv("USER_PROFILES", '{"user-1": {"lat": 1.0, "lng": 2.0, "address": "Unit 1"}}')
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    monkeypatch.setenv("SEQUENCE_MAX_ATTEMPTS", "5")

    settings = Settings(_env_file=None)
    registry = TokenRegistry.from_settings(settings)

    assert settings.storage_backend == "memory"
    assert settings.sequence_max_attempts == 5
    assert settings.user_profiles["user-1"].address == "Unit 1"
    assert len(registry) == 1
    assert registry.resolve("adm").is_admin
    assert registry.resolve("missing") is None


def test_dsn_helpers():
    assert to_sqlalchemy_url("postgresql://u:p@db/desk") == "postgresql+asyncpg://u:p@db/desk"
    assert to_asyncpg_dsn("postgresql+asyncpg://u:p@db/desk") == "postgresql://u:p@db/desk"


def test_otlp_header_parsing():
    assert parse_otlp_headers("api-key=abc, x-tenant = desk,,broken") == {"api-key": "abc", "x-tenant": "desk"}
    assert parse_otlp_headers(None) == {}


def test_logging_config_quiets_chatty_libraries():
    config = build_logging_config(Settings(_env_file=None, log_level="debug"))

    assert config["root"]["level"] == logging.DEBUG
    assert config["loggers"]["sqlalchemy.engine"] == {"level": "WARNING"}
    assert config["loggers"]["servicedesk"] == {"level": logging.DEBUG}


def test_tracer_disabled_by_default():
    assert init_tracer(Settings(_env_file=None)) is None
