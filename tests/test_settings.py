"""Tests for the configuration schema, settings and discovery"""

import pytest

from auth_aad.config.const import (
    AUTHORIZATION_ENDPOINT,
    CLIENT_ID,
    CLIENT_SECRET,
    DISCOVERY_URL,
    ISSUER,
    JWKS_URI,
    REDIRECT_URI,
    TOKEN_ENDPOINT,
    END_SESSION_ENDPOINT,
)
from auth_aad.config.settings import (
    AuthorizationSettings,
    async_load_settings,
    async_resolve_endpoints,
)
from auth_aad.errors import ConfigurationInvalid, DiscoveryInvalid

from .mocks.aad_server import (
    EXAMPLE_CLIENT_ID,
    EXAMPLE_CLIENT_SECRET,
    EXAMPLE_REDIRECT_URI,
    ISSUER_URL,
    MockAADServer,
    make_mock_response,
    mock_aad_responses,
)


def discovery_config(**overrides) -> dict:
    """Config with only the discovery URL instead of explicit endpoints."""
    config = {
        CLIENT_ID: EXAMPLE_CLIENT_ID,
        CLIENT_SECRET: EXAMPLE_CLIENT_SECRET,
        REDIRECT_URI: EXAMPLE_REDIRECT_URI,
        DISCOVERY_URL: MockAADServer.get_discovery_url(),
    }
    config.update(overrides)
    return config


def test_defaults():
    """Test the defaults filled in by the schema."""
    settings = AuthorizationSettings.from_config(
        {
            CLIENT_ID: " client ",
            CLIENT_SECRET: "secret ",
            REDIRECT_URI: "https://www.contoso.com/auth/aad/callback",
            "unknown_option": True,
        }
    )

    assert settings.client_id == "client"
    assert settings.client_secret == "secret"
    assert settings.audience == "client"
    assert settings.scope == "openid profile email"
    assert settings.id_token_signing_algs == ("RS256",)
    assert settings.clock_skew == 300
    assert settings.field_to_match_to_upn == "email"
    assert not settings.enable_group_to_role
    assert dict(settings.group_to_role_map) == {}
    assert settings.default_role is None
    assert settings.default_redirect == "/"
    assert settings.directory_endpoint == "https://graph.microsoft.com/v1.0"
    assert settings.timeout == 10
    assert settings.membership_retries == 2
    assert settings.tls_verify
    assert settings.is_configured()
    assert settings.site_host == "www.contoso.com"
    assert settings.site_root == "https://www.contoso.com/"
    assert settings.missing_endpoints() == [
        AUTHORIZATION_ENDPOINT,
        TOKEN_ENDPOINT,
        JWKS_URI,
        ISSUER,
    ]


@pytest.mark.parametrize(
    "overrides",
    [
        {CLIENT_ID: " "},
        {REDIRECT_URI: "not-a-url"},
        {TOKEN_ENDPOINT: "ftp://example.com/token"},
        {"id_token_signing_algs": ["none"]},
        {"id_token_signing_algs": ["HS256"]},
        {"id_token_signing_algs": []},
        {"clock_skew": 600},
        {"clock_skew": -1},
        {"field_to_match_to_upn": "display_name"},
        {"group_to_role_map": {"g1": ""}},
        {"group_to_role_map": "g1=editor"},
        {"network": {"membership_retries": 5}},
    ],
)
def test_invalid_config(overrides):
    """Test that invalid options are refused as a configuration error."""
    with pytest.raises(ConfigurationInvalid):
        AuthorizationSettings.from_config(MockAADServer.get_config(**overrides))


def test_missing_required_option():
    """Test that a missing client secret is a configuration error."""
    config = MockAADServer.get_config()
    del config[CLIENT_SECRET]
    with pytest.raises(ConfigurationInvalid):
        AuthorizationSettings.from_config(config)


def test_signing_algorithms():
    """Test that a comma separated allow-list is accepted."""
    settings = AuthorizationSettings.from_config(
        MockAADServer.get_config(id_token_signing_algs="RS256, PS256")
    )
    assert settings.id_token_signing_algs == ("RS256", "PS256")


def test_group_map_keeps_order():
    """Test that both mapping forms keep the configured order."""
    settings = AuthorizationSettings.from_config(
        MockAADServer.get_config(
            group_to_role_map=[{"g2": "editor"}, {"g1": "administrator"}],
            default_role="",
        )
    )
    assert list(settings.group_to_role_map.items()) == [
        ("g2", "editor"),
        ("g1", "administrator"),
    ]
    assert settings.default_role is None

    with pytest.raises(TypeError):
        settings.group_to_role_map["g3"] = "subscriber"


def test_settings_are_frozen(settings):
    """Test that settings cannot change during a login."""
    with pytest.raises(AttributeError):
        settings.client_id = "other"


@pytest.mark.asyncio
async def test_load_with_discovery(aad_server, http_session):
    """Test that missing endpoints are resolved from the discovery document."""
    with mock_aad_responses(aad_server) as (_, get_patch, _post):
        settings = await async_load_settings(discovery_config(), http_session)

    assert get_patch.call_count == 1
    assert settings.authorization_endpoint == MockAADServer.get_authorize_url()
    assert settings.token_endpoint == MockAADServer.get_token_url()
    assert settings.end_session_endpoint == MockAADServer.get_logout_url()
    assert settings.jwks_uri == MockAADServer.get_jwks_url()
    assert settings.issuer == ISSUER_URL
    assert settings.missing_endpoints() == []


@pytest.mark.asyncio
async def test_explicit_endpoints_win(aad_server, http_session):
    """Test that explicitly configured endpoints are not replaced by discovery."""
    config = discovery_config(
        **{END_SESSION_ENDPOINT: "https://www.contoso.com/signed-out"}
    )
    with mock_aad_responses(aad_server):
        settings = await async_load_settings(config, http_session)

    assert settings.end_session_endpoint == "https://www.contoso.com/signed-out"


@pytest.mark.asyncio
async def test_explicit_endpoints_skip_discovery(aad_server, settings, http_session):
    """Test that discovery is not fetched when every endpoint is configured."""
    with mock_aad_responses(aad_server) as (_, get_patch, _post):
        resolved = await async_resolve_endpoints(settings, http_session)

    assert resolved is settings
    assert get_patch.call_count == 0


@pytest.mark.asyncio
async def test_missing_endpoints(http_session):
    """Test that a config without endpoints or discovery cannot be loaded."""
    config = discovery_config()
    del config[DISCOVERY_URL]
    with pytest.raises(ConfigurationInvalid) as excinfo:
        await async_load_settings(config, http_session)
    assert "authorization_endpoint" in str(excinfo.value)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "document_change,error_type",
    [
        ({"issuer": "https://sts.windows.net/other/"}, "issuer_mismatch"),
        ({"token_endpoint": None}, "missing_endpoint"),
        ({"jwks_uri": "not a url"}, "invalid_endpoint"),
        ({"response_types_supported": ["id_token"]}, "does_not_support_response_type"),
        ({"response_modes_supported": ["form_post"]}, "does_not_support_response_mode"),
    ],
)
async def test_discovery_invalid(aad_server, http_session, document_change, error_type):
    """Test that an unusable discovery document is refused."""
    document, _ = aad_server._get_discovery_document()  # pylint: disable=protected-access
    document.update(document_change)
    document = {k: v for k, v in document.items() if v is not None}

    with mock_aad_responses(aad_server) as (_, get_patch, _post):
        get_patch.side_effect = None
        get_patch.return_value = make_mock_response(document, 200)
        with pytest.raises(DiscoveryInvalid) as excinfo:
            await async_load_settings(discovery_config(), http_session)

    assert excinfo.value.type == error_type


@pytest.mark.asyncio
async def test_discovery_not_found(aad_server, http_session):
    """Test that a missing discovery document is refused."""
    config = discovery_config(
        **{DISCOVERY_URL: f"{ISSUER_URL}/.well-known/not-there"}
    )
    with mock_aad_responses(aad_server):
        with pytest.raises(DiscoveryInvalid) as excinfo:
            await async_load_settings(config, http_session)

    assert excinfo.value.type == "fetch_error"

