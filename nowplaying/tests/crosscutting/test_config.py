import pytest

from nowplaying.crosscutting.config import (
    DEFAULT_REDIRECT_URI, get_spotify_scope_string, get_spotify_scopes, load_settings
)
from nowplaying.domain.errors import ConfigError, ErrorKind

REQUIRED = {
    'SPOTIFY_CLIENT_ID': 'client_id_123',
    'SPOTIFY_CLIENT_SECRET': 'client_secret_abcdefgh',
    'SPOTIFY_REFRESH_TOKEN': 'refresh_token_abcdefgh',
}


class TestScopes:

    def test_get_spotify_scopes(self):
        assert get_spotify_scopes() == [
            'user-read-currently-playing',
            'user-read-recently-played',
            'user-top-read',
            'user-read-playback-position',
            'user-read-playback-state',
        ]

    def test_get_spotify_scope_string(self):
        assert get_spotify_scope_string() == ' '.join(get_spotify_scopes())


class TestLoadSettings:

    def test_loads_required_values_and_defaults(self):
        settings = load_settings(REQUIRED)

        assert settings.credentials.client_id == 'client_id_123'
        assert settings.credentials.client_secret == 'client_secret_abcdefgh'
        assert settings.credentials.refresh_token == 'refresh_token_abcdefgh'
        assert settings.redirect_uri == DEFAULT_REDIRECT_URI
        assert settings.host == '0.0.0.0'
        assert settings.port == 3000
        assert settings.requests_timeout == 15
        assert settings.log_level == 'INFO'
        assert settings.log_file is None

    def test_reads_os_environ_by_default(self, monkeypatch):
        for key, value in REQUIRED.items():
            monkeypatch.setenv(key, value)

        assert load_settings().credentials.client_id == 'client_id_123'

    def test_missing_values_are_all_reported(self):
        with pytest.raises(ConfigError) as excinfo:
            load_settings({'SPOTIFY_CLIENT_ID': 'x'})

        message = str(excinfo.value)
        assert 'SPOTIFY_CLIENT_SECRET' in message
        assert 'SPOTIFY_REFRESH_TOKEN' in message
        assert 'SPOTIFY_CLIENT_ID' not in message
        assert excinfo.value.kind is ErrorKind.CONFIG

    def test_blank_value_counts_as_missing(self):
        with pytest.raises(ConfigError, match='SPOTIFY_REFRESH_TOKEN'):
            load_settings(dict(REQUIRED, SPOTIFY_REFRESH_TOKEN='   '))

    def test_fallback_names(self):
        settings = load_settings({
            'SPOTIPY_CLIENT_ID': 'legacy_id',
            'SPOTIPY_CLIENT_SECRET': 'legacy_secret',
            'REFRESH_TOKEN': 'legacy_refresh',
        })

        assert settings.credentials.client_id == 'legacy_id'
        assert settings.credentials.client_secret == 'legacy_secret'
        assert settings.credentials.refresh_token == 'legacy_refresh'

    def test_canonical_name_wins_over_fallback(self):
        settings = load_settings(dict(REQUIRED, SPOTIPY_CLIENT_ID='legacy_id'))
        assert settings.credentials.client_id == 'client_id_123'

    def test_optional_overrides(self):
        settings = load_settings(dict(
            REQUIRED,
            SPOTIFY_REDIRECT_URI='http://localhost:9999/cb',
            NOWPLAYING_HOST='127.0.0.1',
            NOWPLAYING_PORT='8080',
            NOWPLAYING_REQUESTS_TIMEOUT='5',
            LOG_LEVEL='debug',
            LOG_FILE='/var/log/nowplaying.log',
        ))

        assert settings.redirect_uri == 'http://localhost:9999/cb'
        assert settings.host == '127.0.0.1'
        assert settings.port == 8080
        assert settings.requests_timeout == 5
        assert settings.log_level == 'DEBUG'
        assert settings.log_file == '/var/log/nowplaying.log'

    def test_malformed_port(self):
        with pytest.raises(ConfigError, match='NOWPLAYING_PORT'):
            load_settings(dict(REQUIRED, NOWPLAYING_PORT='eighty'))

    def test_invalid_log_level_is_config_error(self):
        with pytest.raises(ConfigError, match='LOG_LEVEL') as excinfo:
            load_settings(dict(REQUIRED, LOG_LEVEL='verbose'))
        assert excinfo.value.kind is ErrorKind.CONFIG

    def test_critical_log_level_is_accepted(self):
        assert load_settings(dict(REQUIRED, LOG_LEVEL='critical')).log_level == 'CRITICAL'

    def test_summary_masks_secrets(self):
        summary = load_settings(REQUIRED).summary()

        assert summary['client_id'] == 'client_id_123'
        assert summary['client_secret'] == 'clie**************efgh'
        assert summary['refresh_token'] == 'refr**************efgh'
        assert 'client_secret_abcdefgh' not in str(summary)
        assert summary['spotify_scopes'] == get_spotify_scopes()

    def test_credentials_repr_hides_secrets(self):
        settings = load_settings(REQUIRED)
        assert 'client_secret_abcdefgh' not in repr(settings)
        assert 'refresh_token_abcdefgh' not in repr(settings)
