import pytest
from datetime import timedelta

from core.config import AuthSettings, parse_duration
from core.exceptions import ConfigurationError


class TestParseDuration:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("900", timedelta(seconds=900)),
            ("30s", timedelta(seconds=30)),
            ("15m", timedelta(minutes=15)),
            ("2h", timedelta(hours=2)),
            ("10d", timedelta(days=10)),
            (" 1D ", timedelta(days=1)),
        ],
    )
    def test_valid_durations(self, raw, expected):
        assert parse_duration("X", raw) == expected

    @pytest.mark.parametrize("raw", ["", "abc", "10w", "-5m", "0"])
    def test_invalid_durations(self, raw):
        with pytest.raises(ConfigurationError):
            parse_duration("X", raw)


class TestAuthSettings:
    def test_from_env(self):
        settings = AuthSettings.from_env(
            {
                "ACCESS_TOKEN_SECRET": "a-secret",
                "REFRESH_TOKEN_SECRET": "r-secret",
                "ACCESS_TOKEN_EXPIRY": "5m",
                "REFRESH_TOKEN_EXPIRY": "7d",
                "BCRYPT_ROUNDS": "6",
                "STORAGE_TIMEOUT_SECONDS": "2.5",
            }
        )

        assert settings.access_token_secret == "a-secret"
        assert settings.refresh_token_secret == "r-secret"
        assert settings.access_token_ttl == timedelta(minutes=5)
        assert settings.refresh_token_ttl == timedelta(days=7)
        assert settings.bcrypt_rounds == 6
        assert settings.storage_timeout == 2.5

    def test_defaults(self):
        settings = AuthSettings.from_env(
            {"ACCESS_TOKEN_SECRET": "a", "REFRESH_TOKEN_SECRET": "b"}
        )
        assert settings.access_token_ttl == timedelta(minutes=15)
        assert settings.refresh_token_ttl == timedelta(days=10)

    def test_reads_process_environment(self):
        # conftest sets both secrets for every test
        settings = AuthSettings.from_env()
        assert settings.access_token_secret == "test-access-secret"

    @pytest.mark.parametrize(
        "env",
        [
            {"REFRESH_TOKEN_SECRET": "b"},
            {"ACCESS_TOKEN_SECRET": "a"},
            {"ACCESS_TOKEN_SECRET": "  ", "REFRESH_TOKEN_SECRET": "b"},
            {"ACCESS_TOKEN_SECRET": "same", "REFRESH_TOKEN_SECRET": "same"},
            {"ACCESS_TOKEN_SECRET": "a", "REFRESH_TOKEN_SECRET": "b", "BCRYPT_ROUNDS": "x"},
            {"ACCESS_TOKEN_SECRET": "a", "REFRESH_TOKEN_SECRET": "b", "BCRYPT_ROUNDS": "2"},
            {"ACCESS_TOKEN_SECRET": "a", "REFRESH_TOKEN_SECRET": "b", "STORAGE_TIMEOUT_SECONDS": "0"},
        ],
    )
    def test_invalid_configuration(self, env):
        with pytest.raises(ConfigurationError):
            AuthSettings.from_env(env)
