"""
Tests for registry entry models and name normalization.
"""

import pytest

from discord_api.models import (
    NO_SCOPE,
    AutoClaimEntry,
    ClaimFailure,
    ClaimResult,
    ProxyDescriptor,
    WatchEntry,
    composite_key,
    normalize_resource_name,
    split_key,
)
from conftest import make_autoswap, make_watch


class TestNormalization:
    @pytest.mark.parametrize("raw,expected", [
        ("CoolName", "coolname"),
        ("My Cool Server!", "mycoolserver"),
        ("discord.gg/abc", "discordggabc"),
        ("cool-server_2", "cool-server2"),
        ("ÜBER-gang", "ber-gang"),
        ("", ""),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_resource_name(raw) == expected

    @pytest.mark.parametrize("raw", [
        "CoolName", "My Cool Server!", "--a--", "ÄÖÜ", "x y z 1 2 3", "ok",
    ])
    def test_normalize_is_idempotent(self, raw):
        once = normalize_resource_name(raw)
        assert normalize_resource_name(once) == once


class TestCompositeKey:
    def test_build_and_split(self):
        key = composite_key("123", "coolname")
        assert key == "123_coolname"
        assert split_key(key) == ("123", "coolname")

    def test_no_scope_sentinel(self):
        assert composite_key(NO_SCOPE, "abc") == "dm_abc"

    def test_entry_key(self):
        assert make_watch().key == "123_coolname"


class TestSerialization:
    def test_watch_entry_uses_legacy_field_names(self):
        data = make_watch().to_dict()
        assert data == {
            "userId": "U1",
            "channelId": "C1",
            "guildId": "123",
            "vanityUrl": "coolname",
            "addedAt": 1700000000000,
        }

    def test_watch_entry_round_trip(self):
        entry = make_watch()
        assert WatchEntry.from_dict(entry.to_dict()) == entry

    def test_autoswap_round_trip(self):
        entry = make_autoswap()
        data = entry.to_dict()
        assert data["targetGuildId"] == "999"
        assert data["targetGuildName"] == "Target Guild"
        assert AutoClaimEntry.from_dict(data) == entry

    def test_missing_guild_defaults_to_no_scope(self):
        entry = WatchEntry.from_dict({"userId": 1, "channelId": 2, "vanityUrl": "abc"})
        assert entry.scope_id == NO_SCOPE
        assert entry.requester_id == "1"

    def test_entries_are_immutable(self):
        entry = make_watch()
        with pytest.raises(AttributeError):
            entry.resource_name = "other"


class TestClaimResult:
    def test_success(self):
        result = ClaimResult.success()
        assert result.claimed
        assert result.failure is None

    def test_failed(self):
        result = ClaimResult.failed(ClaimFailure.RATE_LIMITED, "HTTP 429")
        assert not result.claimed
        assert result.failure is ClaimFailure.RATE_LIMITED


class TestProxyDescriptor:
    def test_url_and_auth(self):
        proxy = ProxyDescriptor("10.0.0.1", 8080, "user", "secret")
        assert proxy.url == "http://10.0.0.1:8080"
        assert proxy.auth.login == "user"
        assert proxy.auth.password == "secret"

    def test_str_hides_credentials(self):
        proxy = ProxyDescriptor("10.0.0.1", 8080, "user", "secret")
        assert "secret" not in str(proxy)
