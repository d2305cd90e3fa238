"""Pytest configuration and fixtures."""
import copy
from datetime import date

import pytest

from mastoutil import config
from mastoutil.models import Profile, ProfileField
from mastoutil.storage import open_store


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Never read the developer's real config file."""
    monkeypatch.setattr(config, "CONFIG_PATHS", [tmp_path / "no-such-config.yaml"])
    monkeypatch.setattr(config, "_config_cache", None)


@pytest.fixture
def set_config(monkeypatch):
    """Override config values for one test: set_config({"storage": {...}})."""
    def _set(overrides: dict):
        merged = config._deep_merge(copy.deepcopy(config.DEFAULT_CONFIG), overrides)
        monkeypatch.setattr(config, "_config_cache", merged)
    return _set


@pytest.fixture
def store(tmp_path):
    """Freshly opened store with no schema."""
    s = open_store(tmp_path / "store.db")
    yield s
    s.close()


@pytest.fixture
def make_profile():
    """Build a Profile with plausible defaults."""
    def _make(user_id: str = "u1", **overrides) -> Profile:
        values = dict(
            user_id=user_id,
            acct_id=1000 + len(user_id),
            user_name=f"{user_id}_name",
            instance="mastodon.social",
            uri=f"https://mastodon.social/users/{user_id}",
            fields=(ProfileField("Website", "https://example.org"),),
            profile_text="Rust developer and amateur photographer",
            earliest_notification=date(2024, 3, 1),
            is_loginable=False,
            has_been_tested=False,
        )
        values.update(overrides)
        return Profile(**values)
    return _make
