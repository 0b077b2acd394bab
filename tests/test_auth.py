"""Tests for API key loading."""

import pytest

from propedge.auth import get_valid_api_keys


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for i in range(1, 6):
        monkeypatch.delenv(f"API_KEY_USER{i}", raising=False)
        monkeypatch.delenv(f"API_KEY_TIER_USER{i}", raising=False)
    monkeypatch.delenv("ENVIRONMENT", raising=False)


def test_keys_map_to_subjects(monkeypatch):
    monkeypatch.setenv("API_KEY_USER1", "k1")
    monkeypatch.setenv("API_KEY_USER2", "k2")
    monkeypatch.setenv("API_KEY_TIER_USER2", "PRO")

    keys = get_valid_api_keys()
    assert keys["k1"].id == "user1"
    assert keys["k1"].is_admin
    assert keys["k2"].tier == "pro"


def test_unknown_tier_falls_back_to_basic(monkeypatch):
    monkeypatch.setenv("API_KEY_USER3", "k3")
    monkeypatch.setenv("API_KEY_TIER_USER3", "gold")
    assert get_valid_api_keys()["k3"].tier == "basic"


def test_admin_tier_only_for_user1(monkeypatch):
    monkeypatch.setenv("API_KEY_USER1", "k1")
    monkeypatch.setenv("API_KEY_TIER_USER1", "basic")
    assert get_valid_api_keys()["k1"].tier == "admin"


def test_development_fallback(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "development")
    assert "dev-key-insecure" in get_valid_api_keys()


def test_no_keys_in_production():
    assert get_valid_api_keys() == {}
