"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.config import ApiSettings, ReviewSettings, Settings


class TestSettings:
    def test_log_level_normalized(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        assert Settings().log_level == "WARNING"

    def test_invalid_log_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        with pytest.raises(ValidationError):
            Settings()

    def test_backend_url_from_env(self, monkeypatch):
        monkeypatch.setenv("HOSHLOOP_API_URL", "https://api.example.com/api")
        assert ApiSettings().hoshloop_api_url == "https://api.example.com/api"

    def test_review_template_has_place_id(self):
        assert "{place_id}" in ReviewSettings().review_url_template

    def test_is_production(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        assert Settings().is_production is True
