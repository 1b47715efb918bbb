"""
Unit tests for settings parsing and the plan catalog.
"""
from edustream.core.config import Settings
from edustream.core.plans import get_plan, list_plans


class TestSettings:
    def test_comma_separated_lists(self, monkeypatch):
        monkeypatch.setenv("ADMIN_EMAILS", " a@x.test, b@x.test ,")
        monkeypatch.setenv("BACKEND_CORS_ORIGINS", "http://a.test,http://b.test")

        settings = Settings(_env_file=None)

        assert settings.admin_emails == ["a@x.test", "b@x.test"]
        assert settings.backend_cors_origins == ["http://a.test", "http://b.test"]

    def test_upload_limit_in_bytes(self, monkeypatch):
        monkeypatch.setenv("MAX_UPLOAD_SIZE_MB", "2")

        assert Settings(_env_file=None).max_upload_size_bytes == 2 * 1024 * 1024


class TestPlans:
    def test_catalog(self):
        plans = {plan["plan_type"]: plan for plan in list_plans()}

        assert list(plans) == ["basic", "premium", "enterprise"]
        assert plans["basic"]["price"] == 0.01
        assert plans["enterprise"]["price_id"] == "price_enterprise"

    def test_unknown_plan(self):
        assert get_plan("gold") is None
