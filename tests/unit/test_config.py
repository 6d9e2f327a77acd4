"""
Unit Tests - Configuration and Error Translation
"""
import pytest
from pydantic import ValidationError as SettingsValidationError
from sqlalchemy.exc import IntegrityError

from src.config.settings import BusinessSettings, DatabaseSettings, Settings
from src.serving.api.errors import integrity_status, validation_message


class TestSettings:
    """Tests for settings defaults and validation"""

    def test_business_defaults(self):
        business = BusinessSettings()

        assert business.allow_negative_stock is True
        assert business.report_cost_basis == "snapshot"
        assert business.vip_spend_threshold == 50.0
        assert business.default_order_status == "completed"
        assert business.default_payment_method == "cash"

    def test_cost_basis_is_validated(self):
        assert BusinessSettings(REPORT_COST_BASIS="Current").report_cost_basis == "current"
        with pytest.raises(SettingsValidationError):
            BusinessSettings(REPORT_COST_BASIS="average")

    def test_env_is_validated(self):
        with pytest.raises(SettingsValidationError):
            Settings(APP_ENV="qa")

    def test_database_url_override(self):
        assert DatabaseSettings(DATABASE_URL="sqlite+aiosqlite://").async_url == "sqlite+aiosqlite://"

    def test_database_url_from_parts(self):
        database = DatabaseSettings(host="db", port=5433, database="shop", user="barista", password="pw")

        assert database.async_url == "postgresql+asyncpg://barista:pw@db:5433/shop"

    def test_environment_variables(self, monkeypatch):
        monkeypatch.setenv("ALLOW_NEGATIVE_STOCK", "false")
        monkeypatch.setenv("VIP_SPEND_THRESHOLD", "75")

        business = BusinessSettings()

        assert business.allow_negative_stock is False
        assert business.vip_spend_threshold == 75.0


class TestErrorTranslation:
    """Tests for request and database error messages"""

    def test_missing_fields_are_listed(self):
        errors = [
            {"type": "missing", "loc": ("body", "price")},
            {"type": "missing", "loc": ("body", "cost")},
        ]
        assert validation_message(errors) == "Missing required fields: price, cost"

    def test_missing_body(self):
        assert validation_message([{"type": "missing", "loc": ("body",)}]) == "Request body is required"

    def test_invalid_field(self):
        errors = [{"type": "decimal_parsing", "loc": ("body", "price")}]
        assert validation_message(errors) == "Invalid value for field: price"

    def test_invalid_query_parameter(self):
        errors = [{"type": "uuid_parsing", "loc": ("query", "id")}]
        assert validation_message(errors) == "Invalid value for field: id"

    def test_invalid_json(self):
        errors = [{"type": "json_invalid", "loc": ("body", 1)}]
        assert validation_message(errors) == "Invalid JSON body"

    @pytest.mark.parametrize("detail,status", [
        ("UNIQUE constraint failed: customers.email", 409),
        ('duplicate key value violates unique constraint "customers_email_key"', 409),
        ("FOREIGN KEY constraint failed", 400),
        ('insert or update on table "orders" violates foreign key constraint', 400),
    ])
    def test_integrity_status(self, detail, status):
        error = IntegrityError("INSERT ...", {}, Exception(detail))
        assert integrity_status(error) == status
