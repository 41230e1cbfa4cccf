"""Unit tests for admin settings values, two-factor helpers and CSV export."""

import base64
import csv
import io
from datetime import date, datetime

import pyotp
import pytest

from duely.admin.export import (
    ADMIN_LOG_COLUMNS,
    ANALYTICS_COLUMNS,
    analytics_rows,
    export_filename,
    to_csv,
)
from duely.admin.settings import (
    DEFAULT_SETTINGS,
    SETTING_CATEGORIES,
    SETTING_TYPES,
    parse_setting_value,
    stringify_setting_value,
)
from duely.admin.two_factor import (
    decrypt_secret,
    encrypt_secret,
    generate_backup_codes,
    generate_qr_code,
    generate_totp_secret,
    hash_backup_code,
    verify_totp,
)


@pytest.mark.unit
class TestSettingValues:
    """Tests for typed setting storage."""

    def test_number_parsing(self) -> None:
        assert parse_setting_value("3600", "number") == 3600.0
        assert parse_setting_value("0.5", "number") == 0.5

    def test_boolean_parsing(self) -> None:
        assert parse_setting_value("true", "boolean") is True
        assert parse_setting_value("1", "boolean") is True
        assert parse_setting_value("false", "boolean") is False
        assert parse_setting_value("yes", "boolean") is False

    def test_json_parsing(self) -> None:
        assert parse_setting_value('["a@b.com"]', "json") == ["a@b.com"]

    def test_unparseable_value_returned_as_is(self) -> None:
        assert parse_setting_value("not-a-number", "number") == "not-a-number"
        assert parse_setting_value("{broken", "json") == "{broken"

    def test_string_untouched(self) -> None:
        assert parse_setting_value("Asia/Jakarta", "string") == "Asia/Jakarta"

    def test_stringify(self) -> None:
        assert stringify_setting_value(3600.0, "number") == "3600"
        assert stringify_setting_value(2.5, "number") == "2.5"
        assert stringify_setting_value(True, "boolean") == "true"
        assert stringify_setting_value(0, "boolean") == "false"
        assert stringify_setting_value({"a": 1}, "json") == '{"a": 1}'

    def test_defaults_use_known_types_and_categories(self) -> None:
        keys = [setting["key"] for setting in DEFAULT_SETTINGS]
        assert len(keys) == len(set(keys))
        for setting in DEFAULT_SETTINGS:
            assert setting["type"] in SETTING_TYPES
            assert setting["category"] in SETTING_CATEGORIES

    def test_defaults_round_trip_through_storage(self) -> None:
        for setting in DEFAULT_SETTINGS:
            stored = stringify_setting_value(setting["value"], setting["type"])
            assert parse_setting_value(stored, setting["type"]) == setting["value"]


@pytest.mark.unit
class TestTwoFactorHelpers:
    """Tests for TOTP, QR and backup code helpers."""

    def test_generated_secret_and_uri(self) -> None:
        secret, uri = generate_totp_secret("ops@duely.com")
        assert len(secret) == 32
        assert uri.startswith("otpauth://totp/")
        assert "Duely%20Admin" in uri

    def test_current_code_verifies(self) -> None:
        secret = pyotp.random_base32()
        assert verify_totp(pyotp.TOTP(secret).now(), secret)

    def test_code_with_surrounding_whitespace_verifies(self) -> None:
        secret = pyotp.random_base32()
        assert verify_totp(f" {pyotp.TOTP(secret).now()} ", secret)

    def test_code_for_another_secret_rejected(self) -> None:
        secret = pyotp.random_base32()
        other = pyotp.random_base32()
        code = pyotp.TOTP(other).now()
        if pyotp.TOTP(secret).verify(code, valid_window=2):
            pytest.skip("random secrets produced colliding codes")
        assert not verify_totp(code, secret)

    @pytest.mark.parametrize("token", ["", "abcdef", "12 34 56", "12345a"])
    def test_non_numeric_tokens_rejected(self, token: str) -> None:
        assert not verify_totp(token, pyotp.random_base32())

    def test_qr_code_is_svg_data_uri(self) -> None:
        _, uri = generate_totp_secret("ops@duely.com")
        qr = generate_qr_code(uri)

        prefix = "data:image/svg+xml;base64,"
        assert qr.startswith(prefix)
        assert b"<svg" in base64.b64decode(qr[len(prefix):])

    def test_backup_code_format(self) -> None:
        codes = generate_backup_codes()
        assert len(codes) == 10
        assert len(set(codes)) == 10
        for code in codes:
            head, tail = code.split("-")
            assert len(head) == len(tail) == 4
            assert code == code.upper()
            int(head + tail, 16)

    def test_backup_code_hash_normalises_input(self) -> None:
        assert hash_backup_code(" abcd-1234 ") == hash_backup_code("ABCD-1234")
        assert len(hash_backup_code("ABCD-1234")) == 64

    def test_secret_encryption_round_trip(self) -> None:
        encrypted = encrypt_secret("JBSWY3DPEHPK3PXP")
        assert encrypted != "JBSWY3DPEHPK3PXP"
        assert decrypt_secret(encrypted) == "JBSWY3DPEHPK3PXP"

    def test_encryption_requires_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TWO_FACTOR_ENCRYPTION_KEY", raising=False)
        with pytest.raises(RuntimeError):
            encrypt_secret("JBSWY3DPEHPK3PXP")


def _read(text: str) -> list[list[str]]:
    return list(csv.reader(io.StringIO(text)))


@pytest.mark.unit
class TestCsvExport:
    """Tests for CSV rendering."""

    def test_filename(self) -> None:
        assert export_filename("users", date(2026, 10, 18)) == "users-export-2026-10-18.csv"

    def test_header_and_cells(self) -> None:
        rows = [
            {
                "ID": "1",
                "Admin": "Ops",
                "Admin Email": "ops@duely.com",
                "Action": "login",
                "Target": None,
                "IP Address": "10.0.0.1",
                "User Agent": "curl, 8.0",
                "Metadata": {"reason": "test"},
                "Timestamp": datetime(2026, 10, 18, 9, 30),
                "Ignored": "x",
            }
        ]

        parsed = _read(to_csv(rows, ADMIN_LOG_COLUMNS))

        assert parsed[0] == ADMIN_LOG_COLUMNS
        assert parsed[1] == [
            "1",
            "Ops",
            "ops@duely.com",
            "login",
            "",
            "10.0.0.1",
            "curl, 8.0",
            '{"reason": "test"}',
            "2026-10-18T09:30:00",
        ]

    def test_empty_rows_still_have_header(self) -> None:
        assert _read(to_csv([], ANALYTICS_COLUMNS)) == [ANALYTICS_COLUMNS]

    def test_analytics_rows_merge_by_date(self) -> None:
        revenue = [
            {"date": "Jun 01", "amount": 100, "subscription_count": 2},
            {"date": "Jun 02", "amount": 150, "subscription_count": 3},
        ]
        growth = [{"date": "Jun 02", "total_users": 5, "new_users": 1, "active_users": 4}]

        rows = analytics_rows(revenue, growth, churn_rate=2.5)

        assert rows[0]["Total Users"] == 0
        assert rows[1] == {
            "Date": "Jun 02",
            "Revenue": 150,
            "Subscriptions": 3,
            "Total Users": 5,
            "New Users": 1,
            "Active Users": 4,
            "Churn Rate": 2.5,
        }
