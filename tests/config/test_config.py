"""
Tests for pharmacy_config -- defaults, overrides and rejected files.
"""

import textwrap

import pytest
import yaml

from pharmacy_config import DEFAULTS_PATH, get_active_config
from pharmacy_config.loader import load_yaml_file, merge_settings, parse_settings
from pharmacy_kernel.domain.enums import DocumentKind


def _write(tmp_path, body: str):
    path = tmp_path / "override.yaml"
    path.write_text(textwrap.dedent(body))
    return path


class TestDefaults:
    def test_defaults_load(self):
        settings = get_active_config()

        assert settings.fiscal_year_start_month == 4
        assert settings.money_decimal_places == 2
        assert settings.numbering["SALE"] == "INV/{yy}/{counter}"
        assert settings.database.url == "sqlite:///pharmacy.db"

    def test_defaults_match_engine_defaults(self):
        engine_settings = get_active_config().to_engine_settings()

        assert engine_settings.format_number(DocumentKind.SALE, 1, 2024) == "INV/24/1"
        assert engine_settings.format_number(DocumentKind.PURCHASE, 12, 2024) == "PUR/24/000012"

    def test_trace_logged(self, captured_logs):
        get_active_config()

        traces = [r for r in captured_logs() if r["message"] == "PHARMACY_CONFIG_TRACE"]
        assert traces
        assert traces[-1]["sources"] == [str(DEFAULTS_PATH)]


class TestOverrides:
    def test_override_merges_sections(self, tmp_path):
        path = _write(
            tmp_path,
            """
            fiscal_year_start_month: 1
            numbering:
              SALE: "S/{fy}/{counter:05d}"
            database:
              echo: true
            """,
        )

        settings = get_active_config(path)

        assert settings.fiscal_year_start_month == 1
        assert settings.numbering["SALE"] == "S/{fy}/{counter:05d}"
        assert settings.numbering["PAYMENT"] == "PAY/{yy}/{counter}"
        assert settings.database.echo is True
        assert settings.database.url == "sqlite:///pharmacy.db"
        assert settings.to_engine_settings().format_number(DocumentKind.SALE, 3, 2025) == "S/2025/00003"

    def test_empty_override_keeps_defaults(self, tmp_path):
        path = _write(tmp_path, "")

        assert get_active_config(path) == get_active_config()

    def test_merge_replaces_scalars(self):
        merged = merge_settings({"money_decimal_places": 2, "numbering": {"SALE": "a"}}, {"money_decimal_places": 3})

        assert merged == {"money_decimal_places": 3, "numbering": {"SALE": "a"}}


class TestRejected:
    @pytest.mark.parametrize(
        "body, key",
        [
            ("fiscal_year_starts: 4", "fiscal_year_starts"),
            ("database:\n  host: db", "database.host"),
            ("numbering:\n  RECEIPT: 'R{counter}'", "numbering.RECEIPT"),
            ("numbering:\n  SALE: 'INV/{branch}'", "numbering.SALE"),
            ("fiscal_year_start_month: 13", "fiscal_year_start_month"),
            ("money_decimal_places: 'two'", "money_decimal_places"),
            ("allow_negative_account_balance: 'no'", "allow_negative_account_balance"),
        ],
    )
    def test_bad_values_name_the_key(self, tmp_path, body, key):
        path = _write(tmp_path, body)

        with pytest.raises(ValueError, match=key):
            get_active_config(path)

    def test_missing_template_rejected(self):
        with pytest.raises(ValueError, match="missing templates"):
            parse_settings({"numbering": {"SALE": "INV{counter}"}})

    def test_non_mapping_document(self, tmp_path):
        path = _write(tmp_path, "- just\n- a list\n")

        with pytest.raises(ValueError):
            load_yaml_file(path)

    def test_malformed_yaml(self, tmp_path):
        path = _write(tmp_path, "numbering: [unclosed\n")

        with pytest.raises(yaml.YAMLError):
            get_active_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "nope.yaml")
