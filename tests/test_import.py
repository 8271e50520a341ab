from __future__ import annotations

from datetime import date

import pytest

from servicecrm.core.exceptions import ValidationError
from servicecrm.core.money import nanos_to_date
from servicecrm.models.customer import ServiceKind
from servicecrm.schemas.common import ServiceType
from servicecrm.services import import_service as importer

from conftest import ns


NOW = ns(2024, 2, 1, 10, 0)
HEADERS = ["Name", "Contact", "Brand", "Model", "ServiceType", "InstallationDate", "ServiceInterval"]


def validate(*rows, headers=HEADERS):
    return importer.validate_rows(headers, list(rows), NOW)


class TestRowVerdicts:
    def test_missing_name_is_fatal(self):
        [row] = validate(["", "9876543210"])
        assert not row.is_valid
        assert "Name is required" in row.errors
        assert row.row_number == 2

    def test_five_digit_contact_is_rejected_and_left_as_is(self):
        [row] = validate(["A", "98765"])
        assert not row.is_valid
        assert row.data.contact == "98765"
        assert any("10-digit" in error for error in row.errors)

    def test_defaults_applied_to_minimal_row(self):
        [row] = validate(["Meena", "98765 43210"], headers=["name", "contact"])
        assert row.is_valid
        assert row.data.contact == "+919876543210"
        assert (row.data.brand, row.data.model) == ("Unknown", "Unknown")
        assert row.data.service_type == ServiceType(kind=ServiceKind.MAINTENANCE)
        assert row.data.installation_date == NOW
        assert row.data.service_interval == 3

    def test_invalid_interval_is_a_warning_not_an_error(self):
        [row] = validate(["Meena", "9876543210", "", "", "", "2024-01-15", "4"])
        assert row.is_valid
        assert row.errors == []
        assert row.data.service_interval == 3
        assert row.warnings and "4" in row.warnings[0]

    def test_interval_text_with_units(self):
        [row] = validate(["Meena", "9876543210", "", "", "", "", "6 months"])
        assert row.data.service_interval == 6
        assert row.warnings == []

    def test_bad_date_is_fatal(self):
        [row] = validate(["Meena", "9876543210", "", "", "", "not a date", "3"])
        assert not row.is_valid
        assert any("installation date" in error.lower() for error in row.errors)

    def test_row_numbers_follow_spreadsheet_lines(self):
        rows = validate(["A", "9876543210"], ["", "", ""], ["B", "9876543211"])
        assert [r.row_number for r in rows] == [2, 4]


class TestCellParsing:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("2024-01-15", date(2024, 1, 15)),
            ("15/01/2024", date(2024, 1, 15)),
            ("15-01-2024", date(2024, 1, 15)),
            ("15 Jan 2024", date(2024, 1, 15)),
            (45306, date(2024, 1, 15)),
            (45306.0, date(2024, 1, 15)),
        ],
    )
    def test_installation_date_formats(self, value, expected):
        assert nanos_to_date(importer.parse_installation_date(value)) == expected

    @pytest.mark.parametrize("value", [0, -3, "31/02/2024", "soon", True])
    def test_unparseable_dates(self, value):
        assert importer.parse_installation_date(value) is None

    def test_service_type_parsing(self):
        assert importer.parse_service_type("cleaning") == ServiceType(kind=ServiceKind.CLEANING)
        assert importer.parse_service_type(" Repair ") == ServiceType(kind=ServiceKind.REPAIR)
        assert importer.parse_service_type("Filter change") == ServiceType(kind=ServiceKind.OTHER, label="Filter change")
        assert importer.parse_service_type("") == ServiceType(kind=ServiceKind.OTHER, label="Other")


class TestHeadersAndCsv:
    def test_missing_required_columns(self):
        with pytest.raises(ValidationError) as excinfo:
            importer.build_column_map(["Name", "Brand"])
        assert excinfo.value.details == {"missing": ["contact"]}

    def test_header_matching_ignores_case_and_spaces(self):
        column_map = importer.build_column_map(["  NAME ", "Contact", "serviceInterval"])
        assert column_map == {"name": 0, "contact": 1, "serviceinterval": 2}

    @pytest.mark.parametrize("delimiter", [",", "\t", ";"])
    def test_csv_delimiters(self, delimiter):
        text = "\n".join(
            delimiter.join(cells)
            for cells in (["name", "contact", "brand"], ["Meena", "9876543210", "Kent"], [], ["Ravi", "98765", ""])
        )
        rows = importer.validate_csv(text, NOW)
        assert [(r.data.name, r.is_valid) for r in rows] == [("Meena", True), ("Ravi", False)]
        assert rows[0].data.brand == "Kent"

    def test_quoted_fields(self):
        rows = importer.read_csv_rows('name,contact,model\n"Rao, K.",9876543210,"RO 7"\n')
        assert rows[1] == ["Rao, K.", "9876543210", "RO 7"]

    def test_header_only_csv(self):
        assert importer.validate_csv("name,contact\n", NOW) == []


def test_summarize_import():
    result = importer.summarize_import(3, ["Row 2: bad contact"])
    assert (result.success_count, result.failure_count) == (3, 1)
    assert result.errors == ["Row 2: bad contact"]
