from __future__ import annotations

import pytest

from erp_import.models.schema_models import FieldKind
from erp_import.transform.values import transform_value


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("R$ 1.234,56", 1234.56),
        ("1234.56", 1234.56),
        ("1,234.56", 1234.56),
        ("R$1.000.000,00", 1000000.0),
        ("10,5", 10.5),
        ("€ 7,00", 7.0),
        ("-R$ 3,10", -3.1),
        ("abc", 0.0),
        ("R$ 1.234.567", 1234567.0),
        ("1.234.567", 1234567.0),
        ("R$ 12.000", 12000.0),
        ("12.50", 12.5),
    ],
)
def test_currency(raw, expected):
    assert transform_value(raw, FieldKind.CURRENCY) == pytest.approx(expected)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("25/12/2023", "2023-12-25"),
        ("25-12-2023", "2023-12-25"),
        ("2023-12-25", "2023-12-25"),
        ("not-a-date", None),
        ("31/02/2023", None),
        ("25/12-2023", None),
    ],
)
def test_date(raw, expected):
    assert transform_value(raw, FieldKind.DATE) == expected


@pytest.mark.parametrize(
    "raw, expected",
    [("3,5", 3.5), ("42", 42.0), (" 7 ", 7.0), ("n/a", 0.0), ("inf", 0.0)],
)
def test_number(raw, expected):
    assert transform_value(raw, FieldKind.NUMBER) == expected


def test_document_keeps_digits_only():
    assert transform_value("12.345.678/0001-90", FieldKind.DOCUMENT) == "12345678000190"
    assert transform_value("---", FieldKind.DOCUMENT) is None


def test_text_is_trimmed():
    assert transform_value("  Loja Alfa  ", FieldKind.TEXT) == "Loja Alfa"


@pytest.mark.parametrize("kind", list(FieldKind))
@pytest.mark.parametrize("raw", ["", "   ", None])
def test_empty_input_becomes_none(kind, raw):
    assert transform_value(raw, kind) is None


@pytest.mark.parametrize(
    "raw, kind",
    [
        ("R$ 1.234,56", FieldKind.CURRENCY),
        ("1,234.56", FieldKind.CURRENCY),
        ("garbage", FieldKind.CURRENCY),
        ("25/12/2023", FieldKind.DATE),
        ("bad", FieldKind.DATE),
        ("3,5", FieldKind.NUMBER),
        ("12.345.678/0001-90", FieldKind.DOCUMENT),
        ("  text  ", FieldKind.TEXT),
    ],
)
def test_transform_is_idempotent(raw, kind):
    once = transform_value(raw, kind)
    assert transform_value(once, kind) == once


def test_numbers_pass_through():
    assert transform_value(12.5, FieldKind.CURRENCY) == 12.5
    assert transform_value(3, FieldKind.NUMBER) == 3.0
