import pytest

from gueswi.shared.validators import validate_email, validate_extension_number, validate_hhmm


def test_validate_email_normalizes():
    assert validate_email("  Ana@Example.COM ") == "ana@example.com"


@pytest.mark.parametrize("value", [None, "", "  "])
def test_validate_email_requires_value(value):
    with pytest.raises(ValueError, match="Email is required"):
        validate_email(value)


@pytest.mark.parametrize("value", ["ana@example", "ana@@example.com", "a b@example.com"])
def test_validate_email_rejects_bad_format(value):
    with pytest.raises(ValueError, match="Invalid email format"):
        validate_email(value)


@pytest.mark.parametrize("value", ["09:00", "23:59", "00:00"])
def test_validate_hhmm_accepts(value):
    assert validate_hhmm(value) == value


@pytest.mark.parametrize("value", ["24:00", "9:00", "09:60", "09:00\n", " 09:00", None])
def test_validate_hhmm_rejects(value):
    with pytest.raises(ValueError):
        validate_hhmm(value)


def test_validate_extension_number():
    assert validate_extension_number(" 101 ") == "101"
    with pytest.raises(ValueError):
        validate_extension_number("1")
