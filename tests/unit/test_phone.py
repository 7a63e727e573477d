"""Unit tests for Brazilian phone variants."""
from crm.utils.phone import normalize_brazilian_phone, only_digits


class TestNormalizeBrazilianPhone:
    """Every stored form of a WhatsApp number."""

    def test_full_mobile_number(self):
        assert normalize_brazilian_phone('5511987654321') == {'5511987654321', '551187654321'}

    def test_without_mobile_nine(self):
        assert normalize_brazilian_phone('551187654321') == {'551187654321', '5511987654321'}

    def test_without_country_code(self):
        assert normalize_brazilian_phone('(11) 98765-4321') == {
            '11987654321', '5511987654321', '551187654321'
        }

    def test_landline_without_country_code(self):
        assert normalize_brazilian_phone('1187654321') == {
            '1187654321', '551187654321', '5511987654321'
        }

    def test_empty(self):
        assert normalize_brazilian_phone('') == set()
        assert normalize_brazilian_phone(None) == set()

    def test_unknown_length_is_kept_as_is(self):
        assert normalize_brazilian_phone('+1 555 0100') == {'15550100'}

    def test_only_digits(self):
        assert only_digits('+55 (11) 98765-4321') == '5511987654321'
