"""
Protection Code (ZKI) Unit Tests
"""

import hashlib
from decimal import Decimal

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from fiskal_cis.crypto.protection_code import ProtectionCodeGenerator, format_zki_amount
from fiskal_cis.exceptions import ValidationError


class TestFormatZkiAmount:
    """Tests for amount formatting before hashing"""

    @pytest.mark.parametrize("amount", [100, "100", "100.00", "100,00", Decimal("100"), " 100.0 "])
    def test_equivalent_forms(self, amount):
        """Should format every spelling of one hundred identically"""
        assert format_zki_amount(amount) == "100.00"

    def test_rounds_half_away_from_zero(self):
        """Should round halves up, not to even"""
        assert format_zki_amount("0.125") == "0.13"
        assert format_zki_amount("0.135") == "0.14"
        assert format_zki_amount("-1.005") == "-1.01"

    def test_invalid_amount(self):
        """Should reject non-numeric input"""
        with pytest.raises(ValidationError) as exc_info:
            format_zki_amount("12a")
        assert exc_info.value.field == "total_amount"

    def test_non_finite_amount(self):
        """Should reject infinities"""
        with pytest.raises(ValidationError):
            format_zki_amount("Infinity")


class TestProtectionCodeGenerator:
    """Tests for ProtectionCodeGenerator"""

    ARGS = ("62615118085", "01.01.2024T10:00:00", "1", "1", "1")

    def test_data_string_layout(self):
        """Should concatenate fields without separators"""
        data = ProtectionCodeGenerator.data_string(*self.ARGS, "125")
        assert data == "6261511808501.01.2024T10:00:00111125.00"

    def test_output_format(self, private_key):
        """Should return 32 lowercase hex characters"""
        code = ProtectionCodeGenerator.generate(*self.ARGS, "125.00", private_key)
        assert len(code) == 32
        assert code == code.lower()
        int(code, 16)

    def test_deterministic(self, private_key):
        """Should give the same code for the same inputs"""
        first = ProtectionCodeGenerator.generate(*self.ARGS, "125.00", private_key)
        second = ProtectionCodeGenerator.generate(*self.ARGS, "125.00", private_key)
        assert first == second

    def test_amount_spelling_does_not_matter(self, private_key):
        """Should hash 100, 100.00 and 100,00 identically"""
        codes = {
            ProtectionCodeGenerator.generate(*self.ARGS, amount, private_key)
            for amount in (100, "100.00", "100,00")
        }
        assert len(codes) == 1

    def test_matches_manual_computation(self, private_key):
        """Should equal MD5 of the PKCS#1 v1.5 SHA-1 signature"""
        data = "6261511808501.01.2024T10:00:00111125.00".encode("utf-8")
        signature = private_key.sign(data, padding.PKCS1v15(), hashes.SHA1())
        expected = hashlib.md5(signature).hexdigest()

        assert ProtectionCodeGenerator.generate(*self.ARGS, "125.00", private_key) == expected

    def test_fields_change_code(self, private_key):
        """Should depend on the invoice number"""
        first = ProtectionCodeGenerator.generate(*self.ARGS, "125.00", private_key)
        second = ProtectionCodeGenerator.generate(
            "62615118085", "01.01.2024T10:00:00", "2", "1", "1", "125.00", private_key
        )
        assert first != second

    def test_ensure_fills_missing_code(self, invoice, private_key):
        """Should return a copy carrying the computed code"""
        populated = ProtectionCodeGenerator.ensure(invoice, private_key)

        assert invoice.protection_code == ""
        assert populated is not invoice
        assert populated.protection_code == ProtectionCodeGenerator.generate(
            *self.ARGS, "125.00", private_key
        )

    def test_ensure_keeps_supplied_code(self, invoice, private_key):
        """Should not recompute an existing code"""
        supplied = invoice.with_protection_code("0123456789abcdef0123456789abcdef")
        assert ProtectionCodeGenerator.ensure(supplied, private_key) is supplied
