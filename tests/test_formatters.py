from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from eet.services.exceptions import FormatError
from eet.utils.formatters import (
    byte2hex,
    format_amount,
    format_bkp,
    format_bool,
    format_date,
    format_pkp,
    format_rezim,
    parse_amount,
    parse_bkp,
    parse_date,
    parse_pkp,
)


class TestFormatAmount:
    def test_one_decimal(self):
        assert format_amount(1234.5) == "1234.50"

    def test_zero(self):
        assert format_amount(0) == "0.00"

    def test_negative(self):
        assert format_amount(Decimal("-12.3")) == "-12.30"

    def test_negative_zero_has_no_sign(self):
        assert format_amount(Decimal("-0.001")) == "0.00"

    def test_no_thousands_separator(self):
        assert format_amount(Decimal("1234567.891")) == "1234567.89"

    def test_rounds_half_up(self):
        assert format_amount("2.005") == "2.01"

    def test_text(self):
        assert format_amount("100") == "100.00"


class TestParseAmount:
    def test_text(self):
        assert parse_amount(" 34113.00 ") == Decimal("34113.00")

    def test_float_keeps_shortest_repr(self):
        assert parse_amount(0.1) == Decimal("0.1")

    def test_invalid_text(self):
        with pytest.raises(FormatError):
            parse_amount("12,50")

    def test_nan_rejected(self):
        with pytest.raises(FormatError):
            parse_amount("NaN")

    def test_bool_rejected(self):
        with pytest.raises(FormatError):
            parse_amount(True)

    def test_too_many_digits_rejected(self):
        with pytest.raises(FormatError, match="out of range"):
            parse_amount("1e30")


class TestFormatDate:
    def test_own_offset(self):
        dt = datetime(2023, 1, 1, 12, 0, 0, tzinfo=timezone(timedelta(hours=1)))
        assert format_date(dt) == "2023-01-01T12:00:00+01:00"

    def test_drops_microseconds(self):
        dt = datetime(2016, 8, 5, 0, 30, 12, 123456, tzinfo=timezone(timedelta(hours=2)))
        assert format_date(dt) == "2016-08-05T00:30:12+02:00"

    def test_utc_has_numeric_offset(self):
        dt = datetime(2023, 6, 1, 8, 0, 0, tzinfo=timezone.utc)
        assert format_date(dt) == "2023-06-01T08:00:00+00:00"

    def test_negative_offset(self):
        dt = datetime(2023, 6, 1, 8, 0, 0, tzinfo=timezone(timedelta(hours=-3, minutes=-30)))
        assert format_date(dt) == "2023-06-01T08:00:00-03:30"

    def test_naive_gets_local_offset(self):
        text = format_date(datetime(2023, 6, 1, 8, 0, 0))
        assert text.startswith("2023-06-01T08:00:00")
        assert text[19] in "+-"
        assert text[22] == ":"


class TestParseDate:
    def test_roundtrip_with_offset(self):
        assert format_date(parse_date("2023-01-01T12:00:00+01:00")) == "2023-01-01T12:00:00+01:00"

    def test_invalid(self):
        with pytest.raises(FormatError):
            parse_date("yesterday")


class TestHex:
    def test_byte2hex_uppercase(self):
        assert byte2hex(bytes([0, 10, 255])) == "000AFF"

    def test_format_bkp_groups(self):
        data = bytes(range(20))
        assert format_bkp(data) == "00010203-04050607-08090A0B-0C0D0E0F-10111213"

    def test_bkp_roundtrip_random(self):
        for _ in range(20):
            data = os.urandom(20)
            text = format_bkp(data)
            assert len(text) == 44
            assert text == text.upper()
            assert parse_bkp(text) == data

    def test_parse_bkp_lowercase(self):
        assert parse_bkp("17796128-aed2bb9e-2301ff97-0a75656a-df2b011d")[:2] == b"\x17\x79"

    def test_parse_bkp_wrong_length(self):
        with pytest.raises(FormatError, match="length"):
            parse_bkp("17796128-AED2BB9E")

    def test_parse_bkp_not_hex(self):
        with pytest.raises(FormatError, match="hexdump"):
            parse_bkp("Z7796128-AED2BB9E-2301FF97-0A75656A-DF2B011D")

    def test_format_bkp_wrong_size(self):
        with pytest.raises(FormatError):
            format_bkp(b"\x00" * 19)


class TestPkp:
    def test_roundtrip(self):
        data = os.urandom(256)
        assert parse_pkp(format_pkp(data)) == data

    def test_padding(self):
        assert format_pkp(b"ab") == "YWI="

    def test_invalid(self):
        with pytest.raises(FormatError):
            parse_pkp("not base64!")


def test_flags():
    assert format_bool(True) == "true"
    assert format_bool(False) == "false"
    assert format_rezim(False) == "0"
    assert format_rezim(True) == "1"
