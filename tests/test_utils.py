"""Timestamp and encoding helpers."""

import binascii
from datetime import datetime, timezone

import pytest

from paykernel.common.utils import b64d, b64e, gateway_timestamp, md5_hex


def test_timestamp_is_utc_plus_8():
    now = datetime(2019, 12, 31, 17, 30, 5, tzinfo=timezone.utc)
    assert gateway_timestamp(now) == "2020-01-01 01:30:05"


def test_b64_round_trip():
    assert b64d(b64e(b"\x00\xffsign")) == b"\x00\xffsign"


def test_b64d_strict():
    with pytest.raises(binascii.Error):
        b64d("abc$")


def test_md5_hex():
    assert md5_hex(b"") == "d41d8cd98f00b204e9800998ecf8427e"
