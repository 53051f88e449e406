"""Tests for entity key generation."""

import re

from retail_common import __version__
from retail_common.ids import new_id, now_iso

KEY_PATTERN = re.compile(r"^\d{13}_[0-9a-f]{32}$")


def test_version():
    assert __version__ == "0.1.0"


def test_new_id_format():
    """Keys are millisecond timestamp + 128-bit lowercase hex."""
    key = new_id()
    assert KEY_PATTERN.match(key), key


def test_new_id_uses_clock():
    key = new_id(clock=lambda: 1700000000123)
    assert key.startswith("1700000000123_")


def test_new_id_distinct_within_same_millisecond():
    """Two keys generated in the same millisecond still differ."""
    frozen = lambda: 1700000000000  # noqa: E731
    assert new_id(clock=frozen) != new_id(clock=frozen)


def test_new_id_pairwise_distinct():
    keys = [new_id() for _ in range(5000)]
    assert len(set(keys)) == len(keys)


def test_now_iso_is_utc():
    assert now_iso().endswith("+00:00")
