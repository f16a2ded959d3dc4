import pytest

from w3gw.utils.helpers import from_quantity, scale, to_quantity, truncate


def test_to_quantity_is_minimal_hex():
    assert to_quantity(0) == "0x0"
    assert to_quantity(255) == "0xff"
    assert to_quantity(20_000_000_000) == "0x4a817c800"


def test_to_quantity_rejects_negative():
    with pytest.raises(ValueError):
        to_quantity(-1)


@pytest.mark.parametrize(
    "raw,expected",
    [(None, None), ("", None), ("0x", 0), ("0x10", 16), ("0X1f", 31), ("42", 42), (7, 7), (3.9, 3)],
)
def test_from_quantity(raw, expected):
    assert from_quantity(raw) == expected


def test_from_quantity_rejects_bool_and_garbage():
    with pytest.raises(ValueError):
        from_quantity(True)
    with pytest.raises(ValueError):
        from_quantity("0xzz")


def test_scale_floors():
    assert scale(100, 1.5) == 150
    assert scale(3, 0.5) == 1
    assert scale(21000, 1.0) == 21000


def test_truncate_cuts_long_values():
    assert truncate({"a": 1}) == '{"a": 1}'
    out = truncate("x" * 1000, limit=10)
    assert out.endswith("...")
    assert len(out) == 13
