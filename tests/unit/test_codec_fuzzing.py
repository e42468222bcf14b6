"""
Property-based tests for the typed argument codec.

Uses Hypothesis to generate argument lists and raw values.
"""

from decimal import Decimal

from hypothesis import example, given, strategies as st

from contractrunner.api.codec import decode, encode, to_slice
from contractrunner.api.schemas import DynamicArg
from contractrunner.core.errors import FormatError
from contractrunner.core.utils import to_hex


# === Strategy Definitions ===

string_arg_strategy = st.builds(
    DynamicArg,
    index=st.integers(min_value=0, max_value=20),
    format=st.just("string"),
    value=st.text(max_size=20),
)


@given(st.lists(string_arg_strategy, max_size=15))
def test_to_slice_shape(args):
    """Vector length is the highest index plus one and the last write wins"""
    vector = to_slice(args)

    expected_len = max((a.index for a in args), default=-1) + 1
    assert len(vector) == expected_len

    last = {a.index: a.value for a in args}
    for i, item in enumerate(vector):
        if i in last:
            assert item == last[i].encode("utf-8")
        else:
            assert item is None


@given(st.integers(min_value=0, max_value=2 ** 64 - 1))
def test_uint64_is_minimal(value):
    data = encode("uint64", str(value))
    assert int.from_bytes(data, "big") == value
    assert len(data) == 1 or data[0] != 0


@given(st.integers(min_value=-2 ** 63, max_value=2 ** 63 - 1))
def test_int64_is_minimal_twos_complement(value):
    data = encode("int64", str(value))
    assert int.from_bytes(data, "big", signed=True) == value
    if len(data) > 1:
        # a shorter encoding would have kept the sign
        assert int.from_bytes(data[1:], "big", signed=True) != value


@given(st.text(alphabet="0123456789abcdefxyz", max_size=12))
def test_unknown_format_is_hex(raw):
    try:
        result = encode("no-such-format", raw)
    except FormatError as e:
        assert e.format_name == "hex"
    else:
        assert result == encode("hex", raw)


# === Round Trips ===

@given(st.integers(min_value=0, max_value=255))
def test_byte_round_trip(value):
    assert decode("byte", encode("byte", str(value))) == value


@given(st.integers(min_value=0, max_value=2 ** 64 - 1))
def test_uint64_round_trip(value):
    assert decode("uint64", encode("uint64", str(value))) == value


@given(st.text(max_size=50))
def test_string_round_trip(value):
    assert decode("string", encode("string", value)) == value


@given(st.integers(min_value=0, max_value=2 ** 1024))
def test_bigint_round_trip(value):
    assert decode("bigint", encode("bigint", str(value))) == str(value)


@given(st.binary(max_size=64))
def test_hex_round_trip(data):
    raw = to_hex(data)
    assert encode("hex", raw) == data
    assert decode("hex", encode("hex", raw)) == raw


@given(st.decimals(min_value=0, max_value=10 ** 6, places=18,
                   allow_nan=False, allow_infinity=False))
@example(Decimal("1.5"))
def test_dna_round_trip(amount):
    """Amounts within base-unit precision decode to their plain decimal form"""
    expected = format(abs(amount).normalize(), "f")
    assert decode("dna", encode("dna", str(amount))) == expected
