import hashlib
import hmac

import pytest

from irembopay.webhook import (
    SignatureHeader,
    WebhookHeaderError,
    compute_signature,
    format_signature_header,
    parse_signature_header,
    sign_payload,
)


def test_parse_signature_header_accepts_fields_in_any_order_with_whitespace():
    header = parse_signature_header(" s=abc123 ,  t=1700000000000 ")

    assert header == SignatureHeader(timestamp="1700000000000", signature="abc123")
    assert header.timestamp_ms == 1_700_000_000_000


@pytest.mark.parametrize(
    "value",
    [
        "",
        None,
        "t=123",
        "s=abc",
        "t=1,s=abc,x=1",
        "t=1,t=2",
        "s=a,s=b",
        "t=,s=abc",
        "t=123,s=",
        "t=12a,s=abc",
        "t=-5,s=abc",
        "ts=1,s=abc",
        "t1,s=abc",
        "t=9223372036854775808,s=abc",
        "t=00000000000000000001,s=abc",
        "t=1" + "0" * 400 + ",s=abc",
        "t=1" + "0" * 5000 + ",s=abc",
    ],
)
def test_parse_signature_header_rejects_malformed_values(value):
    with pytest.raises(WebhookHeaderError):
        parse_signature_header(value)


def test_compute_signature_matches_reference_hmac():
    expected = hmac.new(b"secret", b"1700000000000#{\"a\":1}", hashlib.sha256).hexdigest()

    assert compute_signature("secret", 1700000000000, '{"a":1}') == expected
    assert compute_signature(b"secret", "1700000000000", b'{"a":1}') == expected
    assert expected == expected.lower()
    assert len(expected) == hashlib.sha256().digest_size * 2


def test_sign_payload_round_trips_through_parser():
    value = sign_payload("secret", b"{}", timestamp_ms=42)
    header = parse_signature_header(value)

    assert value == format_signature_header(42, compute_signature("secret", 42, b"{}"))
    assert header.timestamp == "42"
    assert str(header) == value


def test_parse_signature_header_accepts_largest_int64_timestamp():
    header = parse_signature_header("t=9223372036854775807,s=abc")

    assert header.timestamp_ms == 2**63 - 1
