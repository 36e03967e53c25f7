import pytest

from interview_scoring.services.signature import (
    compute_signature,
    parse_signature_header,
    verify_signature,
)

SECRET = "shh"
BODY = b'{"type":"post_call_transcription","data":{"conversation_id":"abc"}}'
NOW = 1_700_000_000


def _headers(t=NOW, body=BODY, secret=SECRET, name="elevenlabs-signature"):
    return {name: f"t={t},v0={compute_signature(secret, t, body)}"}


def test_valid_signature_accepted():
    assert verify_signature(_headers(), BODY, SECRET, now=NOW)


def test_header_lookup_is_case_insensitive():
    headers = _headers(name="ElevenLabs-Signature")
    assert verify_signature(headers, BODY, SECRET, now=NOW)


def test_custom_header_name():
    headers = _headers(name="x-signature")
    assert verify_signature(headers, BODY, SECRET, now=NOW, header_name="x-signature")
    assert not verify_signature(headers, BODY, SECRET, now=NOW)


@pytest.mark.parametrize("index", [0, 10, len(BODY) - 1])
def test_flipped_body_byte_rejected(index):
    tampered = bytearray(BODY)
    tampered[index] ^= 0x01
    assert not verify_signature(_headers(), bytes(tampered), SECRET, now=NOW)


def test_flipped_signature_char_rejected():
    sig = compute_signature(SECRET, NOW, BODY)
    flipped = ("0" if sig[0] != "0" else "1") + sig[1:]
    headers = {"elevenlabs-signature": f"t={NOW},v0={flipped}"}
    assert not verify_signature(headers, BODY, SECRET, now=NOW)


def test_wrong_secret_rejected():
    assert not verify_signature(_headers(secret="other"), BODY, SECRET, now=NOW)


def test_timestamp_is_part_of_signed_payload():
    headers = {"elevenlabs-signature": f"t={NOW + 1},v0={compute_signature(SECRET, NOW, BODY)}"}
    assert not verify_signature(headers, BODY, SECRET, now=NOW)


def test_replay_window():
    assert verify_signature(_headers(t=NOW - 300), BODY, SECRET, now=NOW)
    assert not verify_signature(_headers(t=NOW - 301), BODY, SECRET, now=NOW)
    assert not verify_signature(_headers(t=NOW + 301), BODY, SECRET, now=NOW)
    assert verify_signature(_headers(t=NOW - 500), BODY, SECRET, now=NOW, tolerance_seconds=600)


@pytest.mark.parametrize("secret", ["", None])
def test_missing_secret_rejects_everything(secret):
    assert not verify_signature(_headers(), BODY, secret, now=NOW)


@pytest.mark.parametrize(
    "value",
    ["", "garbage", "t=abc,v0=deadbeef", f"t={NOW}", "v0=deadbeef", f"t={NOW},v1=deadbeef"],
)
def test_malformed_header_rejected(value):
    assert not verify_signature({"elevenlabs-signature": value}, BODY, SECRET, now=NOW)


def test_missing_header_rejected():
    assert not verify_signature({}, BODY, SECRET, now=NOW)


def test_parse_signature_header():
    assert parse_signature_header("t=12,v0=ab") == (12, "ab")
    assert parse_signature_header(" t = 12 , v0 = ab ") == (12, "ab")
    assert parse_signature_header("v0=ab") is None
