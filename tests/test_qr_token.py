import re
import uuid

import pytest

from app.core.qr_token import (
    QRTokenError,
    decode_qr_distribution_token,
    generate_participant_qr_token,
    generate_qr_distribution_url,
    verify_qr_token,
)

SECRET = "s3cret-signing-key"
TOKEN_PATTERN = re.compile(r"^evt_[0-9a-f-]{8}_prt_[0-9a-f-]{8}_[0-9a-f]{12}\.[A-Za-z0-9_-]+$")


@pytest.fixture
def ids():
    return uuid.uuid4(), uuid.uuid4()


def test_participant_token_has_expected_shape(ids):
    event_id, participant_id = ids
    token = generate_participant_qr_token(event_id, participant_id, SECRET)

    assert TOKEN_PATTERN.match(token)
    assert token.startswith(f"evt_{str(event_id)[:8]}_prt_{str(participant_id)[:8]}_")
    assert "=" not in token


def test_tokens_for_same_ids_differ(ids):
    first = generate_participant_qr_token(*ids, SECRET)
    second = generate_participant_qr_token(*ids, SECRET)
    assert first != second


def test_verify_accepts_only_the_signing_secret(ids):
    token = generate_participant_qr_token(*ids, SECRET)

    assert verify_qr_token(SECRET, token) is True
    assert verify_qr_token("another-secret", token) is False
    assert verify_qr_token("", token) is False


def test_flipping_any_character_breaks_verification(ids):
    token = generate_participant_qr_token(*ids, SECRET)

    for position, char in enumerate(token):
        if char == ".":
            continue
        replacement = "A" if char != "A" else "B"
        tampered = token[:position] + replacement + token[position + 1:]
        assert verify_qr_token(SECRET, tampered) is False, f"tampering at {position} went unnoticed"


@pytest.mark.parametrize("malformed", ["", "no-delimiter", ".signature-only", "raw-only.", "."])
def test_malformed_tokens_are_rejected(malformed):
    assert verify_qr_token(SECRET, malformed) is False


def test_empty_secret_cannot_sign(ids):
    with pytest.raises(QRTokenError):
        generate_participant_qr_token(*ids, "")


def test_distribution_url_strips_trailing_slash(ids):
    token = generate_participant_qr_token(*ids, SECRET)

    url = generate_qr_distribution_url("https://checkin.example.com/", token)

    assert url.startswith("https://checkin.example.com/qr/")
    assert "//qr" not in url
    assert "=" not in url
    assert decode_qr_distribution_token(url.rsplit("/", 1)[1]) == token


def test_distribution_url_empty_inputs():
    assert generate_qr_distribution_url("", "token") == ""
    assert generate_qr_distribution_url("https://checkin.example.com", "") == ""


@pytest.mark.parametrize("encoded", ["a", "_w"])
def test_decode_rejects_garbage(encoded):
    with pytest.raises(QRTokenError):
        decode_qr_distribution_token(encoded)
