"""
Tests for security helpers and logging configuration.
"""
import json
import logging

from app.core.logging_config import JsonFormatter
from app.core.security import (
    create_access_token,
    decode_token,
    generate_casting_token,
    hash_voter_identity,
)


class TestSecurity:
    """Tokens and voter hashing."""

    def test_casting_tokens_are_unique(self):
        tokens = {generate_casting_token() for _ in range(50)}

        assert len(tokens) == 50
        assert all(len(t) == 64 for t in tokens)

    def test_voter_hash_is_scoped_to_election(self):
        first = hash_voter_identity("voter-1", "election-a")

        assert first == hash_voter_identity("voter-1", "election-a")
        assert first != hash_voter_identity("voter-1", "election-b")
        assert "voter-1" not in first

    def test_access_token_round_trip(self):
        token = create_access_token({"sub": "operator-1", "role": "operator"})

        payload = decode_token(token)

        assert payload["sub"] == "operator-1"
        assert payload["role"] == "operator"

    def test_tampered_token_is_rejected(self):
        token = create_access_token({"sub": "operator-1"})

        assert decode_token(token[:-2] + "xx") is None


class TestJsonFormatter:

    def test_formats_record_as_json(self):
        record = logging.LogRecord(
            name="app.services.stv",
            level=logging.WARNING,
            pathname=__file__,
            lineno=1,
            msg="Skipped %d ballot(s)",
            args=(2,),
            exc_info=None,
        )

        payload = json.loads(JsonFormatter().format(record))

        assert payload["level"] == "WARNING"
        assert payload["logger"] == "app.services.stv"
        assert payload["message"] == "Skipped 2 ballot(s)"
        assert "timestamp" in payload
