"""Tests for PKCE verifier, challenge and state generation."""

from __future__ import annotations

import re

from lmeve.esi.pkce import compute_challenge, generate_pkce, generate_state

BASE64URL = re.compile(r"^[A-Za-z0-9_-]+$")


class TestComputeChallenge:
    def test_rfc7636_vector(self) -> None:
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
        assert compute_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"

    def test_deterministic(self) -> None:
        assert compute_challenge("abc") == compute_challenge("abc")


class TestGeneratePkce:
    def test_challenge_matches_verifier(self) -> None:
        pair = generate_pkce()
        assert pair.challenge == compute_challenge(pair.verifier)

    def test_verifier_is_unpadded_base64url_of_32_bytes(self) -> None:
        pair = generate_pkce()
        assert len(pair.verifier) == 43
        assert BASE64URL.match(pair.verifier)
        assert "=" not in pair.challenge

    def test_pairs_are_unique(self) -> None:
        verifiers = {generate_pkce().verifier for _ in range(50)}
        assert len(verifiers) == 50


class TestGenerateState:
    def test_state_format(self) -> None:
        state = generate_state()
        assert len(state) == 22
        assert BASE64URL.match(state)

    def test_states_are_unique(self) -> None:
        assert generate_state() != generate_state()
