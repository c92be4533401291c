"""
Tests for PKCE parameters.
"""

import string

from tonearm.client.pkce import PKCEParameters, compute_code_challenge


class TestPKCE:
    def test_code_challenge_vector(self):
        """Test the S256 challenge of a known verifier."""
        assert compute_code_challenge("test") == "n4bQgYhMfWWaL-qgxVrQFaO_TxsrC4Is0V1sFbDwCgg"

    def test_pkce_parameters_generation(self):
        pkce = PKCEParameters.generate()

        assert len(pkce.code_verifier) == 128
        assert set(pkce.code_verifier) <= set(string.ascii_letters + string.digits)

        assert pkce.code_challenge == compute_code_challenge(pkce.code_verifier)
        assert "=" not in pkce.code_challenge
        assert "+" not in pkce.code_challenge
        assert "/" not in pkce.code_challenge
        assert pkce.code_challenge_method == "S256"

        pkce2 = PKCEParameters.generate()
        assert pkce.code_verifier != pkce2.code_verifier
        assert pkce.code_challenge != pkce2.code_challenge
