import base64
import hashlib
from typing import Literal

from pydantic import BaseModel, Field

from tonearm.client.oauth import PKCE_VERIFIER_LENGTH, generate_random_string


def compute_code_challenge(code_verifier: str) -> str:
    """S256 code challenge: URL-safe base64 of SHA-256(verifier), without padding."""
    digest = hashlib.sha256(code_verifier.encode()).digest()
    return base64.urlsafe_b64encode(digest).decode().rstrip("=")


class PKCEParameters(BaseModel):
    """PKCE (Proof Key for Code Exchange) parameters."""

    code_verifier: str = Field(..., min_length=43, max_length=128)
    code_challenge: str = Field(..., min_length=43, max_length=128)
    code_challenge_method: Literal["S256"] = Field(default="S256")

    @classmethod
    def generate(cls) -> "PKCEParameters":
        """Generate new PKCE parameters."""
        code_verifier = generate_random_string(PKCE_VERIFIER_LENGTH)
        return cls(code_verifier=code_verifier, code_challenge=compute_code_challenge(code_verifier))
