from __future__ import annotations

import secrets

ID_BYTES = 16


# PUBLIC_INTERFACE
def generate_id() -> str:
    """Return a 32 character lowercase hex token drawn from a cryptographic random source."""
    return secrets.token_hex(ID_BYTES)
