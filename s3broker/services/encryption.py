from __future__ import annotations

import base64
import logging
import secrets
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from s3broker.services.errors import UnsupportedAlgorithmException

logger = logging.getLogger(__name__)

ENCRYPTION_ALGORITHM = "DESede"
ENCRYPTION_KEY_ID = "generated"

# Default key sizes (bytes) of the JCE key generators consumers decrypt with.
KEY_SIZES = {
    "AES": 16,
    "DES": 8,
    "DESede": 24,
    "HmacSHA256": 32,
}
_PARITY_ADJUSTED = frozenset({"DES", "DESede"})


def _with_odd_parity(raw: bytes) -> bytes:
    adjusted = bytearray()
    for byte in raw:
        high = byte & 0xFE
        ones = bin(high).count("1")
        adjusted.append(high | ((ones + 1) % 2))
    return bytes(adjusted)


def generate_key_bytes(algorithm: str) -> bytes:
    size = KEY_SIZES.get(algorithm)
    if size is None:
        raise UnsupportedAlgorithmException(
            f"The provided encryption algorithm '{algorithm}' is not supported"
        )
    raw = secrets.token_bytes(size)
    if algorithm in _PARITY_ADJUSTED:
        raw = _with_odd_parity(raw)
    return raw


class EncryptionKey(BaseModel):
    """Symmetric key handed to bound applications for client-side encryption.

    ``key`` stays ``None`` until :meth:`generate_secret_key` runs, so a key
    can be declared with only its id and algorithm.
    """

    model_config = ConfigDict(populate_by_name=True)

    key_id: str = Field(..., alias="keyID")
    algorithm: str
    key: Optional[str] = None

    def generate_secret_key(self) -> "EncryptionKey":
        self.key = base64.b64encode(generate_key_bytes(self.algorithm)).decode("ascii")
        logger.debug("Generated %s key material for key id '%s'", self.algorithm, self.key_id)
        return self


def generate_instance_key() -> EncryptionKey:
    return EncryptionKey(key_id=ENCRYPTION_KEY_ID, algorithm=ENCRYPTION_ALGORITHM).generate_secret_key()
