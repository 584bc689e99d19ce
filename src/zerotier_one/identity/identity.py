"""
Node identity: an Ed25519 keypair plus the short address derived from it.

Textual form:

    <address>:0:<public key hex>[:<private key hex>]

- address: 10 hex characters (40 bits) taken from the SHA-512 of the public key
- 0: identity type (Ed25519)
- public key: 32 raw bytes, hex encoded
- private key: 32 raw seed bytes, hex encoded (only in identity.secret)

Key generation, signing and verification are delegated to the `cryptography`
package.
"""

import hashlib
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from zerotier_one.errors import IdentityError

ADDRESS_LENGTH = 5  # bytes
ADDRESS_HEX_LENGTH = ADDRESS_LENGTH * 2
IDENTITY_TYPE_ED25519 = "0"
KEY_LENGTH = 32
SIGNATURE_LENGTH = 64

# Addresses beginning with this byte are reserved
RESERVED_ADDRESS_PREFIX = 0xFF


def _raw_public(key: ed25519.Ed25519PublicKey) -> bytes:
    return key.public_bytes(encoding=serialization.Encoding.Raw, format=serialization.PublicFormat.Raw)


def _raw_private(key: ed25519.Ed25519PrivateKey) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )


def derive_address(public_key: bytes) -> str:
    """Derive the 10 hex character address for a raw public key."""
    return hashlib.sha512(public_key).digest()[:ADDRESS_LENGTH].hex()


def is_reserved_address(address: str) -> bool:
    value = int(address, 16)
    return value == 0 or (value >> 32) == RESERVED_ADDRESS_PREFIX


@dataclass(frozen=True)
class Identity:
    """An address plus public key, optionally with the private key."""

    address: str
    public_key: bytes
    private_key: bytes | None = None

    @classmethod
    def generate(cls) -> "Identity":
        """Generate a new identity whose address is not reserved."""
        while True:
            private = ed25519.Ed25519PrivateKey.generate()
            public_raw = _raw_public(private.public_key())
            address = derive_address(public_raw)
            if not is_reserved_address(address):
                return cls(address=address, public_key=public_raw, private_key=_raw_private(private))

    @classmethod
    def from_string(cls, text: str) -> "Identity":
        """Parse the textual form.

        Raises:
            IdentityError: If the text is not a well-formed identity
        """
        fields = text.strip().split(":")
        if len(fields) not in (3, 4):
            raise IdentityError("identity must have 3 or 4 ':' separated fields")

        address, id_type, public_hex = fields[0], fields[1], fields[2]
        if len(address) != ADDRESS_HEX_LENGTH:
            raise IdentityError(f"address must be {ADDRESS_HEX_LENGTH} hex characters")
        if id_type != IDENTITY_TYPE_ED25519:
            raise IdentityError(f"unsupported identity type: {id_type}")

        try:
            int(address, 16)
            public_key = bytes.fromhex(public_hex)
            private_key = bytes.fromhex(fields[3]) if len(fields) == 4 and fields[3] else None
        except ValueError as e:
            raise IdentityError(f"invalid hex in identity: {e}") from e

        if len(public_key) != KEY_LENGTH:
            raise IdentityError("public key must be 32 bytes")
        if private_key is not None and len(private_key) != KEY_LENGTH:
            raise IdentityError("private key must be 32 bytes")

        return cls(address=address.lower(), public_key=public_key, private_key=private_key)

    def to_string(self, include_private: bool = False) -> str:
        text = f"{self.address}:{IDENTITY_TYPE_ED25519}:{self.public_key.hex()}"
        if include_private and self.private_key is not None:
            text += f":{self.private_key.hex()}"
        return text

    def __str__(self) -> str:
        return self.to_string(include_private=False)

    def has_private(self) -> bool:
        return self.private_key is not None

    def public(self) -> "Identity":
        """Copy of this identity without the private key."""
        return Identity(address=self.address, public_key=self.public_key)

    def locally_validate(self) -> bool:
        """Check address derivation and, if present, that the private key matches."""
        if derive_address(self.public_key) != self.address or is_reserved_address(self.address):
            return False
        try:
            ed25519.Ed25519PublicKey.from_public_bytes(self.public_key)
        except ValueError:
            return False
        if self.private_key is not None:
            private = ed25519.Ed25519PrivateKey.from_private_bytes(self.private_key)
            if _raw_public(private.public_key()) != self.public_key:
                return False
        return True

    def sign(self, data: bytes) -> bytes:
        """Sign data with the private key.

        Raises:
            IdentityError: If this identity has no private key
        """
        if self.private_key is None:
            raise IdentityError("identity does not contain a private key")
        return ed25519.Ed25519PrivateKey.from_private_bytes(self.private_key).sign(data)

    def verify(self, data: bytes, signature: bytes) -> bool:
        if len(signature) <= ADDRESS_LENGTH:
            return False
        try:
            ed25519.Ed25519PublicKey.from_public_bytes(self.public_key).verify(signature, data)
        except (InvalidSignature, ValueError):
            return False
        return True
