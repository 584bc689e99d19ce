"""
Unit tests for Identity.

Tests cover:
- Generated identities validate and have non-reserved addresses
- Text form parsing, with and without the private key
- Sign/verify, including tampered data and short signatures
"""

import pytest

from zerotier_one.errors import IdentityError
from zerotier_one.identity.identity import Identity, derive_address, is_reserved_address


@pytest.fixture(scope="module")
def identity():
    return Identity.generate()


@pytest.mark.unit
def test_generated_identity_is_valid(identity):
    assert identity.has_private()
    assert identity.locally_validate()
    assert len(identity.address) == 10
    assert identity.address == derive_address(identity.public_key)
    assert not is_reserved_address(identity.address)


@pytest.mark.unit
def test_text_forms(identity):
    public_text = str(identity)
    secret_text = identity.to_string(include_private=True)

    assert public_text.count(":") == 2
    assert secret_text.startswith(public_text + ":")
    assert Identity.from_string(secret_text) == identity
    assert Identity.from_string(public_text + "\n") == identity.public()
    assert not Identity.from_string(public_text).has_private()


@pytest.mark.unit
@pytest.mark.parametrize("address,reserved", [("0000000000", True), ("ff12345678", True), ("8e3a0b1c2d", False)])
def test_reserved_addresses(address, reserved):
    assert is_reserved_address(address) is reserved


@pytest.mark.unit
@pytest.mark.parametrize(
    "text",
    [
        "",
        "abc",
        "0123456789:0",
        "012345678:0:" + "00" * 32,
        "0123456789:1:" + "00" * 32,
        "0123456789:0:" + "00" * 31,
        "0123456789:0:" + "zz" * 32,
        "0123456789:0:" + "00" * 32 + ":" + "00" * 16,
        "a:b:c:d:e",
    ],
)
def test_malformed_identities(text):
    with pytest.raises(IdentityError):
        Identity.from_string(text)


@pytest.mark.unit
def test_wrong_address_fails_validation(identity):
    fields = str(identity).split(":")
    wrong = "01" + fields[0][2:] if not fields[0].startswith("01") else "02" + fields[0][2:]
    forged = Identity.from_string(":".join([wrong] + fields[1:]))
    assert not forged.locally_validate()


@pytest.mark.unit
def test_mismatched_private_key_fails_validation(identity):
    other = Identity.generate()
    forged = Identity(address=identity.address, public_key=identity.public_key, private_key=other.private_key)
    assert not forged.locally_validate()


@pytest.mark.unit
def test_sign_and_verify(identity):
    signature = identity.sign(b"hello network")
    assert len(signature) == 64
    assert identity.public().verify(b"hello network", signature)
    assert not identity.verify(b"hello netw0rk", signature)
    assert not identity.verify(b"hello network", signature[:5])
    assert not identity.verify(b"hello network", b"")


@pytest.mark.unit
def test_sign_requires_private_key(identity):
    with pytest.raises(IdentityError):
        identity.public().sign(b"data")
