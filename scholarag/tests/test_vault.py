"""Tests for the credential vault."""

import base64

import pytest

from scholarag.exceptions import ConfigurationError, DecryptionError
from scholarag.security.vault import CredentialVault, mask, validate_format


def flip_byte(part):
    raw = bytearray(base64.b64decode(part))
    raw[0] ^= 0x01
    return base64.b64encode(bytes(raw)).decode("ascii")


class TestEncryption:
    """Test AES-GCM sealing of secrets."""

    def test_decrypt_returns_plaintext(self, vault):
        blob = vault.encrypt("sk-ant-api03-secret-value")
        assert vault.decrypt(blob) == "sk-ant-api03-secret-value"

    def test_blob_layout(self, vault):
        """salt:nonce:tag:ciphertext, each base64, with fixed part sizes."""
        salt, nonce, tag, ciphertext = vault.encrypt("gsk_abcdefghijkl").split(":")

        assert len(base64.b64decode(salt)) == 64
        assert len(base64.b64decode(nonce)) == 12
        assert len(base64.b64decode(tag)) == 16
        assert len(base64.b64decode(ciphertext)) == len("gsk_abcdefghijkl")

    def test_fresh_salt_and_nonce(self, vault):
        assert vault.encrypt("same-secret-value") != vault.encrypt("same-secret-value")

    def test_plaintext_not_in_blob(self, vault):
        assert "sk-live-123456" not in vault.encrypt("sk-live-123456")

    def test_wrong_secret(self, vault):
        blob = vault.encrypt("sk-live-123456")
        other = CredentialVault("a-different-secret", iterations=1000)
        with pytest.raises(DecryptionError):
            other.decrypt(blob)

    @pytest.mark.parametrize("index", [2, 3])
    def test_tampering_detected(self, vault, index):
        """Changing the tag or ciphertext fails authentication."""
        parts = vault.encrypt("sk-live-123456").split(":")
        parts[index] = flip_byte(parts[index])
        with pytest.raises(DecryptionError):
            vault.decrypt(":".join(parts))

    @pytest.mark.parametrize("blob", ["", "not-a-blob", "a:b:c", "a:b:c:d", "QUJD:QUJD:QUJD:QUJD"])
    def test_malformed(self, vault, blob):
        with pytest.raises(DecryptionError):
            vault.decrypt(blob)

    def test_missing_secret(self):
        with pytest.raises(ConfigurationError):
            CredentialVault(None)
        with pytest.raises(ConfigurationError):
            CredentialVault("")


class TestMasking:
    """Test display masking and format checks."""

    def test_mask_long_secret(self):
        assert mask("gsk_1234567890abcd") == "gsk_...abcd"

    def test_mask_short_secret(self):
        assert mask("short") == "*****"
        assert mask("12345678") == "********"

    def test_mask_empty(self):
        assert mask("") == ""

    def test_mask_custom_visible(self):
        assert mask("abcdefghijklmnop", visible=2) == "ab...op"

    @pytest.mark.parametrize("secret", ["", "   ", "short", "your-api-key-here", "sk-EXAMPLE-0000000", "placeholder123"])
    def test_rejected_formats(self, secret):
        assert validate_format(secret) is not None

    def test_accepted_format(self):
        assert validate_format("gsk_live_8f7d6c5b4a") is None
