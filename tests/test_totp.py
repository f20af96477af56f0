"""Tests for TOTP building blocks."""

import pytest

from driftotp.totp import (
    Clock,
    HOTPGenerator,
    decode_secret,
    encode_secret,
    generate_secret,
    provisioning_uri,
)

SHARED_SECRET = "B2374TNIQ3HKC446"


class TestSecrets:
    """Test secret helpers."""

    def test_generate_secret(self):
        """Secret generation produces 20 bytes."""
        assert len(generate_secret()) == 20

    def test_secret_is_random(self):
        """Each generated secret is unique."""
        secrets = [generate_secret() for _ in range(10)]
        assert len(set(secrets)) == 10

    def test_base32_roundtrip(self):
        """Secret survives base32 encode/decode."""
        secret = generate_secret()
        assert decode_secret(encode_secret(secret)) == secret

    def test_decode_is_lenient(self):
        """Lowercase, spaces and missing padding are accepted."""
        assert decode_secret("b237 4tni q3hk c446") == decode_secret(SHARED_SECRET)

    def test_bytes_pass_through(self):
        assert decode_secret(b"raw") == b"raw"


class TestClock:
    """Test interval clock."""

    def test_current_interval(self):
        clock = Clock(period=30, time_func=lambda: 1000000.0)
        assert clock.current_interval() == 33333

    def test_interval_boundaries(self):
        clock = Clock(period=30)
        assert clock.interval_at(59.999) == 1
        assert clock.interval_at(60) == 2

    def test_custom_period(self):
        clock = Clock(period=20, time_func=lambda: 100.0)
        assert clock.current_interval() == 5

    def test_rejects_non_positive_period(self):
        with pytest.raises(ValueError):
            Clock(period=0)


class TestHOTPGenerator:
    """Test RFC 4226/6238 code generation."""

    def test_code_range(self):
        """Generated codes fit the digit count."""
        generator = HOTPGenerator(digits=6)
        for interval in range(50):
            assert 0 <= generator.generate(SHARED_SECRET, interval) < 10 ** 6

    def test_code_is_deterministic(self):
        """Same secret + interval = same code."""
        secret = generate_secret()
        assert HOTPGenerator().generate(secret, 1234) == HOTPGenerator().generate(secret, 1234)

    def test_str_and_bytes_secret_agree(self):
        generator = HOTPGenerator()
        raw = decode_secret(SHARED_SECRET)
        assert generator.generate(SHARED_SECRET, 42) == generator.generate(raw, 42)

    def test_code_changes_with_interval(self):
        generator = HOTPGenerator()
        assert generator.generate(SHARED_SECRET, 1) != generator.generate(SHARED_SECRET, 2)

    def test_rfc6238_test_vector(self):
        """Verify against RFC 6238 test vectors."""
        # RFC 6238 test secret (ASCII "12345678901234567890")
        secret = b"12345678901234567890"
        generator = HOTPGenerator(digits=8)
        clock = Clock(period=30)

        # Time = 59 (counter = 1)
        assert generator.generate(secret, clock.interval_at(59)) == 94287082

        # Time = 1111111109 (counter = 37037036)
        code = generator.generate(secret, clock.interval_at(1111111109))
        assert code == 7081804
        assert generator.format(code) == "07081804"

        # Time = 1234567890 (counter = 41152263)
        assert generator.generate(secret, clock.interval_at(1234567890)) == 89005924

    def test_leading_zeros(self):
        """Numeric code drops leading zeros; format() restores them."""
        generator = HOTPGenerator()
        code = generator.generate("R5MB5FAQNX5UIPWL", 45187109)
        assert code == 2941
        assert generator.format(code) == "002941"

    def test_rejects_bad_digits(self):
        with pytest.raises(ValueError):
            HOTPGenerator(digits=0)


class TestProvisioningURI:
    """Test otpauth:// URI building."""

    def test_minimal_uri(self):
        uri = provisioning_uri(SHARED_SECRET, "john")
        assert uri == f"otpauth://totp/john?secret={SHARED_SECRET}"

    def test_label_is_encoded(self):
        uri = provisioning_uri(SHARED_SECRET, "john#doe")
        assert uri == f"otpauth://totp/john%23doe?secret={SHARED_SECRET}"

    def test_issuer_and_parameters(self):
        uri = provisioning_uri(SHARED_SECRET, "test@example.com", issuer="Acme", digits=8, period=60)

        assert uri.startswith("otpauth://totp/Acme:test%40example.com")
        assert f"secret={SHARED_SECRET}" in uri
        assert "issuer=Acme" in uri
        assert "digits=8" in uri
        assert "period=60" in uri

    def test_bytes_secret_is_encoded(self):
        secret = generate_secret()
        uri = provisioning_uri(secret, "john")
        assert f"secret={encode_secret(secret)}" in uri
