"""Test certificate generation and encrypted transfers"""

import ssl

import pytest

from rtransfer.crypto.keystore import CertificateStore
from rtransfer.crypto.trust import build_client_context, build_server_context
from rtransfer.errors import ProtocolFailure
from rtransfer.network.protocol import SessionState


@pytest.fixture
def cert_store(temp_dir):
    store = CertificateStore(temp_dir / "certs")
    store.generate_and_store(hostnames=['localhost', '127.0.0.1'], days=1)
    return store


class TestCertificateStore:
    """Test certificate persistence"""

    def test_certificates_dont_exist_initially(self, temp_dir):
        store = CertificateStore(temp_dir / "empty")
        assert store.load_paths() is None

    def test_generate_and_load(self, cert_store):
        cert_file, key_file = cert_store.load_paths()

        assert cert_file.read_bytes().startswith(b"-----BEGIN CERTIFICATE-----")
        assert b"PRIVATE KEY" in key_file.read_bytes()
        assert key_file.stat().st_mode & 0o777 == 0o600

    def test_fingerprint_format(self, cert_store):
        fingerprint = cert_store.fingerprint()

        parts = fingerprint.split(':')
        assert len(parts) == 32
        assert all(len(p) == 2 for p in parts)

    def test_encrypted_key_needs_password(self, temp_dir):
        store = CertificateStore(temp_dir / "locked")
        cert_file, key_file = store.generate_and_store(key_password="s3cret", days=1)

        assert isinstance(build_server_context(cert_file, key_file, "s3cret"), ssl.SSLContext)
        with pytest.raises(ssl.SSLError):
            build_server_context(cert_file, key_file, "wrong")


class TestEncryptedTransfer:
    """Test transfers over TLS"""

    @pytest.mark.asyncio
    async def test_transfer_over_tls(self, cert_store, server_factory, client_for,
                                     make_file, output_dir, sample_content):
        cert_file, key_file = cert_store.load_paths()
        server = await server_factory(tls_enabled=True, cert_file=cert_file, key_file=key_file)
        client = client_for(server, ssl_context=build_client_context(cert_file))

        result = await client.send(make_file("secret.bin", sample_content))

        assert result.state == SessionState.COMPLETE
        assert (output_dir / "secret.bin").read_bytes() == sample_content

    @pytest.mark.asyncio
    async def test_untrusted_certificate_is_refused(self, cert_store, temp_dir,
                                                    server_factory, client_for, make_file,
                                                    output_dir, sample_content):
        cert_file, key_file = cert_store.load_paths()
        server = await server_factory(tls_enabled=True, cert_file=cert_file, key_file=key_file)

        other = CertificateStore(temp_dir / "other")
        other_cert, _ = other.generate_and_store(days=1)
        client = client_for(server, ssl_context=build_client_context(other_cert))

        with pytest.raises(ProtocolFailure):
            await client.send(make_file("secret.bin", sample_content))
        assert not (output_dir / "secret.bin").exists()
