import datetime
import ipaddress
import os
from pathlib import Path
from typing import Optional, Tuple, Iterable
import logging

from cryptography import x509
from cryptography.x509.oid import NameOID, ExtendedKeyUsageOID
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from .trust import certificate_fingerprint

logger = logging.getLogger(__name__)

DEFAULT_HOSTNAMES = ('localhost', '127.0.0.1')


class CertificateStore:
    """
    Manages the receiver's TLS certificate and private key on disk
    The certificate is self-signed; senders use it as their trust material
    """

    def __init__(self, cert_dir: Path, name: str = 'server'):
        self.cert_dir = Path(cert_dir)
        self.cert_dir.mkdir(parents=True, exist_ok=True)

        try:
            os.chmod(self.cert_dir, 0o700)
        except OSError as e:
            logger.debug(f"Could not restrict permissions on {self.cert_dir}: {e}")

        self.cert_file = self.cert_dir / f"{name}.crt"
        self.key_file = self.cert_dir / f"{name}.key"

    def certificates_exist(self) -> bool:
        return self.cert_file.exists() and self.key_file.exists()

    def load_paths(self) -> Optional[Tuple[Path, Path]]:
        """Return (cert_file, key_file) if both exist"""
        if not self.certificates_exist():
            return None
        return self.cert_file, self.key_file

    def generate_and_store(self, common_name: str = 'rtransfer',
                           hostnames: Iterable[str] = DEFAULT_HOSTNAMES,
                           days: int = 365,
                           key_password: Optional[str] = None) -> Tuple[Path, Path]:
        """Generate a new key and self-signed certificate"""
        key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        cert = self._build_certificate(key, common_name, list(hostnames), days)

        if key_password:
            encryption = serialization.BestAvailableEncryption(key_password.encode('utf-8'))
        else:
            encryption = serialization.NoEncryption()

        key_pem = key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=encryption
        )
        cert_pem = cert.public_bytes(serialization.Encoding.PEM)

        try:
            with open(self.key_file, 'wb') as f:
                f.write(key_pem)
            with open(self.cert_file, 'wb') as f:
                f.write(cert_pem)

            os.chmod(self.key_file, 0o600)
            os.chmod(self.cert_file, 0o600)
        except OSError as e:
            logger.error(f"Failed to save certificate: {e}")
            raise

        logger.info(f"Saved certificate to {self.cert_file}")
        logger.info(f"Certificate fingerprint: {self.fingerprint()}")
        return self.cert_file, self.key_file

    def fingerprint(self) -> str:
        return certificate_fingerprint(self.cert_file)

    def delete(self):
        for file in (self.cert_file, self.key_file):
            if file.exists():
                file.unlink()
        logger.info(f"Deleted certificate from {self.cert_dir}")

    def _build_certificate(self, key, common_name: str, hostnames: list,
                           days: int) -> x509.Certificate:
        name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
        now = datetime.datetime.now(datetime.timezone.utc)
        public_key = key.public_key()

        alt_names = []
        for host in hostnames:
            try:
                alt_names.append(x509.IPAddress(ipaddress.ip_address(host)))
            except ValueError:
                alt_names.append(x509.DNSName(host))

        builder = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(public_key)
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - datetime.timedelta(minutes=5))
            .not_valid_after(now + datetime.timedelta(days=days))
            .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True, content_commitment=False,
                    key_encipherment=True, data_encipherment=False,
                    key_agreement=False, key_cert_sign=True, crl_sign=False,
                    encipher_only=False, decipher_only=False
                ),
                critical=True
            )
            .add_extension(
                x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False
            )
            .add_extension(x509.SubjectKeyIdentifier.from_public_key(public_key), critical=False)
            .add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(public_key), critical=False
            )
        )
        if alt_names:
            builder = builder.add_extension(x509.SubjectAlternativeName(alt_names), critical=False)

        return builder.sign(key, hashes.SHA256())
