"""
crypto/trust.py - TLS contexts and certificate fingerprints
The transfer core never looks at these; it only sees a byte stream
"""

import ssl
from pathlib import Path
from typing import Optional
import logging

from cryptography import x509
from cryptography.hazmat.primitives import hashes

logger = logging.getLogger(__name__)


def certificate_fingerprint(cert_file: Path) -> str:
    """
    SHA-256 fingerprint for out-of-band verification
    Format: XX:XX:...:XX
    """
    with open(cert_file, 'rb') as f:
        cert = x509.load_pem_x509_certificate(f.read())
    return ':'.join(f'{b:02X}' for b in cert.fingerprint(hashes.SHA256()))


def build_server_context(cert_file: Path, key_file: Path,
                         key_password: Optional[str] = None) -> ssl.SSLContext:
    """Context for the receiver's listening socket"""
    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    try:
        context.load_cert_chain(str(cert_file), str(key_file), password=key_password)
    except (OSError, ssl.SSLError) as e:
        logger.error(f"Failed to load certificate {cert_file}: {e}")
        raise

    logger.info(f"Server certificate fingerprint: {certificate_fingerprint(cert_file)}")
    return context


def build_client_context(ca_file: Optional[Path] = None,
                         verify_hostname: bool = False) -> ssl.SSLContext:
    """
    Context for the sender

    Trusts ca_file (typically the receiver's self-signed certificate), or
    the system store when none is given. Hostname checking is off unless
    asked for, since peer authentication is not part of the transfer.
    """
    context = ssl.create_default_context(
        ssl.Purpose.SERVER_AUTH,
        cafile=str(ca_file) if ca_file else None
    )
    context.check_hostname = verify_hostname
    if ca_file:
        # Self-signed trust anchors fail the strict X.509 profile checks
        context.verify_flags &= ~ssl.VERIFY_X509_STRICT
    return context
