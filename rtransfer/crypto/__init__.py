from .keystore import CertificateStore
from .trust import certificate_fingerprint, build_server_context, build_client_context

__all__ = [
    'CertificateStore',
    'certificate_fingerprint',
    'build_server_context',
    'build_client_context'
]
