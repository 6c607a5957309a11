"""X.509 loading, chain validation and serial-number fingerprints."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from cryptography import x509
from cryptography.x509.oid import SignatureAlgorithmOID
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from paykernel.common.errors import BadCertError
from paykernel.common.utils import md5_hex


# Root bundles may carry certificates for other algorithms; only these count
ROOT_SN_ALGORITHMS = (
    SignatureAlgorithmOID.RSA_WITH_SHA1,
    SignatureAlgorithmOID.RSA_WITH_SHA256,
)


def load_certificates_from_bytes(cert_data: Union[bytes, str]) -> List[x509.Certificate]:
    """
    Load every X.509 certificate in a PEM blob.

    Args:
        cert_data: One or more concatenated PEM certificates

    Returns:
        Certificates in file order

    Raises:
        BadCertError: If nothing parsable is found
    """
    if isinstance(cert_data, str):
        cert_data = cert_data.encode("utf-8")
    try:
        certs = x509.load_pem_x509_certificates(cert_data)
    except ValueError as e:
        raise BadCertError(f"Failed to parse certificate: {e}") from e
    if not certs:
        raise BadCertError("No certificate found")
    return certs


def load_certificate_from_bytes(cert_data: Union[bytes, str]) -> x509.Certificate:
    """Load the first certificate of a PEM blob."""
    return load_certificates_from_bytes(cert_data)[0]


def read_cert_file(cert_path: Union[str, Path]) -> bytes:
    """
    Read a certificate file.

    Raises:
        BadCertError: If the file does not exist or cannot be read
    """
    try:
        with open(cert_path, "rb") as f:
            return f.read()
    except OSError as e:
        raise BadCertError(f"Failed to read certificate file {cert_path}: {e}") from e


def load_certificate_chain(cert_path: Union[str, Path]) -> List[x509.Certificate]:
    """Load all certificates of a PEM file."""
    return load_certificates_from_bytes(read_cert_file(cert_path))


def load_certificate(cert_path: Union[str, Path]) -> x509.Certificate:
    """Load the first certificate of a PEM file."""
    return load_certificate_chain(cert_path)[0]


def get_cert_sn(cert: x509.Certificate) -> str:
    """
    Serial-number fingerprint of a certificate.

    md5 over the issuer DN (most specific RDN first, ``CN=..,O=..,C=..``)
    followed by the decimal serial number. Depends only on the certificate
    bytes, so it is stable across processes.
    """
    issuer = cert.issuer.rfc4514_string()
    return md5_hex(f"{issuer}{cert.serial_number}".encode("utf-8"))


def get_root_cert_sn(certs: Iterable[x509.Certificate]) -> str:
    """
    Fingerprint of a root bundle: fingerprints of its RSA-SHA1/RSA-SHA256
    certificates joined with ``_``.
    """
    sns = []
    for cert in certs:
        if cert.signature_algorithm_oid in ROOT_SN_ALGORITHMS:
            sns.append(get_cert_sn(cert))
    return "_".join(sns)


def is_self_signed(cert: x509.Certificate) -> bool:
    """
    Check if certificate is self-signed.
    """
    return cert.subject == cert.issuer


def verify_certificate_chain(
    cert: x509.Certificate,
    issuer_cert: x509.Certificate
) -> bool:
    """
    Verify that a certificate is signed by the given issuer.
    
    Args:
        cert: Certificate to verify
        issuer_cert: Candidate issuer certificate
        
    Returns:
        True if certificate is signed by the issuer
        
    Raises:
        BadCertError: If verification fails
    """
    if cert.issuer != issuer_cert.subject:
        raise BadCertError("Certificate issuer does not match issuer subject")

    issuer_public_key = issuer_cert.public_key()
    if not isinstance(issuer_public_key, rsa.RSAPublicKey):
        raise BadCertError("Issuer certificate does not carry an RSA key")

    hash_alg = cert.signature_hash_algorithm
    if hash_alg is None:
        raise BadCertError(f"Unsupported signature algorithm: {cert.signature_algorithm_oid}")

    try:
        issuer_public_key.verify(
            cert.signature,
            cert.tbs_certificate_bytes,
            padding.PKCS1v15(),
            hash_alg,
        )
    except Exception as e:
        raise BadCertError(f"Certificate signature verification failed: {e}") from e
    return True


def check_certificate_validity(cert: x509.Certificate, now: Optional[datetime] = None) -> bool:
    """
    Check if certificate is within its validity period.
    
    Raises:
        BadCertError: If certificate is expired or not yet valid
    """
    if now is None:
        now = datetime.now(timezone.utc)

    if now < cert.not_valid_before_utc:
        raise BadCertError(
            f"Certificate not yet valid. Valid from: {cert.not_valid_before_utc}"
        )
    
    if now > cert.not_valid_after_utc:
        raise BadCertError(
            f"Certificate expired. Expired on: {cert.not_valid_after_utc}"
        )
    
    return True


def validate_chain_to_root(
    chain: Sequence[x509.Certificate],
    roots: Sequence[x509.Certificate],
    now: Optional[datetime] = None,
) -> bool:
    """
    Validate a leaf-first certificate chain up to one of the trusted roots.

    Each link is checked for issuer signature and validity window. The
    walk stops as soon as a certificate issued by a trusted root is found.

    Args:
        chain: Leaf certificate followed by any intermediates
        roots: Trusted root certificates
        now: Evaluation time (defaults to now)

    Returns:
        True if the chain reaches a trusted root

    Raises:
        BadCertError: If any link is invalid or no root is reached
    """
    if not chain:
        raise BadCertError("Empty certificate chain")
    if not roots:
        raise BadCertError("No trusted root certificates")

    pool = list(chain[1:])
    current = chain[0]
    # Bounded by the chain length; each intermediate is used once
    for _ in range(len(chain)):
        check_certificate_validity(current, now)

        for root in roots:
            if current.issuer == root.subject:
                try:
                    verify_certificate_chain(current, root)
                except BadCertError:
                    continue
                check_certificate_validity(root, now)
                return True

        issuer = next((c for c in pool if c.subject == current.issuer), None)
        if issuer is None or is_self_signed(current):
            break
        verify_certificate_chain(current, issuer)
        pool.remove(issuer)
        current = issuer

    raise BadCertError("Certificate does not chain to a trusted root")


def get_public_key_pem(cert: x509.Certificate) -> str:
    """RSA public key of a certificate as PEM text."""
    public_key = cert.public_key()
    if not isinstance(public_key, rsa.RSAPublicKey):
        raise BadCertError("Certificate does not contain an RSA public key")
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")
