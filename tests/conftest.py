"""Shared fixtures: RSA keys and a small CA hierarchy issued in memory."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.x509.oid import NameOID
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa


@dataclass
class Issued:
    key: rsa.RSAPrivateKey
    cert: x509.Certificate

    @property
    def cert_pem(self) -> bytes:
        return self.cert.public_bytes(serialization.Encoding.PEM)

    @property
    def private_key_pem(self) -> str:
        return private_key_pem(self.key)

    @property
    def public_key_pem(self) -> str:
        return public_key_pem(self.key)


def generate_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def private_key_pem(key: rsa.RSAPrivateKey) -> str:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


def public_key_pem(key: rsa.RSAPrivateKey) -> str:
    return key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")


def make_name(cn: str, org: str = "Gateway Test") -> x509.Name:
    return x509.Name([
        x509.NameAttribute(NameOID.COUNTRY_NAME, "CN"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, org),
        x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, "Certification Authority"),
        x509.NameAttribute(NameOID.COMMON_NAME, cn),
    ])


def create_root_ca(name: str, key: rsa.RSAPrivateKey = None) -> Issued:
    """Self-signed RSA root, valid for 10 years."""
    key = key or generate_key()
    subject = issuer = make_name(name)
    now = datetime.now(timezone.utc)
    cert = x509.CertificateBuilder().subject_name(
        subject
    ).issuer_name(
        issuer
    ).public_key(
        key.public_key()
    ).serial_number(
        x509.random_serial_number()
    ).not_valid_before(
        now - timedelta(days=1)
    ).not_valid_after(
        now + timedelta(days=3650)
    ).add_extension(
        x509.BasicConstraints(ca=True, path_length=None),
        critical=True,
    ).sign(key, hashes.SHA256())
    return Issued(key, cert)


def issue_certificate(
    cn: str,
    ca: Issued,
    is_ca: bool = False,
    not_before: datetime = None,
    not_after: datetime = None,
    key: rsa.RSAPrivateKey = None,
) -> Issued:
    """RSA certificate signed by ``ca``."""
    key = key or generate_key()
    now = datetime.now(timezone.utc)
    cert = x509.CertificateBuilder().subject_name(
        make_name(cn)
    ).issuer_name(
        ca.cert.subject
    ).public_key(
        key.public_key()
    ).serial_number(
        x509.random_serial_number()
    ).not_valid_before(
        not_before or now - timedelta(days=1)
    ).not_valid_after(
        not_after or now + timedelta(days=365)
    ).add_extension(
        x509.BasicConstraints(ca=is_ca, path_length=None),
        critical=True,
    ).sign(ca.key, hashes.SHA256())
    return Issued(key, cert)


@pytest.fixture(scope="session")
def merchant_key():
    return generate_key()


@pytest.fixture(scope="session")
def gateway_key():
    return generate_key()


@pytest.fixture(scope="session")
def root_ca():
    return create_root_ca("Gateway Root CA")


@pytest.fixture(scope="session")
def gateway_cert(root_ca, gateway_key):
    return issue_certificate("Gateway Public Key", root_ca, key=gateway_key)


@pytest.fixture(scope="session")
def rotated_gateway_cert(root_ca):
    return issue_certificate("Gateway Public Key 2", root_ca)


@pytest.fixture(scope="session")
def merchant_cert(root_ca, merchant_key):
    return issue_certificate("2019051064521003", root_ca, key=merchant_key)


@pytest.fixture(scope="session")
def rogue_gateway_cert():
    rogue_root = create_root_ca("Gateway Root CA")
    return issue_certificate("Gateway Public Key", rogue_root)


@pytest.fixture
def cert_files(tmp_path, root_ca, gateway_cert, merchant_cert):
    """Merchant, gateway and root certificates written to disk."""
    paths = {
        "merchant": tmp_path / "appCertPublicKey.crt",
        "gateway": tmp_path / "alipayCertPublicKey_RSA2.crt",
        "root": tmp_path / "alipayRootCert.crt",
    }
    paths["merchant"].write_bytes(merchant_cert.cert_pem)
    paths["gateway"].write_bytes(gateway_cert.cert_pem)
    paths["root"].write_bytes(root_ca.cert_pem)
    return paths
