"""Certificate-mode trust environment.

Holds the merchant and root certificate fingerprints sent with every
request, and a mapping from gateway certificate fingerprint to the public
key used to verify responses signed under that certificate.

Only certificates whose chain validates to the configured root are ever
admitted. Readers see an immutable snapshot of the mapping; admission of a
rotated gateway certificate builds a new mapping under a lock and swaps it
in with a single reference assignment.
"""

import logging
import threading
from pathlib import Path
from types import MappingProxyType
from typing import List, Mapping, Optional, Union

from cryptography import x509

from paykernel.common.errors import ConfigurationError
from paykernel.crypto.pki import (
    get_cert_sn,
    get_public_key_pem,
    get_root_cert_sn,
    load_certificate_from_bytes,
    load_certificates_from_bytes,
    read_cert_file,
    validate_chain_to_root,
)


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class CertEnvironment:
    """Root-anchored store of trusted gateway public keys."""

    def __init__(
        self,
        merchant_cert_path: Optional[PathLike],
        gateway_cert_path: Optional[PathLike],
        root_cert_path: Optional[PathLike],
    ):
        """
        Load all three certificate files.

        Raises:
            ConfigurationError: If any of the paths is missing
            BadCertError: If a file is unreadable, unparsable, or the
                gateway certificate does not chain to the root
        """
        if not merchant_cert_path or not gateway_cert_path or not root_cert_path:
            raise ConfigurationError(
                "Certificate mode needs merchantCertPath, alipayCertPath "
                "and alipayRootCertPath together"
            )
        self.gateway_cert_path = Path(gateway_cert_path)
        self._init(
            read_cert_file(merchant_cert_path),
            read_cert_file(gateway_cert_path),
            read_cert_file(root_cert_path),
        )

    @classmethod
    def from_bytes(
        cls,
        merchant_cert: Union[bytes, str],
        gateway_cert: Union[bytes, str],
        root_cert: Union[bytes, str],
    ) -> "CertEnvironment":
        """Build an environment from in-memory PEM contents."""
        if not merchant_cert or not gateway_cert or not root_cert:
            raise ConfigurationError("Merchant, gateway and root certificates are all required")
        env = cls.__new__(cls)
        env.gateway_cert_path = None
        env._init(merchant_cert, gateway_cert, root_cert)
        return env

    def _init(self, merchant_cert, gateway_cert, root_cert) -> None:
        self._lock = threading.Lock()
        self._roots: List[x509.Certificate] = load_certificates_from_bytes(root_cert)
        self.root_cert_sn: str = get_root_cert_sn(self._roots)
        self.merchant_cert_sn: str = get_cert_sn(load_certificate_from_bytes(merchant_cert))

        sn, public_key = self._validate(gateway_cert)
        self._default_sn: str = sn
        self._public_keys: Mapping[str, str] = MappingProxyType({sn: public_key})
        logger.info("Certificate mode enabled; gateway certificate %s trusted", sn)

    def _validate(self, cert_data):
        chain = load_certificates_from_bytes(cert_data)
        validate_chain_to_root(chain, self._roots)
        leaf = chain[0]
        return get_cert_sn(leaf), get_public_key_pem(leaf)

    def get_merchant_cert_sn(self) -> str:
        return self.merchant_cert_sn

    def get_root_cert_sn(self) -> str:
        return self.root_cert_sn

    def get_gateway_public_key(self, sn: Optional[str] = None) -> Optional[str]:
        """
        Public key (PEM) for a gateway certificate fingerprint.

        An empty ``sn`` resolves to the certificate loaded at startup. An
        unknown ``sn`` returns None; whether that means "refresh" or "reject"
        is the caller's decision.
        """
        keys = self._public_keys
        if not sn:
            return keys.get(self._default_sn)
        public_key = keys.get(sn)
        if public_key is None:
            logger.warning("Gateway certificate %s is not trusted in this environment", sn)
        return public_key

    def admit_certificate(self, cert_data: Union[bytes, str]) -> str:
        """
        Trust a rotated gateway certificate.

        The certificate (optionally followed by intermediates) must chain to
        the configured root. On success its public key becomes resolvable by
        its fingerprint; on failure the mapping is left unchanged.

        Returns:
            Fingerprint of the admitted certificate

        Raises:
            BadCertError: If the certificate cannot be parsed or validated
        """
        sn, public_key = self._validate(cert_data)
        with self._lock:
            if sn in self._public_keys:
                return sn
            updated = dict(self._public_keys)
            updated[sn] = public_key
            self._public_keys = MappingProxyType(updated)
        logger.info("Admitted rotated gateway certificate %s", sn)
        return sn

    def reload_gateway_cert(self, cert_path: Optional[PathLike] = None) -> str:
        """Re-read the gateway certificate file and admit what it now holds."""
        path = cert_path or self.gateway_cert_path
        if path is None:
            raise ConfigurationError("No gateway certificate path to reload from")
        return self.admit_certificate(read_cert_file(path))

    def known_serial_numbers(self) -> List[str]:
        """Fingerprints of every admitted gateway certificate."""
        return list(self._public_keys)
