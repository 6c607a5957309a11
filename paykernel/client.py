"""Gateway client core: signs requests, builds bodies and pages, verifies responses.

The generated per-API layer builds business and text parameters, calls into
``BaseClient`` for the system parameters, signature and request body, hands
the body to its transport, and feeds the raw response text back through
``read_as_json`` / ``verify_response`` / ``to_resp_model``.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import ValidationError

from paykernel.common.constants import (
    ALIPAY_CERT_SN_FIELD,
    BIZ_CONTENT_FIELD,
    BODY_FIELD,
    DEFAULT_CHARSET,
    GATEWAY_PATH,
    GET,
    METHOD_FIELD,
    POST,
    SDK_VERSION,
    SIGN_FIELD,
)
from paykernel.common.errors import (
    ConfigurationError,
    UnsupportedContentModeError,
    UnsupportedMethodError,
    VerificationError,
)
from paykernel.common.protocol import Config, PageRequest
from paykernel.common.utils import gateway_timestamp, random_boundary
from paykernel.crypto.cert_env import CertEnvironment
from paykernel.crypto.sign import Signer, load_private_key, load_public_key
from paykernel.encoding.canonical import (
    build_query_string,
    build_sign_content,
    canonicalize,
    sort_params,
    to_json_string,
)
from paykernel.encoding.multipart import build_multipart_body
from paykernel.response.envelope import extract_response_model, to_json_map
from paykernel.response.sign_content import SignContentExtractor


logger = logging.getLogger(__name__)

FORM = "form"
MULTIPART = "multipart"


class BaseClient:
    """Per-merchant client context. Built once, then shared across threads."""

    def __init__(self, config: Union[Config, Mapping[str, Any]]):
        """
        Args:
            config: A Config, or a mapping keyed by wire config names

        Raises:
            ConfigurationError: Invalid sign type, incomplete certificate
                paths or other invalid settings
            KeyFormatError: Unparsable merchant private key or gateway public key
            BadCertError: Certificate files unreadable or not chaining to root
        """
        if not isinstance(config, Config):
            try:
                config = Config.model_validate(dict(config))
            except ValidationError as e:
                raise ConfigurationError(f"Invalid client configuration: {e}") from e
        self.config = config

        self._signer = Signer()
        self._sign_content_extractor = SignContentExtractor()

        # Fail on bad key material now rather than on the first call
        load_private_key(config.merchant_private_key)
        if config.alipay_public_key:
            load_public_key(config.alipay_public_key)

        self.cert_environment: Optional[CertEnvironment] = None
        if config.cert_mode:
            self.cert_environment = CertEnvironment(
                config.merchant_cert_path,
                config.alipay_cert_path,
                config.alipay_root_cert_path,
            )

    # -----------------------------
    # Config & helpers
    # -----------------------------

    def get_config(self, key: str) -> Optional[str]:
        """Read a setting by its wire name (``appId``) or field name (``app_id``)."""
        for name, field in Config.model_fields.items():
            if key == name or key == field.alias:
                return getattr(self.config, name)
        return None

    @property
    def gateway_url(self) -> str:
        return f"{self.config.protocol}://{self.config.gateway_host}{GATEWAY_PATH}"

    def get_timestamp(self) -> str:
        return gateway_timestamp()

    def get_random_boundary(self) -> str:
        return random_boundary()

    def get_sdk_version(self) -> str:
        return SDK_VERSION

    def build_system_params(self, method: str, version: str = "1.0") -> Dict[str, str]:
        """Protocol-level parameters every request carries."""
        params = {
            "method": method,
            "app_id": self.config.app_id,
            "timestamp": self.get_timestamp(),
            "format": "json",
            "version": version,
            "charset": DEFAULT_CHARSET,
            "sign_type": self.config.sign_type,
        }
        if self.is_cert_mode():
            params["app_cert_sn"] = self.get_merchant_cert_sn()
            params["alipay_root_cert_sn"] = self.get_alipay_root_cert_sn()
        return params

    # -----------------------------
    # Request bodies
    # -----------------------------

    def to_url_encoded_request_body(
        self,
        biz_params: Optional[Mapping[str, Any]],
        text_params: Optional[Mapping[str, Any]],
    ) -> bytes:
        """Business and text parameters as an x-www-form-urlencoded body."""
        sorted_map = canonicalize(None, biz_params, text_params)
        return build_query_string(sorted_map).encode(DEFAULT_CHARSET)

    def to_multipart_request_body(self, text_params, file_params, boundary: str):
        return build_multipart_body(text_params, file_params, boundary)

    def build_request_body(
        self,
        content_mode: str,
        biz_params: Optional[Mapping[str, Any]] = None,
        text_params: Optional[Mapping[str, Any]] = None,
        file_params: Optional[Mapping[str, str]] = None,
        boundary: Optional[str] = None,
    ):
        """
        Build the HTTP body for the declared content mode.

        ``form`` returns bytes. ``multipart`` returns a BytesIO; business
        parameters, if any, travel as a ``biz_content`` text field.
        """
        mode = (content_mode or "").lower()
        if mode == FORM:
            return self.to_url_encoded_request_body(biz_params, text_params)
        if mode == MULTIPART:
            fields = dict(text_params or {})
            if biz_params:
                fields[BIZ_CONTENT_FIELD] = to_json_string(biz_params)
            return self.to_multipart_request_body(
                fields, file_params or {}, boundary or self.get_random_boundary()
            )
        raise UnsupportedContentModeError(
            f"Content mode must be {FORM} or {MULTIPART}, got {content_mode!r}"
        )

    # -----------------------------
    # Signing
    # -----------------------------

    def sign(
        self,
        system_params: Optional[Mapping[str, Any]],
        biz_params: Optional[Mapping[str, Any]],
        text_params: Optional[Mapping[str, Any]],
        private_key=None,
    ) -> str:
        """Signature over the canonical content of all parameters."""
        content = build_sign_content(canonicalize(system_params, biz_params, text_params))
        return self._signer.sign(content, private_key or self.config.merchant_private_key)

    # -----------------------------
    # Responses
    # -----------------------------

    def read_as_json(self, raw_body: str, method: str) -> Dict[str, Any]:
        return to_json_map(raw_body, method)

    def to_resp_model(self, resp_map: Dict[str, Any]) -> Dict[str, Any]:
        return extract_response_model(resp_map)

    def verify(self, resp_map: Mapping[str, Any], public_key) -> bool:
        """Check the response signature against the node text in the raw body."""
        sign = resp_map.get(SIGN_FIELD)
        content = self._sign_content_extractor.get_sign_source_data(
            resp_map.get(BODY_FIELD) or "", resp_map.get(METHOD_FIELD) or ""
        )
        if content is None:
            return False
        return self._signer.verify(content, sign, public_key)

    def verify_response(self, resp_map: Mapping[str, Any]) -> None:
        """
        Verify a response with the key the client trusts for it.

        Raises:
            VerificationError: Unknown gateway certificate, no key configured,
                or a signature that does not match
        """
        if self.is_cert_mode():
            sn = self.get_alipay_cert_sn(resp_map)
            public_key = self.extract_alipay_public_key(sn)
            if public_key is None:
                raise VerificationError(f"Gateway certificate {sn} is not trusted")
        else:
            public_key = self.config.alipay_public_key
            if not public_key:
                raise VerificationError("No gateway public key configured")

        if not self.verify(resp_map, public_key):
            logger.warning("Signature verification failed for %s", resp_map.get(METHOD_FIELD))
            raise VerificationError(
                f"Response signature verification failed for {resp_map.get(METHOD_FIELD)}"
            )

    # -----------------------------
    # Certificate mode
    # -----------------------------

    def is_cert_mode(self) -> bool:
        return self.cert_environment is not None

    def get_merchant_cert_sn(self) -> Optional[str]:
        if self.cert_environment is None:
            return None
        return self.cert_environment.get_merchant_cert_sn()

    def get_alipay_root_cert_sn(self) -> Optional[str]:
        if self.cert_environment is None:
            return None
        return self.cert_environment.get_root_cert_sn()

    def get_alipay_cert_sn(self, resp_map: Mapping[str, Any]) -> Optional[str]:
        return resp_map.get(ALIPAY_CERT_SN_FIELD)

    def extract_alipay_public_key(self, sn: Optional[str]) -> Optional[str]:
        if self.cert_environment is None:
            return None
        return self.cert_environment.get_gateway_public_key(sn)

    # -----------------------------
    # Pages
    # -----------------------------

    def generate_page(
        self,
        method: str,
        system_params: Optional[Mapping[str, Any]],
        biz_params: Optional[Mapping[str, Any]],
        text_params: Optional[Mapping[str, Any]],
        sign: str,
    ) -> PageRequest:
        """
        Redirect page for a page-type API.

        GET puts every parameter plus ``sign`` into the URL. POST puts only
        the system parameters plus ``sign`` into the action URL and returns
        the text parameters and ``biz_content`` as form fields.

        Raises:
            UnsupportedMethodError: For anything but GET/POST
        """
        http_method = (method or "").upper()
        if http_method == GET:
            sorted_map = canonicalize(system_params, biz_params, {**(text_params or {}), SIGN_FIELD: sign})
            return PageRequest(
                method=GET,
                url=f"{self.gateway_url}?{build_query_string(sorted_map)}",
            )
        if http_method == POST:
            url_params = sort_params({**(system_params or {}), SIGN_FIELD: sign})
            form_params = sort_params(
                {**(text_params or {}), BIZ_CONTENT_FIELD: to_json_string(biz_params or {})}
            )
            return PageRequest(
                method=POST,
                url=f"{self.gateway_url}?{build_query_string(url_params)}",
                form_fields=form_params,
            )
        raise UnsupportedMethodError(f"Page method must be GET or POST, got {method!r}")
