"""Pydantic models: client Config and generated PageRequest."""

import os
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from paykernel.common.constants import POST, RSA2
from paykernel.common.errors import UnsupportedMethodError
from paykernel.encoding.page import build_form


class Config(BaseModel):
    """Client configuration, immutable once built.

    Field aliases are the wire config names (``gatewayHost``, ``appId``, ...).
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    protocol: str = "https"
    gateway_host: str = Field(alias="gatewayHost")
    app_id: str = Field(alias="appId")
    sign_type: str = Field(default=RSA2, alias="signType")
    merchant_private_key: str = Field(alias="merchantPrivateKey", repr=False)
    alipay_public_key: Optional[str] = Field(default=None, alias="alipayPublicKey", repr=False)
    merchant_cert_path: Optional[str] = Field(default=None, alias="merchantCertPath")
    alipay_cert_path: Optional[str] = Field(default=None, alias="alipayCertPath")
    alipay_root_cert_path: Optional[str] = Field(default=None, alias="alipayRootCertPath")

    @field_validator("protocol")
    @classmethod
    def _check_protocol(cls, v: str) -> str:
        if v.lower() not in ("http", "https"):
            raise ValueError(f"protocol must be http or https, got {v!r}")
        return v.lower()

    @field_validator("sign_type")
    @classmethod
    def _check_sign_type(cls, v: str) -> str:
        if v != RSA2:
            raise ValueError(f"only {RSA2} (SHA256withRSA) signing is supported, got {v!r}")
        return v

    @field_validator("gateway_host", "app_id", "merchant_private_key")
    @classmethod
    def _check_required(cls, v: str) -> str:
        if not v:
            raise ValueError("must not be empty")
        return v

    @model_validator(mode="after")
    def _check_cert_group(self) -> "Config":
        paths = (self.merchant_cert_path, self.alipay_cert_path, self.alipay_root_cert_path)
        if any(paths) and not all(paths):
            raise ValueError(
                "merchantCertPath, alipayCertPath and alipayRootCertPath must be set together"
            )
        return self

    @property
    def cert_mode(self) -> bool:
        return bool(self.alipay_cert_path)

    @classmethod
    def from_env(cls, prefix: str = "PAYKERNEL_") -> "Config":
        """Load config from environment variables (``PAYKERNEL_APP_ID``, ...)."""
        values = {}
        for name in cls.model_fields:
            value = os.getenv(prefix + name.upper())
            if value:
                values[name] = value
        return cls(**values)


class PageRequest(BaseModel):
    """Redirect page for a page-type API.

    GET: ``url`` carries every parameter and ``form_fields`` is empty.
    POST: ``url`` is the form action (system params + sign) and
    ``form_fields`` holds the fields to post.
    """
    model_config = ConfigDict(frozen=True)

    method: str
    url: str
    form_fields: Dict[str, str] = {}

    def to_html(self) -> str:
        """Auto-submitting form for POST pages; GET pages have no form."""
        if self.method != POST:
            raise UnsupportedMethodError("Only POST pages render as a form")
        return build_form(self.url, self.form_fields)
