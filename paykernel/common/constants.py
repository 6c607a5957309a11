"""Reserved field names and config keys of the gateway protocol."""

# Request fields
BIZ_CONTENT_FIELD = "biz_content"
SIGN_FIELD = "sign"

# Fields injected into a decoded response map
BODY_FIELD = "http_body"
METHOD_FIELD = "method"

# Response fields
ALIPAY_CERT_SN_FIELD = "alipay_cert_sn"
ERROR_RESPONSE = "error_response"
RESPONSE_SUFFIX = "_response"

# Config keys (wire names)
PROTOCOL_CONFIG_KEY = "protocol"
HOST_CONFIG_KEY = "gatewayHost"
APP_ID_CONFIG_KEY = "appId"
SIGN_TYPE_CONFIG_KEY = "signType"
ALIPAY_PUBLIC_KEY_CONFIG_KEY = "alipayPublicKey"
MERCHANT_PRIVATE_KEY_CONFIG_KEY = "merchantPrivateKey"
MERCHANT_CERT_PATH_CONFIG_KEY = "merchantCertPath"
ALIPAY_CERT_PATH_CONFIG_KEY = "alipayCertPath"
ALIPAY_ROOT_CERT_PATH_CONFIG_KEY = "alipayRootCertPath"

RSA2 = "RSA2"
GET = "GET"
POST = "POST"

DEFAULT_CHARSET = "utf-8"
GATEWAY_PATH = "/gateway.do"
SDK_VERSION = "paykernel-python-0.1.0"
