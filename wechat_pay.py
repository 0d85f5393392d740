"""WeChat Pay (v2 XML API) client.

Every call is a synchronous pipeline:

    caller params -> fill_request_data -> transport -> xml_codec.decode
    -> verify_response -> PayResult

A :class:`WeChatPay` instance only holds an immutable :class:`Credentials`
object and the sandbox flag, so one instance may be shared across threads.
Reconfiguring the sign type or the client certificate swaps the credentials
object as a whole and is meant to happen once at startup.
"""

from __future__ import annotations

import dataclasses
import logging
import ssl
from dataclasses import dataclass, field
from typing import NamedTuple, Optional

import config
import transport
import xml_codec
from pay_errors import (
    ConfigurationError,
    MissingParameterError,
    SignatureMismatchError,
    TransportError,
    UnknownResultError,
)
from payment_gateway import (
    SIGN_TYPE_MD5,
    generate_sign,
    random_string,
    signs_match,
)

logger = logging.getLogger(__name__)

SUCCESS = "SUCCESS"
FAIL = "FAIL"

DOMAIN_API = "https://api.mch.weixin.qq.com"

# operation -> (production path, sandbox path)
ENDPOINTS = {
    "unifiedorder": ("/pay/unifiedorder", "/sandboxnew/pay/unifiedorder"),
    "refund": ("/secapi/pay/refund", "/sandboxnew/pay/refund"),
    "transfers": (
        "/mmpaymkttransfers/promotion/transfers",
        "/sandboxnew/mmpaymkttransfers/promotion/transfers",
    ),
    "gettransferinfo": (
        "/mmpaymkttransfers/gettransferinfo",
        "/sandboxnew/mmpaymkttransfers/gettransferinfo",
    ),
}


class IdentityFields(NamedTuple):
    app_field: str
    mch_field: str
    send_sign_type: bool
    # overrides the configured sign type when set
    fixed_sign_type: Optional[str] = None


IDENTITY_FIELDS = {
    "pay": IdentityFields("appid", "mch_id", True),
    "mmpaymkttransfers": IdentityFields("mch_appid", "mchid", False, SIGN_TYPE_MD5),
    "gettransferinfo": IdentityFields("appid", "mch_id", False),
}


@dataclass(frozen=True)
class Credentials:
    app_id: str
    mch_id: str
    key: str = field(repr=False)
    sign_type: str = SIGN_TYPE_MD5
    cert: Optional[tuple[str, str]] = None


@dataclass
class PayResult:
    """Outcome of a verified gateway response.

    ``status`` is the business result (``"SUCCESS"`` or ``"FAIL"``); a FAIL
    result is a complete, authenticated answer and not an error.
    """

    status: str
    fields: dict[str, str]
    signature_verified: bool = False

    @property
    def ok(self) -> bool:
        return self.status == SUCCESS

    def __getitem__(self, key: str) -> str:
        return self.fields[key]

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.fields.get(key, default)


def _missing(params: dict[str, str], *names: str) -> list[str]:
    return [n for n in names if not params.get(n)]


class WeChatPay:
    def __init__(self, credentials: Credentials, sandbox: bool = False):
        self.credentials = credentials
        self.sandbox = sandbox

    @classmethod
    def from_config(cls) -> "WeChatPay":
        """Build a client from the ``WECHAT_*`` environment settings."""
        missing = [
            name
            for name, value in (
                ("WECHAT_APP_ID", config.WECHAT_APP_ID),
                ("WECHAT_MCH_ID", config.WECHAT_MCH_ID),
                ("WECHAT_API_KEY", config.WECHAT_API_KEY),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(f"missing settings: {', '.join(missing)}")

        pay = cls(
            Credentials(
                config.WECHAT_APP_ID,
                config.WECHAT_MCH_ID,
                config.WECHAT_API_KEY,
                config.WECHAT_SIGN_TYPE,
            ),
            sandbox=config.WECHAT_SANDBOX,
        )
        if config.WECHAT_CERT_FILE and config.WECHAT_KEY_FILE:
            pay.set_tls(config.WECHAT_CERT_FILE, config.WECHAT_KEY_FILE)
        return pay

    # ---------------------------
    # configuration
    # ---------------------------

    def set_sign_type(self, sign_type: str) -> None:
        self.credentials = dataclasses.replace(self.credentials, sign_type=sign_type)

    def set_tls(self, cert_file: str, key_file: str) -> None:
        """Use ``cert_file``/``key_file`` as the client certificate for refunds and transfers."""
        try:
            ssl.create_default_context().load_cert_chain(cert_file, key_file)
        except OSError as e:
            raise ConfigurationError(f"cannot load client certificate: {e}") from e
        self.credentials = dataclasses.replace(self.credentials, cert=(cert_file, key_file))

    # ---------------------------
    # operations
    # ---------------------------

    def unified_order(self, params: dict[str, str]) -> PayResult:
        """Create a payment order."""
        missing = _missing(
            params,
            "body",
            "out_trade_no",
            "total_fee",
            "spbill_create_ip",
            "notify_url",
            "trade_type",
        )
        if missing:
            raise MissingParameterError(missing)
        return self._call("unifiedorder", params, "pay", tls=False, verify_sign=True)

    def refund(self, params: dict[str, str]) -> PayResult:
        creds = self._require_tls()
        missing = _missing(params, "total_fee", "refund_fee")
        if not params.get("transaction_id") and not params.get("out_trade_no"):
            missing.insert(0, "transaction_id|out_trade_no")
        if missing:
            raise MissingParameterError(missing)
        return self._call("refund", params, "pay", tls=True, verify_sign=True, creds=creds)

    def promotion_transfers(self, params: dict[str, str]) -> PayResult:
        """Pay out to a user's wallet balance.

        The gateway does not sign transfer responses, so only the transport and
        business tiers are checked.
        """
        creds = self._require_tls()
        missing = _missing(
            params, "partner_trade_no", "openid", "check_name", "amount", "desc", "spbill_create_ip"
        )
        if params.get("check_name") == "FORCE_CHECK" and not params.get("re_user_name"):
            missing.append("re_user_name")
        if params.get("amount") == "0":
            missing.append("amount")
        if missing:
            raise MissingParameterError(missing)
        return self._call(
            "transfers", params, "mmpaymkttransfers", tls=True, verify_sign=False, creds=creds
        )

    def get_transfer_info(self, partner_trade_no: str) -> PayResult:
        creds = self._require_tls()
        if not partner_trade_no:
            raise MissingParameterError(["partner_trade_no"])
        return self._call(
            "gettransferinfo",
            {"partner_trade_no": partner_trade_no},
            "gettransferinfo",
            tls=True,
            verify_sign=False,
            creds=creds,
        )

    def parse_notification(self, raw: bytes) -> PayResult:
        """Decode and authenticate a payment notification pushed by the gateway.

        Unlike request/response calls the signature is always checked, even
        when the notification reports a business failure. A notification whose
        ``return_code`` is not SUCCESS carries no signature and raises
        ``TransportError`` before the signature is looked at.
        """
        fields = xml_codec.decode(raw)
        if fields.get("return_code", "") != SUCCESS:
            logger.warning("notification rejected: %s %s", fields.get("return_code", ""), fields.get("return_msg", ""))
            raise TransportError(fields.get("return_code", ""), fields.get("return_msg", ""))
        if not self.sign_verify(fields):
            logger.warning("notification signature mismatch: out_trade_no=%s", fields.get("out_trade_no"))
            raise SignatureMismatchError(fields)
        result = self.verify_response(fields, verify_sign=False)
        result.signature_verified = True
        return result

    @staticmethod
    def notification_reply(ok: bool = True, message: str = "OK") -> bytes:
        return xml_codec.encode({"return_code": SUCCESS if ok else FAIL, "return_msg": message})

    # ---------------------------
    # signing and verification
    # ---------------------------

    def fill_request_data(
        self, params: dict[str, str], family: str = "pay", creds: Optional[Credentials] = None
    ) -> dict[str, str]:
        """Return a copy of ``params`` with identity fields, nonce and ``sign`` filled in."""
        creds = creds or self.credentials
        identity = IDENTITY_FIELDS[family]
        sign_type = identity.fixed_sign_type or creds.sign_type

        req = dict(params)
        req[identity.app_field] = creds.app_id
        req[identity.mch_field] = creds.mch_id
        if identity.send_sign_type:
            req["sign_type"] = sign_type
        req["nonce_str"] = random_string()
        req["sign"] = generate_sign(req, creds.key, sign_type)
        return req

    def sign_verify(self, params: dict[str, str], creds: Optional[Credentials] = None) -> bool:
        """Return whether ``params["sign"]`` matches a signature recomputed over the other fields.

        ``params`` is left untouched. Raises ``SigningError`` if the configured
        sign type cannot be computed.
        """
        creds = creds or self.credentials
        unsigned = dict(params)
        sign = unsigned.pop("sign", "")
        return signs_match(generate_sign(unsigned, creds.key, creds.sign_type), sign)

    def verify_response(
        self, response: dict[str, str], verify_sign: bool, creds: Optional[Credentials] = None
    ) -> PayResult:
        fields = {k: v for k, v in response.items() if k != "sign"}

        return_code = response.get("return_code", "")
        if return_code != SUCCESS:
            logger.warning("gateway rejected request: %s %s", return_code, response.get("return_msg", ""))
            raise TransportError(return_code, response.get("return_msg", ""))

        result_code = response.get("result_code", "")
        if result_code == FAIL:
            logger.info(
                "business failure: %s %s", response.get("err_code", ""), response.get("err_code_des", "")
            )
            return PayResult(FAIL, fields)
        if result_code != SUCCESS:
            logger.warning("unknown result_code: %s", result_code)
            raise UnknownResultError(result_code, response.get("err_code_des", ""))

        if not verify_sign:
            return PayResult(SUCCESS, fields)
        if not self.sign_verify(response, creds):
            logger.warning("response signature mismatch")
            raise SignatureMismatchError(fields)
        return PayResult(SUCCESS, fields, signature_verified=True)

    # ---------------------------
    # internals
    # ---------------------------

    def _require_tls(self) -> Credentials:
        creds = self.credentials
        if creds.cert is None:
            raise ConfigurationError("client certificate required: call set_tls first")
        return creds

    def _url(self, operation: str) -> str:
        production, sandbox = ENDPOINTS[operation]
        return DOMAIN_API + (sandbox if self.sandbox else production)

    def _call(
        self,
        operation: str,
        params: dict[str, str],
        family: str,
        tls: bool,
        verify_sign: bool,
        creds: Optional[Credentials] = None,
    ) -> PayResult:
        creds = creds or self.credentials
        req = self.fill_request_data(params, family, creds)
        url = self._url(operation)
        if tls:
            raw = transport.post_xml_over_tls(url, creds.cert, req)
        else:
            raw = transport.post_xml(url, req)
        result = self.verify_response(xml_codec.decode(raw), verify_sign, creds)
        logger.info("%s finished: result=%s", operation, result.status)
        return result


__all__ = [
    "SUCCESS",
    "FAIL",
    "DOMAIN_API",
    "ENDPOINTS",
    "IDENTITY_FIELDS",
    "IdentityFields",
    "Credentials",
    "PayResult",
    "WeChatPay",
]
