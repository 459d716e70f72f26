import base64
import binascii
import hashlib
import hmac
import json
from decimal import Decimal
from typing import Dict, Mapping, Optional, Sequence

from storefront.config import settings
from storefront.errors import InvalidCallbackError, InvalidSignatureError
from storefront.utils.money import money_str

# fields we sign when handing the buyer over to the gateway, in this order
REQUEST_SIGNED_FIELDS = ("total_amount", "transaction_uuid", "product_code")
# a callback is only trusted if its signature covers at least these
CALLBACK_REQUIRED_SIGNED = frozenset({"transaction_uuid", "total_amount", "status", "product_code"})
CALLBACK_FIELDS = ("transaction_uuid", "status", "total_amount", "signed_field_names", "signature")


class EsewaAdapter:
    """
    eSewa ePay v2 redirect protocol.

    Outbound: a flat form posted by the browser to the gateway, carrying an
    HMAC-SHA256 (base64) signature over ``key=value`` pairs of the fields
    listed in ``signed_field_names``, joined by commas.
    Inbound: the gateway redirects back with ``?data=<base64 JSON>``, signed
    the same way over the fields it names.
    """

    def __init__(
        self,
        merchant_code: Optional[str] = None,
        secret_key: Optional[str] = None,
        payment_url: Optional[str] = None,
    ):
        self.merchant_code = merchant_code or settings.ESEWA_MERCHANT_CODE
        self.secret_key = secret_key or settings.ESEWA_SECRET_KEY
        self.payment_url = payment_url or settings.ESEWA_PAYMENT_URL

    def health_check(self) -> bool:
        return bool(self.merchant_code and self.secret_key and self.payment_url)

    def sign(self, message: str) -> str:
        digest = hmac.new(self.secret_key.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).digest()
        return base64.b64encode(digest).decode("ascii")

    @staticmethod
    def signing_message(fields: Mapping, names: Sequence[str]) -> str:
        return ",".join(f"{name}={fields[name]}" for name in names)

    def build_form(
        self,
        transaction_uuid: str,
        total: Decimal,
        tax: Decimal,
        shipping: Decimal,
        success_url: str,
        failure_url: str,
    ) -> Dict:
        """Return ``{"paymentUrl", "formData"}`` for an auto-submitted POST to the gateway."""
        form = {
            "amount": money_str(total - tax - shipping),
            "tax_amount": money_str(tax),
            "total_amount": money_str(total),
            "transaction_uuid": transaction_uuid,
            "product_code": self.merchant_code,
            "product_service_charge": "0",
            "product_delivery_charge": money_str(shipping),
            "success_url": success_url,
            "failure_url": failure_url,
            "signed_field_names": ",".join(REQUEST_SIGNED_FIELDS),
        }
        form["signature"] = self.sign(self.signing_message(form, REQUEST_SIGNED_FIELDS))
        return {"paymentUrl": self.payment_url, "formData": form}

    def decode_callback(self, encoded: str) -> Dict:
        """Decode the ``data`` query parameter into the callback dict."""
        if not encoded:
            raise InvalidCallbackError("missing data")
        # '+' may have been turned into ' ' by query-string decoding, and padding dropped
        data = encoded.strip().replace(" ", "+")
        data += "=" * (-len(data) % 4)
        try:
            payload = json.loads(base64.b64decode(data))
        except (binascii.Error, ValueError) as e:
            raise InvalidCallbackError(f"undecodable payload: {e}")
        if not isinstance(payload, dict):
            raise InvalidCallbackError("payload is not an object")
        missing = [f for f in CALLBACK_FIELDS if f not in payload]
        if missing:
            raise InvalidCallbackError(f"missing fields: {', '.join(missing)}")
        return payload

    def verify_signature(self, payload: Mapping) -> None:
        """
        Recompute the signature over exactly the fields named in
        ``signed_field_names`` and compare in constant time.
        The reason for a failure is deliberately not distinguished.
        """
        names = [n.strip() for n in str(payload.get("signed_field_names", "")).split(",") if n.strip()]
        if not CALLBACK_REQUIRED_SIGNED.issubset(names) or any(n not in payload for n in names):
            raise InvalidSignatureError("signature does not verify")
        if str(payload.get("product_code")) != self.merchant_code:
            raise InvalidSignatureError("signature does not verify")
        expected = self.sign(self.signing_message(payload, names))
        # compared as bytes; compare_digest raises on non-ASCII str
        given = str(payload.get("signature", "")).encode("utf-8")
        if not hmac.compare_digest(expected.encode("ascii"), given):
            raise InvalidSignatureError("signature does not verify")

    @staticmethod
    def callback_amount(payload: Mapping) -> Decimal:
        # the gateway formats amounts like "1,000.0"
        return Decimal(str(payload.get("total_amount", "")).replace(",", ""))
