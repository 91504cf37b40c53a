"""
Thin HTTP clients for the Malaysian payment gateways a mosque can connect.

Both gateways answer with a handful of loosely documented JSON shapes, so each
client normalizes them into plain dicts before they reach the services layer.
Network and protocol failures surface as ``ProviderConnectionError``.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from decimal import Decimal
from typing import Any

import requests
from django.conf import settings

from core.exceptions import ProviderConnectionError

logger = logging.getLogger(__name__)


def to_sen(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1")))


def provider_message(response: requests.Response | None) -> str:
    """
    Pull the gateway's own error text out of a failed response. Billplz
    answers ``{"error": {"message": ...}}``, ToyyibPay ``{"msg": ...}``.
    """
    if response is None:
        return ""
    try:
        data = response.json()
    except ValueError:
        return (response.text or "").strip()[:300]

    if isinstance(data, list) and data:
        data = data[0]
    if not isinstance(data, dict):
        return str(data)[:300]

    error = data.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        if isinstance(message, list):
            message = " ".join(str(m) for m in message)
        return str(message or error.get("type") or "")
    return str(error or data.get("msg") or data.get("message") or "")


class BaseGateway:
    name = ""
    sandbox_url = ""
    live_url = ""

    def __init__(self, credentials: dict[str, str], is_sandbox: bool = True) -> None:
        self.credentials = credentials
        self.is_sandbox = is_sandbox
        self.base_url = self.sandbox_url if is_sandbox else self.live_url

    @property
    def timeout(self) -> int:
        return getattr(settings, "PAYMENT_GATEWAY_TIMEOUT", 15)

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = requests.request(method, url, timeout=self.timeout, **kwargs)
            resp.raise_for_status()
        except requests.HTTPError as exc:
            message = provider_message(exc.response) or str(exc)
            logger.warning("%s %s %s rejected: %s", self.name, method, path, message)
            raise ProviderConnectionError(f"{self.display_name} request failed: {message}") from exc
        except requests.RequestException as exc:
            logger.warning("%s %s %s failed: %s", self.name, method, path, exc)
            raise ProviderConnectionError(f"{self.display_name} request failed: {exc}") from exc

        try:
            return resp.json()
        except ValueError as exc:
            raise ProviderConnectionError(f"{self.display_name} returned an invalid response.") from exc

    @property
    def display_name(self) -> str:
        return {"billplz": "Billplz", "toyyibpay": "ToyyibPay"}.get(self.name, self.name)

    def payment_url(self, bill_id: str) -> str:
        raise NotImplementedError

    def test_connection(self) -> dict[str, Any]:
        raise NotImplementedError

    def create_bill(self, **bill: Any) -> dict[str, Any]:
        raise NotImplementedError

    def get_bill(self, bill_id: str) -> dict[str, Any]:
        raise NotImplementedError


class BillplzGateway(BaseGateway):
    name = "billplz"
    sandbox_url = "https://www.billplz-sandbox.com"
    live_url = "https://www.billplz.com"

    @property
    def auth(self) -> tuple[str, str]:
        return (self.credentials.get("api_key", ""), "")

    def payment_url(self, bill_id: str) -> str:
        return f"{self.base_url}/bills/{bill_id}"

    def test_connection(self) -> dict[str, Any]:
        collection_id = self.credentials.get("collection_id", "")
        data = self._request("GET", f"/api/v3/collections/{collection_id}", auth=self.auth)
        if not isinstance(data, dict) or not data.get("id"):
            raise ProviderConnectionError("Billplz collection not found. Check the collection ID.")
        return {
            "collection_id": data["id"],
            "title": data.get("title", ""),
            "status": data.get("status", ""),
        }

    def create_bill(
        self,
        *,
        amount: Decimal,
        name: str,
        email: str | None,
        mobile: str | None,
        description: str,
        callback_url: str,
        redirect_url: str,
        reference: str,
    ) -> dict[str, Any]:
        payload = {
            "collection_id": self.credentials.get("collection_id", ""),
            "name": name,
            "email": email or "",
            "mobile": mobile or "",
            "amount": to_sen(amount),
            "description": description[:200],
            "callback_url": callback_url,
            "redirect_url": redirect_url,
            "reference_1_label": "Contribution",
            "reference_1": reference,
        }
        data = self._request("POST", "/api/v3/bills", data=payload, auth=self.auth)
        if not isinstance(data, dict) or not data.get("id"):
            raise ProviderConnectionError("Billplz did not return a bill.")
        return {"bill_id": data["id"], "payment_url": data.get("url") or self.payment_url(data["id"])}

    def get_bill(self, bill_id: str) -> dict[str, Any]:
        data = self._request("GET", f"/api/v3/bills/{bill_id}", auth=self.auth)
        if not isinstance(data, dict) or not data.get("id"):
            raise ProviderConnectionError(f"Billplz did not return bill {bill_id}.")
        if data.get("paid"):
            status = "completed"
        elif data.get("state") == "deleted":
            status = "failed"
        else:
            status = "pending"
        return {"bill_id": bill_id, "status": status, "reference": bill_id, "raw": data}

    def verify_signature(self, payload: dict[str, Any], signature: str | None) -> bool:
        """
        Billplz signs callbacks with HMAC-SHA256 over every ``key`` + ``value``
        pair except ``x_signature``, sorted by key and joined with ``|``.
        """
        secret = self.credentials.get("x_signature_key", "")
        if not secret or not signature:
            return False
        source = "|".join(
            f"{key}{payload[key] if payload[key] is not None else ''}"
            for key in sorted(payload)
            if key != "x_signature"
        )
        expected = hmac.new(secret.encode(), source.encode(), hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected, signature)


class ToyyibPayGateway(BaseGateway):
    name = "toyyibpay"
    sandbox_url = "https://dev.toyyibpay.com"
    live_url = "https://toyyibpay.com"

    STATUS_MAP = {"1": "completed", "2": "pending", "3": "failed"}

    def payment_url(self, bill_id: str) -> str:
        return f"{self.base_url}/{bill_id}"

    def test_connection(self) -> dict[str, Any]:
        data = self._request(
            "POST",
            "/index.php/api/getCategoryDetails",
            data={
                "userSecretKey": self.credentials.get("secret_key", ""),
                "categoryCode": self.credentials.get("category_code", ""),
            },
        )
        if isinstance(data, dict) and data.get("msg"):
            raise ProviderConnectionError(f"ToyyibPay rejected the credentials: {data['msg']}")
        if not isinstance(data, list) or not data or not isinstance(data[0], dict) or not data[0].get("categoryName"):
            raise ProviderConnectionError("ToyyibPay category not found. Check the secret key and category code.")
        category = data[0]
        return {
            "category_code": self.credentials.get("category_code", ""),
            "title": category["categoryName"],
            "status": category.get("categoryStatus", ""),
        }

    def create_bill(
        self,
        *,
        amount: Decimal,
        name: str,
        email: str | None,
        mobile: str | None,
        description: str,
        callback_url: str,
        redirect_url: str,
        reference: str,
    ) -> dict[str, Any]:
        payload = {
            "userSecretKey": self.credentials.get("secret_key", ""),
            "categoryCode": self.credentials.get("category_code", ""),
            "billName": description[:30],
            "billDescription": description[:100],
            "billPriceSetting": 1,
            "billPayorInfo": 1,
            "billAmount": to_sen(amount),
            "billReturnUrl": redirect_url,
            "billCallbackUrl": callback_url,
            "billExternalReferenceNo": reference,
            "billTo": name,
            "billEmail": email or "",
            "billPhone": mobile or "",
            "billPaymentChannel": "0",
            "billChargeToCustomer": 1,
        }
        data = self._request("POST", "/index.php/api/createBill", data=payload)
        # createBill answers with a one-element list, older accounts with a bare object.
        if isinstance(data, dict):
            data = [data]
        bill_code = data[0].get("BillCode") if data and isinstance(data[0], dict) else None
        if not bill_code:
            raise ProviderConnectionError("ToyyibPay did not return a bill code.")
        return {"bill_id": bill_code, "payment_url": self.payment_url(bill_code)}

    def get_bill(self, bill_id: str) -> dict[str, Any]:
        data = self._request("POST", "/index.php/api/getBillTransactions", data={"billCode": bill_id})
        transactions = data if isinstance(data, list) else []
        status = "pending"
        reference = None
        order_id = None
        for transaction in transactions:
            if not isinstance(transaction, dict):
                raise ProviderConnectionError(f"ToyyibPay returned an unexpected transaction for bill {bill_id}.")
            status = self.STATUS_MAP.get(str(transaction.get("billpaymentStatus")), "pending")
            reference = transaction.get("billpaymentInvoiceNo") or reference
            order_id = transaction.get("billExternalReferenceNo") or order_id
            if status == "completed":
                break
        return {
            "bill_id": bill_id,
            "status": status,
            "reference": reference or bill_id,
            "order_id": order_id,
            "raw": data,
        }


GATEWAYS: dict[str, type[BaseGateway]] = {
    BillplzGateway.name: BillplzGateway,
    ToyyibPayGateway.name: ToyyibPayGateway,
}


def get_gateway(provider_type: str, credentials: dict[str, str], is_sandbox: bool = True) -> BaseGateway:
    try:
        gateway_class = GATEWAYS[provider_type]
    except KeyError:
        raise ValueError(f"Unsupported payment provider: {provider_type}")
    return gateway_class(credentials, is_sandbox)
