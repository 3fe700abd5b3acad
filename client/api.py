import base64
from typing import Any, Optional
import httpx

from utils.logger import get_logger

logger = get_logger(__name__)


class ApiError(Exception):
    """
    Failed storefront API call.

    ``status_code`` is None when no response arrived (timeout, connection
    reset); the caller cannot know whether the server acted on the request.
    """

    def __init__(self, status_code: Optional[int], code: str, message: str, details: Any = None):
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details
        super().__init__(message)

    @property
    def outcome_unknown(self) -> bool:
        return self.status_code is None or self.status_code >= 500


class StorefrontApi:
    """Thin wrapper over the order endpoints."""

    def __init__(self, http: httpx.Client):
        self.http = http

    def _request(self, method: str, url: str, token: Optional[str] = None, **kwargs) -> Any:
        headers = {}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = self.http.request(method, url, headers=headers, **kwargs)
        except httpx.TransportError as exc:
            logger.warning("Storefront API unreachable", extra={"url": url, "error": str(exc)})
            raise ApiError(None, "network_error", "Could not reach the store, please try again")

        if response.is_success:
            return response.json()

        try:
            body = response.json()
        except ValueError:
            body = {}

        raise ApiError(
            response.status_code,
            body.get("code") or f"http_{response.status_code}",
            body.get("error") or body.get("detail") or response.reason_phrase,
            body.get("details")
        )

    def create_order(self, payload: dict, token: Optional[str] = None) -> dict:
        return self._request("POST", "/orders", token=token, json=payload)

    def upload_proof(self, order_id: str, file_name: str, data: bytes) -> str:
        body = self._request("POST", "/orders/proof", json={
            "order_id": order_id,
            "file_name": file_name,
            "file_data": base64.b64encode(data).decode("ascii"),
        })
        return body["payment_proof_url"]

    def cancel_order(self, order_id: str, token: Optional[str] = None) -> None:
        self._request("POST", "/orders/cancel", token=token, json={"order_id": order_id})

    def track_order(self, tracking_code: str) -> dict:
        return self._request("POST", "/orders/track", json={"tracking_code": tracking_code})

    def shipping_quote(self, country: str, state: str, city: str) -> dict:
        return self._request("GET", "/shipping/quote", params={"country": country, "state": state, "city": city})

    def get_profile(self, token: str) -> Optional[dict]:
        try:
            return self._request("GET", "/profile/me", token=token)
        except ApiError as exc:
            if exc.status_code == 404:
                return None
            raise

    def save_profile(self, token: str, profile: dict) -> dict:
        return self._request("PUT", "/profile/me", token=token, json=profile)
