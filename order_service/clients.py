"""
This module provides the communication client for the external notification
provider used after an order was placed:
- Templated mail provider (EmailJS-compatible REST API)

The provider is modeled as a port (`NotificationPort`) so the notifier can be
wired to a different provider, or to a recording fake in tests.
"""

import logging
from abc import ABC, abstractmethod

import httpx

from . import config

log = logging.getLogger(__name__)


class NotificationPort(ABC):
    """Abstract interface for order notification providers."""

    @property
    def is_configured(self) -> bool:
        return True

    @abstractmethod
    def send(self, payload: dict) -> bool:
        """
        Sends the notification for one order.

        Args:
            payload (dict): Keys orderNumber, orderId, orderDate, customer, items, totals.

        Returns:
            bool: True if the provider accepted the notification, False if it declined.

        Raises:
            httpx.HTTPError: If the provider rejects the request or is unreachable.
        """
        ...


# --- Templated Mail Client (REST) ---
class TemplatedMailClient(NotificationPort):
    """
    Client for a templated mail provider (EmailJS REST API).
    Renders the order confirmation from a template stored at the provider.
    """
    def __init__(
            self,
            api_url: str = config.NOTIFY_API_URL,
            service_id: str = config.NOTIFY_SERVICE_ID,
            template_id: str = config.NOTIFY_TEMPLATE_ID,
            public_key: str = config.NOTIFY_PUBLIC_KEY,
            private_key: str = config.NOTIFY_PRIVATE_KEY,
            timeout: float = config.NOTIFY_TIMEOUT,
            transport: httpx.BaseTransport = None
    ):
        """
        Initializes the HTTP client with proper timeout configuration.

        Args:
            transport (httpx.BaseTransport | None): Custom transport (tests use httpx.MockTransport).
        """
        self.api_url = api_url
        self.service_id = service_id
        self.template_id = template_id
        self.public_key = public_key
        self.private_key = private_key
        timeout_config = httpx.Timeout(5.0, read=timeout)
        self.client = httpx.Client(timeout=timeout_config, transport=transport)

    def __del__(self):
        """Closes the HTTP client session."""
        client = getattr(self, "client", None)
        if client is not None:
            client.close()

    @property
    def is_configured(self) -> bool:
        return bool(self.service_id and self.template_id and self.public_key)

    @staticmethod
    def template_params(payload: dict) -> dict:
        """Flattens the notification payload into template variables."""
        customer = payload["customer"]
        totals = payload["totals"]
        return {
            "to_email": customer["email"],
            "to_name": customer["name"],
            "phone": customer.get("phone") or "",
            "address": customer.get("address") or "",
            "order_number": payload["orderNumber"],
            "order_id": payload["orderId"],
            "order_date": payload["orderDate"],
            "items": payload["items"],
            "subtotal": totals["subtotal"],
            "shipping": totals["shipping"],
            "total": totals["total"],
        }

    def send(self, payload: dict) -> bool:
        """
        Submits the order confirmation to the provider.

        Returns:
            bool: True once the provider answered with a 2xx status.

        Raises:
            httpx.TimeoutException: If the provider does not respond within the timeout.
            httpx.HTTPStatusError: If the provider returns an error status (4xx or 5xx).
            httpx.TransportError: If the provider is unreachable.
        """
        order_number = payload["orderNumber"]
        body = {
            "service_id": self.service_id,
            "template_id": self.template_id,
            "user_id": self.public_key,
            "template_params": self.template_params(payload)
        }
        if self.private_key:
            body["accessToken"] = self.private_key

        try:
            response = self.client.post(self.api_url, json=body)
            response.raise_for_status()  # Löst HTTPStatusError bei 4xx/5xx aus
        except httpx.TimeoutException:
            log.error(f"[Order: {order_number}] Mail-Provider Timeout. Zustellung unbekannt.")
            raise
        except httpx.HTTPStatusError as e:
            log.error(
                f"[Order: {order_number}] Mail-Provider lehnt ab (HTTP {e.response.status_code}): "
                f"{e.response.text}"
            )
            raise
        except httpx.TransportError as e:
            log.error(f"[Order: {order_number}] Mail-Provider nicht erreichbar: {e!r}")
            raise

        log.debug(f"[Order: {order_number}] Mail-Provider Antwort: {response.text}")
        return True

    def close(self):
        self.client.close()
