"""
Client for the HTTP email gateway that delivers account mail.

Requests are JSON bodies signed with HMAC-SHA256 over the exact bytes sent;
the gateway renders the message from the "type" field and the parameters
posted alongside it.
"""

import hashlib
import hmac
import json
import logging

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10


class EmailGatewayError(Exception):
    """Raised when email gateway request fails."""


class EmailGatewayClient:
    """Signed gateway client for activation and password reset mail."""

    def __init__(
        self,
        gateway_url: str,
        api_key: str,
        hmac_secret: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        """
        Args:
            gateway_url: Gateway send endpoint
            api_key: Value for the X-API-Key header
            hmac_secret: Key for the X-Signature header
            timeout: Seconds to wait for the gateway

        Raises:
            ValueError: A credential is empty
        """
        for name, value in (
            ("gateway_url", gateway_url),
            ("api_key", api_key),
            ("hmac_secret", hmac_secret),
        ):
            if not value:
                raise ValueError(f"{name} is required")

        self.gateway_url = gateway_url
        self.api_key = api_key
        self.timeout = timeout
        self._key = hmac_secret.encode("utf-8")

    def _signature(self, body: bytes) -> str:
        return hmac.new(self._key, body, hashlib.sha256).hexdigest()

    def _post(self, message: dict) -> None:
        """
        Deliver one message to the gateway.

        Raises:
            EmailGatewayError: Transport failure, unreadable reply, or a reply
                without success=true
        """
        body = json.dumps(message, separators=(",", ":")).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
            "X-Signature": self._signature(body),
        }

        try:
            response = requests.post(self.gateway_url, data=body, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Email gateway unreachable: {e}")
            raise EmailGatewayError(f"Connection failed: {e}") from e

        try:
            reply = response.json()
        except ValueError as e:
            logger.error(f"Email gateway sent non-JSON reply ({response.status_code}): {response.text[:200]}")
            raise EmailGatewayError("Invalid response from gateway") from e

        if not response.ok or not reply.get("success"):
            reason = reply.get("message", "Unknown error")
            logger.error(f"Email gateway rejected {message['type']} mail ({response.status_code}): {reason}")
            raise EmailGatewayError(f"Gateway error: {reason}")

    def send_activation_email(self, email: str, code: str, activation_url: str, app_name: str) -> None:
        """Welcome mail carrying the activation link built from ``code``."""
        self._post({
            "type": "activation",
            "email": email,
            "subject": f"Welcome to {app_name}",
            "code": code,
            "url": activation_url,
        })
        logger.info(f"Activation email sent to {email}")

    def send_password_reset_email(self, email: str, token: str, reset_url: str, app_name: str) -> None:
        self._post({
            "type": "password_reset",
            "email": email,
            "subject": f"{app_name} reset password",
            "token": token,
            "url": reset_url,
        })
        logger.info(f"Password reset email sent to {email}")
