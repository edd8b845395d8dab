"""Payment collaborator communication layer."""
import httpx
import logging
import time
from typing import Any, Dict, Optional

from config import (
    PAYMONGO_API_URL,
    PAYMONGO_SECRET_KEY,
    PAYMONGO_CURRENCY,
    PAYMONGO_STATEMENT_DESCRIPTOR
)
from errors import UpstreamFailureError
from monitoring import payment_gateway_duration_histogram

logger = logging.getLogger(__name__)


def to_centavos(amount: float) -> int:
    """PayMongo amounts are integers in the smallest currency unit."""
    return int(round(amount * 100))


class PaymentGatewayClient:
    """Client for the PayMongo payment intents API."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        secret_key: str = PAYMONGO_SECRET_KEY,
        base_url: str = PAYMONGO_API_URL
    ):
        """
        Initialize payment gateway client.

        Args:
            http_client: Async HTTP client
            secret_key: PayMongo secret API key
            base_url: PayMongo API root
        """
        self.http_client = http_client
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")

    async def create_paymongo_intent(
        self,
        user_id: str,
        amount: float,
        description: Optional[str] = None,
        return_url: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create a PayMongo payment intent.

        Args:
            user_id: User identifier
            amount: Amount in pesos
            description: Shown on the payment page
            return_url: Where PayMongo sends the customer afterwards

        Returns:
            payment_intent_id, client_key, status and next_action_url

        Raises:
            UpstreamFailureError: If the key is not configured or PayMongo fails
        """
        if not self.secret_key:
            logger.error("PayMongo secret key not configured")
            raise UpstreamFailureError("PayMongo secret key not configured")

        attributes: Dict[str, Any] = {
            "amount": to_centavos(amount),
            "payment_method_allowed": ["card", "paymaya", "gcash"],
            "payment_method_options": {"card": {"request_three_d_secure": "automatic"}},
            "currency": PAYMONGO_CURRENCY,
            "statement_descriptor": PAYMONGO_STATEMENT_DESCRIPTOR,
        }
        if description:
            attributes["description"] = description
        if return_url:
            attributes["return_url"] = return_url

        # HTTPXClientInstrumentor already creates spans for HTTP calls
        start_time = time.time()
        status = "success"
        status_code = None
        try:
            response = await self.http_client.post(
                f"{self.base_url}/payment_intents",
                json={"data": {"attributes": attributes}},
                auth=(self.secret_key, "")
            )
            status_code = response.status_code
            response.raise_for_status()
            data = response.json()["data"]
        except httpx.HTTPStatusError as e:
            status = "error"
            detail = _error_detail(e.response)
            logger.error("PayMongo rejected payment intent", extra={
                "user_id": user_id,
                "amount": amount,
                "status_code": e.response.status_code,
                "error": detail
            })
            raise UpstreamFailureError(f"Failed to create payment intent: {detail}")
        except (httpx.HTTPError, KeyError, ValueError) as e:
            status = "error"
            status_code = 0
            logger.error("Failed to create payment intent", extra={
                "user_id": user_id,
                "amount": amount,
                "error": str(e)
            })
            raise UpstreamFailureError("Payment service unavailable")
        finally:
            payment_gateway_duration_histogram.record(
                time.time() - start_time,
                {
                    "gateway": "paymongo",
                    "operation": "create_intent",
                    "status": status,
                    "status_code": str(status_code) if status_code else "0"
                }
            )

        intent_attributes = data.get("attributes", {})
        next_action = intent_attributes.get("next_action") or {}
        logger.info("Created payment intent", extra={
            "user_id": user_id,
            "amount": amount,
            "payment_intent_id": data.get("id")
        })
        return {
            "payment_intent_id": data.get("id"),
            "client_key": intent_attributes.get("client_key"),
            "status": intent_attributes.get("status"),
            "next_action_url": (next_action.get("redirect") or {}).get("url"),
        }


def _error_detail(response: httpx.Response) -> str:
    try:
        return response.json()["errors"][0]["detail"]
    except (ValueError, KeyError, IndexError, TypeError):
        return f"HTTP {response.status_code}"
