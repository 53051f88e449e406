"""HTTP client for the order gateway's intake endpoint."""

import requests
from retail_common import config
from retail_common.errors import EnqueueError
from retail_common.schemas import OrderRequest

from .logger import logger


class GatewayClient:
    """Submits order requests through POST /orders on the order gateway."""

    def __init__(self, base_url: str = config.ORDER_GATEWAY_URL, timeout: float = config.GATEWAY_TIMEOUT_SECONDS):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def submit(self, request: OrderRequest) -> dict:
        """Send the request to the gateway.

        Args:
            request: The order to queue.

        Returns:
            dict: The gateway's acknowledgement body.

        Raises:
            EnqueueError: If the gateway is unreachable or did not answer 202.
        """
        url = f"{self.base_url}/orders"
        try:
            response = requests.post(
                url,
                data=request.to_message(),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Order gateway unreachable: {e}")
            raise EnqueueError(config.TOPIC_ORDER_PROCESSING, str(e)) from e

        if response.status_code != 202:
            logger.error(f"Order gateway rejected order | status={response.status_code} | body={response.text[:200]}")
            raise EnqueueError(config.TOPIC_ORDER_PROCESSING, f"gateway returned {response.status_code}")
        return response.json()
