"""Payment status HTTP client - informational paid/unpaid flag per instructor and month"""

import httpx
from tutor_payroll.domain.models import PaymentStatus
from tutor_payroll.domain.exceptions import PaymentStatusError
from tutor_payroll.config import settings


class PaymentStatusClient:
    """Client for the external payment bookkeeping service"""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or settings.payment_api_base
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    async def get_status(self, instructor_id: str, period: str) -> PaymentStatus:
        """
        Fetch the payment status of an instructor for a "YYYY-MM" period.

        Raises:
            PaymentStatusError: On timeout, HTTP errors, or invalid response
        """
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.get(
                    f"{self.base_url}/payments/status",
                    params={"instructor_id": instructor_id, "period": period},
                )
                response.raise_for_status()
                data = response.json()
                return PaymentStatus.PAID if data["status"] == PaymentStatus.PAID.value else PaymentStatus.UNPAID

            except httpx.TimeoutException as e:
                raise PaymentStatusError(f"Payment service timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise PaymentStatusError(f"Payment service error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise PaymentStatusError(f"Payment service unreachable: {e}") from e
            except (KeyError, ValueError, TypeError) as e:
                raise PaymentStatusError(f"Invalid payment status data: {e}") from e
