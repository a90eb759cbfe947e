from typing import Any, Dict, Optional

import httpx

from gatepass.core.base_http_client import BaseHttpClient
from gatepass.core.exceptions import APIClientError, LookupUnavailableError, NotFoundError
from gatepass.utils.logging import get_logger

LOGGER = get_logger(__name__)


class ErpClient(BaseHttpClient):
    """Client for the ERP employee-details endpoint.

    Used as a secondary identity source when the directory has no user. The
    raw payload is returned untouched; mapping it into a profile is the
    enrichment pipeline's job.
    """

    def __init__(
        self,
        base_url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: int = 30,
        max_retries: int = 3,
        retry_delay: int = 2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers: Dict[str, str] = {}
        if username:
            headers["UserName"] = username
        if password:
            headers["Password"] = password
        super().__init__(
            base_url,
            headers=headers,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
            transport=transport,
        )

    async def lookup_employee(self, identifier: str) -> Optional[Dict[str, Any]]:
        try:
            body = await self.call_api(
                "/erp/employee-details", method="POST", payload={"employeeNo": identifier}
            )
        except NotFoundError:
            return None
        except APIClientError as e:
            raise LookupUnavailableError(f"ERP lookup failed for {identifier}", original_error=e)

        if not body:
            LOGGER.debug("ERP returned no employee", extra={"identifier": identifier})
            return None
        return body if isinstance(body, dict) else {"data": body}
