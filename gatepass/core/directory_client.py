from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from gatepass.core.base_http_client import BaseHttpClient
from gatepass.core.exceptions import APIClientError, LookupUnavailableError, NotFoundError
from gatepass.schemas.profile import UNKNOWN_FIELD, Profile
from gatepass.utils.logging import get_logger

LOGGER = get_logger(__name__)


def _field(doc: Dict[str, Any], key: str) -> str:
    value = doc.get(key)
    text = str(value).strip() if value is not None else ""
    return text or UNKNOWN_FIELD


def profile_from_user_document(doc: Dict[str, Any], identifier: str) -> Profile:
    """Map a directory user document into a profile."""
    return Profile(
        identifier=str(doc.get("serviceNo") or identifier).strip(),
        display_name=_field(doc, "name"),
        section=_field(doc, "section"),
        group=_field(doc, "group"),
        designation=_field(doc, "designation"),
        contact_no=_field(doc, "contactNo"),
        email=doc.get("email") or None,
    )


class IdentityDirectoryClient(BaseHttpClient):
    """Looks SLT employees up in the user directory by service number."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: int = 30,
        max_retries: int = 3,
        retry_delay: int = 2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            base_url,
            headers={"Authorization": f"Bearer {token}"} if token else None,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
            transport=transport,
        )

    async def lookup(self, identifier: str) -> Optional[Profile]:
        """Fetch the profile for ``identifier``.

        Returns:
            Profile, or None when the directory has no such user

        Raises:
            LookupUnavailableError: The directory could not be reached
        """
        try:
            doc = await self.call_api(f"/users/{quote(identifier, safe='')}")
        except NotFoundError:
            LOGGER.debug("Directory has no user", extra={"identifier": identifier})
            return None
        except APIClientError as e:
            raise LookupUnavailableError(f"Directory lookup failed for {identifier}", original_error=e)

        if not isinstance(doc, dict) or not doc:
            return None
        return profile_from_user_document(doc, identifier)
