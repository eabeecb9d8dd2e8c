"""Instance metadata service client."""

import logging
from typing import Dict, Optional

import httpx

from splitami.errors import ProviderError


logger = logging.getLogger(__name__)

TOKEN_TTL_SECONDS = "300"


class InstanceMetadata:
    """Reads the identity of the local instance from the metadata service."""

    def __init__(
        self,
        base_url: str = "http://169.254.169.254/latest/meta-data",
        timeout: float = 2.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize metadata client."""
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self._token: Optional[str] = None

    @property
    def token_url(self) -> str:
        """IMDSv2 token endpoint, a sibling of the meta-data tree."""
        return self.base_url.rsplit("/", 1)[0] + "/api/token"

    def _client(self) -> httpx.Client:
        return httpx.Client(transport=self.transport, timeout=self.timeout)

    def _fetch_token(self, client: httpx.Client) -> Optional[str]:
        """Request an IMDSv2 session token, or None where only IMDSv1 is served."""
        try:
            response = client.put(
                self.token_url,
                headers={"X-aws-ec2-metadata-token-ttl-seconds": TOKEN_TTL_SECONDS},
            )
            response.raise_for_status()
            return response.text.strip()
        except httpx.HTTPError as e:
            logger.debug(f"IMDSv2 token unavailable, using IMDSv1: {e}")
            return None

    def get(self, path: str) -> str:
        """Read one metadata value."""
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            with self._client() as client:
                if self._token is None:
                    self._token = self._fetch_token(client) or ""
                headers: Dict[str, str] = {}
                if self._token:
                    headers["X-aws-ec2-metadata-token"] = self._token
                response = client.get(url, headers=headers)
                response.raise_for_status()
                return response.text.strip()

        except httpx.RequestError as e:
            raise ProviderError(f"Cannot reach metadata service at {url}: {e}") from e
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"Metadata request {url} failed with HTTP {e.response.status_code}"
            ) from e

    def availability_zone(self) -> str:
        """Availability zone of this instance."""
        return self.get("placement/availability-zone")

    def instance_id(self) -> str:
        """Id of this instance."""
        return self.get("instance-id")

    def region(self) -> str:
        """Region of this instance, the zone minus its trailing letter."""
        return region_from_zone(self.availability_zone())


def region_from_zone(availability_zone: str) -> str:
    """Drop the trailing zone letter, e.g. ``us-east-1a`` -> ``us-east-1``."""
    if len(availability_zone) < 2 or not availability_zone[-1].isalpha():
        raise ProviderError(f"Unexpected availability zone: {availability_zone!r}")
    return availability_zone[:-1]
