"""
ShowStart API client used by the monitor.
"""
import json
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, Protocol

from .exceptions import UpstreamError
from .models import Activity, Credentials, TransportConfig, parse_activity_list
from .signing import BodyCipher, SignedRequestBuilder, Signer
from .transport import ResilientTransport

logger = logging.getLogger(__name__)

SEARCH_PATH = "/wap/activity/list"
TOKEN_PATH = "/waf/gettoken"
SEARCH_PAGE_SIZE = 20
SUCCESS_STATE = "1"


class ActivitySource(Protocol):
    """What the monitor needs from an upstream client."""

    async def search(self, city_code: str, keyword: str) -> List[Activity]:
        ...

    async def refresh_token(self) -> None:
        ...


class ActivityQueryClient:
    """Queries activities and manages the session token."""

    def __init__(
        self,
        credentials: Credentials,
        config: Optional[TransportConfig] = None,
        transport: Optional[ResilientTransport] = None,
        signer: Optional[Signer] = None,
        cipher: Optional[BodyCipher] = None,
    ):
        self.config = config or TransportConfig()
        self._credentials = credentials
        if transport is None:
            builder = SignedRequestBuilder(signer=signer, cipher=cipher, base_url=self.config.base_url)
            transport = ResilientTransport(builder, self.config)
        self.transport = transport

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        await self.transport.close()

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    async def search(self, city_code: str, keyword: str) -> List[Activity]:
        """Search activities in a city by keyword, in upstream order."""
        body = json.dumps({
            "cityCode": city_code,
            "keyword": keyword,
            "pageNo": 1,
            "pageSize": SEARCH_PAGE_SIZE,
            "st_flpv": self._credentials.st_flpv,
            "sign": self._credentials.sign,
            "trackPath": "",
        }, ensure_ascii=False)
        payload = await self._post(SEARCH_PATH, body)
        activities, skipped = parse_activity_list(payload)
        if skipped:
            logger.debug(f"Skipped {skipped} malformed activity entries for '{keyword}'")
        logger.debug(f"Search '{keyword}' in city {city_code} returned {len(activities)} activities")
        return activities

    async def refresh_token(self) -> None:
        """Fetch fresh access/id tokens and bind them to this client."""
        payload = await self._post(TOKEN_PATH, "{}")
        result = payload.get("result")
        if not isinstance(result, dict):
            raise UpstreamError("token response did not contain a result object")
        access = (result.get("accessToken") or {}).get("access_token", "")
        id_token = (result.get("idToken") or {}).get("id_token", "")
        if not access:
            raise UpstreamError("token response did not contain an access token")
        self._credentials = replace(self._credentials, access_token=access, id_token=id_token)
        logger.info("🔑 Session token refreshed")

    async def _post(self, path: str, body: str) -> Dict[str, Any]:
        raw = await self.transport.post(path, body, self._credentials)
        try:
            payload = json.loads(raw)
        except ValueError as e:
            raise UpstreamError(f"Invalid JSON from {path}: {e}") from e
        if not isinstance(payload, dict):
            raise UpstreamError(f"Unexpected response shape from {path}")

        state = payload.get("state")
        if state is not None and str(state) != SUCCESS_STATE:
            message = payload.get("msg") or payload.get("message") or "unknown error"
            raise UpstreamError(f"{path} returned state {state}: {message}")
        return payload
