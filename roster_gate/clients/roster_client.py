"""
Roster admin client.

Reads the roster from the admin endpoints of a running gate service and
keeps a snapshot in a ``PersonnelCache`` so dashboards do not refetch the
whole roster on every view.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from roster_gate.clients.local_storage import FileStorage, InMemoryStorage, KeyValueStorage
from roster_gate.config import Settings
from roster_gate.services.errors import InfrastructureError, UnauthorizedError
from roster_gate.services.personnel_cache import PersonnelCache

logger = logging.getLogger(__name__)

ROSTER_PATH = "/api/v1/admin/personnel"


class RosterAdminClient:
    """Cached roster reads for administrative tooling."""

    def __init__(
        self,
        base_url: str,
        admin_api_key: str,
        cache: PersonnelCache,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.admin_api_key = admin_api_key
        self.cache = cache
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(
        cls,
        config: Settings,
        storage: Optional[KeyValueStorage] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "RosterAdminClient":
        """
        Build a client from application settings.

        The cache lives in ``PERSONNEL_CACHE_DIR`` when set and in memory
        otherwise; its lifetime is ``PERSONNEL_CACHE_TTL_HOURS``.
        """
        if storage is None:
            if config.personnel_cache_dir:
                storage = FileStorage(config.personnel_cache_dir)
            else:
                storage = InMemoryStorage()
        return cls(
            config.roster_admin_base_url,
            config.admin_api_key,
            PersonnelCache(storage, config.cache_config()),
            transport=transport,
        )

    async def __aenter__(self):
        await self._get_client()
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"X-Admin-Key": self.admin_api_key},
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_roster(self, force_refresh: bool = False) -> List[Dict[str, Any]]:
        """
        Return the roster, from cache when a fresh snapshot exists.

        Args:
            force_refresh: Bypass the cache and record a manual refresh

        Raises:
            UnauthorizedError: The admin key was rejected
            InfrastructureError: The service could not be reached or answered with an error
        """
        if not force_refresh:
            cached = self.cache.get()
            if cached is not None:
                logger.debug(f"Using cached roster ({len(cached.data)} entries)")
                return cached.data

        personnel = await self._fetch_roster()
        self.cache.set(personnel, is_manual_refresh=force_refresh)
        logger.info(f"Fetched {len(personnel)} roster entries")
        return personnel

    async def _fetch_roster(self) -> List[Dict[str, Any]]:
        try:
            client = await self._get_client()
            response = await client.get(ROSTER_PATH)
        except httpx.HTTPError as e:
            logger.error(f"Failed to reach roster service: {e}")
            raise InfrastructureError(f"Roster service unreachable: {e}")

        if response.status_code == 401:
            raise UnauthorizedError("Admin key rejected")
        if not response.is_success:
            logger.error(f"Roster service returned {response.status_code}")
            raise InfrastructureError(f"Roster service returned {response.status_code}")

        return response.json().get("personnel", [])

    def cache_age_hours(self) -> float:
        """Age of the cached snapshot in hours, or -1 when there is none."""
        age = self.cache.age()
        if age is None:
            return -1
        return age.total_seconds() / 3600

    def last_manual_refresh(self) -> Optional[datetime]:
        return self.cache.last_manual_refresh()

    def invalidate(self) -> None:
        self.cache.clear()
