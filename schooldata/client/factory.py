"""
Backend selection for the data client.

The choice is made once, from ``USE_SELF_HOSTED_API``, when the client is
created; there is no fallback from one backend to the other afterwards.
"""

from typing import Optional

import httpx
import structlog

from schooldata.client.baas import BaasDataClient
from schooldata.client.base import DataClient
from schooldata.client.rest import RestDataClient
from schooldata.client.storage import JsonFileStateStore, LocalStateStore
from schooldata.config import Settings
from schooldata.exceptions import ValidationError

logger = structlog.get_logger()


class DataClientFactory:
    """Factory to create the data client for the configured backend."""

    @staticmethod
    def get_client(
        settings: Settings,
        store: LocalStateStore,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> DataClient:
        """
        Get the data client selected by the environment flag.

        Args:
            settings: Application settings holding the backend flag and URLs
            store: Persisted state holding the auth token
            transport: Optional httpx transport (used by tests)

        Returns:
            RestDataClient when USE_SELF_HOSTED_API is set, BaasDataClient otherwise

        Raises:
            ValidationError: If the hosted backend is selected but not configured
        """
        if settings.USE_SELF_HOSTED_API:
            logger.info("Using self-hosted data API", api_url=settings.API_URL)
            return RestDataClient(
                settings.API_URL,
                store,
                timeout=settings.HTTP_TIMEOUT,
                transport=transport,
            )

        if not settings.BAAS_URL or not settings.BAAS_ANON_KEY:
            raise ValidationError(
                "BAAS_URL and BAAS_ANON_KEY must be set when USE_SELF_HOSTED_API is off",
                field="BAAS_URL",
            )
        logger.info("Using hosted BaaS data API", baas_url=settings.BAAS_URL)
        return BaasDataClient(
            settings.BAAS_REST_URL,
            settings.BAAS_ANON_KEY,
            store=store,
            timeout=settings.HTTP_TIMEOUT,
            transport=transport,
        )


def create_client(
    settings: Optional[Settings] = None,
    store: Optional[LocalStateStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> DataClient:
    if settings is None:
        from schooldata.config import settings as default_settings

        settings = default_settings
    if store is None:
        store = JsonFileStateStore(settings.STATE_FILE)
    return DataClientFactory.get_client(settings, store, transport)
