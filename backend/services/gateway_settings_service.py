"""Gateway settings service - stores operator settings and reports status."""

import logging
from typing import Any

from sqlalchemy.orm import Session

from config import settings
from integrations.exceptions import UnknownGatewayError
from integrations.gateway_registry import ALL_GATEWAY_IDS, SYNC_SOURCES
from models.gateway_setting import GatewaySetting
from schemas.gateway import GatewayStatusResponse, SourceStatus
from services.credential_store import CredentialStore
from services.sync_run_tracker import SyncRunTracker

logger = logging.getLogger(__name__)

# Setting key -> Settings attribute used when the database has no value.
ENV_FALLBACKS: dict[str, dict[str, str]] = {
    "paypal": {
        "client_id": "PAYPAL_CLIENT_ID",
        "client_secret": "PAYPAL_CLIENT_SECRET",
        "api_username": "PAYPAL_API_USERNAME",
        "api_password": "PAYPAL_API_PASSWORD",
        "api_signature": "PAYPAL_API_SIGNATURE",
    },
    "stripe": {
        "test_secret": "STRIPE_TEST_SECRET",
        "live_secret": "STRIPE_LIVE_SECRET",
        "webhook_secret": "STRIPE_WEBHOOK_SECRET",
    },
}

SECRET_KEYS = frozenset({
    "client_secret",
    "api_password",
    "api_signature",
    "test_secret",
    "live_secret",
    "webhook_secret",
})


def _check_gateway(gateway_id: str) -> None:
    if gateway_id not in ALL_GATEWAY_IDS:
        raise UnknownGatewayError(gateway_id)


def redact(values: dict[str, Any]) -> dict[str, Any]:
    """Replace secret values with a mask so they are safe to log or return."""
    return {
        key: ("********" if key in SECRET_KEYS and value else value)
        for key, value in values.items()
    }


class GatewaySettingsService:
    """Database-backed :class:`~services.credential_store.SettingsReader`.

    Stored values overlay environment/keychain fallbacks from ``config``;
    blank stored values count as unset.
    """

    def __init__(self, db: Session):
        self._db = db

    def _get_row(self, gateway_id: str) -> GatewaySetting | None:
        return (
            self._db.query(GatewaySetting)
            .filter_by(gateway_id=gateway_id)
            .first()
        )

    def get_settings(self, gateway_id: str) -> dict[str, Any]:
        """Return the effective settings blob for a gateway.

        Raises:
            UnknownGatewayError: If the gateway id is not known.
        """
        _check_gateway(gateway_id)
        values: dict[str, Any] = {}
        for key, attr in ENV_FALLBACKS.get(gateway_id, {}).items():
            fallback = getattr(settings, attr, "")
            if fallback:
                values[key] = fallback

        row = self._get_row(gateway_id)
        if row and row.settings:
            values.update({k: v for k, v in row.settings.items() if v is not None and v != ""})
        return values

    def update_settings(self, gateway_id: str, values: dict[str, Any]) -> GatewaySetting:
        """Merge ``values`` into the stored blob.

        A value of ``None`` removes the key. Flushes; the caller commits.
        """
        _check_gateway(gateway_id)
        row = self._get_row(gateway_id)
        if row is None:
            row = GatewaySetting(gateway_id=gateway_id, settings={})
            self._db.add(row)

        merged = dict(row.settings or {})
        for key, value in values.items():
            if value is None:
                merged.pop(key, None)
            else:
                merged[key] = value
        # Reassign so the JSON column change is detected
        row.settings = merged
        self._db.flush()
        logger.info("Gateway %s settings updated: %s", gateway_id, redact(values))
        return row

    def list_gateways(self) -> list[GatewayStatusResponse]:
        """List every gateway with its enabled/availability/run status."""
        store = CredentialStore(self)
        tracker = SyncRunTracker(self._db)

        result = []
        for gateway_id in ALL_GATEWAY_IDS:
            result.append(self.gateway_status(gateway_id, store=store, tracker=tracker))
        return result

    def gateway_status(
        self,
        gateway_id: str,
        store: CredentialStore | None = None,
        tracker: SyncRunTracker | None = None,
    ) -> GatewayStatusResponse:
        _check_gateway(gateway_id)
        store = store or CredentialStore(self)
        tracker = tracker or SyncRunTracker(self._db)

        credential = store.get_credentials(gateway_id)
        sources = []
        for name, source_gateway, _, _ in SYNC_SOURCES:
            if source_gateway != gateway_id:
                continue
            missing = store.missing_fields(name)
            sources.append(SourceStatus(name=name, available=not missing, missing=missing))

        last = tracker.last_completed(gateway_id)
        return GatewayStatusResponse(
            gateway_id=gateway_id,
            enabled=credential.enabled,
            mode=credential.mode,
            auto_sync=credential.get("auto_sync").lower() in ("1", "true", "yes", "on"),
            available=store.is_available(gateway_id),
            sources=sources,
            is_running=tracker.is_running(gateway_id),
            last_sync_at=last.completed_at if last else None,
        )
