"""Gateway settings API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from database import get_db
from integrations.exceptions import UnknownGatewayError
from schemas.gateway import GatewayStatusResponse, GatewayUpdateRequest
from services.gateway_settings_service import GatewaySettingsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/gateways", tags=["gateways"])


@router.get("", response_model=list[GatewayStatusResponse])
def list_gateways(db: Session = Depends(get_db)):
    """List all gateways with enabled, availability and last-sync status."""
    return GatewaySettingsService(db).list_gateways()


@router.get("/{gateway_id}", response_model=GatewayStatusResponse)
def get_gateway(gateway_id: str, db: Session = Depends(get_db)):
    """Get a single gateway's status."""
    try:
        return GatewaySettingsService(db).gateway_status(gateway_id)
    except UnknownGatewayError:
        raise HTTPException(status_code=404, detail=f"Unknown gateway: {gateway_id}")


@router.put("/{gateway_id}", response_model=GatewayStatusResponse)
def update_gateway(
    gateway_id: str,
    body: GatewayUpdateRequest,
    db: Session = Depends(get_db),
):
    """Edit a gateway's settings (enabled, mode, credentials)."""
    service = GatewaySettingsService(db)
    try:
        service.update_settings(gateway_id, body.model_dump(exclude_unset=True))
    except UnknownGatewayError:
        raise HTTPException(status_code=404, detail=f"Unknown gateway: {gateway_id}")
    db.commit()
    return service.gateway_status(gateway_id)
