"""
Bridge health and monitoring API routes
"""

from fastapi import APIRouter
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)

# Response models
class DeviceStatusResponse(BaseModel):
    device_id: str
    pending_commands: int
    first_seen: datetime
    last_poll: Optional[datetime]

class HealthResponse(BaseModel):
    status: str
    mqtt: dict
    device_count: int
    pending_commands: int
    timestamp: datetime

def create_system_routes(registry, connection):
    """Create bridge monitoring routes"""
    router = APIRouter(prefix="/api", tags=["system"])

    def _device_status(entry) -> DeviceStatusResponse:
        return DeviceStatusResponse(
            device_id=entry.device_id,
            pending_commands=len(entry.mailbox),
            first_seen=entry.first_seen,
            last_poll=entry.last_poll
        )

    @router.get("/devices", response_model=List[DeviceStatusResponse])
    async def list_devices():
        """List water heaters that have polled since the last broker connect"""
        return [_device_status(entry) for entry in registry.devices()]

    @router.get("/system/health", response_model=HealthResponse)
    async def system_health():
        """Bridge health check"""
        devices = registry.devices()
        mqtt_status = connection.status()
        return HealthResponse(
            status="healthy" if connection.is_connected else "degraded",
            mqtt=mqtt_status,
            device_count=len(devices),
            pending_commands=sum(len(entry.mailbox) for entry in devices),
            timestamp=datetime.now(timezone.utc)
        )

    return router
