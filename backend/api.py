"""
Aeris API Endpoints
"""

import asyncio
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, HTTPException
from loguru import logger
from pydantic import BaseModel, Field

from core.aeris.comfort_limits import ComfortLimits
from core.aeris.comfort_service import ComfortMonitorService, RoomStatus
from core.aeris.exceptions import ConfigurationError

router = APIRouter()

APP_VERSION = "0.1.0"

# Comfort monitor (set by app.py during startup)
service: Optional[ComfortMonitorService] = None


class SetTemperatureRequest(BaseModel):
    """Request body for setting temperature."""
    temperature: float = Field(..., ge=5.0, le=30.0)


class SetModeRequest(BaseModel):
    """Request body for switching the thermostat mode."""
    mode: str


class ComfortLimitsRequest(BaseModel):
    """Request body for editing a category's comfort limits."""
    temp_min: float
    temp_max: float
    hum_min: float = Field(..., ge=0, le=100)
    hum_max: float = Field(..., ge=0, le=100)
    label: str = ""


def _get_service() -> ComfortMonitorService:
    if service is None:
        raise HTTPException(status_code=503, detail="Comfort monitor not initialized")
    return service


def _room_payload(status: RoomStatus) -> dict:
    room = status.reading
    analysis = status.analysis
    estimate = status.estimate
    return {
        "id": room.id,
        "name": room.name,
        "category": room.category,
        "temperature": room.temperature,
        "humidity": room.humidity,
        "co2": room.co2,
        "has_co2": room.has_co2,
        "has_window": room.has_window,
        "has_ventilation_assist": room.has_ventilation_assist,
        "window_open": room.window_open,
        "target_temperature": room.target_temperature,
        "hvac_mode": room.hvac_mode,
        "dew_point": analysis.dew_point_inside,
        "score": analysis.score,
        "score_tier": analysis.score_tier,
        "issues": [asdict(issue) for issue in analysis.issues],
        "recommendations": analysis.recommendations,
        "headline": analysis.headline,
        "limits": asdict(status.limits),
        "ventilation": {
            "total_target_minutes": estimate.total_target_minutes,
            "extension_minutes": estimate.extension_minutes,
            "remaining_minutes": analysis.remaining_minutes,
            "is_cross_ventilating": analysis.is_cross_ventilating,
            "is_adaptive_estimate": estimate.is_adaptive_estimate,
            "is_learned": estimate.is_learned,
            "session_start": status.session.start_time.isoformat() if status.session else None,
        },
    }


@router.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": "Aeris",
        "version": APP_VERSION,
        "ha_connected": service is not None and not service.is_demo,
    }


@router.get("/api/status")
async def get_status():
    """Connection state of the latest poll."""
    monitor = _get_service()
    snapshot = monitor.latest()
    return {
        "connection_status": snapshot.connection_status,
        "is_demo": snapshot.is_demo,
        "last_update": snapshot.timestamp.isoformat(),
        "last_successful_fetch": (
            snapshot.last_successful_fetch.isoformat()
            if snapshot.last_successful_fetch
            else None
        ),
        "error_message": snapshot.error_message or None,
        "command_errors": list(monitor.command_errors),
        "rooms": len(snapshot.rooms),
        "poll_interval_seconds": monitor.settings.poll_interval_seconds,
    }


@router.get("/api/rooms")
async def get_rooms():
    """Analysis of every configured room."""
    snapshot = _get_service().latest()
    return {
        "timestamp": snapshot.timestamp.isoformat(),
        "is_demo": snapshot.is_demo,
        "outside": asdict(snapshot.outside),
        "rooms": [_room_payload(status) for status in snapshot.rooms.values()],
    }


@router.get("/api/rooms/{room_id}")
async def get_room(room_id: str):
    """Analysis of a single room."""
    snapshot = _get_service().latest()
    status = snapshot.rooms.get(room_id)
    if status is None:
        raise HTTPException(status_code=404, detail=f"Room not found: {room_id}")
    return {
        "timestamp": snapshot.timestamp.isoformat(),
        "is_demo": snapshot.is_demo,
        **_room_payload(status),
    }


@router.get("/api/summary")
async def get_summary():
    """House-level figures for the dashboard header."""
    snapshot = _get_service().latest()
    return {
        "timestamp": snapshot.timestamp.isoformat(),
        "is_demo": snapshot.is_demo,
        "connection_status": snapshot.connection_status,
        "outside": asdict(snapshot.outside),
        **snapshot.summary,
    }


@router.post("/api/refresh")
async def refresh():
    """Run a poll immediately."""
    monitor = _get_service()
    snapshot = await asyncio.to_thread(monitor.poll_once)
    return {
        "timestamp": snapshot.timestamp.isoformat(),
        "connection_status": snapshot.connection_status,
        "error_message": snapshot.error_message or None,
    }


@router.post("/api/rooms/{room_id}/set_temperature")
async def set_room_temperature(room_id: str, request: SetTemperatureRequest):
    """Set the thermostat target of a room.

    The cached reading is updated immediately; the Home Assistant call runs
    in the background and failures show up in /api/status.
    """
    monitor = _get_service()
    try:
        monitor.set_target_temperature(room_id, request.temperature)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Room not found: {room_id}") from None
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    logger.info(f"🌡️  {room_id}: target temperature {request.temperature}°C requested")
    return {
        "room_id": room_id,
        "target_temperature": request.temperature,
        "status": "accepted",
    }


@router.post("/api/rooms/{room_id}/set_mode")
async def set_room_mode(room_id: str, request: SetModeRequest):
    """Switch a room's thermostat between heat and off."""
    monitor = _get_service()
    try:
        monitor.set_mode(room_id, request.mode)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Room not found: {room_id}") from None
    except (ConfigurationError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    logger.info(f"🌡️  {room_id}: HVAC mode '{request.mode}' requested")
    return {"room_id": room_id, "hvac_mode": request.mode, "status": "accepted"}


@router.get("/api/limits")
async def get_limits():
    """Comfort limits per room category and the night band."""
    monitor = _get_service()
    return {
        "categories": monitor.profile.to_dict(),
        "night": asdict(monitor.settings.night),
    }


@router.put("/api/limits/{category}")
async def update_limits(category: str, request: ComfortLimitsRequest):
    """Replace a category's comfort limits. Applies from the next poll."""
    monitor = _get_service()
    if category not in monitor.profile.categories():
        raise HTTPException(status_code=404, detail=f"Unknown category: {category}")

    limits = ComfortLimits(
        temp_min=request.temp_min,
        temp_max=request.temp_max,
        hum_min=request.hum_min,
        hum_max=request.hum_max,
        label=request.label or monitor.profile.get(category).label,
    )
    try:
        monitor.update_limits(category, limits)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return {"category": category, "limits": asdict(limits)}


@router.get("/api/learning")
async def get_learning():
    """Learned cooling rates per room."""
    monitor = _get_service()
    return {
        "rooms": {
            room_id: {"sample_count": record.sample_count, "avg_rate": record.avg_rate}
            for room_id, record in monitor.learning_store.all_records().items()
        }
    }


@router.get("/api/sessions")
async def get_sessions():
    """Active ventilation sessions."""
    monitor = _get_service()
    return {
        "sessions": [
            {
                **session.to_dict(),
                "key": session.key,
                "extension_minutes": monitor.extension_policy.minutes_for(session.key),
            }
            for session in monitor.tracker.active_sessions().values()
        ]
    }
