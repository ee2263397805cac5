"""
Subscription Router

Subscription status / feature access and the account simulator
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.club.dependencies import to_http_exception
from app.errors import ClubCoreError

from .dependencies import get_policy_engine, get_simulator
from .models import FeatureAccess, SubscriptionOverview
from .policy import SubscriptionPolicyEngine
from .simulator import SimulatorOverlay, SimulatorState

router = APIRouter(tags=["Subscription"])


class PresetRequest(BaseModel):
    identity: str
    preset: str


class ToggleRequest(BaseModel):
    identity: str
    enabled: bool


# =============================================
# Subscription
# =============================================

@router.get("/subscription/{profile_id}", response_model=SubscriptionOverview)
async def get_subscription(
    profile_id: str,
    identity: Optional[str] = Query(None, description="Account email, used by the simulator"),
    engine: SubscriptionPolicyEngine = Depends(get_policy_engine)
):
    """
    Subscription status and feature access

    Trial first, then paid tier, then free tier limits.
    """
    try:
        status, simulated = await engine.resolve_status_with_source(profile_id, identity)
    except ClubCoreError as e:
        raise to_http_exception(e)

    return SubscriptionOverview(
        profile_id=profile_id,
        simulated=simulated,
        status=status,
        access=engine.get_feature_access(status),
    )


@router.post("/subscription/{profile_id}/sessions", response_model=FeatureAccess)
async def record_session(
    profile_id: str,
    engine: SubscriptionPolicyEngine = Depends(get_policy_engine)
):
    """Count one created session against the monthly allowance"""
    try:
        await engine.increment_session_usage(profile_id)
        return await engine.resolve_feature_access(profile_id)
    except ClubCoreError as e:
        raise to_http_exception(e)


# =============================================
# Account simulator (allow-listed test accounts)
# =============================================

@router.get("/simulator/presets")
async def list_presets():
    return SimulatorOverlay.available_presets()


@router.get("/simulator", response_model=SimulatorState)
async def get_simulator_state(
    identity: str = Query(...),
    simulator: SimulatorOverlay = Depends(get_simulator)
):
    try:
        return await simulator.load(identity)
    except ClubCoreError as e:
        raise to_http_exception(e)


@router.post("/simulator/preset", response_model=SimulatorState)
async def apply_preset(
    body: PresetRequest,
    simulator: SimulatorOverlay = Depends(get_simulator)
):
    try:
        return await simulator.apply_preset(body.identity, body.preset)
    except ClubCoreError as e:
        raise to_http_exception(e)


@router.post("/simulator/toggle", response_model=SimulatorState)
async def toggle_simulator(
    body: ToggleRequest,
    simulator: SimulatorOverlay = Depends(get_simulator)
):
    try:
        return await simulator.toggle(body.identity, body.enabled)
    except ClubCoreError as e:
        raise to_http_exception(e)


@router.delete("/simulator", response_model=SimulatorState)
async def reset_simulator(
    identity: str = Query(...),
    simulator: SimulatorOverlay = Depends(get_simulator)
):
    """Back to real data for this identity"""
    try:
        return await simulator.reset(identity)
    except ClubCoreError as e:
        raise to_http_exception(e)
