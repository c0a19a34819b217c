"""
/settings — read and update break settings.

Writes go through the engine's mutators so that exactly the affected timer is
restarted. Out-of-range values are rejected with 422 and nothing is stored.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ...api.schemas import SettingsPatch
from ...core.models import BreakCategory
from ...settings import DEFAULTS, duration_key, enabled_key, interval_key, validate

router = APIRouter(prefix="/settings", tags=["settings"])


def _get_engine(request: Request):
    return request.app.state.engine


def _get_settings(request: Request):
    return request.app.state.settings


def _public(settings: dict) -> dict:
    return {k: v for k, v in settings.items() if k != "custom_breaks"}


@router.get("")
async def read_settings(settings=Depends(_get_settings)):
    """Return current settings with their defaults for reference."""
    return {"settings": _public(settings.all()), "defaults": _public(DEFAULTS)}


@router.put("")
async def write_settings(
    patch: SettingsPatch,
    engine=Depends(_get_engine),
    settings=Depends(_get_settings),
):
    """Apply a partial update. Persists to data/settings.json."""
    data = {k: v for k, v in patch.model_dump().items() if v is not None}

    # validate everything before touching anything
    for key, value in data.items():
        if key.endswith("_interval") or key.endswith("_duration"):
            validate(key, value)

    for category in BreakCategory.named():
        ikey, dkey = interval_key(category), duration_key(category)
        if ikey in data and dkey in data:
            engine.update_break_settings(category, data[ikey], data[dkey])
        elif ikey in data:
            engine.set_interval(category, data[ikey])
        elif dkey in data:
            engine.set_duration(category, data[dkey])
        if enabled_key(category) in data:
            engine.set_category_enabled(category, data[enabled_key(category)])

    if "custom_breaks_enabled" in data:
        engine.set_custom_breaks_enabled(data["custom_breaks_enabled"])
    if "start_at_login" in data:
        settings.set("start_at_login", data["start_at_login"])
    if "enabled" in data and data["enabled"] != engine.is_enabled:
        engine.set_enabled(data["enabled"])

    return {"settings": _public(settings.all())}


@router.post("/reset")
async def reset_settings(engine=Depends(_get_engine), settings=Depends(_get_settings)):
    """Restore defaults, remove custom breaks and restart every timer."""
    engine.reset_to_defaults()
    return {"settings": _public(settings.all())}
