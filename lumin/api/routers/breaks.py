"""
/breaks — start a break now, skip the next or the current one, master toggle.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from ...api.schemas import BreakActionOut, EnabledIn

router = APIRouter(prefix="/breaks", tags=["breaks"])


def _get_engine(request: Request):
    return request.app.state.engine


def _get_presenter(request: Request):
    return request.app.state.presenter


@router.post("/start", response_model=BreakActionOut)
async def start_break(engine=Depends(_get_engine)):
    """Start a regular break immediately (ignored while another break is showing)."""
    started = engine.start_break_now()
    return BreakActionOut(
        status="started" if started else "ignored",
        on_break=engine.is_on_break,
    )


@router.post("/skip-next", response_model=BreakActionOut)
async def skip_next(engine=Depends(_get_engine)):
    """Push the next regular break one full interval out from now."""
    engine.skip_next_break()
    return BreakActionOut(status="rescheduled", on_break=engine.is_on_break)


@router.post("/current/skip", response_model=BreakActionOut)
async def skip_current(
    engine=Depends(_get_engine),
    presenter=Depends(_get_presenter),
):
    """The user skipped the break that is on screen."""
    if not presenter.skip_current() and not engine.skip_current_break():
        raise HTTPException(status_code=404, detail="No break in progress")
    return BreakActionOut(status="skipped", on_break=engine.is_on_break)


@router.put("/enabled")
async def set_enabled(body: EnabledIn, engine=Depends(_get_engine)):
    engine.set_enabled(body.enabled)
    return {"enabled": engine.is_enabled}
