"""
/state — current engine snapshot + WebSocket stream.
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect

from ...api.schemas import CurrentBreakOut, EngineStateOut, UpcomingCustomBreakOut
from ...config import config
from ...timefmt import format_countdown

router = APIRouter(prefix="/state", tags=["state"])


def _get_engine(request: Request):
    return request.app.state.engine


def snapshot(engine, now: float) -> EngineStateOut:
    session = engine.current_session
    current = None
    if session is not None:
        remaining = session.remaining(now)
        current = CurrentBreakOut(
            kind=session.tag.label,
            title=session.title,
            icon=session.icon,
            duration=session.duration,
            started_at=session.started_at,
            remaining_seconds=remaining,
            countdown=format_countdown(remaining),
        )
    return EngineStateOut(
        enabled=engine.is_enabled,
        on_break=engine.is_on_break,
        current_break=current,
        next_breaks=engine.next_break_times(),
        next_custom_breaks=[
            UpcomingCustomBreakOut(id=d.id, name=d.name, fire_at=fire_at)
            for d, fire_at in engine.next_custom_breaks()
        ],
        timestamp=now,
    )


@router.get("", response_model=EngineStateOut)
async def get_state(request: Request, engine=Depends(_get_engine)):
    """Return the current engine snapshot."""
    return snapshot(engine, request.app.state.clock.now())


@router.websocket("/ws")
async def state_websocket(websocket: WebSocket):
    """
    WebSocket stream — pushes a state snapshot whenever a break starts or ends
    or a timer changes, and at least every state_push_interval_s seconds.
    """
    engine = websocket.app.state.engine
    clock = websocket.app.state.clock
    changed = asyncio.Event()

    def _on_event(event, session):
        changed.set()

    await websocket.accept()
    engine.register_listener(_on_event)
    try:
        while True:
            changed.clear()
            await websocket.send_json(snapshot(engine, clock.now()).model_dump(mode="json"))
            try:
                await asyncio.wait_for(changed.wait(), timeout=config.state_push_interval_s)
            except asyncio.TimeoutError:
                pass
    except WebSocketDisconnect:
        pass
    finally:
        engine.unregister_listener(_on_event)
