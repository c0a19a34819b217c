"""
/custom-breaks — user-defined breaks, each on its own schedule.
"""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request

from ...api.schemas import CustomBreakIn, CustomBreakOut, CustomBreakSavedOut
from ...core.models import CustomBreakDefinition

router = APIRouter(prefix="/custom-breaks", tags=["custom-breaks"])


def _get_engine(request: Request):
    return request.app.state.engine


def _saved(engine, break_id: uuid.UUID, adjusted: bool) -> CustomBreakSavedOut:
    definition = engine.get_custom_break(break_id)
    return CustomBreakSavedOut(
        custom_break=CustomBreakOut.from_definition(
            definition, engine.next_custom_fire_time(break_id)
        ),
        adjusted=adjusted,
    )


@router.get("", response_model=List[CustomBreakOut])
async def list_custom_breaks(engine=Depends(_get_engine)):
    return [
        CustomBreakOut.from_definition(d, engine.next_custom_fire_time(d.id))
        for d in engine.custom_breaks
    ]


@router.post("", response_model=CustomBreakSavedOut, status_code=201)
async def add_custom_break(body: CustomBreakIn, engine=Depends(_get_engine)):
    definition = CustomBreakDefinition(
        name=body.name,
        icon=body.icon,
        interval=body.interval,
        duration=body.duration,
        enabled=body.enabled,
    )
    adjusted = engine.add_custom_break(definition)
    return _saved(engine, definition.id, adjusted)


@router.put("/{break_id}", response_model=CustomBreakSavedOut)
async def update_custom_break(
    break_id: uuid.UUID, body: CustomBreakIn, engine=Depends(_get_engine)
):
    if engine.get_custom_break(break_id) is None:
        raise HTTPException(status_code=404, detail="Custom break not found")
    adjusted = engine.update_custom_break(
        CustomBreakDefinition(
            id=break_id,
            name=body.name,
            icon=body.icon,
            interval=body.interval,
            duration=body.duration,
            enabled=body.enabled,
        )
    )
    return _saved(engine, break_id, adjusted)


@router.delete("/{break_id}")
async def remove_custom_break(break_id: uuid.UUID, engine=Depends(_get_engine)):
    if not engine.remove_custom_break(break_id):
        raise HTTPException(status_code=404, detail="Custom break not found")
    return {"status": "removed"}
