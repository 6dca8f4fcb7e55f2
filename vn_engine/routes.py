"""FastAPI endpoints under /api.

Script tools (parse, validate) and player settings. Playback itself runs
client-side or in the terminal player; nothing here holds playback state.
"""

from dataclasses import asdict

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ValidationError

from vn_engine import config
from vn_engine.models import command_list_adapter
from vn_engine.parser import parse_script, script_statistics, validate_script

router = APIRouter()


class ScriptBody(BaseModel):
    script: str


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "healthy"}


@router.post("/script/parse")
async def parse(body: ScriptBody):
    """Parse a script into commands, STP choices and statistics."""
    result = parse_script(body.script)
    return {
        "commands": command_list_adapter.dump_python(result.commands, mode="json"),
        "transition_points": result.transition_points or [],
        "statistics": script_statistics(result.commands),
    }


@router.post("/script/validate")
async def validate(body: ScriptBody):
    """Report errors and warnings for a script without rejecting it."""
    return asdict(validate_script(body.script))


@router.get("/settings")
async def get_settings():
    """Get player settings (speeds, delays, stream timeout)."""
    return config.get_config().model_dump()


@router.patch("/settings")
async def update_settings(body: dict):
    """Update player settings (partial merge)."""
    try:
        return config.update_config(body).model_dump()
    except ValidationError as e:
        raise HTTPException(400, f"Invalid settings: {e.errors()[0]['msg']}")
