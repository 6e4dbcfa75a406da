"""
Skill Registry API endpoints.

SyncBoard administration of skills: CRUD plus approve/revoke and
activate/deactivate. Only approved and active skills are exposed as tools.
"""

import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_admin
from app.db.database import get_db
from app.db.models import SkillDB
from app.services import skill_registry
from app.services.skill_registry import (
    DuplicateSkillError,
    InvalidSkillError,
    SkillNotFoundError,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/skills",
    tags=["skills"],
    dependencies=[Depends(get_current_admin)],
)


# === Pydantic Schemas ===

class SkillCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128, pattern=r"^[a-zA-Z0-9_\-]+$")
    skill_type: str = Field(..., pattern="^(template|webhook|code)$")
    description: str = Field(default="", max_length=2000)
    config: Optional[Union[dict, str]] = None
    approved: bool = False
    active: bool = False


class SkillUpdate(BaseModel):
    description: Optional[str] = Field(default=None, max_length=2000)
    config: Optional[Union[dict, str]] = None


class SkillResponse(BaseModel):
    id: str
    name: str
    skill_type: str
    description: str
    config: Optional[str] = None
    approved: bool
    active: bool
    created_at: str
    updated_at: str


def _skill_to_response(skill: SkillDB) -> dict:
    return {
        "id": skill.id,
        "name": skill.name,
        "skill_type": skill.skill_type,
        "description": skill.description,
        "config": skill.config,
        "approved": skill.approved,
        "active": skill.active,
        "created_at": skill.created_at.isoformat(),
        "updated_at": skill.updated_at.isoformat(),
    }


# === Endpoints ===

@router.get("", response_model=list[SkillResponse])
async def list_skills(
    skill_type: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """List all registered skills."""
    skills = await skill_registry.list_skills(db, skill_type)
    return [_skill_to_response(s) for s in skills]


@router.get("/{name}", response_model=SkillResponse)
async def get_skill(name: str, db: AsyncSession = Depends(get_db)):
    """Get a skill by name."""
    try:
        skill = await skill_registry.get_skill_by_name(db, name)
    except SkillNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _skill_to_response(skill)


@router.post("", status_code=201, response_model=SkillResponse)
async def create_skill(data: SkillCreate, db: AsyncSession = Depends(get_db)):
    """Register a new skill."""
    try:
        skill = await skill_registry.create_skill(
            db,
            name=data.name,
            skill_type=data.skill_type,
            description=data.description,
            config=data.config,
            approved=data.approved,
            active=data.active,
        )
    except DuplicateSkillError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InvalidSkillError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _skill_to_response(skill)


@router.put("/{name}", response_model=SkillResponse)
async def update_skill(name: str, data: SkillUpdate, db: AsyncSession = Depends(get_db)):
    """Update a skill's description or config."""
    try:
        skill = await skill_registry.update_skill(
            db, name, description=data.description, config=data.config
        )
    except SkillNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidSkillError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _skill_to_response(skill)


async def _set_flag(db: AsyncSession, name: str, flag: str, value: bool) -> dict:
    setter = skill_registry.set_approval if flag == "approved" else skill_registry.set_active
    try:
        skill = await setter(db, name, value)
    except SkillNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _skill_to_response(skill)


@router.post("/{name}/approve", response_model=SkillResponse)
async def approve_skill(name: str, db: AsyncSession = Depends(get_db)):
    """Approve a skill for use by the agent."""
    return await _set_flag(db, name, "approved", True)


@router.post("/{name}/revoke", response_model=SkillResponse)
async def revoke_skill(name: str, db: AsyncSession = Depends(get_db)):
    """Revoke a skill's approval."""
    return await _set_flag(db, name, "approved", False)


@router.post("/{name}/activate", response_model=SkillResponse)
async def activate_skill(name: str, db: AsyncSession = Depends(get_db)):
    """Activate a skill."""
    return await _set_flag(db, name, "active", True)


@router.post("/{name}/deactivate", response_model=SkillResponse)
async def deactivate_skill(name: str, db: AsyncSession = Depends(get_db)):
    """Deactivate a skill."""
    return await _set_flag(db, name, "active", False)


@router.delete("/{name}", status_code=204)
async def delete_skill(name: str, db: AsyncSession = Depends(get_db)):
    """Delete a skill. Its invocation history is kept."""
    try:
        await skill_registry.delete_skill(db, name)
    except SkillNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
