"""Skill registry service: administrator operations on skill records."""

import json
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.agent.skill_config import SkillConfigError, parse_skill_config
from app.db.models import SKILL_TYPES, SkillDB, generate_uuid

logger = logging.getLogger(__name__)


class SkillRegistryError(Exception):
    """Base error for registry operations."""


class SkillNotFoundError(SkillRegistryError):
    def __init__(self, name: str):
        super().__init__(f"Skill '{name}' not found")
        self.name = name


class DuplicateSkillError(SkillRegistryError):
    def __init__(self, name: str):
        super().__init__(f"Skill name '{name}' already exists")
        self.name = name


class InvalidSkillError(SkillRegistryError):
    pass


def _serialize_config(skill_type: str, config: Optional[str | dict]) -> Optional[str]:
    """Validate config for the skill type and return it as JSON text."""
    if skill_type not in SKILL_TYPES:
        raise InvalidSkillError(f"Invalid skill_type: {skill_type}. Must be one of {', '.join(SKILL_TYPES)}.")
    try:
        parse_skill_config(skill_type, config)
    except SkillConfigError as e:
        raise InvalidSkillError(str(e)) from e
    if config is None:
        return None
    if isinstance(config, dict):
        return json.dumps(config)
    return config


async def list_skills(db: AsyncSession, skill_type: Optional[str] = None) -> list[SkillDB]:
    query = select(SkillDB)
    if skill_type:
        query = query.where(SkillDB.skill_type == skill_type)
    result = await db.execute(query.order_by(SkillDB.name))
    return list(result.scalars().all())


async def get_skill_by_name(db: AsyncSession, name: str) -> SkillDB:
    result = await db.execute(select(SkillDB).where(SkillDB.name == name))
    skill = result.scalar_one_or_none()
    if not skill:
        raise SkillNotFoundError(name)
    return skill


async def get_eligible_skills(db: AsyncSession) -> list[SkillDB]:
    """Approved and active skills, oldest first."""
    result = await db.execute(
        select(SkillDB)
        .where(SkillDB.approved.is_(True), SkillDB.active.is_(True))
        .order_by(SkillDB.created_at, SkillDB.name)
    )
    return list(result.scalars().all())


async def create_skill(
    db: AsyncSession,
    name: str,
    skill_type: str,
    description: str = "",
    config: Optional[str | dict] = None,
    approved: bool = False,
    active: bool = False,
) -> SkillDB:
    """Register a new skill. New skills are unapproved and inactive unless stated."""
    existing = await db.execute(select(SkillDB.id).where(SkillDB.name == name))
    if existing.scalar_one_or_none():
        raise DuplicateSkillError(name)

    now = datetime.utcnow()
    skill = SkillDB(
        id=generate_uuid(),
        name=name,
        skill_type=skill_type,
        description=description,
        config=_serialize_config(skill_type, config),
        approved=approved,
        active=active,
        created_at=now,
        updated_at=now,
    )
    db.add(skill)
    await db.commit()
    await db.refresh(skill)
    logger.info(f"Registered {skill_type} skill '{name}'")
    return skill


async def update_skill(
    db: AsyncSession,
    name: str,
    description: Optional[str] = None,
    config: Optional[str | dict] = None,
) -> SkillDB:
    """Update description and/or config. Changing config revokes approval."""
    skill = await get_skill_by_name(db, name)

    if description is not None:
        skill.description = description
    if config is not None:
        new_config = _serialize_config(skill.skill_type, config)
        if new_config != skill.config:
            skill.config = new_config
            if skill.approved:
                # The approved configuration no longer exists
                skill.approved = False
                logger.info(f"Config of skill '{name}' changed; approval revoked")

    skill.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(skill)
    return skill


async def set_approval(db: AsyncSession, name: str, approved: bool) -> SkillDB:
    skill = await get_skill_by_name(db, name)
    skill.approved = approved
    skill.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(skill)
    logger.info(f"Skill '{name}' {'approved' if approved else 'approval revoked'}")
    return skill


async def set_active(db: AsyncSession, name: str, active: bool) -> SkillDB:
    skill = await get_skill_by_name(db, name)
    skill.active = active
    skill.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(skill)
    logger.info(f"Skill '{name}' {'activated' if active else 'deactivated'}")
    return skill


async def delete_skill(db: AsyncSession, name: str) -> None:
    """Remove a skill. Its audit history is kept."""
    skill = await get_skill_by_name(db, name)
    await db.delete(skill)
    await db.commit()
    logger.info(f"Deleted skill '{name}'")
