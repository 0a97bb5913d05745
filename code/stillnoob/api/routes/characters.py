"""Character roster endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from stillnoob.api.deps import get_db
from stillnoob.api.models import CharacterInfo, MessageResponse, RegisterCharacterRequest
from stillnoob.db.models import User
from stillnoob.pipeline import characters as chars

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/characters", tags=["characters"])


@router.get("", response_model=list[CharacterInfo])
async def list_characters(
    user_id: int | None = None, session: AsyncSession = Depends(get_db),
):
    try:
        return await chars.list_characters(session, user_id)
    except Exception:
        logger.exception("Failed to list characters")
        raise HTTPException(status_code=500, detail="Internal server error") from None


@router.post("", response_model=CharacterInfo, status_code=201)
async def create_character(
    req: RegisterCharacterRequest, session: AsyncSession = Depends(get_db),
):
    if req.user_id is not None and await session.get(User, req.user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")
    try:
        character = await chars.register_character(
            session,
            name=req.name,
            realm=req.realm,
            class_name=req.class_name,
            region=req.region,
            realm_slug=req.realm_slug,
            spec=req.spec,
            raid_role=req.raid_role,
            user_id=req.user_id,
        )
        await session.commit()
        return character
    except chars.DuplicateCharacterError:
        raise HTTPException(status_code=409, detail="Character already exists") from None
    except Exception:
        await session.rollback()
        logger.exception("Failed to register character")
        raise HTTPException(status_code=500, detail="Internal server error") from None


@router.put("/{character_id}/primary", response_model=MessageResponse)
async def set_primary_character(
    character_id: int,
    user_id: int | None = None,
    session: AsyncSession = Depends(get_db),
):
    try:
        found = await chars.set_primary(session, character_id, user_id)
        if not found:
            raise HTTPException(status_code=404, detail="Character not found")
        await session.commit()
        return MessageResponse(message="Primary character updated")
    except HTTPException:
        raise
    except Exception:
        await session.rollback()
        logger.exception("Failed to set primary character")
        raise HTTPException(status_code=500, detail="Internal server error") from None


@router.delete("/{character_id}", response_model=MessageResponse)
async def delete_character(
    character_id: int,
    user_id: int | None = None,
    session: AsyncSession = Depends(get_db),
):
    try:
        deleted = await chars.delete_character(session, character_id, user_id)
        if not deleted:
            raise HTTPException(status_code=404, detail="Character not found")
        await session.commit()
        return MessageResponse(message="Character removed")
    except HTTPException:
        raise
    except Exception:
        await session.rollback()
        logger.exception("Failed to delete character")
        raise HTTPException(status_code=500, detail="Internal server error") from None
