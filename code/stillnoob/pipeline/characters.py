import logging
import unicodedata

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stillnoob.db.models import Character, User
from stillnoob.pipeline.analysis import invalidate_analysis_cache
from stillnoob.utils import normalize_name
from stillnoob.utils import realm_slug as slugify_realm

logger = logging.getLogger(__name__)


class DuplicateCharacterError(Exception):
    def __init__(self, name: str, realm_slug: str, region: str):
        super().__init__(f"Character {name}-{realm_slug} ({region}) already exists")
        self.name = name
        self.realm_slug = realm_slug
        self.region = region


def _owned(stmt, user_id: int | None):
    return stmt if user_id is None else stmt.where(Character.user_id == user_id)


async def register_character(
    session: AsyncSession,
    *,
    name: str,
    realm: str,
    class_name: str,
    region: str = "eu",
    realm_slug: str | None = None,
    spec: str | None = None,
    raid_role: str | None = None,
    user_id: int | None = None,
) -> Character:
    """Create a tracked character.

    The name is trimmed and NFC-normalized (case is kept for display) and the
    realm slug is derived from the realm when not given.
    """
    clean_name = unicodedata.normalize("NFC", name.strip())
    slug = realm_slug or slugify_realm(realm)
    character = Character(
        user_id=user_id,
        name=clean_name,
        realm=realm,
        realm_slug=slug,
        region=region.lower(),
        class_name=class_name,
        spec=spec,
        raid_role=raid_role,
    )
    session.add(character)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise DuplicateCharacterError(clean_name, slug, region) from None

    logger.info("Registered character %s-%s (%s)", clean_name, slug, region)
    return character


async def get_character(
    session: AsyncSession, character_id: int, user_id: int | None = None,
) -> Character | None:
    result = await session.execute(
        _owned(select(Character).where(Character.id == character_id), user_id)
    )
    return result.scalar_one_or_none()


async def find_character(
    session: AsyncSession, region: str, realm: str, name: str,
) -> Character | None:
    """Look a character up by region, realm (name or slug) and name.

    Names compare NFC-normalized and case-insensitively.
    """
    result = await session.execute(
        select(Character)
        .where(
            Character.region == region.lower(),
            Character.realm_slug == slugify_realm(realm),
        )
        .order_by(Character.id)
    )
    wanted = normalize_name(name)
    return next(
        (c for c in result.scalars().all() if normalize_name(c.name) == wanted), None,
    )


async def list_characters(
    session: AsyncSession, user_id: int | None = None,
) -> list[Character]:
    """Characters of one user (or all), primary first then by name."""
    result = await session.execute(
        _owned(select(Character), user_id).order_by(
            Character.is_primary.desc(), Character.name,
        )
    )
    return list(result.scalars().all())


async def set_primary(
    session: AsyncSession, character_id: int, user_id: int | None = None,
) -> bool:
    """Mark a character primary and clear the flag on its owner's other characters."""
    character = await get_character(session, character_id, user_id)
    if character is None:
        return False

    owner = character.user_id
    await session.execute(
        update(Character)
        .where(
            Character.user_id.is_(None) if owner is None else Character.user_id == owner,
            Character.id != character_id,
        )
        .values(is_primary=False)
    )
    character.is_primary = True
    await session.flush()
    return True


async def delete_character(
    session: AsyncSession, character_id: int, user_id: int | None = None,
) -> bool:
    result = await session.execute(
        _owned(delete(Character).where(Character.id == character_id), user_id)
    )
    if not result.rowcount:
        return False
    invalidate_analysis_cache(character_id)
    logger.info("Deleted character %d", character_id)
    return True


async def get_or_create_user(
    session: AsyncSession, email: str, display_name: str | None = None,
) -> User:
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None:
        user = User(email=email, display_name=display_name or email.split("@")[0])
        session.add(user)
        await session.flush()
        logger.info("Created user %s", email)
    return user
