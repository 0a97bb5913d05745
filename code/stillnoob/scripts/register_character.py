import argparse
import asyncio
import logging

from stillnoob.blizzard.client import BlizzardAPIError, BlizzardClient
from stillnoob.config import get_settings
from stillnoob.db.engine import create_db_engine, create_session_factory, init_db
from stillnoob.pipeline.characters import (
    DuplicateCharacterError,
    get_or_create_user,
    list_characters,
    register_character,
)
from stillnoob.pipeline.constants import REGIONS
from stillnoob.utils import realm_slug

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Register a character for tracking, or list the roster",
    )
    parser.add_argument("--name")
    parser.add_argument("--realm", help="Realm display name, e.g. \"Tarren Mill\"")
    parser.add_argument("--region", choices=REGIONS, default="eu")
    parser.add_argument("--class-name", dest="class_name")
    parser.add_argument("--spec")
    parser.add_argument("--email", help="Owner account; created when unknown")
    parser.add_argument(
        "--lookup", action="store_true",
        help="Take class, spec and raid role from the Battle.net profile",
    )
    parser.add_argument("--list", action="store_true", dest="list_chars")
    return parser.parse_args(argv)


async def lookup_profile(settings, name: str, realm: str, region: str) -> dict | None:
    if not settings.blizzard.client_id:
        logger.error("--lookup requires BLIZZARD__CLIENT_ID and BLIZZARD__CLIENT_SECRET")
        return None
    try:
        async with BlizzardClient.from_settings(settings) as client:
            return await client.get_character_profile(name, realm_slug(realm), region)
    except BlizzardAPIError as exc:
        logger.error("Blizzard profile lookup failed: %s", exc)
        return None


def _roster_line(character) -> str:
    primary = " *" if character.is_primary else ""
    return (
        f"{character.id:>4}  {character.name}-{character.realm_slug} "
        f"{character.region.upper()}  {character.class_name} {character.spec or '?'}{primary}"
    )


async def _show_roster(session) -> None:
    characters = await list_characters(session)
    if not characters:
        logger.info("No characters registered")
    for character in characters:
        logger.info("%s", _roster_line(character))


async def _register(session, email: str | None, **fields) -> None:
    user_id = (await get_or_create_user(session, email)).id if email else None
    try:
        character = await register_character(session, user_id=user_id, **fields)
    except DuplicateCharacterError as exc:
        logger.error("%s", exc)
        return
    await session.commit()
    logger.info("Registered %s (id=%d)", character.name, character.id)


async def run(
    name: str | None = None,
    realm: str | None = None,
    region: str = "eu",
    class_name: str | None = None,
    spec: str | None = None,
    email: str | None = None,
    lookup: bool = False,
    list_chars: bool = False,
) -> None:
    settings = get_settings()
    raid_role = None
    if lookup and name and realm:
        profile = await lookup_profile(settings, name, realm, region)
        if profile is None:
            logger.error("Character %s-%s not found on Blizzard", name, realm)
        else:
            class_name = class_name or profile["class_name"]
            spec = spec or profile["spec"]
            raid_role = profile["raid_role"]

    if not list_chars and not (name and realm and class_name):
        logger.error("Provide --name, --realm and --class-name (or --lookup), or use --list")
        return

    engine = create_db_engine(settings)
    await init_db(engine)
    try:
        async with create_session_factory(engine)() as session:
            if list_chars:
                await _show_roster(session)
            else:
                await _register(
                    session, email,
                    name=name, realm=realm, class_name=class_name,
                    region=region, spec=spec, raid_role=raid_role,
                )
    finally:
        await engine.dispose()


def main() -> None:
    args = vars(parse_args())
    logging.basicConfig(level=logging.INFO)
    asyncio.run(run(**args))


if __name__ == "__main__":
    main()
