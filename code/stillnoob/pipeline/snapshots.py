"""Append-only Mythic+ rating history."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stillnoob.db.models import MplusSnapshot
from stillnoob.db.queries import latest_snapshot
from stillnoob.raiderio.models import RaiderIOProfile
from stillnoob.utils import round_half_up

logger = logging.getLogger(__name__)


@dataclass
class ScoreTrend:
    change: int
    direction: str  # "up", "down" or "flat"


@dataclass
class ScoreHistory:
    snapshots: list[MplusSnapshot]
    trend: ScoreTrend | None = None


async def save_score_snapshot(
    session: AsyncSession, character_id: int, profile: RaiderIOProfile | None,
) -> bool:
    """Append a snapshot when the rating differs from the latest one.

    The row is flushed, not committed.
    """
    score = profile.score if profile else 0
    if not score:
        return False

    last = await latest_snapshot(session, character_id)
    if last is not None and last.score == score:
        return False

    mp = profile.mythic_plus
    runs = profile.best_runs
    timed_dungeons = {r.dungeon for r in runs if r.upgrades > 0}
    session.add(MplusSnapshot(
        character_id=character_id,
        score=score,
        score_dps=mp.score_dps or 0,
        score_healer=mp.score_healer or 0,
        score_tank=mp.score_tank or 0,
        item_level=profile.gear.item_level if profile.gear else None,
        best_run_level=max((r.level for r in runs), default=0),
        total_dungeons=len(timed_dungeons) or None,
        snapshot_at=datetime.now(UTC),
    ))
    await session.flush()
    logger.info("Saved M+ snapshot for character %d: %.1f", character_id, score)
    return True


def score_trend(snapshots: list[MplusSnapshot]) -> ScoreTrend | None:
    """Change from the oldest to the newest of snapshots ordered newest first."""
    if len(snapshots) < 2:
        return None
    change = snapshots[0].score - snapshots[-1].score
    if change > 0:
        direction = "up"
    elif change < 0:
        direction = "down"
    else:
        direction = "flat"
    return ScoreTrend(change=round_half_up(change), direction=direction)


async def score_history(
    session: AsyncSession, character_id: int, weeks: int = 12,
) -> ScoreHistory:
    cutoff = datetime.now(UTC) - timedelta(weeks=weeks)
    result = await session.execute(
        select(MplusSnapshot)
        .where(
            MplusSnapshot.character_id == character_id,
            MplusSnapshot.snapshot_at >= cutoff,
        )
        .order_by(MplusSnapshot.snapshot_at.desc(), MplusSnapshot.id.desc())
    )
    snapshots = list(result.scalars().all())
    return ScoreHistory(snapshots=snapshots, trend=score_trend(snapshots))
