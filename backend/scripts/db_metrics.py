"""Print a one-off JSON snapshot of pool counters and progress-store table sizes."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Dict

from sqlalchemy import func, select, text
from sqlalchemy.orm import Session

from techenglish.db.models import (
    LearningSessionModel,
    ProgressRecordModel,
    UserAchievementModel,
    UserModel,
)
from techenglish.db.monitoring import get_pool_snapshot
from techenglish.db.session import get_engine, session_scope

LOGGER = logging.getLogger("techenglish.db_metrics")


def collect_counts(session: Session) -> Dict[str, int]:
    def _count(stmt) -> int:  # type: ignore[no-untyped-def]
        return int(session.execute(stmt).scalar_one())

    return {
        "users": _count(select(func.count()).select_from(UserModel)),
        "progress_records": _count(select(func.count()).select_from(ProgressRecordModel)),
        "open_sessions": _count(
            select(func.count()).select_from(LearningSessionModel).where(LearningSessionModel.state == "OPEN")
        ),
        "achievement_unlocks": _count(select(func.count()).select_from(UserAchievementModel)),
        "total_xp": _count(select(func.coalesce(func.sum(UserModel.total_xp), 0))),
    }


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    try:
        engine = get_engine()
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        with session_scope(commit=False) as session:
            counts = collect_counts(session)
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "pool": get_pool_snapshot(engine),
            "tables": counts,
        }
        print(json.dumps(payload))
        return 0
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Failed to collect database metrics: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
