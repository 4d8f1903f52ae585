# app/services/leaderboard.py
from typing import Dict, Optional

from sqlalchemy.orm import Session

from app.models import User


def build_leaderboard(db: Session, current_user_id: Optional[int] = None) -> Dict:
    """Rank every user by points (desc), then name, then id; ranks are 1-based."""
    rows = (
        db.query(User.id, User.name, User.points)
        .order_by(User.points.desc(), User.name.asc(), User.id.asc())
        .all()
    )

    current_rank = None
    leaderboard = []
    for index, (user_id, name, points) in enumerate(rows, start=1):
        if user_id == current_user_id:
            current_rank = index
        leaderboard.append({"rank": index, "id": user_id, "name": name, "points": points or 0})

    return {
        "leaderboard": leaderboard,
        "currentUserId": current_user_id,
        "currentUserRank": current_rank,
    }
