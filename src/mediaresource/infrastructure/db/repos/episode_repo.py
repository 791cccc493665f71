from __future__ import annotations

from pathlib import Path

from mediaresource.domain.models.episode import Episode
from mediaresource.infrastructure.db.sqlite import get_connection


class EpisodeRepo:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    def get(self, episode_id: str) -> Episode | None:
        with get_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM episodes WHERE id = ?",
                (episode_id,),
            ).fetchone()
        return self._to_model(row) if row else None

    def list(self) -> list[Episode]:
        with get_connection(self.db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM episodes ORDER BY episode_order ASC, id ASC"
            ).fetchall()
        return [self._to_model(row) for row in rows]

    def put(self, episode: Episode) -> None:
        with get_connection(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO episodes (id, episode_order, label)
                VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    episode_order = excluded.episode_order,
                    label = excluded.label
                """,
                (episode.id, episode.order, episode.label),
            )
            conn.commit()

    @staticmethod
    def _to_model(row) -> Episode:
        return Episode(id=row["id"], order=row["episode_order"], label=row["label"])
