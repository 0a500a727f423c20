from __future__ import annotations

from dataclasses import dataclass
from datetime import date

try:
    import psycopg
except ImportError:  # pragma: no cover
    psycopg = None

from dormsplit.domain.models import LeaveRecord


@dataclass(frozen=True)
class RoomMemberRecord:
    id: str
    username: str


class OccupancyRepository:
    """
    Read-only access to room membership and approved leave records.
    Split results are never written back.
    """

    def __init__(self, database_url: str):
        self.database_url = database_url.strip()

    @property
    def enabled(self) -> bool:
        return bool(self.database_url)

    def _connect(self):
        if not self.enabled:
            raise RuntimeError("DATABASE_URL not configured")
        if psycopg is None:
            raise RuntimeError("psycopg is not installed")
        return psycopg.connect(self.database_url)

    def list_active_members(self, *, room_id: str) -> list[RoomMemberRecord]:
        with self._connect() as conn, conn.cursor() as cur:
            cur.execute(
                """
                SELECT rm.user_id::text, u.username
                FROM room_members rm
                JOIN users u ON rm.user_id = u.id
                WHERE rm.room_id = %s AND rm.status = 'active'
                ORDER BY rm.user_id ASC
                """,
                (room_id,),
            )
            return [RoomMemberRecord(id=row[0], username=row[1]) for row in cur.fetchall()]

    def list_approved_leave_records(
        self, *, room_id: str, start_date: date, end_date: date
    ) -> list[LeaveRecord]:
        with self._connect() as conn, conn.cursor() as cur:
            cur.execute(
                """
                SELECT user_id::text, leave_start_date, leave_end_date, leave_type
                FROM leave_records
                WHERE room_id = %s
                  AND status = 'approved'
                  AND leave_start_date <= %s
                  AND leave_end_date >= %s
                ORDER BY leave_start_date ASC, user_id ASC
                """,
                (room_id, end_date, start_date),
            )
            return [
                LeaveRecord(member_id=row[0], start_date=row[1], end_date=row[2], type=row[3] or "personal")
                for row in cur.fetchall()
            ]
