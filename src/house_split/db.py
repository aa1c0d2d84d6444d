"""SQLite settlement ledger for HouseSplit."""

import sqlite3
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

from .models import Settlement


class Database:
    """SQLite database manager for recorded settlements.

    Rows are only ever inserted; a recorded payment is never edited or removed.
    """

    def __init__(self, db_path: Path):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS settlements (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL,
                household_id TEXT NOT NULL,
                from_user_id TEXT NOT NULL,
                from_user_name TEXT NOT NULL,
                to_user_id TEXT NOT NULL,
                to_user_name TEXT NOT NULL,
                amount TEXT NOT NULL,
                description TEXT NOT NULL,
                settlement_date DATE NOT NULL,
                note TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                UNIQUE (household_id, id)
            )
        """
        )

        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    def save_settlement(self, household_id: str, settlement: Settlement) -> int:
        """Append a completed settlement to the ledger."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO settlements (
                id, household_id, from_user_id, from_user_name,
                to_user_id, to_user_name, amount, description,
                settlement_date, note, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                settlement.id,
                household_id,
                settlement.from_user_id,
                settlement.from_user_name,
                settlement.to_user_id,
                settlement.to_user_name,
                str(settlement.amount),
                settlement.description,
                settlement.date.isoformat(),
                settlement.note,
                datetime.now().isoformat(),
            ),
        )
        self.conn.commit()
        row_id = cursor.lastrowid
        if row_id is None:
            raise RuntimeError("Failed to insert settlement record")
        return row_id

    def get_settlement(
        self, household_id: str, settlement_id: str
    ) -> Settlement | None:
        """Get a settlement recorded for a household by id."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM settlements WHERE household_id = ? AND id = ?",
            (household_id, settlement_id),
        )
        row = cursor.fetchone()
        return self._row_to_settlement(row) if row else None

    def list_settlements(self, household_id: str) -> list[Settlement]:
        """Get all recorded settlements for a household, oldest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM settlements WHERE household_id = ? ORDER BY seq",
            (household_id,),
        )
        return [self._row_to_settlement(row) for row in cursor.fetchall()]

    @staticmethod
    def _row_to_settlement(row: sqlite3.Row) -> Settlement:
        return Settlement(
            id=row["id"],
            from_user_id=row["from_user_id"],
            from_user_name=row["from_user_name"],
            to_user_id=row["to_user_id"],
            to_user_name=row["to_user_name"],
            amount=Decimal(row["amount"]),
            description=row["description"],
            status="completed",
            date=date.fromisoformat(row["settlement_date"]),
            note=row["note"],
        )
