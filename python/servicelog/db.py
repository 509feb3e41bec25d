"""
Servicelog database layer: SQLite-backed storage for notification tools,
serviceable events and repair actions.

Design principles:
- One connection per invocation, opened and closed by the caller
- Match predicates are stored verbatim and used as WHERE clauses
- Every sqlite3 failure surfaces as StoreError with the sqlite message
"""

from __future__ import annotations

import logging
import os
import sqlite3
import time
from contextlib import contextmanager
from dataclasses import replace
from typing import Iterator, List, Optional, Tuple

from servicelog.errors import StoreError
from servicelog.models import (
    DeliveryMethod,
    NotificationRegistration,
    RepairAction,
    ServiceEvent,
    TargetKind,
)

logger = logging.getLogger(__name__)

Timestamp = int

DEFAULT_DB_PATH = "/var/lib/servicelog/servicelog.db"
DB_PATH_ENV = "SERVICELOG_DB"


SCHEMA = """
CREATE TABLE IF NOT EXISTS notifications (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  time_logged INTEGER NOT NULL,
  time_last_update INTEGER NOT NULL,
  notify INTEGER NOT NULL CHECK(notify IN (1, 2)),
  command TEXT NOT NULL,
  method INTEGER NOT NULL DEFAULT 0 CHECK(method IN (0, 1, 2, 3)),
  match_string TEXT NOT NULL DEFAULT ''
);

CREATE INDEX IF NOT EXISTS idx_notify_command ON notifications(command);

CREATE TABLE IF NOT EXISTS repair_actions (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  time_logged INTEGER NOT NULL,
  time_repair INTEGER NOT NULL,
  procedure TEXT NOT NULL,
  location TEXT NOT NULL,
  notes TEXT
);

CREATE TABLE IF NOT EXISTS events (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  time_logged INTEGER NOT NULL,
  time_event INTEGER NOT NULL,
  type INTEGER NOT NULL,
  severity INTEGER NOT NULL CHECK(severity BETWEEN 1 AND 7),
  serviceable INTEGER NOT NULL DEFAULT 0 CHECK(serviceable IN (0, 1)),
  closed INTEGER NOT NULL DEFAULT 0 CHECK(closed IN (0, 1)),
  repair INTEGER,
  location TEXT NOT NULL DEFAULT '',
  refcode TEXT NOT NULL DEFAULT '',
  description TEXT NOT NULL,
  FOREIGN KEY(repair) REFERENCES repair_actions(id)
);

CREATE INDEX IF NOT EXISTS idx_events_open ON events(location, serviceable, closed);
"""


def now_i() -> Timestamp:
    """Current Unix timestamp as integer."""
    return int(time.time())


def default_db_path() -> str:
    """Database location from $SERVICELOG_DB, else the system default."""
    return os.environ.get(DB_PATH_ENV) or DEFAULT_DB_PATH


def _registration(row: sqlite3.Row) -> NotificationRegistration:
    return NotificationRegistration(
        id=int(row["id"]),
        target=TargetKind(row["notify"]),
        command=row["command"],
        match=row["match_string"],
        method=DeliveryMethod(row["method"]),
        time_logged=int(row["time_logged"]),
        time_last_update=int(row["time_last_update"]),
    )


def _event(row: sqlite3.Row) -> ServiceEvent:
    return ServiceEvent(
        id=int(row["id"]),
        time_logged=int(row["time_logged"]),
        time_event=int(row["time_event"]),
        type=int(row["type"]),
        severity=int(row["severity"]),
        serviceable=bool(row["serviceable"]),
        closed=bool(row["closed"]),
        repair=row["repair"],
        location=row["location"],
        refcode=row["refcode"],
        description=row["description"],
    )


class Store:
    """
    SQLite-backed servicelog.

    Usable as a context manager; the connection is closed on exit
    whether or not the body raised.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._db: Optional[sqlite3.Connection] = None

    def __enter__(self) -> "Store":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._db is not None

    def open(self) -> "Store":
        """Connect and create the schema if needed."""
        if self._db is not None:
            return self
        try:
            conn = sqlite3.connect(self.db_path, timeout=30)
        except sqlite3.Error as e:
            raise StoreError(f"{self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            conn.close()
            raise StoreError(f"{self.db_path}: {e}") from e
        self._db = conn
        logger.debug("opened servicelog %s", self.db_path)
        return self

    def close(self) -> None:
        if self._db is None:
            return
        self._db.close()
        self._db = None
        logger.debug("closed servicelog %s", self.db_path)

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        """Run one transaction; sqlite errors become StoreError."""
        if self._db is None:
            raise StoreError("servicelog is not open")
        try:
            with self._db:
                yield self._db
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e

    # === Notification tools ===

    def notify_create(self, reg: NotificationRegistration) -> int:
        """Register a notification tool. Returns its new id."""
        t = now_i()
        with self._conn() as conn:
            cursor = conn.execute(
                """INSERT INTO notifications
                   (time_logged, time_last_update, notify, command, method, match_string)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (t, t, int(reg.target), reg.command, int(reg.method), reg.match),
            )
            new_id = cursor.lastrowid or 0
        logger.debug("registered %s notification %d for %s",
                     reg.target.label, new_id, reg.command)
        return new_id

    def notify_get(self, notify_id: int) -> Optional[NotificationRegistration]:
        """Retrieve a notification tool by id, or None."""
        with self._conn() as conn:
            row = conn.execute(
                "SELECT * FROM notifications WHERE id = ?", (notify_id,)
            ).fetchone()
        return _registration(row) if row else None

    def notify_query(self, predicate: str) -> List[NotificationRegistration]:
        """
        Notification tools matching `predicate`, ordered by id.

        The predicate is an SQL WHERE clause over the notifications table;
        an empty predicate matches everything.
        """
        sql = "SELECT * FROM notifications"
        if predicate.strip():
            sql += f" WHERE {predicate}"
        sql += " ORDER BY id"
        with self._conn() as conn:
            rows = conn.execute(sql).fetchall()
        return [_registration(r) for r in rows]

    def notify_delete(self, notify_id: int) -> None:
        """Delete a notification tool."""
        with self._conn() as conn:
            cursor = conn.execute(
                "DELETE FROM notifications WHERE id = ?", (notify_id,)
            )
            if cursor.rowcount == 0:
                raise StoreError(f"no notification tool with id {notify_id}")
        logger.debug("deleted notification %d", notify_id)

    # === Events ===

    def event_log(self, event: ServiceEvent) -> int:
        """Log a serviceable event. Returns its new id."""
        with self._conn() as conn:
            cursor = conn.execute(
                """INSERT INTO events
                   (time_logged, time_event, type, severity, serviceable, closed,
                    repair, location, refcode, description)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    now_i(), event.time_event, event.type, event.severity,
                    1 if event.serviceable else 0, 1 if event.closed else 0,
                    event.repair, event.location, event.refcode, event.description,
                ),
            )
            return cursor.lastrowid or 0

    def event_get(self, event_id: int) -> Optional[ServiceEvent]:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT * FROM events WHERE id = ?", (event_id,)
            ).fetchone()
        return _event(row) if row else None

    # === Repair actions ===

    def repair_log(
        self, action: RepairAction
    ) -> Tuple[RepairAction, List[ServiceEvent]]:
        """
        Log a repair action and close the open serviceable events at its
        location. Returns the stored action and the events it closed.
        """
        t = now_i()
        with self._conn() as conn:
            cursor = conn.execute(
                """INSERT INTO repair_actions
                   (time_logged, time_repair, procedure, location, notes)
                   VALUES (?, ?, ?, ?, ?)""",
                (t, action.time_repair, action.procedure, action.location,
                 action.notes),
            )
            repair_id = cursor.lastrowid or 0
            rows = conn.execute(
                """SELECT * FROM events
                   WHERE location = ? AND serviceable = 1 AND closed = 0
                   ORDER BY id""",
                (action.location,),
            ).fetchall()
            conn.execute(
                """UPDATE events SET closed = 1, repair = ?
                   WHERE location = ? AND serviceable = 1 AND closed = 0""",
                (repair_id, action.location),
            )
        repaired = [replace(_event(r), closed=True, repair=repair_id) for r in rows]
        logger.debug("repair action %d closed %d events at %s",
                     repair_id, len(repaired), action.location)
        return replace(action, id=repair_id, time_logged=t), repaired
