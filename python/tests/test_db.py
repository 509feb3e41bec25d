"""Tests for servicelog.db module."""

import os
import tempfile
import unittest
from unittest.mock import patch

from servicelog.db import Store, default_db_path, DEFAULT_DB_PATH
from servicelog.errors import StoreError
from servicelog.models import (
    DeliveryMethod,
    NotificationRegistration,
    RepairAction,
    ServiceEvent,
    TargetKind,
)


class TestStore(unittest.TestCase):
    """Test Store operations."""

    def setUp(self) -> None:
        self.tmp = tempfile.NamedTemporaryFile(delete=False, suffix=".db")
        self.tmp.close()
        self.db_path = self.tmp.name
        self.store = Store(self.db_path)
        self.store.open()

    def tearDown(self) -> None:
        self.store.close()
        try:
            os.unlink(self.db_path)
        except OSError:
            pass

    def _reg(self, command: str = "/bin/true", **kw) -> NotificationRegistration:
        return NotificationRegistration(
            target=kw.pop("target", TargetKind.EVENTS), command=command, **kw
        )

    def test_create_and_get_registration(self) -> None:
        """Registration can be created and retrieved."""
        new_id = self.store.notify_create(self._reg(
            match="severity>=5", method=DeliveryMethod.TEXT_STDIN,
        ))
        self.assertGreater(new_id, 0)

        reg = self.store.notify_get(new_id)
        self.assertIsNotNone(reg)
        self.assertEqual(reg.id, new_id)
        self.assertEqual(reg.target, TargetKind.EVENTS)
        self.assertEqual(reg.command, "/bin/true")
        self.assertEqual(reg.match, "severity>=5")
        self.assertEqual(reg.method, DeliveryMethod.TEXT_STDIN)
        self.assertIsNotNone(reg.time_logged)

    def test_get_nonexistent_registration(self) -> None:
        """Getting a nonexistent registration returns None."""
        self.assertIsNone(self.store.notify_get(42))

    def test_query_all_ordered_by_id(self) -> None:
        """id>0 returns every registration in id order."""
        first = self.store.notify_create(self._reg("/bin/a"))
        second = self.store.notify_create(
            self._reg("/bin/b", target=TargetKind.REPAIR_ACTIONS)
        )
        regs = self.store.notify_query("id>0")
        self.assertEqual([r.id for r in regs], [first, second])
        self.assertEqual(regs[1].target, TargetKind.REPAIR_ACTIONS)

    def test_empty_predicate_matches_all(self) -> None:
        self.store.notify_create(self._reg("/bin/a"))
        self.store.notify_create(self._reg("/bin/b"))
        self.assertEqual(len(self.store.notify_query("")), 2)

    def test_query_by_command(self) -> None:
        self.store.notify_create(self._reg("/bin/a"))
        b = self.store.notify_create(self._reg("/bin/b"))
        regs = self.store.notify_query("command = '/bin/b'")
        self.assertEqual([r.id for r in regs], [b])

    def test_bad_predicate_is_store_error(self) -> None:
        with self.assertRaises(StoreError):
            self.store.notify_query("no_such_column = 1")

    def test_delete(self) -> None:
        new_id = self.store.notify_create(self._reg())
        self.store.notify_delete(new_id)
        self.assertIsNone(self.store.notify_get(new_id))

    def test_delete_missing_is_store_error(self) -> None:
        with self.assertRaises(StoreError):
            self.store.notify_delete(99)

    def test_closed_store_raises(self) -> None:
        self.store.close()
        with self.assertRaises(StoreError):
            self.store.notify_query("")

    def test_context_manager_closes(self) -> None:
        store = Store(self.db_path)
        with store as s:
            self.assertTrue(s.is_open)
        self.assertFalse(store.is_open)

    def test_context_manager_closes_on_error(self) -> None:
        store = Store(self.db_path)
        with self.assertRaises(RuntimeError):
            with store:
                raise RuntimeError("boom")
        self.assertFalse(store.is_open)

    def test_open_unreachable_path(self) -> None:
        store = Store(os.path.join(self.db_path, "missing", "servicelog.db"))
        with self.assertRaises(StoreError):
            store.open()
        self.assertFalse(store.is_open)

    def test_repair_closes_open_serviceable_events(self) -> None:
        """A repair action closes open serviceable events at its location."""
        hit = self.store.event_log(ServiceEvent(
            time_event=1000, type=2, severity=5, description="fan failure",
            location="U78A9.001", serviceable=True,
        ))
        informational = self.store.event_log(ServiceEvent(
            time_event=1000, type=2, severity=2, description="info",
            location="U78A9.001", serviceable=False,
        ))
        elsewhere = self.store.event_log(ServiceEvent(
            time_event=1000, type=2, severity=5, description="disk",
            location="U78A9.002", serviceable=True,
        ))

        logged, repaired = self.store.repair_log(RepairAction(
            location="U78A9.001", procedure="replace fan", time_repair=2000,
        ))
        self.assertGreater(logged.id, 0)
        self.assertEqual([e.id for e in repaired], [hit])
        self.assertTrue(repaired[0].closed)
        self.assertEqual(repaired[0].repair, logged.id)

        self.assertTrue(self.store.event_get(hit).closed)
        self.assertFalse(self.store.event_get(informational).closed)
        self.assertFalse(self.store.event_get(elsewhere).closed)

        # Nothing left to close the second time
        _, again = self.store.repair_log(RepairAction(
            location="U78A9.001", procedure="replace fan", time_repair=3000,
        ))
        self.assertEqual(again, [])


class TestDefaultPath(unittest.TestCase):

    def test_env_overrides_default(self) -> None:
        with patch.dict(os.environ, {"SERVICELOG_DB": "/tmp/x.db"}):
            self.assertEqual(default_db_path(), "/tmp/x.db")

    def test_default(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            self.assertEqual(default_db_path(), DEFAULT_DB_PATH)


if __name__ == "__main__":
    unittest.main()
