"""Tests for servicelog.registrations module."""

import logging
import os
import stat
import tempfile
import unittest
from unittest.mock import MagicMock, patch

from servicelog.actions import Action, exactly
from servicelog.db import Store
from servicelog.errors import PartialRegistrationError, StoreError, UsageError
from servicelog.models import DeliveryMethod, TargetKind
from servicelog.registrations import plan_registrations, register, target_kinds
from servicelog.request import build_request


class RegistrationTestCase(unittest.TestCase):

    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        self.command = os.path.join(self.tmpdir.name, "notify.sh")
        with open(self.command, "w") as f:
            f.write("#!/bin/sh\ncat >/dev/null\n")
        os.chmod(self.command, stat.S_IRWXU)

    def tearDown(self) -> None:
        self.tmpdir.cleanup()

    def add(self, **kwargs):
        kwargs.setdefault("command", self.command)
        return build_request(exactly(Action.ADD), **kwargs)


class TestTargetKinds(RegistrationTestCase):

    def test_default_is_events(self) -> None:
        self.assertEqual(target_kinds(self.add()), [TargetKind.EVENTS])

    def test_type_tokens(self) -> None:
        self.assertEqual(target_kinds(self.add(type_expr="REPAIR")),
                         [TargetKind.REPAIR_ACTIONS])
        self.assertEqual(target_kinds(self.add(type_expr="REPAIR|EVENT")),
                         [TargetKind.EVENTS, TargetKind.REPAIR_ACTIONS])

    def test_repair_action_flag(self) -> None:
        self.assertEqual(target_kinds(self.add(repair_action="yes")),
                         [TargetKind.REPAIR_ACTIONS])
        self.assertEqual(target_kinds(self.add(repair_action="no")),
                         [TargetKind.EVENTS])
        self.assertEqual(target_kinds(self.add(repair_action="all")),
                         [TargetKind.EVENTS, TargetKind.REPAIR_ACTIONS])

    def test_serviceable_selects_events(self) -> None:
        self.assertEqual(
            target_kinds(self.add(repair_action="yes", serviceable="yes")),
            [TargetKind.EVENTS, TargetKind.REPAIR_ACTIONS],
        )
        self.assertEqual(
            target_kinds(self.add(repair_action="yes", serviceable="no")),
            [TargetKind.REPAIR_ACTIONS],
        )


class TestPlanRegistrations(RegistrationTestCase):

    def test_event_only_with_no_filters(self) -> None:
        planned = plan_registrations(self.add(type_expr="EVENT"))
        self.assertEqual(len(planned), 1)
        self.assertIs(planned[0].target, TargetKind.EVENTS)
        self.assertEqual(planned[0].match, "")
        self.assertEqual(planned[0].command, self.command)

    def test_split_keeps_repair_predicate_empty(self) -> None:
        planned = plan_registrations(self.add(
            repair_action="all", severity="5", serviceable="yes",
            type_expr="os", method="text_stdin",
        ))
        self.assertEqual([p.target for p in planned],
                         [TargetKind.EVENTS, TargetKind.REPAIR_ACTIONS])
        self.assertEqual(planned[0].match,
                         "severity>=5 and serviceable=1 and type=1")
        self.assertEqual(planned[1].match, "")
        for p in planned:
            self.assertIs(p.method, DeliveryMethod.TEXT_STDIN)
            self.assertIsNone(p.id)

    def test_match_overrides_for_events_only(self) -> None:
        with self.assertLogs("servicelog.registrations", "WARNING"):
            planned = plan_registrations(self.add(
                repair_action="all", severity="5", match="refcode='B1'",
            ))
        self.assertEqual(planned[0].match, "refcode='B1'")
        self.assertEqual(planned[1].match, "")

    def test_match_over_legacy_filters_warns(self) -> None:
        with self.assertLogs("servicelog.registrations", "WARNING") as cm:
            planned = plan_registrations(self.add(
                severity="3", type_expr="os", match="refcode='B1'",
            ))
        self.assertIn("replaces", "\n".join(cm.output))
        self.assertEqual([p.match for p in planned], ["refcode='B1'"])

    def test_match_alone_does_not_warn(self) -> None:
        logger = logging.getLogger("servicelog.registrations")
        with patch.object(logger, "warning") as warn:
            plan_registrations(self.add(match="refcode='B1'",
                                        serviceable="all"))
        warn.assert_not_called()

    def test_requires_command(self) -> None:
        with self.assertRaises(UsageError):
            plan_registrations(self.add(command=None))

    def test_rejects_id(self) -> None:
        with self.assertRaises(UsageError):
            plan_registrations(self.add(id_text="3"))


class TestRegister(RegistrationTestCase):

    def setUp(self) -> None:
        super().setUp()
        self.store = Store(os.path.join(self.tmpdir.name, "servicelog.db"))
        self.store.open()

    def tearDown(self) -> None:
        self.store.close()
        super().tearDown()

    def test_two_registrations_events_first(self) -> None:
        created = register(self.store, self.add(repair_action="all",
                                                severity="5"))
        self.assertEqual(len(created), 2)
        self.assertLess(created[0].id, created[1].id)

        stored = self.store.notify_query("id>0")
        self.assertEqual([(r.target, r.match) for r in stored], [
            (TargetKind.EVENTS, "severity>=5"),
            (TargetKind.REPAIR_ACTIONS, ""),
        ])

    def test_first_failure_is_plain_store_error(self) -> None:
        store = MagicMock()
        store.notify_create.side_effect = StoreError("database is locked")
        with self.assertRaises(StoreError) as cm:
            register(store, self.add(repair_action="all"))
        self.assertNotIsInstance(cm.exception, PartialRegistrationError)
        self.assertEqual(store.notify_create.call_count, 1)

    def test_second_failure_is_partial(self) -> None:
        store = MagicMock()
        store.notify_create.side_effect = [7, StoreError("disk full")]
        with self.assertRaises(PartialRegistrationError) as cm:
            register(store, self.add(repair_action="all"))
        err = cm.exception
        self.assertEqual([r.id for r in err.created], [7])
        self.assertIs(err.created[0].target, TargetKind.EVENTS)
        self.assertIs(err.failed, TargetKind.REPAIR_ACTIONS)
        self.assertIn("disk full", str(err))
        # no compensating delete
        store.notify_delete.assert_not_called()

    def test_partial_success_persists_first(self) -> None:
        real_create = self.store.notify_create
        calls = []

        def flaky(reg):
            calls.append(reg.target)
            if len(calls) == 2:
                raise StoreError("constraint failed")
            return real_create(reg)

        self.store.notify_create = flaky
        with self.assertRaises(PartialRegistrationError):
            register(self.store, self.add(type_expr="EVENT|REPAIR"))
        stored = self.store.notify_query("")
        self.assertEqual([r.target for r in stored], [TargetKind.EVENTS])


if __name__ == "__main__":
    unittest.main()
