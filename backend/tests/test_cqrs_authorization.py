"""Tests for bus registration, dispatch, and per-handler authorization."""

from __future__ import annotations

import unittest
from dataclasses import dataclass

from sqlalchemy.exc import OperationalError

from helpers import build_engine, seed_project, stub_factory
from lokal.config import Settings
from lokal.cqrs import messages
from lokal.cqrs.bus import CommandBus, QueryBus
from lokal.cqrs.container import build_buses
from lokal.errors import ForbiddenError, LokalError, NotFoundError
from lokal.services.branches import create_branch, create_key, list_branch_keys


@dataclass(frozen=True, slots=True)
class _Ping(messages.Command):
    pass


class BusRegistryTests(unittest.TestCase):
    def test_built_registries_are_frozen(self) -> None:
        buses = build_buses(Settings(), text_client_factory=stub_factory(None))

        self.assertTrue(buses.commands.frozen)
        self.assertTrue(buses.queries.frozen)
        self.assertTrue(buses.commands.handles(messages.MergeBranches))
        self.assertTrue(buses.queries.handles(messages.ValidateIcuSyntax))
        with self.assertRaises(RuntimeError):
            buses.commands.register(_Ping, lambda db, message: None)

    def test_register_rejects_wrong_kind_and_duplicates(self) -> None:
        commands = CommandBus()
        commands.register(_Ping, lambda db, message: "pong")

        with self.assertRaises(ValueError):
            commands.register(_Ping, lambda db, message: "again")
        with self.assertRaises(TypeError):
            commands.register(messages.GetBranchDiff, lambda db, message: None)
        with self.assertRaises(TypeError):
            QueryBus().register(_Ping, lambda db, message: None)

    def test_unregistered_message_is_rejected(self) -> None:
        with self.assertRaises(LokalError):
            CommandBus().execute(None, _Ping(actor_id=1))

    def test_database_errors_become_internal_errors(self) -> None:
        engine, SessionLocal = build_engine()
        commands = CommandBus()

        def broken(db, message):  # noqa: ANN001, ANN202
            raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

        commands.register(_Ping, broken)
        with SessionLocal() as db:
            with self.assertRaises(LokalError) as raised:
                commands.execute(db, _Ping(actor_id=1))
        engine.dispose()

        self.assertEqual(raised.exception.code, "internal_error")
        self.assertEqual(raised.exception.message, "Database operation failed")


class HandlerAuthorizationTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.engine, cls.SessionLocal = build_engine()
        cls.buses = build_buses(Settings(), text_client_factory=stub_factory(None))
        with cls.SessionLocal() as db:
            cls.seed = seed_project(db)
            main = create_branch(db, space_id=cls.seed.space_id, name="main", actor_id=cls.seed.owner_id)
            create_key(db, branch_id=main.id, name="greeting", translations={"en": "Hello", "de": "Hallo"})
            feature = create_branch(
                db, space_id=cls.seed.space_id, name="feature", actor_id=cls.seed.developer_id, source_branch_id=main.id
            )
            key = list_branch_keys(db, feature.id)[0]
            cls.main_id = main.id
            cls.feature_id = feature.id
            cls.key_id = key.id
            cls.translation_id = next(item.id for item in key.translations if item.language == "de")

    @classmethod
    def tearDownClass(cls) -> None:
        cls.engine.dispose()

    def setUp(self) -> None:
        self.db = self.SessionLocal()

    def tearDown(self) -> None:
        self.db.close()

    def test_developer_cannot_update_quality_config(self) -> None:
        command = messages.UpdateQualityConfig(
            actor_id=self.seed.developer_id,
            project_id=self.seed.project_id,
            changes={"flag_threshold": 55},
        )

        with self.assertRaises(ForbiddenError):
            self.buses.commands.execute(self.db, command)

        config = self.buses.queries.ask(
            self.db, messages.GetQualityConfig(actor_id=self.seed.developer_id, project_id=self.seed.project_id)
        )
        self.assertEqual(config["flag_threshold"], 60)

    def test_manager_and_owner_can_update_quality_config(self) -> None:
        for actor_id, threshold in ((self.seed.manager_id, 55), (self.seed.owner_id, 65)):
            with self.subTest(actor_id=actor_id):
                config = self.buses.commands.execute(
                    self.db,
                    messages.UpdateQualityConfig(
                        actor_id=actor_id,
                        project_id=self.seed.project_id,
                        changes={"flag_threshold": threshold},
                    ),
                )
                self.assertEqual(config["flag_threshold"], threshold)

    def test_non_member_is_rejected_everywhere(self) -> None:
        outsider = self.seed.outsider_id
        rejected = [
            (self.buses.commands, messages.CreateBranch(actor_id=outsider, space_id=self.seed.space_id, name="x")),
            (self.buses.commands, messages.CreateTranslationKey(actor_id=outsider, branch_id=self.feature_id, name="x")),
            (self.buses.commands, messages.UpdateTranslation(actor_id=outsider, translation_id=self.translation_id, value="x")),
            (self.buses.commands, messages.EvaluateQuality(actor_id=outsider, translation_id=self.translation_id)),
            (self.buses.commands, messages.EvaluateKeyQuality(actor_id=outsider, key_id=self.key_id)),
            (self.buses.commands, messages.QueueBatchEvaluation(actor_id=outsider, branch_id=self.feature_id)),
            (
                self.buses.commands,
                messages.MergeBranches(actor_id=outsider, source_branch_id=self.main_id, target_branch_id=self.feature_id),
            ),
            (
                self.buses.queries,
                messages.GetBranchDiff(actor_id=outsider, source_branch_id=self.feature_id, target_branch_id=self.main_id),
            ),
            (self.buses.queries, messages.GetCachedQualityScore(actor_id=outsider, translation_id=self.translation_id)),
            (self.buses.queries, messages.GetBranchQualitySummary(actor_id=outsider, branch_id=self.feature_id)),
            (self.buses.queries, messages.GetKeyQualityIssues(actor_id=outsider, key_id=self.key_id)),
            (self.buses.queries, messages.GetQualityConfig(actor_id=outsider, project_id=self.seed.project_id)),
            (self.buses.queries, messages.ListProjectActivity(actor_id=outsider, project_id=self.seed.project_id)),
        ]
        for bus, message in rejected:
            with self.subTest(message=type(message).__name__):
                with self.assertRaises(ForbiddenError):
                    bus.dispatch(self.db, message)

    def test_developer_cannot_merge_into_default_branch(self) -> None:
        with self.assertRaises(ForbiddenError):
            self.buses.commands.execute(
                self.db,
                messages.MergeBranches(
                    actor_id=self.seed.developer_id,
                    source_branch_id=self.feature_id,
                    target_branch_id=self.main_id,
                ),
            )

    def test_member_queries_succeed(self) -> None:
        developer = self.seed.developer_id

        diff = self.buses.queries.ask(
            self.db,
            messages.GetBranchDiff(actor_id=developer, source_branch_id=self.feature_id, target_branch_id=self.main_id),
        )
        summary = self.buses.queries.ask(
            self.db, messages.GetBranchQualitySummary(actor_id=developer, branch_id=self.feature_id)
        )
        cached = self.buses.queries.ask(
            self.db, messages.GetCachedQualityScore(actor_id=developer, translation_id=self.translation_id)
        )
        activity = self.buses.queries.ask(
            self.db, messages.ListProjectActivity(actor_id=developer, project_id=self.seed.project_id, type="branch_create")
        )

        self.assertTrue(diff.changes.is_empty)
        self.assertEqual(summary.total_translations, 2)
        self.assertIsNone(cached)
        self.assertEqual([event.branch_id for event in activity], [self.feature_id, self.main_id])

    def test_icu_validation_needs_no_project(self) -> None:
        result = self.buses.queries.ask(self.db, messages.ValidateIcuSyntax(actor_id=self.seed.outsider_id, text="Hi {x"))

        self.assertFalse(result.valid)

    def test_missing_resources_are_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            self.buses.queries.ask(self.db, messages.GetQualityConfig(actor_id=self.seed.owner_id, project_id=999_999))
        with self.assertRaises(NotFoundError):
            self.buses.commands.execute(
                self.db, messages.EvaluateQuality(actor_id=self.seed.owner_id, translation_id=999_999)
            )


if __name__ == "__main__":
    unittest.main()
