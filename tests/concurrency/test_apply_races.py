"""
Concurrency tests for optimistic version control.

For a given starting version at most one apply succeeds; every loser
observes VERSION_CONFLICT and leaves exactly one rejected audit entry.
Threads run against the in-memory backend, whose commit re-checks
versions under its lock.  The SQL conditional UPDATE is raced on a
file-backed SQLite database, where each session has its own connection.
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest

from sqlalchemy.orm import sessionmaker

from docflow_kernel.db.engine import build_engine, create_tables, drop_tables
from docflow_kernel.domain.workflow import AuditOutcome, ReasonCode
from docflow_kernel.services.unit_of_work import SqlUnitOfWork
from docflow_services.workflow_engine import WorkflowEngine

pytestmark = pytest.mark.slow_locks


class TestSameVersionRace:

    @pytest.mark.parametrize("num_threads", [2, 8, 32])
    def test_exactly_one_winner(self, memory_engine, drive, num_threads):
        drive(memory_engine, "vendor_invoice", "VI-R")
        barrier = Barrier(num_threads)

        def attempt(i):
            barrier.wait()
            return memory_engine.apply(
                "vendor_invoice", "VI-R", "ready_for_processing", f"vendor-{i}", "vendor", 0,
            )

        with ThreadPoolExecutor(max_workers=num_threads) as executor:
            results = list(executor.map(attempt, range(num_threads)))

        winners = [r for r in results if r.success]
        assert len(winners) == 1
        assert all(r.reason_code == ReasonCode.VERSION_CONFLICT for r in results if not r.success)

        doc = memory_engine.get_document("vendor_invoice", "VI-R")
        assert (doc.current_state, doc.version) == ("ready_for_processing", 1)

        entries = memory_engine.list_audit("vendor_invoice", "VI-R")
        assert len(entries) == num_threads
        assert sum(1 for e in entries if e.outcome == AuditOutcome.APPLIED) == 1
        assert memory_engine.verify_audit_chain() == num_threads

    def test_competing_targets_from_same_state(self, memory_engine, drive):
        """HR approving and HR rejecting the same request: one outcome sticks."""
        drive(memory_engine, "profile_change", "PC-R")
        barrier = Barrier(2)

        def attempt(to_state):
            barrier.wait()
            return memory_engine.apply("profile_change", "PC-R", to_state, f"hr-{to_state}", "hr", 0)

        with ThreadPoolExecutor(max_workers=2) as executor:
            results = list(executor.map(attempt, ["approved", "rejected"]))

        (winner,) = [r for r in results if r.success]
        doc = memory_engine.get_document("profile_change", "PC-R")
        assert doc.current_state == winner.document.current_state
        assert doc.version == 1


class TestDistinctDocuments:

    def test_independent_documents_all_succeed(self, memory_engine, drive):
        ids = [f"PC-{i}" for i in range(20)]
        for doc_id in ids:
            drive(memory_engine, "profile_change", doc_id)

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(
                lambda doc_id: memory_engine.apply("profile_change", doc_id, "approved", "hr-1", "hr", 0),
                ids,
            ))

        assert all(r.success for r in results)
        assert memory_engine.verify_audit_chain() == len(ids)
        seqs = [e.seq for e in memory_engine.list_audit_by_actor("hr-1")]
        assert seqs == sorted(seqs) == list(range(1, len(ids) + 1))


class TestLostRace:

    def test_interleaved_commit_rolls_back_applied_entry(
        self, memory_backend, transition_table, deterministic_clock, drive,
    ):
        """A write that loses at commit leaves only a rejected entry behind."""
        plain = WorkflowEngine(transition_table, memory_backend.unit_of_work, clock=deterministic_clock)
        drive(plain, "vendor_invoice", "VI-L")
        interleaved = []

        def racing_unit():
            uow = memory_backend.unit_of_work()
            commit = uow.commit

            def commit_after_competitor():
                if not interleaved:
                    interleaved.append(
                        plain.apply("vendor_invoice", "VI-L", "ready_for_processing", "vendor-2", "vendor", 0)
                    )
                commit()

            uow.commit = commit_after_competitor
            return uow

        racing = WorkflowEngine(transition_table, racing_unit, clock=deterministic_clock)
        result = racing.apply("vendor_invoice", "VI-L", "ready_for_processing", "vendor-1", "vendor", 0)

        assert interleaved[0].success
        assert result.reason_code == ReasonCode.VERSION_CONFLICT
        entries = plain.list_audit("vendor_invoice", "VI-L")
        assert [(e.actor_id, e.outcome) for e in entries] == [
            ("vendor-2", AuditOutcome.APPLIED),
            ("vendor-1", AuditOutcome.REJECTED),
        ]
        assert plain.get_document("vendor_invoice", "VI-L").version == 1

    def test_sql_conditional_write_loses_to_committed_competitor(
        self, tmp_path, transition_table, deterministic_clock, drive,
    ):
        """The UPDATE ... WHERE version matches nothing once a competitor committed."""
        db = build_engine(f"sqlite:///{tmp_path / 'race.db'}")
        create_tables(db)
        sessions = sessionmaker(bind=db, expire_on_commit=False)
        plain = WorkflowEngine(transition_table, SqlUnitOfWork.factory(sessions), clock=deterministic_clock)
        drive(plain, "vendor_invoice", "VI-S")
        interleaved = []

        class CompetitorFirstUnit(SqlUnitOfWork):
            def __enter__(self):
                super().__enter__()
                write = self.documents.conditional_write

                def write_after_competitor(*args):
                    if not interleaved:
                        interleaved.append(plain.apply(
                            "vendor_invoice", "VI-S", "ready_for_processing", "vendor-2", "vendor", 0,
                        ))
                    return write(*args)

                self.documents.conditional_write = write_after_competitor
                return self

        try:
            racing = WorkflowEngine(
                transition_table, CompetitorFirstUnit.factory(sessions), clock=deterministic_clock,
            )
            result = racing.apply("vendor_invoice", "VI-S", "ready_for_processing", "vendor-1", "vendor", 0)

            assert interleaved[0].success
            assert result.reason_code == ReasonCode.VERSION_CONFLICT
            entries = plain.list_audit("vendor_invoice", "VI-S")
            assert [(e.actor_id, e.outcome) for e in entries] == [
                ("vendor-2", AuditOutcome.APPLIED),
                ("vendor-1", AuditOutcome.REJECTED),
            ]
            assert entries[1].reason_code == ReasonCode.VERSION_CONFLICT
            assert plain.get_document("vendor_invoice", "VI-S").version == 1
            assert plain.verify_audit_chain() == 2
        finally:
            drop_tables(db)
            db.dispose()
