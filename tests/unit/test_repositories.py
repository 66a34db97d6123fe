"""
Tests for the MongoDB repositories in placement_matching.data.repositories.

A MagicMock database manager stands in for PyMongo, so these tests check
the queries and updates each repository issues rather than server behavior.
"""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError

from placement_matching.data.models import (
    CandidateScope,
    MatchScoreBreakdown,
    MatchScoreRecord,
    PairScope,
    RecomputationTask,
    RunAuditLog,
)
from placement_matching.data.repositories import (
    MatchScoreRepository,
    MongoOpportunityService,
    MongoProfileService,
    QueueRepository,
    RunLogRepository,
)
from placement_matching.data.repositories.queue_repository import CLAIM_SORT
from placement_matching.utils.constants import RunType, TaskStatus


@pytest.fixture
def collection():
    return MagicMock()


@pytest.fixture
def db_manager(collection):
    manager = MagicMock()
    manager.get_collection.return_value = collection
    manager.use_transactions = False
    return manager


def _task_document(status="processing", **overrides):
    document = RecomputationTask(scope=CandidateScope(candidate_id="c1")).model_dump_mongo()
    document.update({"_id": ObjectId(), "status": status}, **overrides)
    return document


def _record_document(candidate_id="c1", opportunity_id="o1", total=0.5):
    document = MatchScoreRecord.from_breakdown(
        candidate_id, opportunity_id, MatchScoreBreakdown(total_score=total)
    ).model_dump_mongo()
    document["_id"] = ObjectId()
    return document


# ── QueueRepository ──────────────────────────────────────────────────────────


class TestQueueRepository:
    def test_collection_name(self, db_manager, collection):
        collection.find_one.return_value = None
        QueueRepository(db_manager).get(str(ObjectId()))
        db_manager.get_collection.assert_called_with("recomputation_queue")

    def test_enqueue_inserts_pending_task(self, db_manager, collection):
        inserted_id = ObjectId()
        collection.insert_one.return_value.inserted_id = inserted_id

        task = QueueRepository(db_manager).enqueue(
            RecomputationTask(scope=PairScope(candidate_id="c1", opportunity_id="o1"), priority=4)
        )

        document = collection.insert_one.call_args.args[0]
        assert document["status"] == "pending"
        assert document["scope"] == {"kind": "pair", "candidate_id": "c1", "opportunity_id": "o1"}
        assert document["priority"] == 4
        assert "_id" not in document
        assert task.id == inserted_id

    def test_claim_batch_uses_conditional_updates(self, db_manager, collection):
        collection.find_one_and_update.side_effect = [_task_document(), _task_document(), None]

        claimed = QueueRepository(db_manager).claim_batch(5)

        assert len(claimed) == 2
        assert collection.find_one_and_update.call_count == 3
        call = collection.find_one_and_update.call_args_list[0]
        query, update = call.args
        assert query == {"status": "pending"}
        assert update["$set"]["status"] == "processing"
        assert "processed_at" in update["$set"]
        assert call.kwargs["sort"] == CLAIM_SORT

    def test_claim_order(self):
        assert CLAIM_SORT == [("priority", DESCENDING), ("created_at", ASCENDING), ("_id", ASCENDING)]

    def test_mark_completed_only_from_processing(self, db_manager, collection):
        task_id = ObjectId()
        collection.find_one_and_update.return_value = _task_document("completed", _id=task_id)

        task = QueueRepository(db_manager).mark_completed(str(task_id))

        query, update = collection.find_one_and_update.call_args.args
        assert query == {"_id": task_id, "status": "processing"}
        assert update["$set"]["status"] == "completed"
        assert task.status == TaskStatus.COMPLETED

    def test_mark_failed_pipeline_update(self, db_manager, collection):
        task_id = ObjectId()
        collection.find_one_and_update.return_value = _task_document("pending", attempts=1)

        QueueRepository(db_manager).mark_failed(str(task_id), "$boom")

        query, update = collection.find_one_and_update.call_args.args
        assert query == {"_id": task_id, "status": "processing"}
        assert isinstance(update, list)
        first, second = update
        assert first["$set"]["attempts"] == {"$add": ["$attempts", 1]}
        # Error text must not be read as a field path
        assert first["$set"]["error"] == {"$literal": "$boom"}
        assert second["$set"]["status"]["$cond"][1:] == ["pending", "failed"]

    def test_mark_failed_permanent(self, db_manager, collection):
        task_id = ObjectId()
        collection.find_one_and_update.return_value = _task_document("failed")

        QueueRepository(db_manager).mark_failed(str(task_id), "gone", permanent=True)

        _, update = collection.find_one_and_update.call_args.args
        assert update["$set"]["status"] == "failed"
        assert update["$set"]["error"] == "gone"
        assert "$add" not in str(update)

    def test_invalid_task_id(self, db_manager, collection):
        repo = QueueRepository(db_manager)
        assert repo.mark_failed("not-an-id", "boom") is None
        assert repo.mark_completed("not-an-id") is None
        collection.find_one_and_update.assert_not_called()

    def test_purge_older_than(self, db_manager, collection):
        collection.delete_many.return_value.deleted_count = 4

        removed = QueueRepository(db_manager).purge_older_than(timedelta(days=7))

        query = collection.delete_many.call_args.args[0]
        assert query["status"] == {"$in": ["completed", "failed"]}
        assert "$lt" in query["created_at"]
        assert removed == 4

    def test_count_windows_on_status_timestamp(self, db_manager, collection):
        collection.count_documents.return_value = 2
        repo = QueueRepository(db_manager)
        since = datetime(2024, 6, 1)

        repo.count(TaskStatus.COMPLETED, since=since)
        assert collection.count_documents.call_args.args[0] == {
            "status": "completed",
            "completed_at": {"$gte": since},
        }

        repo.count(TaskStatus.FAILED, since=since)
        assert collection.count_documents.call_args.args[0] == {
            "status": "failed",
            "processed_at": {"$gte": since},
        }

        assert repo.count(TaskStatus.PENDING) == 2
        assert collection.count_documents.call_args.args[0] == {"status": "pending"}

    def test_oldest_pending(self, db_manager, collection):
        collection.find_one.return_value = None
        assert QueueRepository(db_manager).oldest_pending() is None
        assert collection.find_one.call_args.args[0] == {"status": "pending"}


# ── MatchScoreRepository ─────────────────────────────────────────────────────


class TestMatchScoreRepository:
    def test_upsert_pair(self, db_manager, collection):
        collection.find_one_and_update.return_value = _record_document(total=0.7)

        record = MatchScoreRepository(db_manager).upsert_pair(
            "c1", "o1", MatchScoreBreakdown(total_score=0.7)
        )

        call = collection.find_one_and_update.call_args
        query, update = call.args
        assert query == {"candidate_id": "c1", "opportunity_id": "o1"}
        assert update["$set"]["total_score"] == 0.7
        assert "created_at" not in update["$set"]
        assert "created_at" in update["$setOnInsert"]
        assert call.kwargs["upsert"] is True
        assert record.total_score == 0.7

    def test_upsert_retries_after_duplicate_key(self, db_manager, collection):
        collection.find_one_and_update.side_effect = [
            DuplicateKeyError("E11000 duplicate key"),
            _record_document(),
        ]

        record = MatchScoreRepository(db_manager).upsert_pair("c1", "o1", MatchScoreBreakdown())

        assert collection.find_one_and_update.call_count == 2
        assert record.candidate_id == "c1"

    def test_bulk_replace_without_transaction(self, db_manager, collection):
        written = MatchScoreRepository(db_manager).bulk_replace_for_candidate(
            "c1", {"o1": MatchScoreBreakdown(), "o2": MatchScoreBreakdown()}
        )

        assert written == 2
        collection.delete_many.assert_called_once_with({"candidate_id": "c1"}, session=None)
        documents = collection.insert_many.call_args.args[0]
        assert [d["opportunity_id"] for d in documents] == ["o1", "o2"]
        assert collection.insert_many.call_args.kwargs["session"] is None

    def test_bulk_replace_in_transaction(self, db_manager, collection):
        db_manager.use_transactions = True
        session = MagicMock()
        session.with_transaction.side_effect = lambda callback: callback(session)
        db_manager.session.return_value.__enter__.return_value = session

        MatchScoreRepository(db_manager).bulk_replace_for_opportunity(
            "o1", {"c1": MatchScoreBreakdown()}
        )

        session.with_transaction.assert_called_once()
        collection.delete_many.assert_called_once_with({"opportunity_id": "o1"}, session=session)
        assert collection.insert_many.call_args.kwargs["session"] is session

    def test_bulk_replace_empty_skips_insert(self, db_manager, collection):
        assert MatchScoreRepository(db_manager).bulk_replace_for_candidate("c1", {}) == 0
        collection.delete_many.assert_called_once()
        collection.insert_many.assert_not_called()

    def test_top_for_opportunity_ranks_results(self, db_manager, collection):
        cursor = collection.find.return_value.sort.return_value.limit
        cursor.return_value = [
            _record_document("c2", "o1", 0.9),
            _record_document("c1", "o1", 0.4),
        ]

        ranked = MatchScoreRepository(db_manager).top_for_opportunity("o1", limit=5)

        assert [(m.rank, m.candidate_id) for m in ranked] == [(1, "c2"), (2, "c1")]
        collection.find.assert_called_once_with({"opportunity_id": "o1"})
        collection.find.return_value.sort.assert_called_once_with(
            [("total_score", DESCENDING), ("_id", ASCENDING)]
        )
        cursor.assert_called_once_with(5)

    def test_average_total_score(self, db_manager, collection):
        repo = MatchScoreRepository(db_manager)
        collection.aggregate.return_value = [{"_id": None, "average": 0.55}]
        assert repo.average_total_score() == 0.55
        collection.aggregate.return_value = []
        assert repo.average_total_score() == 0.0

    def test_count_records_since(self, db_manager, collection):
        collection.count_documents.return_value = 3
        repo = MatchScoreRepository(db_manager)
        since = datetime(2024, 6, 1)

        assert repo.count_records(since=since) == 3
        collection.count_documents.assert_called_with({"computed_at": {"$gte": since}})


# ── RunLogRepository ─────────────────────────────────────────────────────────


class TestRunLogRepository:
    def test_append(self, db_manager, collection):
        collection.insert_one.return_value.inserted_id = ObjectId()

        entry = RunLogRepository(db_manager).append(
            RunAuditLog(run_type=RunType.MANUAL_TRIGGER, input_count=2, output_count=2)
        )

        document = collection.insert_one.call_args.args[0]
        assert document["run_type"] == "MANUAL_TRIGGER"
        assert document["metadata"]["version"] == "1.0"
        assert entry.id is not None
        db_manager.get_collection.assert_called_with("matching_runs")

    def test_recent_newest_first(self, db_manager, collection):
        collection.find.return_value.sort.return_value.limit.return_value = []
        RunLogRepository(db_manager).recent(5)
        collection.find.return_value.sort.assert_called_once_with(
            [("created_at", DESCENDING), ("_id", DESCENDING)]
        )


# ── Profile sources ──────────────────────────────────────────────────────────


class TestProfileSources:
    def test_candidate_by_object_id(self, db_manager, collection):
        oid = ObjectId()
        collection.find_one.return_value = {"_id": oid, "academic": {"gpa": 3.1}}

        candidate = MongoProfileService(db_manager).get_candidate(str(oid))

        assert collection.find_one.call_args.args[0] == {"_id": {"$in": [str(oid), oid]}}
        assert candidate.id == str(oid)
        assert candidate.academic.gpa == 3.1

    def test_candidate_by_plain_id(self, db_manager, collection):
        collection.find_one.return_value = None
        assert MongoProfileService(db_manager).get_candidate("cand-7") is None
        assert collection.find_one.call_args.args[0] == {"_id": "cand-7"}

    def test_active_opportunities(self, db_manager, collection):
        collection.find.return_value = [
            {"_id": "o1", "title": "Data Analyst", "job_types": ["Internship"]},
        ]

        opportunities = MongoOpportunityService(db_manager).get_all_active_opportunities()

        collection.find.assert_called_once_with({"is_active": True})
        assert [o.title for o in opportunities] == ["Data Analyst"]
        db_manager.get_collection.assert_called_with("opportunity_profiles")
