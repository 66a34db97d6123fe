"""
Match score repository.

Stores one MatchScoreRecord per (candidate, opportunity) pair in the
`match_scores` collection, backed by a unique compound index.
"""

from datetime import datetime
from typing import Any, Mapping, Optional

from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from placement_matching.data.database import MATCH_SCORES_COLLECTION
from placement_matching.data.models import MatchScoreBreakdown, MatchScoreRecord, RankedMatch
from placement_matching.utils.constants import COMPUTE_VERSION
from placement_matching.utils.logger import get_logger

from .base import BaseRepository
from .interfaces import MatchScoreStore, rank_records

logger = get_logger(__name__)

# Highest score first; _id keeps insertion order among ties
RANKED_SORT = [("total_score", DESCENDING), ("_id", ASCENDING)]


class MatchScoreRepository(BaseRepository[MatchScoreRecord], MatchScoreStore):
    """MongoDB-backed match score store."""

    @property
    def collection_name(self) -> str:
        return MATCH_SCORES_COLLECTION

    @property
    def model_class(self) -> type[MatchScoreRecord]:
        return MatchScoreRecord

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def upsert_pair(
        self,
        candidate_id: str,
        opportunity_id: str,
        breakdown: MatchScoreBreakdown,
        compute_version: str = COMPUTE_VERSION,
    ) -> MatchScoreRecord:
        record = MatchScoreRecord.from_breakdown(
            candidate_id, opportunity_id, breakdown, compute_version
        )
        document = self._to_document(record)
        document.pop("_id", None)
        created_at = document.pop("created_at")

        pair = {"candidate_id": candidate_id, "opportunity_id": opportunity_id}
        update = {"$set": document, "$setOnInsert": {"created_at": created_at}}

        try:
            saved = self._find_and_upsert(pair, update)
        except DuplicateKeyError:
            # A concurrent upsert inserted the pair first; retrying updates it
            logger.debug(f"Upsert race on {candidate_id}/{opportunity_id}, retrying")
            saved = self._find_and_upsert(pair, update)

        return self._to_model(saved)

    def _find_and_upsert(self, pair: dict[str, Any], update: dict[str, Any]) -> dict[str, Any]:
        return self._get_collection().find_one_and_update(
            pair,
            update,
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )

    def bulk_replace_for_candidate(
        self,
        candidate_id: str,
        breakdowns: Mapping[str, MatchScoreBreakdown],
        compute_version: str = COMPUTE_VERSION,
    ) -> int:
        records = [
            MatchScoreRecord.from_breakdown(candidate_id, opp_id, breakdown, compute_version)
            for opp_id, breakdown in breakdowns.items()
        ]
        return self._replace_scope("candidate_id", candidate_id, records)

    def bulk_replace_for_opportunity(
        self,
        opportunity_id: str,
        breakdowns: Mapping[str, MatchScoreBreakdown],
        compute_version: str = COMPUTE_VERSION,
    ) -> int:
        records = [
            MatchScoreRecord.from_breakdown(cand_id, opportunity_id, breakdown, compute_version)
            for cand_id, breakdown in breakdowns.items()
        ]
        return self._replace_scope("opportunity_id", opportunity_id, records)

    def _replace_scope(
        self,
        field: str,
        scope_id: str,
        records: list[MatchScoreRecord],
    ) -> int:
        """Delete every record of a scope and insert the fresh set in one unit."""
        collection = self._get_collection()
        documents = [self._to_document(record) for record in records]

        def _apply(session: Any = None) -> int:
            result = collection.delete_many({field: scope_id}, session=session)
            if documents:
                collection.insert_many(documents, ordered=True, session=session)
            return result.deleted_count

        if self._db_manager.use_transactions:
            with self._db_manager.session() as session:
                deleted = session.with_transaction(_apply)
        else:
            deleted = _apply()

        logger.debug(
            f"Replaced match scores for {field}={scope_id}: "
            f"{deleted} removed, {len(documents)} written"
        )
        return len(documents)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def top_for_opportunity(self, opportunity_id: str, limit: int = 10) -> list[RankedMatch]:
        return rank_records(
            self.find({"opportunity_id": opportunity_id}, limit=limit, sort=RANKED_SORT)
        )

    def top_for_candidate(self, candidate_id: str, limit: int = 10) -> list[RankedMatch]:
        return rank_records(
            self.find({"candidate_id": candidate_id}, limit=limit, sort=RANKED_SORT)
        )

    def top_overall(self, limit: int = 10) -> list[RankedMatch]:
        return rank_records(self.find({}, limit=limit, sort=RANKED_SORT))

    def get_pair(self, candidate_id: str, opportunity_id: str) -> Optional[MatchScoreRecord]:
        document = self._get_collection().find_one(
            {"candidate_id": candidate_id, "opportunity_id": opportunity_id}
        )
        return self._to_model(document)

    def count_records(self, since: Optional[datetime] = None) -> int:
        if since is None:
            return self.count_documents()
        return self.count_documents({"computed_at": {"$gte": since}})

    def average_total_score(self) -> float:
        pipeline = [{"$group": {"_id": None, "average": {"$avg": "$total_score"}}}]
        results = list(self._get_collection().aggregate(pipeline))
        if not results or results[0].get("average") is None:
            return 0.0
        return float(results[0]["average"])


# Singleton instance
_match_score_repository: Optional[MatchScoreRepository] = None


def get_match_score_repository() -> MatchScoreRepository:
    """Get the match score repository singleton instance."""
    global _match_score_repository
    if _match_score_repository is None:
        _match_score_repository = MatchScoreRepository()
    return _match_score_repository
