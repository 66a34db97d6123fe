"""
Read-only profile sources backed by MongoDB.

The profile and opportunity services own these collections; the engine
only reads snapshots of active documents from them.
"""

from typing import Any, Optional

from bson import ObjectId

from placement_matching.data.database import (
    CANDIDATE_PROFILES_COLLECTION,
    OPPORTUNITY_PROFILES_COLLECTION,
    DatabaseManager,
    get_database_manager,
)
from placement_matching.data.models import CandidateProfile, OpportunityProfile


def _id_query(id_value: str) -> dict[str, Any]:
    """Match an id stored either as a string or as an ObjectId."""
    if ObjectId.is_valid(id_value):
        return {"_id": {"$in": [id_value, ObjectId(id_value)]}}
    return {"_id": id_value}


class _ProfileCollection:
    """Shared collection access for the profile sources."""

    collection_name: str = ""

    def __init__(self, db_manager: Optional[DatabaseManager] = None) -> None:
        self._db_manager = db_manager or get_database_manager()

    def _get_collection(self) -> Any:
        return self._db_manager.get_collection(self.collection_name)


class MongoProfileService(_ProfileCollection):
    """Candidate profiles from the `candidate_profiles` collection."""

    collection_name = CANDIDATE_PROFILES_COLLECTION

    def get_candidate(self, candidate_id: str) -> Optional[CandidateProfile]:
        document = self._get_collection().find_one(_id_query(candidate_id))
        if document is None:
            return None
        return CandidateProfile.model_validate(document)

    def get_all_active_candidates(self) -> list[CandidateProfile]:
        documents = self._get_collection().find({"is_active": True})
        return [CandidateProfile.model_validate(doc) for doc in documents]


class MongoOpportunityService(_ProfileCollection):
    """Opportunity profiles from the `opportunity_profiles` collection."""

    collection_name = OPPORTUNITY_PROFILES_COLLECTION

    def get_opportunity(self, opportunity_id: str) -> Optional[OpportunityProfile]:
        document = self._get_collection().find_one(_id_query(opportunity_id))
        if document is None:
            return None
        return OpportunityProfile.model_validate(document)

    def get_all_active_opportunities(self) -> list[OpportunityProfile]:
        documents = self._get_collection().find({"is_active": True})
        return [OpportunityProfile.model_validate(doc) for doc in documents]
