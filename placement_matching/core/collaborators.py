"""
Interfaces of the services that own candidate and opportunity profiles.

The engine only reads from them. A getter returns None when the profile
no longer exists; the queue processor turns that into a permanent
task failure.
"""

from typing import Optional, Protocol, runtime_checkable

from placement_matching.data.models import CandidateProfile, OpportunityProfile


@runtime_checkable
class ProfileService(Protocol):
    """Source of candidate profile snapshots."""

    def get_candidate(self, candidate_id: str) -> Optional[CandidateProfile]: ...

    def get_all_active_candidates(self) -> list[CandidateProfile]: ...


@runtime_checkable
class OpportunityService(Protocol):
    """Source of opportunity profile snapshots."""

    def get_opportunity(self, opportunity_id: str) -> Optional[OpportunityProfile]: ...

    def get_all_active_opportunities(self) -> list[OpportunityProfile]: ...
