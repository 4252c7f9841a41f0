"""
Result aggregation for closed elections.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from django.db.models import Count

from ballotbox.errors import NotClosedError, NotFoundError

from .models import Election
from .services import derive_statuses


@dataclass(frozen=True)
class CandidateTally:
    id: int
    name: str
    vote_count: int


@dataclass(frozen=True)
class ElectionResults:
    election: Election
    results: List[CandidateTally]
    total_votes: int
    winner: Optional[CandidateTally]


@dataclass(frozen=True)
class VoteRecord:
    vote_id: int
    voted_at: object
    candidate_id: int
    candidate_name: str
    voter_id: int
    voter_name: str
    key_code: str


@dataclass(frozen=True)
class CandidateVotes:
    candidate_id: int
    candidate_name: str
    votes: List[VoteRecord] = field(default_factory=list)


@dataclass(frozen=True)
class DetailedElectionResults(ElectionResults):
    detailed_votes: List[VoteRecord] = field(default_factory=list)
    votes_by_candidate: List[CandidateVotes] = field(default_factory=list)


def _closed_election(election_id, now=None):
    derive_statuses(now=now)
    try:
        election = Election.objects.get(pk=election_id)
    except Election.DoesNotExist:
        raise NotFoundError('Election not found')
    if not election.is_closed():
        raise NotClosedError('Election is not closed yet')
    return election


def _tally(election):
    rows = (
        election.candidates
        .annotate(vote_count=Count('votes'))
        .order_by('-vote_count', 'name', 'id')
    )
    tallies = [CandidateTally(id=row.pk, name=row.name, vote_count=row.vote_count) for row in rows]
    total_votes = sum(tally.vote_count for tally in tallies)
    winner = tallies[0] if tallies and total_votes > 0 else None
    return tallies, total_votes, winner


def get_results(election_id, now=None):
    election = _closed_election(election_id, now=now)
    tallies, total_votes, winner = _tally(election)
    return ElectionResults(
        election=election,
        results=tallies,
        total_votes=total_votes,
        winner=winner,
    )


def get_detailed_results(election_id, now=None):
    """
    Results plus every individual ballot. Admin only: this de-anonymises votes.
    """
    from voting.models import Vote

    election = _closed_election(election_id, now=now)
    tallies, total_votes, winner = _tally(election)

    votes = (
        Vote.objects.filter(election=election)
        .select_related('candidate', 'voter')
        .order_by('-voted_at', '-id')
    )
    detailed_votes = [
        VoteRecord(
            vote_id=vote.pk,
            voted_at=vote.voted_at,
            candidate_id=vote.candidate_id,
            candidate_name=vote.candidate.name,
            voter_id=vote.voter_id,
            voter_name=vote.voter.name,
            key_code=vote.voter.key_code,
        )
        for vote in votes
    ]

    by_candidate = {
        candidate.pk: CandidateVotes(candidate_id=candidate.pk, candidate_name=candidate.name)
        for candidate in election.candidates.order_by('name', 'id')
    }
    for record in sorted(detailed_votes, key=lambda r: (r.voted_at, r.vote_id)):
        by_candidate[record.candidate_id].votes.append(record)

    return DetailedElectionResults(
        election=election,
        results=tallies,
        total_votes=total_votes,
        winner=winner,
        detailed_votes=detailed_votes,
        votes_by_candidate=list(by_candidate.values()),
    )
