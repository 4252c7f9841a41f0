import logging
from dataclasses import dataclass

from django.db import IntegrityError, transaction

from ballotbox.errors import (
    AlreadyVotedError, InvalidCandidateError, InvalidKeyCodeError, NoActiveElectionError,
)
from elections.models import Election
from elections.services import derive_statuses
from voters.registry import get_voter_by_key_code, has_voted

from .models import Vote
from .signals import vote_cast

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VoteReceipt:
    vote: Vote
    voter_name: str


@transaction.atomic
def cast_vote(key_code, candidate_id, now=None):
    derive_statuses(now=now)

    election = Election.objects.active().order_by('-id').first()
    if election is None:
        raise NoActiveElectionError('No active election')

    voter = get_voter_by_key_code(key_code)
    if voter is None:
        raise InvalidKeyCodeError('Invalid key code')

    if has_voted(voter, election):
        raise AlreadyVotedError('You have already voted in this election')

    candidate = election.candidates.filter(pk=candidate_id).first()
    if candidate is None:
        raise InvalidCandidateError('Invalid candidate')

    # The (election, voter) unique constraint decides concurrent attempts with
    # the same key code; the check above is only a fast path.
    try:
        with transaction.atomic():
            vote = Vote.objects.create(election=election, candidate=candidate, voter=voter)
    except IntegrityError:
        raise AlreadyVotedError('You have already voted in this election')

    logger.info('Vote recorded in election %s for candidate %s', election.pk, candidate.pk)

    transaction.on_commit(lambda: vote_cast.send(
        sender=Vote,
        election_id=election.pk,
        candidate_id=candidate.pk,
        voter_name=voter.name,
    ))
    return VoteReceipt(vote=vote, voter_name=voter.name)
