import logging

from django.dispatch import receiver

from elections.signals import election_changed
from voting.signals import vote_cast

from . import events
from .broadcaster import broadcaster

logger = logging.getLogger(__name__)


def broadcast_election_state():
    try:
        state = events.current_state_event()
    except Exception:
        logger.exception('Error broadcasting election update')
        return
    if state is not None:
        broadcaster.publish(*state)


@receiver(election_changed)
def on_election_changed(sender, election_id=None, action=None, **kwargs):
    if action == 'closed' and election_id is not None:
        try:
            broadcaster.publish(*events.election_closed_event(election_id))
        except Exception:
            logger.exception('Error broadcasting closure of election %s', election_id)
        return
    broadcast_election_state()


@receiver(vote_cast)
def on_vote_cast(sender, candidate_id=None, voter_name=None, **kwargs):
    broadcaster.publish(*events.vote_cast_event(candidate_id, voter_name))
    broadcast_election_state()
