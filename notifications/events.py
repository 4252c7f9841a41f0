import json
import logging
import time

from asgiref.sync import sync_to_async
from django.core.serializers.json import DjangoJSONEncoder

from elections import services
from elections.results import get_results
from elections.serializers import ElectionSerializer, ElectionResultsSerializer

logger = logging.getLogger(__name__)

ELECTION_UPDATE = 'election-update'
ELECTION_CLOSED = 'election-closed'
VOTE_CAST = 'vote-cast'


def current_state_event():
    """
    ``(event, data)`` describing what clients should show right now, or None
    when there is neither an active nor a closed election.
    """
    election = services.get_current_election()
    if election is not None:
        return ELECTION_UPDATE, ElectionSerializer(election).data

    latest = services.get_latest_closed_election()
    if latest is not None:
        return ELECTION_CLOSED, ElectionResultsSerializer(latest).data
    return None


def election_closed_event(election_id):
    return ELECTION_CLOSED, ElectionResultsSerializer(get_results(election_id)).data


def vote_cast_event(candidate_id, voter_name):
    return VOTE_CAST, {'candidateId': candidate_id, 'voterName': voter_name}


def format_sse(event, data):
    payload = json.dumps(data, cls=DjangoJSONEncoder)
    return f'event: {event}\ndata: {payload}\n\n'


def _safe_state_event():
    try:
        return current_state_event()
    except Exception:
        logger.exception('Error building election state for subscribers')
        return None


def event_stream(broadcaster, interval, clock=time.monotonic):
    """
    Server-sent events for one subscriber.

    Sends the election state on connect and every ``interval`` seconds, and
    relays published events as they arrive.
    """
    subscriber = broadcaster.subscribe()
    try:
        state = _safe_state_event()
        if state is not None:
            yield format_sse(*state)
        next_tick = clock() + interval

        while True:
            message = subscriber.get(timeout=max(0.0, next_tick - clock()))
            if message is not None:
                yield format_sse(*message)
                continue

            state = _safe_state_event()
            if state is not None:
                yield format_sse(*state)
            else:
                # Comment line keeps idle connections open.
                yield ': keep-alive\n\n'
            next_tick = clock() + interval
    finally:
        broadcaster.unsubscribe(subscriber)


async def async_event_stream(broadcaster, interval, clock=time.monotonic):
    """
    ``event_stream`` for ASGI servers, which can only stream async iterators.

    Waiting on the subscriber queue happens in a worker thread; building the
    election state runs on the thread that owns the database connection.
    """
    subscriber = broadcaster.subscribe()
    build_state = sync_to_async(_safe_state_event)
    wait = sync_to_async(subscriber.get, thread_sensitive=False)
    try:
        state = await build_state()
        if state is not None:
            yield format_sse(*state)
        next_tick = clock() + interval

        while True:
            message = await wait(timeout=max(0.0, next_tick - clock()))
            if message is not None:
                yield format_sse(*message)
                continue

            state = await build_state()
            if state is not None:
                yield format_sse(*state)
            else:
                yield ': keep-alive\n\n'
            next_tick = clock() + interval
    finally:
        broadcaster.unsubscribe(subscriber)
