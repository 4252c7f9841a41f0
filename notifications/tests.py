import json
from datetime import timedelta

from asgiref.sync import async_to_sync
from django.test import TestCase, SimpleTestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase, APIClient

from elections import services
from elections.models import Election
from voters.models import Voter
from voting.services import cast_vote

from . import events
from .broadcaster import Broadcaster, broadcaster


def parse_sse(chunk):
    lines = chunk.strip().split('\n')
    event = lines[0][len('event: '):]
    data = json.loads(lines[1][len('data: '):])
    return event, data


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class BroadcasterTest(SimpleTestCase):
    """Test the subscriber registry"""

    def test_publish_reaches_every_subscriber(self):
        hub = Broadcaster(queue_size=10)
        first, second = hub.subscribe(), hub.subscribe()

        delivered = hub.publish('vote-cast', {'candidateId': 1})

        self.assertEqual(delivered, 2)
        self.assertEqual(first.get(timeout=0), ('vote-cast', {'candidateId': 1}))
        self.assertEqual(second.get(timeout=0), ('vote-cast', {'candidateId': 1}))

    def test_unsubscribed_client_gets_nothing(self):
        hub = Broadcaster(queue_size=10)
        subscriber = hub.subscribe()
        hub.unsubscribe(subscriber)

        self.assertEqual(hub.publish('election-update', {}), 0)
        self.assertIsNone(subscriber.get(timeout=0))
        self.assertEqual(hub.subscriber_count, 0)

    def test_full_queue_drops_instead_of_blocking(self):
        """A lagging subscriber misses events; publishing never blocks"""
        hub = Broadcaster(queue_size=1)
        slow = hub.subscribe()

        self.assertEqual(hub.publish('vote-cast', {'n': 1}), 1)
        self.assertEqual(hub.publish('vote-cast', {'n': 2}), 0)

        self.assertEqual(slow.get(timeout=0), ('vote-cast', {'n': 1}))
        self.assertIsNone(slow.get(timeout=0))

    def test_format_sse(self):
        self.assertEqual(
            events.format_sse('vote-cast', {'candidateId': 3, 'voterName': 'Alice'}),
            'event: vote-cast\ndata: {"candidateId": 3, "voterName": "Alice"}\n\n',
        )


class EventStreamTest(TestCase):
    """Test the per-subscriber event stream"""

    def setUp(self):
        self.hub = Broadcaster(queue_size=10)
        self.clock = FakeClock()

    def _create_active_election(self):
        now = timezone.now()
        return services.create_election(
            'Board', now - timedelta(hours=1), now + timedelta(hours=1), ['A', 'B'],
        )

    def test_initial_push_is_current_election(self):
        election = self._create_active_election()
        stream = events.event_stream(self.hub, interval=5, clock=self.clock)

        event, data = parse_sse(next(stream))
        stream.close()

        self.assertEqual(event, 'election-update')
        self.assertEqual(data['id'], election.pk)
        self.assertEqual(len(data['candidates']), 2)

    def test_initial_push_is_latest_results_when_nothing_active(self):
        election = self._create_active_election()
        services.close_election(election.pk)
        stream = events.event_stream(self.hub, interval=5, clock=self.clock)

        event, data = parse_sse(next(stream))
        stream.close()

        self.assertEqual(event, 'election-closed')
        self.assertEqual(data['election']['id'], election.pk)
        self.assertEqual(data['totalVotes'], 0)

    def test_nothing_to_push_sends_keep_alive_on_tick(self):
        stream = events.event_stream(self.hub, interval=0, clock=self.clock)

        self.assertEqual(next(stream), ': keep-alive\n\n')
        stream.close()

    def test_periodic_tick_repeats_state(self):
        self._create_active_election()
        stream = events.event_stream(self.hub, interval=0, clock=self.clock)

        first = parse_sse(next(stream))
        second = parse_sse(next(stream))
        stream.close()

        self.assertEqual(first, second)

    def test_published_events_are_relayed(self):
        self._create_active_election()
        stream = events.event_stream(self.hub, interval=5, clock=self.clock)
        next(stream)

        self.hub.publish(*events.vote_cast_event(7, 'Alice'))
        event, data = parse_sse(next(stream))

        self.assertEqual(event, 'vote-cast')
        self.assertEqual(data, {'candidateId': 7, 'voterName': 'Alice'})
        stream.close()

    def test_closing_stream_unsubscribes(self):
        stream = events.event_stream(self.hub, interval=0, clock=self.clock)
        next(stream)
        self.assertEqual(self.hub.subscriber_count, 1)

        stream.close()

        self.assertEqual(self.hub.subscriber_count, 0)


class AsyncEventStreamTest(TestCase):
    """Test the event stream served to ASGI clients"""

    def setUp(self):
        self.hub = Broadcaster(queue_size=10)
        self.clock = FakeClock()

    def _read(self, interval, count, publish=None):
        async def read():
            stream = events.async_event_stream(self.hub, interval=interval, clock=self.clock)
            chunks = []
            try:
                chunks.append(await stream.__anext__())
                if publish is not None:
                    self.hub.publish(*publish)
                while len(chunks) < count:
                    chunks.append(await stream.__anext__())
            finally:
                await stream.aclose()
            return chunks

        return async_to_sync(read)()

    def test_initial_push_is_current_election(self):
        now = timezone.now()
        election = services.create_election(
            'Board', now - timedelta(hours=1), now + timedelta(hours=1), ['A', 'B'],
        )

        [chunk] = self._read(interval=5, count=1)
        event, data = parse_sse(chunk)

        self.assertEqual(event, 'election-update')
        self.assertEqual(data['id'], election.pk)
        self.assertEqual(self.hub.subscriber_count, 0)

    def test_keep_alive_then_published_event(self):
        chunks = self._read(interval=0, count=2, publish=events.vote_cast_event(7, 'Alice'))

        self.assertEqual(chunks[0], ': keep-alive\n\n')
        self.assertEqual(parse_sse(chunks[1]), ('vote-cast', {'candidateId': 7, 'voterName': 'Alice'}))
        self.assertEqual(self.hub.subscriber_count, 0)


class SignalBroadcastTest(TestCase):
    """State changes reach subscribers through the signal receivers"""

    def setUp(self):
        self.subscriber = broadcaster.subscribe()
        self.addCleanup(broadcaster.unsubscribe, self.subscriber)

    def _drain(self):
        messages = []
        while True:
            message = self.subscriber.get(timeout=0)
            if message is None:
                return messages
            messages.append(message)

    def test_vote_pushes_vote_cast_then_state(self):
        now = timezone.now()
        election = services.create_election(
            'Board', now - timedelta(hours=1), now + timedelta(hours=1), ['A', 'B'],
        )
        candidate = election.candidates.first()
        Voter.objects.create(name='Alice', key_code='AB12CD')
        self._drain()

        with self.captureOnCommitCallbacks(execute=True):
            cast_vote('AB12CD', candidate.pk)

        messages = self._drain()
        self.assertEqual(messages[0], ('vote-cast', {'candidateId': candidate.pk, 'voterName': 'Alice'}))
        self.assertEqual(messages[1][0], 'election-update')

    def test_creation_pushes_election_update(self):
        now = timezone.now()

        with self.captureOnCommitCallbacks(execute=True):
            election = services.create_election(
                'Board', now - timedelta(hours=1), now + timedelta(hours=1), ['A', 'B'],
            )

        messages = self._drain()
        self.assertIn(('election-update', election.pk), [(event, data['id']) for event, data in messages])

    def test_close_pushes_results(self):
        now = timezone.now()
        election = Election.objects.create(
            name='Board', start_datetime=now - timedelta(hours=1),
            close_datetime=now + timedelta(hours=1), status=Election.Status.ACTIVE,
        )

        with self.captureOnCommitCallbacks(execute=True):
            services.close_election(election.pk)

        event, data = self._drain()[-1]
        self.assertEqual(event, 'election-closed')
        self.assertEqual(data['election']['id'], election.pk)


class NotificationAPITest(APITestCase):

    def setUp(self):
        self.client = APIClient()

    def test_poll_without_elections(self):
        response = self.client.get('/api/events/state/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'event': None, 'data': None})

    def test_poll_with_active_election(self):
        now = timezone.now()
        election = services.create_election(
            'Board', now - timedelta(hours=1), now + timedelta(hours=1), ['A', 'B'],
        )

        response = self.client.get('/api/events/state/')

        self.assertEqual(response.data['event'], 'election-update')
        self.assertEqual(response.data['data']['id'], election.pk)

    def test_event_stream_response(self):
        response = self.client.get('/api/events/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'text/event-stream')
        self.assertTrue(response.streaming)
        self.assertFalse(response.is_async)
        response.close()

    async def test_event_stream_is_async_under_asgi(self):
        response = await self.async_client.get('/api/events/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'text/event-stream')
        self.assertTrue(response.is_async)
