from datetime import timedelta
from io import StringIO

from django.contrib import admin
from django.contrib.auth.models import User
from django.core.management import call_command
from django.test import RequestFactory, TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase, APIClient

from ballotbox.errors import (
    ConflictError, InvalidStateError, NotClosedError, NotFoundError, ValidationError,
)
from voters.models import Voter
from voting.models import Vote

from . import results, services
from .admin import CandidateAdmin, CandidateInline, ElectionAdmin
from .models import Election, Candidate

ADMIN_KEY = 'test-admin-key'


def make_election(name='Test Election', status=Election.Status.ACTIVE, candidates=('A', 'B'),
                  start_offset=timedelta(hours=-1), close_offset=timedelta(hours=1)):
    now = timezone.now()
    election = Election.objects.create(
        name=name,
        start_datetime=now + start_offset,
        close_datetime=now + close_offset,
        status=status,
    )
    for candidate_name in candidates:
        Candidate.objects.create(election=election, name=candidate_name)
    return election


class ElectionStatusDerivationTest(TestCase):
    """Test time-based status transitions"""

    def test_pending_becomes_active_after_start(self):
        """Pending election turns active once its start time has passed"""
        election = make_election(status=Election.Status.PENDING)

        changed = services.derive_statuses()

        election.refresh_from_db()
        self.assertEqual(changed, 1)
        self.assertEqual(election.status, Election.Status.ACTIVE)

    def test_active_becomes_closed_after_close_time(self):
        """Active election closes once its close time has passed"""
        election = make_election(start_offset=timedelta(hours=-2), close_offset=timedelta(minutes=-1))

        services.derive_statuses()

        election.refresh_from_db()
        self.assertEqual(election.status, Election.Status.CLOSED)
        self.assertFalse(election.closed_manually)

    def test_pending_past_both_times_reaches_closed(self):
        """A pending election whose whole window has passed ends up closed"""
        election = make_election(
            status=Election.Status.PENDING,
            start_offset=timedelta(hours=-2),
            close_offset=timedelta(hours=-1),
        )

        services.derive_statuses()

        election.refresh_from_db()
        self.assertEqual(election.status, Election.Status.CLOSED)

    def test_future_election_stays_pending(self):
        election = make_election(
            status=Election.Status.PENDING,
            start_offset=timedelta(hours=1),
            close_offset=timedelta(hours=2),
        )

        self.assertEqual(services.derive_statuses(), 0)
        election.refresh_from_db()
        self.assertEqual(election.status, Election.Status.PENDING)

    def test_closed_election_never_reopens(self):
        """Status never moves backwards, even if the window is still open"""
        election = make_election(status=Election.Status.CLOSED)

        services.derive_statuses()

        election.refresh_from_db()
        self.assertEqual(election.status, Election.Status.CLOSED)


class CreateElectionTest(TestCase):
    """Test election creation rules"""

    def setUp(self):
        self.now = timezone.now()

    def test_create_active_election(self):
        """Election starting in the past is created active with its candidates"""
        election = services.create_election(
            'Board', self.now - timedelta(hours=1), self.now + timedelta(hours=1), ['A', 'B'],
        )

        self.assertEqual(election.status, Election.Status.ACTIVE)
        self.assertEqual(list(election.candidates.values_list('name', flat=True)), ['A', 'B'])

    def test_create_pending_election(self):
        election = services.create_election(
            'Board', self.now + timedelta(hours=1), self.now + timedelta(hours=2), ['A', 'B'],
        )

        self.assertEqual(election.status, Election.Status.PENDING)

    def test_fewer_than_two_candidates_creates_nothing(self):
        """Creation with a single candidate fails and leaves no rows"""
        with self.assertRaises(ValidationError):
            services.create_election(
                'Board', self.now - timedelta(hours=1), self.now + timedelta(hours=1), ['A'],
            )

        self.assertEqual(Election.objects.count(), 0)
        self.assertEqual(Candidate.objects.count(), 0)

    def test_blank_candidate_name_rejected(self):
        with self.assertRaises(ValidationError):
            services.create_election(
                'Board', self.now - timedelta(hours=1), self.now + timedelta(hours=1), ['A', '  '],
            )
        self.assertEqual(Election.objects.count(), 0)

    def test_close_before_start_rejected(self):
        with self.assertRaises(ValidationError):
            services.create_election(
                'Board', self.now + timedelta(hours=1), self.now, ['A', 'B'],
            )

    def test_second_open_election_conflicts(self):
        """Only one pending or active election may exist at a time"""
        services.create_election(
            'First', self.now + timedelta(days=1), self.now + timedelta(days=2), ['A', 'B'],
        )

        with self.assertRaises(ConflictError):
            services.create_election(
                'Second', self.now + timedelta(days=10), self.now + timedelta(days=11), ['C', 'D'],
            )

        self.assertEqual(Election.objects.open().count(), 1)

    def test_new_election_allowed_after_previous_closes(self):
        make_election(start_offset=timedelta(hours=-3), close_offset=timedelta(hours=-2))

        election = services.create_election(
            'Next', self.now - timedelta(minutes=5), self.now + timedelta(hours=1), ['A', 'B'],
        )

        self.assertEqual(election.status, Election.Status.ACTIVE)
        self.assertEqual(Election.objects.open().count(), 1)


class CloseElectionTest(TestCase):
    """Test manual closure"""

    def test_close_active_election(self):
        election = make_election()

        closed = services.close_election(election.pk)

        self.assertEqual(closed.status, Election.Status.CLOSED)
        self.assertTrue(closed.closed_manually)

    def test_close_twice_fails_cleanly(self):
        election = make_election()
        services.close_election(election.pk)

        with self.assertRaises(InvalidStateError):
            services.close_election(election.pk)

    def test_close_pending_election_fails(self):
        election = make_election(
            status=Election.Status.PENDING,
            start_offset=timedelta(hours=1),
            close_offset=timedelta(hours=2),
        )

        with self.assertRaises(InvalidStateError):
            services.close_election(election.pk)

    def test_close_missing_election(self):
        with self.assertRaises(NotFoundError):
            services.close_election(9999)


class ElectionAdminTest(TestCase):
    """Django admin must not bypass the lifecycle rules"""

    def setUp(self):
        self.user = User.objects.create_superuser('root', 'root@example.com', 'password')
        self.client.force_login(self.user)

    def test_add_election_forbidden(self):
        make_election()

        response = self.client.post('/django-admin/elections/election/add/', {
            'name': 'Second',
            'candidates-TOTAL_FORMS': '0',
            'candidates-INITIAL_FORMS': '0',
        })

        self.assertEqual(response.status_code, 403)
        self.assertEqual(Election.objects.count(), 1)

    def test_closed_election_cannot_be_edited(self):
        election = make_election(status=Election.Status.CLOSED)
        url = f'/django-admin/elections/election/{election.pk}/change/'

        response = self.client.post(url, {'name': 'Renamed'})

        self.assertEqual(response.status_code, 403)
        election.refresh_from_db()
        self.assertEqual(election.name, 'Test Election')

    def test_candidates_are_read_only(self):
        election = make_election()
        request = RequestFactory().get('/')
        request.user = self.user
        election_admin = ElectionAdmin(Election, admin.site)
        inline = CandidateInline(Election, admin.site)

        self.assertTrue(election_admin.has_change_permission(request, election))
        self.assertFalse(inline.has_add_permission(request, election))
        self.assertFalse(inline.can_delete)
        self.assertIn('name', inline.get_readonly_fields(request, election))
        self.assertFalse(CandidateAdmin(Candidate, admin.site).has_change_permission(request))


class ElectionLookupTest(TestCase):

    def test_current_election_with_ordered_candidates(self):
        election = make_election(candidates=('Zed', 'Amy', 'Bob'))

        current = services.get_current_election()

        self.assertEqual(current.pk, election.pk)
        self.assertEqual([c.name for c in current.candidates.all()], ['Zed', 'Amy', 'Bob'])

    def test_no_current_election(self):
        make_election(status=Election.Status.CLOSED)

        self.assertIsNone(services.get_current_election())

    def test_latest_closed_election_none(self):
        self.assertIsNone(services.get_latest_closed_election())

    def test_latest_closed_election_returns_newest(self):
        make_election(name='Old', status=Election.Status.CLOSED)
        newer = make_election(name='New', status=Election.Status.CLOSED)

        latest = services.get_latest_closed_election()

        self.assertEqual(latest.election.pk, newer.pk)

    def test_get_missing_election(self):
        with self.assertRaises(NotFoundError):
            services.get_election(12345)


class ElectionResultsTest(TestCase):
    """Test result aggregation"""

    def setUp(self):
        self.election = make_election(candidates=('Bravo', 'Alpha', 'Charlie'))
        self.bravo, self.alpha, self.charlie = self.election.candidates.order_by('id')

    def _vote(self, candidate, key_code):
        voter = Voter.objects.create(name=f'Voter {key_code}', key_code=key_code)
        return Vote.objects.create(election=self.election, candidate=candidate, voter=voter)

    def test_results_require_closed_election(self):
        """Results of an open election are never returned"""
        self._vote(self.alpha, 'AAAAA1')

        with self.assertRaises(NotClosedError):
            results.get_results(self.election.pk)

    def test_results_missing_election(self):
        with self.assertRaises(NotFoundError):
            results.get_results(4242)

    def test_ordering_by_count_then_name(self):
        """Candidates ordered by votes descending, ties by name ascending"""
        self._vote(self.charlie, 'AAAAA1')
        self._vote(self.charlie, 'AAAAA2')
        self._vote(self.bravo, 'AAAAA3')
        self._vote(self.alpha, 'AAAAA4')
        services.close_election(self.election.pk)

        outcome = results.get_results(self.election.pk)

        self.assertEqual(
            [(t.name, t.vote_count) for t in outcome.results],
            [('Charlie', 2), ('Alpha', 1), ('Bravo', 1)],
        )
        self.assertEqual(outcome.total_votes, 4)
        self.assertEqual(outcome.winner.name, 'Charlie')

    def test_no_winner_without_votes(self):
        services.close_election(self.election.pk)

        outcome = results.get_results(self.election.pk)

        self.assertEqual(outcome.total_votes, 0)
        self.assertIsNone(outcome.winner)
        self.assertEqual([t.vote_count for t in outcome.results], [0, 0, 0])

    def test_detailed_results_group_voters_by_candidate(self):
        self._vote(self.alpha, 'AAAAA1')
        self._vote(self.alpha, 'AAAAA2')
        services.close_election(self.election.pk)

        detailed = results.get_detailed_results(self.election.pk)

        self.assertEqual(len(detailed.detailed_votes), 2)
        self.assertEqual(
            [group.candidate_name for group in detailed.votes_by_candidate],
            ['Alpha', 'Bravo', 'Charlie'],
        )
        alpha_group = detailed.votes_by_candidate[0]
        self.assertEqual(
            sorted(v.key_code for v in alpha_group.votes), ['AAAAA1', 'AAAAA2'],
        )
        self.assertEqual(detailed.votes_by_candidate[1].votes, [])


class CheckElectionStatusCommandTest(TestCase):

    def test_command_reports_updates(self):
        make_election(name='Due', status=Election.Status.PENDING)
        out = StringIO()

        call_command('check_election_status', stdout=out)

        self.assertIn('Updated election "Due" from pending to active', out.getvalue())
        self.assertIn('updated 1 elections', out.getvalue())


@override_settings(ADMIN_KEY=ADMIN_KEY)
class ElectionAPITest(APITestCase):
    """Test election API endpoints"""

    def setUp(self):
        self.client = APIClient()
        self.now = timezone.now()

    def _admin(self):
        self.client.credentials(HTTP_X_ADMIN_KEY=ADMIN_KEY)

    def test_admin_endpoints_require_key(self):
        """Admin endpoints answer 401 without the admin key"""
        response = self.client.get('/api/admin/elections/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertIn('error', response.data)

        self.client.credentials(HTTP_X_ADMIN_KEY='wrong')
        response = self.client.post('/api/admin/elections/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_admin_key_query_parameter(self):
        response = self.client.get(f'/api/admin/elections/?adminKey={ADMIN_KEY}')

        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_create_election(self):
        self._admin()
        data = {
            'name': 'Board Election',
            'startDatetime': (self.now - timedelta(hours=1)).isoformat(),
            'closeDatetime': (self.now + timedelta(hours=1)).isoformat(),
            'candidates': ['A', 'B'],
        }

        response = self.client.post('/api/admin/elections/', data, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['election']['status'], 'active')
        self.assertEqual(len(response.data['election']['candidates']), 2)

    def test_create_election_single_candidate(self):
        self._admin()
        data = {
            'name': 'Board Election',
            'startDatetime': (self.now - timedelta(hours=1)).isoformat(),
            'closeDatetime': (self.now + timedelta(hours=1)).isoformat(),
            'candidates': ['A'],
        }

        response = self.client.post('/api/admin/elections/', data, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'At least 2 candidates are required')
        self.assertEqual(Election.objects.count(), 0)

    def test_create_conflicting_election(self):
        make_election()
        self._admin()
        data = {
            'name': 'Another',
            'startDatetime': (self.now + timedelta(days=1)).isoformat(),
            'closeDatetime': (self.now + timedelta(days=2)).isoformat(),
            'candidates': ['A', 'B'],
        }

        response = self.client.post('/api/admin/elections/', data, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('another election is pending or active', response.data['error'])

    def test_current_election(self):
        election = make_election()

        response = self.client.get('/api/current-election/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], election.pk)
        self.assertEqual([c['name'] for c in response.data['candidates']], ['A', 'B'])

    def test_current_election_null(self):
        response = self.client.get('/api/current-election/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.json())

    def test_results_of_open_election(self):
        election = make_election()

        response = self.client.get(f'/api/results/{election.pk}/')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Election is not closed yet')

    def test_results_of_missing_election(self):
        response = self.client.get('/api/results/999/')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_latest_results_without_closed_election(self):
        response = self.client.get('/api/results/latest/')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_close_missing_election_is_bad_request(self):
        self._admin()

        response = self.client.post('/api/admin/elections/999/close/')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Election not found')

    def test_get_missing_election_is_not_found(self):
        self._admin()

        response = self.client.get('/api/admin/elections/999/')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_list_elections_with_vote_counts(self):
        election = make_election()
        voter = Voter.objects.create(name='Ann', key_code='ANN001')
        Vote.objects.create(election=election, candidate=election.candidates.first(), voter=voter)
        self._admin()

        response = self.client.get('/api/admin/elections/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['voteCount'], 1)

    def test_detailed_results(self):
        election = make_election()
        voter = Voter.objects.create(name='Ann', key_code='ANN001')
        Vote.objects.create(election=election, candidate=election.candidates.first(), voter=voter)
        services.close_election(election.pk)
        self._admin()

        response = self.client.get(f'/api/admin/elections/{election.pk}/detailed-results/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['totalVotes'], 1)
        self.assertEqual(response.data['detailedVotes'][0]['voterName'], 'Ann')
        self.assertEqual(response.data['votesByCandidate'][0]['votes'][0]['keyCode'], 'ANN001')
