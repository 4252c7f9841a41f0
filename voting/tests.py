import threading
from datetime import timedelta
from unittest.mock import patch

from django.db import connection
from django.test import TestCase, TransactionTestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase, APIClient

from ballotbox.errors import (
    AlreadyVotedError, InvalidCandidateError, InvalidKeyCodeError, NoActiveElectionError,
)
from elections import results, services
from elections.models import Election, Candidate
from voters.models import Voter

from .models import Vote
from .services import cast_vote
from .signals import vote_cast


class VoteModelTest(TestCase):
    """Test vote model constraints"""

    def setUp(self):
        now = timezone.now()
        self.election = Election.objects.create(
            name='Test Election',
            start_datetime=now - timedelta(days=1),
            close_datetime=now + timedelta(days=1),
            status=Election.Status.ACTIVE,
        )
        self.candidate1 = Candidate.objects.create(election=self.election, name='Candidate 1')
        self.candidate2 = Candidate.objects.create(election=self.election, name='Candidate 2')
        self.voter = Voter.objects.create(name='Voter User', key_code='VOTE01')

    def test_vote_unique_constraint(self):
        """A voter can only have one vote row per election"""
        Vote.objects.create(voter=self.voter, election=self.election, candidate=self.candidate1)

        with self.assertRaises(Exception):
            Vote.objects.create(voter=self.voter, election=self.election, candidate=self.candidate2)

    def test_deleting_voter_removes_votes(self):
        Vote.objects.create(voter=self.voter, election=self.election, candidate=self.candidate1)

        self.voter.delete()

        self.assertEqual(Vote.objects.count(), 0)

    def test_deleting_election_removes_candidates_and_votes(self):
        Vote.objects.create(voter=self.voter, election=self.election, candidate=self.candidate1)

        self.election.delete()

        self.assertEqual(Candidate.objects.count(), 0)
        self.assertEqual(Vote.objects.count(), 0)
        self.assertTrue(Voter.objects.filter(pk=self.voter.pk).exists())


class CastVoteTest(TestCase):
    """Test the vote casting operation"""

    def setUp(self):
        now = timezone.now()
        self.election = services.create_election(
            'Board', now - timedelta(hours=1), now + timedelta(hours=1), ['A', 'B'],
        )
        self.candidate_a, self.candidate_b = self.election.candidates.order_by('id')
        self.voter = Voter.objects.create(name='Alice', key_code='AB12CD')

    def test_cast_vote_success(self):
        receipt = cast_vote('AB12CD', self.candidate_a.pk)

        self.assertEqual(receipt.voter_name, 'Alice')
        self.assertTrue(Vote.objects.filter(
            election=self.election, candidate=self.candidate_a, voter=self.voter,
        ).exists())

    def test_key_code_is_case_insensitive(self):
        """Lowercase key code resolves to the same voter"""
        receipt = cast_vote('ab12cd', self.candidate_a.pk)

        self.assertEqual(receipt.vote.voter, self.voter)

    def test_second_vote_rejected(self):
        """Second attempt with the same key code fails and leaves one row"""
        cast_vote('AB12CD', self.candidate_a.pk)

        with self.assertRaises(AlreadyVotedError):
            cast_vote('ab12cd', self.candidate_b.pk)

        self.assertEqual(Vote.objects.filter(voter=self.voter).count(), 1)

    def test_constraint_violation_reported_as_already_voted(self):
        """
        When two requests both pass the existence check, the unique constraint
        decides and the loser sees AlreadyVotedError.
        """
        cast_vote('AB12CD', self.candidate_a.pk)

        with patch.object(Voter, 'has_voted', return_value=False):
            with self.assertRaises(AlreadyVotedError):
                cast_vote('AB12CD', self.candidate_b.pk)

        self.assertEqual(Vote.objects.filter(voter=self.voter).count(), 1)

    def test_no_active_election(self):
        services.close_election(self.election.pk)

        with self.assertRaises(NoActiveElectionError):
            cast_vote('AB12CD', self.candidate_a.pk)

    def test_pending_election_does_not_accept_votes(self):
        services.close_election(self.election.pk)
        now = timezone.now()
        pending = services.create_election(
            'Later', now + timedelta(hours=1), now + timedelta(hours=2), ['X', 'Y'],
        )

        with self.assertRaises(NoActiveElectionError):
            cast_vote('AB12CD', pending.candidates.first().pk)

    def test_unknown_key_code(self):
        with self.assertRaises(InvalidKeyCodeError):
            cast_vote('ZZZZZZ', self.candidate_a.pk)

    def test_candidate_from_another_election(self):
        now = timezone.now()
        old = Election.objects.create(
            name='Old', start_datetime=now - timedelta(days=3),
            close_datetime=now - timedelta(days=2), status=Election.Status.CLOSED,
        )
        foreign = Candidate.objects.create(election=old, name='Foreign')

        with self.assertRaises(InvalidCandidateError):
            cast_vote('AB12CD', foreign.pk)

        self.assertEqual(Vote.objects.count(), 0)

    def test_vote_cast_signal_sent_after_commit(self):
        received = []

        def handler(sender, **kwargs):
            received.append(kwargs)

        vote_cast.connect(handler)
        try:
            with self.captureOnCommitCallbacks(execute=True):
                cast_vote('AB12CD', self.candidate_b.pk)
        finally:
            vote_cast.disconnect(handler)

        self.assertEqual(len(received), 1)
        self.assertEqual(received[0]['candidate_id'], self.candidate_b.pk)
        self.assertEqual(received[0]['voter_name'], 'Alice')


class ConcurrentVoteTest(TransactionTestCase):
    """Two simultaneous votes with one key code store exactly one row"""

    def test_simultaneous_votes_with_same_key_code(self):
        now = timezone.now()
        election = services.create_election(
            'Board', now - timedelta(hours=1), now + timedelta(hours=1), ['A', 'B'],
        )
        candidate_a, candidate_b = election.candidates.order_by('id')
        Voter.objects.create(name='Alice', key_code='AB12CD')
        outcomes = []

        def vote(candidate_id):
            try:
                cast_vote('AB12CD', candidate_id)
                outcomes.append('ok')
            except AlreadyVotedError:
                outcomes.append('already')
            finally:
                connection.close()

        threads = [
            threading.Thread(target=vote, args=(candidate.pk,))
            for candidate in (candidate_a, candidate_b)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(sorted(outcomes), ['already', 'ok'])
        self.assertEqual(Vote.objects.filter(election=election).count(), 1)


class ElectionScenarioTest(TestCase):
    """Full lifecycle: create, vote, reject duplicate, close, read results"""

    def test_full_election(self):
        now = timezone.now()
        voter = Voter.objects.create(name='Alice', key_code='AB12CD')
        election = services.create_election(
            'Scenario', now - timedelta(hours=1), now + timedelta(hours=1), ['A', 'B'],
        )

        current = services.get_current_election()
        self.assertEqual(current.status, Election.Status.ACTIVE)
        self.assertEqual(current.candidates.count(), 2)

        candidate_a = current.candidates.get(name='A')
        receipt = cast_vote(voter.key_code, candidate_a.pk)
        self.assertEqual(receipt.voter_name, 'Alice')

        with self.assertRaises(AlreadyVotedError):
            cast_vote(voter.key_code, candidate_a.pk)

        services.close_election(election.pk)
        outcome = results.get_results(election.pk)

        self.assertEqual(outcome.total_votes, 1)
        self.assertEqual(outcome.winner.name, 'A')
        self.assertEqual(outcome.winner.vote_count, 1)


@override_settings(ADMIN_KEY='test-admin-key')
class VotingAPITest(APITestCase):
    """Test voting API endpoints"""

    def setUp(self):
        self.client = APIClient()
        now = timezone.now()
        self.election = services.create_election(
            'Board', now - timedelta(hours=1), now + timedelta(hours=1), ['A', 'B'],
        )
        self.candidate_a, self.candidate_b = self.election.candidates.order_by('id')
        self.voter = Voter.objects.create(name='Alice', key_code='AB12CD')

    def test_cast_vote_success(self):
        data = {'keyCode': 'ab12cd', 'candidateId': self.candidate_a.pk}

        response = self.client.post('/api/vote/', data, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'success': True, 'voterName': 'Alice'})

    def test_cast_vote_duplicate(self):
        data = {'keyCode': 'AB12CD', 'candidateId': self.candidate_a.pk}
        self.client.post('/api/vote/', data, format='json')

        data['candidateId'] = self.candidate_b.pk
        response = self.client.post('/api/vote/', data, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'You have already voted in this election')
        self.assertEqual(Vote.objects.count(), 1)

    def test_cast_vote_missing_fields(self):
        response = self.client.post('/api/vote/', {'keyCode': 'AB12CD'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Key code and candidate ID are required')

    def test_cast_vote_invalid_key_code(self):
        data = {'keyCode': 'NOPE00', 'candidateId': self.candidate_a.pk}

        response = self.client.post('/api/vote/', data, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invalid key code')

    def test_scenario_results_over_http(self):
        self.client.post(
            '/api/vote/', {'keyCode': 'AB12CD', 'candidateId': self.candidate_a.pk}, format='json',
        )
        self.client.credentials(HTTP_X_ADMIN_KEY='test-admin-key')
        close = self.client.post(f'/api/admin/elections/{self.election.pk}/close/')
        self.assertEqual(close.status_code, status.HTTP_200_OK)

        response = self.client.get(f'/api/results/{self.election.pk}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['totalVotes'], 1)
        self.assertEqual(response.data['winner'], {'id': self.candidate_a.pk, 'name': 'A', 'votes': 1})

        latest = self.client.get('/api/results/latest/')
        self.assertEqual(latest.data['election']['id'], self.election.pk)
        self.assertTrue(latest.data['election']['closedManually'])
