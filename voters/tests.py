import tempfile
from datetime import timedelta
from io import StringIO
from pathlib import Path
from unittest.mock import patch

from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase, APIClient

from ballotbox.errors import DuplicateKeyCodeError, NotFoundError, ValidationError
from elections.models import Election, Candidate
from voting.models import Vote

from . import registry
from .models import Voter

ADMIN_KEY = 'test-admin-key'


class VoterModelTest(TestCase):
    """Test Voter model functionality"""

    def test_key_code_stored_uppercase(self):
        voter = Voter.objects.create(name='Alice', key_code='ab12cd')

        voter.refresh_from_db()
        self.assertEqual(voter.key_code, 'AB12CD')

    def test_voter_string_representation(self):
        voter = Voter.objects.create(name='Alice', key_code='AB12CD')

        self.assertEqual(str(voter), 'Alice (AB12CD)')


class KeyCodeTest(TestCase):

    def test_normalize_key_code(self):
        self.assertEqual(registry.normalize_key_code(' ab12cd '), 'AB12CD')

    def test_invalid_key_codes(self):
        for value in ['', 'ABC', 'ABCDEFG', 'AB-2CD', 'ÄB12CD', None]:
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    registry.normalize_key_code(value)

    def test_lookup_is_case_insensitive(self):
        """'ab12cd' and 'AB12CD' resolve to the same voter"""
        voter = registry.add_voter('Alice', 'AB12CD')

        self.assertEqual(registry.get_voter_by_key_code('ab12cd'), voter)
        self.assertEqual(registry.get_voter_by_key_code('AB12CD'), voter)
        self.assertIsNone(registry.get_voter_by_key_code('ZZ99ZZ'))

    def test_generate_key_code(self):
        code = registry.generate_key_code()

        self.assertEqual(len(code), 6)
        self.assertTrue(code.isalpha())
        self.assertTrue(code.isupper())

    def test_generate_key_code_retries_on_collision(self):
        Voter.objects.create(name='Taken', key_code='AAAAAA')
        letters = iter('A' * 6 + 'B' * 6)

        with patch('voters.registry.secrets.choice', side_effect=lambda alphabet: next(letters)):
            code = registry.generate_key_code()

        self.assertEqual(code, 'BBBBBB')


class AddVoterTest(TestCase):

    def test_add_voter(self):
        voter = registry.add_voter('  Alice ', 'ab12cd')

        self.assertEqual(voter.name, 'Alice')
        self.assertEqual(voter.key_code, 'AB12CD')

    def test_duplicate_key_code_any_case(self):
        registry.add_voter('Alice', 'AB12CD')

        with self.assertRaises(DuplicateKeyCodeError):
            registry.add_voter('Bob', 'ab12cd')

        self.assertEqual(Voter.objects.count(), 1)

    def test_missing_name(self):
        with self.assertRaises(ValidationError):
            registry.add_voter('', 'AB12CD')


class ImportVotersTest(TestCase):
    """Test bulk voter import"""

    def test_valid_and_malformed_line(self):
        summary = registry.import_voters(['Alice,AB12CD', 'BadLine'])

        self.assertEqual((summary.imported, summary.skipped), (1, 1))
        self.assertEqual(Voter.objects.count(), 1)
        self.assertEqual(Voter.objects.get().name, 'Alice')

    def test_extra_fields_ignored(self):
        summary = registry.import_voters(['Alice,AB12CD,extra', 'Bob, cd34ef, x, y'])

        self.assertEqual((summary.imported, summary.skipped), (2, 0))
        self.assertEqual(Voter.objects.get(name='Bob').key_code, 'CD34EF')

    def test_skips_invalid_and_duplicate_codes(self):
        registry.add_voter('Existing', 'EX1ST0')

        summary = registry.import_voters([
            'Alice, ab12cd',
            'Bob,AB12CD',        # duplicate within batch
            'Carol,ex1st0',      # duplicate of stored voter
            'Dave,TOOLONG1',
            ',CD34EF',
            'Eve,CD34EF,extra',
            '',
            '   ',
            '"Smith, Frank",FS0001',
        ])

        self.assertEqual(summary.imported, 2)
        self.assertEqual(summary.skipped, 5)
        self.assertEqual(
            sorted(Voter.objects.values_list('key_code', flat=True)),
            ['AB12CD', 'EX1ST0', 'FS0001'],
        )
        self.assertEqual(Voter.objects.get(key_code='FS0001').name, 'Smith, Frank')

    def test_import_command(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / 'voters.txt'
            path.write_text('Alice,AB12CD\nBob,CD34EF\nbroken\n', encoding='utf-8')
            out = StringIO()

            call_command('import_voters', str(path), stdout=out)

        self.assertIn('Imported 2 voters, skipped 1', out.getvalue())
        self.assertEqual(Voter.objects.count(), 2)


class RemoveVotersTest(TestCase):

    def setUp(self):
        now = timezone.now()
        self.election = Election.objects.create(
            name='Test Election',
            start_datetime=now - timedelta(hours=1),
            close_datetime=now + timedelta(hours=1),
            status=Election.Status.ACTIVE,
        )
        self.candidate = Candidate.objects.create(election=self.election, name='A')
        self.voter = registry.add_voter('Alice', 'AB12CD')
        Vote.objects.create(election=self.election, candidate=self.candidate, voter=self.voter)

    def test_delete_voter_cascades_votes(self):
        registry.delete_voter(self.voter.pk)

        self.assertFalse(Voter.objects.exists())
        self.assertFalse(Vote.objects.exists())

    def test_delete_missing_voter(self):
        with self.assertRaises(NotFoundError):
            registry.delete_voter(9999)

    def test_clear_all_voters(self):
        registry.add_voter('Bob', 'CD34EF')

        self.assertEqual(registry.clear_all_voters(), 2)
        self.assertFalse(Voter.objects.exists())
        self.assertFalse(Vote.objects.exists())


@override_settings(ADMIN_KEY=ADMIN_KEY)
class VoterAPITest(APITestCase):
    """Test voter management endpoints"""

    def setUp(self):
        self.client = APIClient()
        self.client.credentials(HTTP_X_ADMIN_KEY=ADMIN_KEY)

    def test_requires_admin_key(self):
        client = APIClient()

        for method, url in [
            ('get', '/api/admin/voters/'),
            ('post', '/api/admin/voters/'),
            ('delete', '/api/admin/voters/'),
            ('delete', '/api/admin/voters/1/'),
            ('post', '/api/admin/voters/import/'),
            ('get', '/api/admin/voters/generate-keycode/'),
        ]:
            with self.subTest(method=method, url=url):
                response = getattr(client, method)(url)
                self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_non_ascii_admin_key_rejected(self):
        response = APIClient().get('/api/admin/voters/', {'adminKey': 'clé'})

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertIn('error', response.json())

    def test_add_and_list_voters(self):
        response = self.client.post('/api/admin/voters/', {'name': 'Bob', 'keyCode': 'cd34ef'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['voter']['keyCode'], 'CD34EF')

        self.client.post('/api/admin/voters/', {'name': 'Alice', 'keyCode': 'AB12CD'}, format='json')
        response = self.client.get('/api/admin/voters/')

        self.assertEqual([v['name'] for v in response.data], ['Alice', 'Bob'])

    def test_add_duplicate_voter(self):
        registry.add_voter('Alice', 'AB12CD')

        response = self.client.post('/api/admin/voters/', {'name': 'Bob', 'keyCode': 'ab12cd'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Key code already exists')

    def test_add_voter_bad_key_code(self):
        response = self.client.post('/api/admin/voters/', {'name': 'Bob', 'keyCode': 'abc'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('6 alphanumeric', response.data['error'])

    def test_import_lines(self):
        response = self.client.post(
            '/api/admin/voters/import/', {'lines': ['Alice,AB12CD', 'BadLine']}, format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['imported'], 1)
        self.assertEqual(response.data['skipped'], 1)

    def test_import_content(self):
        response = self.client.post(
            '/api/admin/voters/import/', {'content': 'Alice,AB12CD\nBob,CD34EF\n'}, format='json',
        )

        self.assertEqual(response.data['imported'], 2)

    def test_import_uploaded_file(self):
        upload = SimpleUploadedFile('voters.txt', b'Alice,AB12CD\nBadLine\n', content_type='text/plain')

        response = self.client.post('/api/admin/voters/import/', {'file': upload}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual((response.data['imported'], response.data['skipped']), (1, 1))

    def test_import_without_source(self):
        response = self.client.post('/api/admin/voters/import/', {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_voter(self):
        voter = registry.add_voter('Alice', 'AB12CD')

        response = self.client.delete(f'/api/admin/voters/{voter.pk}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Voter.objects.exists())

    def test_delete_missing_voter(self):
        response = self.client.delete('/api/admin/voters/9999/')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Voter not found')

    def test_clear_voters(self):
        registry.add_voter('Alice', 'AB12CD')

        response = self.client.delete('/api/admin/voters/')

        self.assertEqual(response.data['deleted'], 1)

    def test_generate_key_code(self):
        response = self.client.get('/api/admin/voters/generate-keycode/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['keyCode']), 6)
