"""
Voter registry: key-code validation, registration, bulk import and removal.
"""
import csv
import logging
import secrets
import string
from dataclasses import dataclass

from django.db import IntegrityError, transaction

from ballotbox.errors import DuplicateKeyCodeError, NotFoundError, ValidationError

from .models import KEY_CODE_LENGTH, Voter

logger = logging.getLogger(__name__)

GENERATED_KEY_CODE_ALPHABET = string.ascii_uppercase


@dataclass(frozen=True)
class ImportSummary:
    imported: int
    skipped: int


def normalize_key_code(key_code):
    """Validate a key code and return its canonical (uppercase) form."""
    value = (key_code or '').strip()
    if len(value) != KEY_CODE_LENGTH or not (value.isascii() and value.isalnum()):
        raise ValidationError(
            f'Key code must be exactly {KEY_CODE_LENGTH} alphanumeric characters'
        )
    return value.upper()


def get_voter_by_key_code(key_code):
    value = (key_code or '').strip().upper()
    if not value:
        return None
    return Voter.objects.filter(key_code=value).first()


def has_voted(voter, election):
    return voter.has_voted(election)


def list_voters():
    return Voter.objects.order_by('name', 'id')


@transaction.atomic
def add_voter(name, key_code):
    name = (name or '').strip()
    if not name:
        raise ValidationError('Name and key code are required')
    key_code = normalize_key_code(key_code)

    try:
        with transaction.atomic():
            voter = Voter.objects.create(name=name, key_code=key_code)
    except IntegrityError:
        raise DuplicateKeyCodeError('Key code already exists')

    logger.info('Registered voter %s (%s)', voter.pk, voter.name)
    return voter


def _parse_line(line):
    row = next(csv.reader([line], skipinitialspace=True), [])
    if len(row) < 2:
        return None
    # Fields after the key code are ignored.
    name, key_code = (value.strip() for value in row[:2])
    if not name or not key_code:
        return None
    return name, key_code


@transaction.atomic
def import_voters(lines):
    """
    Import ``name,keyCode`` lines.

    Malformed lines, invalid key codes and duplicate key codes are skipped and
    counted; blank lines are ignored.
    """
    imported = 0
    skipped = 0

    for line_number, raw_line in enumerate(lines, start=1):
        line = raw_line.strip()
        if not line:
            continue

        parsed = _parse_line(line)
        if parsed is None:
            logger.warning('Skipping invalid line %d: %r', line_number, line)
            skipped += 1
            continue

        name, key_code = parsed
        try:
            key_code = normalize_key_code(key_code)
        except ValidationError:
            logger.warning('Skipping invalid key code for %s on line %d', name, line_number)
            skipped += 1
            continue

        try:
            with transaction.atomic():
                Voter.objects.create(name=name, key_code=key_code)
        except IntegrityError:
            logger.warning('Skipping duplicate key code on line %d', line_number)
            skipped += 1
            continue
        imported += 1

    logger.info('Voter import finished: %d imported, %d skipped', imported, skipped)
    return ImportSummary(imported=imported, skipped=skipped)


def import_voters_from_file(path):
    with open(path, encoding='utf-8-sig') as handle:
        return import_voters(handle)


def generate_key_code():
    """Random unused key code made of uppercase letters."""
    while True:
        code = ''.join(secrets.choice(GENERATED_KEY_CODE_ALPHABET) for _ in range(KEY_CODE_LENGTH))
        if not Voter.objects.filter(key_code=code).exists():
            return code


@transaction.atomic
def delete_voter(voter_id):
    deleted, _ = Voter.objects.filter(pk=voter_id).delete()
    if not deleted:
        raise NotFoundError('Voter not found')
    logger.info('Deleted voter %s', voter_id)


@transaction.atomic
def clear_all_voters():
    count = Voter.objects.count()
    Voter.objects.all().delete()
    logger.info('Deleted all %d voters', count)
    return count
