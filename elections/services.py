"""
Election lifecycle: status derivation, creation, closure and lookups.

Every function that depends on the current status derives statuses first, so
the persisted ``status`` column is only ever a cache of what the clock says.
"""
import logging

from django.db import transaction
from django.utils import timezone

from ballotbox.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError

from .models import Candidate, Election
from .signals import election_changed

logger = logging.getLogger(__name__)

MIN_CANDIDATES = 2


def _notify_election_changed(election_id, action):
    transaction.on_commit(
        lambda: election_changed.send(sender=Election, election_id=election_id, action=action)
    )


def derive_statuses(now=None):
    """Advance pending/active elections whose start/close time has passed."""
    changed = Election.objects.derive_statuses(now=now)
    if changed:
        logger.info('Derived election statuses: %d election(s) advanced', changed)
        _notify_election_changed(None, 'status_derived')
    return changed


def _clean_candidate_names(candidate_names):
    if not isinstance(candidate_names, (list, tuple)):
        raise ValidationError('Candidates must be a list of names')
    names = [str(name).strip() for name in candidate_names]
    if any(not name for name in names):
        raise ValidationError('Candidate names cannot be blank')
    if len(names) < MIN_CANDIDATES:
        raise ValidationError(f'At least {MIN_CANDIDATES} candidates are required')
    return names


@transaction.atomic
def create_election(name, start_datetime, close_datetime, candidate_names, now=None):
    now = now or timezone.now()
    name = (name or '').strip()
    if not name:
        raise ValidationError('Election name is required')
    if start_datetime is None or close_datetime is None:
        raise ValidationError('Start and close datetimes are required')
    if close_datetime <= start_datetime:
        raise ValidationError('Close datetime must be after start datetime')
    names = _clean_candidate_names(candidate_names)

    derive_statuses(now=now)
    # Locks the open rows (where the backend supports it) so two concurrent
    # creations serialise on the same check.
    if Election.objects.select_for_update().open().exists():
        raise ConflictError('Cannot create election: another election is pending or active')

    election = Election.objects.create(
        name=name,
        start_datetime=start_datetime,
        close_datetime=close_datetime,
        status=Election.initial_status(start_datetime, now=now),
    )
    Candidate.objects.bulk_create([
        Candidate(election=election, name=candidate_name) for candidate_name in names
    ])

    logger.info(
        'Created election %s "%s" (%s) with %d candidates',
        election.pk, election.name, election.status, len(names),
    )
    _notify_election_changed(election.pk, 'created')
    return election


@transaction.atomic
def close_election(election_id, now=None):
    derive_statuses(now=now)

    updated = Election.objects.filter(
        pk=election_id,
        status=Election.Status.ACTIVE,
    ).update(status=Election.Status.CLOSED, closed_manually=True)

    if not updated:
        if not Election.objects.filter(pk=election_id).exists():
            raise NotFoundError('Election not found')
        raise InvalidStateError('Election is not active')

    logger.info('Election %s closed manually', election_id)
    _notify_election_changed(election_id, 'closed')
    return Election.objects.get(pk=election_id)


def get_current_election(now=None):
    derive_statuses(now=now)
    return (
        Election.objects.active()
        .prefetch_related('candidates')
        .order_by('-id')
        .first()
    )


def get_election(election_id, now=None):
    derive_statuses(now=now)
    try:
        return Election.objects.prefetch_related('candidates').get(pk=election_id)
    except Election.DoesNotExist:
        raise NotFoundError('Election not found')


def list_elections(now=None):
    derive_statuses(now=now)
    return Election.objects.with_vote_counts().order_by('-id')


def get_latest_closed_election(now=None):
    from .results import get_results

    derive_statuses(now=now)
    election_id = Election.objects.closed().order_by('-id').values_list('pk', flat=True).first()
    if election_id is None:
        return None
    return get_results(election_id, now=now)
