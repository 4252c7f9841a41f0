from django.db import models
from django.db.models import Count
from django.utils import timezone


class ElectionQuerySet(models.QuerySet):

    def open(self):
        """Elections that still block the creation of a new one."""
        return self.filter(status__in=[Election.Status.PENDING, Election.Status.ACTIVE])

    def active(self):
        return self.filter(status=Election.Status.ACTIVE)

    def closed(self):
        return self.filter(status=Election.Status.CLOSED)

    def with_vote_counts(self):
        return self.annotate(vote_count=Count('votes'))

    def derive_statuses(self, now=None):
        """
        Move elections forward according to wall-clock time.

        Returns the number of rows whose status changed.
        """
        now = now or timezone.now()
        activated = self.filter(
            status=Election.Status.PENDING,
            start_datetime__lte=now,
        ).update(status=Election.Status.ACTIVE)
        closed = self.filter(
            status=Election.Status.ACTIVE,
            close_datetime__lte=now,
        ).update(status=Election.Status.CLOSED)
        return activated + closed


class Election(models.Model):
    """
    A named, time-boxed voting event with a candidate list
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        ACTIVE = 'active', 'Active'
        CLOSED = 'closed', 'Closed'

    name = models.CharField(max_length=200)
    start_datetime = models.DateTimeField()
    close_datetime = models.DateTimeField()
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)
    closed_manually = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = ElectionQuerySet.as_manager()

    @staticmethod
    def initial_status(start_datetime, now=None):
        now = now or timezone.now()
        if start_datetime <= now:
            return Election.Status.ACTIVE
        return Election.Status.PENDING

    def is_active(self):
        return self.status == Election.Status.ACTIVE

    def is_closed(self):
        return self.status == Election.Status.CLOSED

    def __str__(self):
        return f"{self.name} ({self.status})"

    class Meta:
        db_table = 'elections'
        ordering = ['-id']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(status__in=['pending', 'active', 'closed']),
                name='election_status_valid',
            ),
        ]


class Candidate(models.Model):
    """
    Candidate standing in one election
    """
    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name='candidates')
    name = models.CharField(max_length=200)

    def __str__(self):
        return f"{self.name} - {self.election.name}"

    class Meta:
        db_table = 'candidates'
        ordering = ['id']
