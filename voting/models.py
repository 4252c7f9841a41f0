from django.db import models

from elections.models import Election, Candidate
from voters.models import Voter


class Vote(models.Model):
    """
    One ballot: a voter choosing a candidate in an election
    """
    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name='votes')
    candidate = models.ForeignKey(Candidate, on_delete=models.CASCADE, related_name='votes')
    voter = models.ForeignKey(Voter, on_delete=models.CASCADE, related_name='votes')
    voted_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Vote by {self.voter.name} in {self.election.name}"

    class Meta:
        db_table = 'votes'
        unique_together = ['election', 'voter']  # One vote per voter per election
        ordering = ['-voted_at']
