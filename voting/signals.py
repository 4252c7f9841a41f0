from django.dispatch import Signal

# Sent after a vote has been committed.
# Arguments: election_id, candidate_id, voter_name.
vote_cast = Signal()
