from django.dispatch import Signal

# Sent after a transaction that changed election state has committed.
# Arguments: election_id (may be None for bulk status derivation), action.
election_changed = Signal()
