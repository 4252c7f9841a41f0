from django.core.management.base import BaseCommand

from elections.models import Election
from elections.services import derive_statuses


class Command(BaseCommand):
    help = 'Advance election statuses (pending -> active -> closed) based on current time'

    def handle(self, *args, **options):
        before = dict(Election.objects.values_list('pk', 'status'))

        updated_count = derive_statuses()

        for election in Election.objects.filter(pk__in=before.keys()):
            old_status = before[election.pk]
            if election.status != old_status:
                self.stdout.write(
                    f'Updated election "{election.name}" from {old_status} to {election.status}'
                )

        self.stdout.write(
            f'Successfully checked {len(before)} elections, updated {updated_count} elections'
        )
