from django.core.management.base import BaseCommand, CommandError

from voters.registry import import_voters_from_file


class Command(BaseCommand):
    help = 'Import voters from a text file with one "name,keyCode" pair per line'

    def add_arguments(self, parser):
        parser.add_argument('path', help='Path to the voter file')

    def handle(self, *args, **options):
        path = options['path']
        try:
            summary = import_voters_from_file(path)
        except OSError as exc:
            raise CommandError(f'Failed to import voters: {exc}')

        self.stdout.write(
            self.style.SUCCESS(f'Imported {summary.imported} voters, skipped {summary.skipped}')
        )
