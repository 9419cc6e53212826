from django.core.management.base import BaseCommand

from core.status import get_setup_status, set_setup_complete


class Command(BaseCommand):
    help = 'Show, complete or reset the persisted site setup status.'

    def add_arguments(self, parser):
        group = parser.add_mutually_exclusive_group()
        group.add_argument('--complete', action='store_true', help='Mark initial setup as complete.')
        group.add_argument('--reset', action='store_true', help='Mark initial setup as incomplete.')

    def handle(self, *args, **options):
        if options['complete']:
            set_setup_complete(True)
        elif options['reset']:
            set_setup_complete(False)

        if get_setup_status()['isSetupComplete']:
            self.stdout.write(self.style.SUCCESS('Setup complete.'))
        else:
            self.stdout.write(self.style.WARNING('Setup incomplete.'))
