from django.core.management.base import BaseCommand

from farmops.sync.service import sync_all_clients, sync_queue


class Command(BaseCommand):
    help = 'Replay pending offline queue items, per device'

    def add_arguments(self, parser):
        parser.add_argument(
            '--client-id',
            type=str,
            help='Sync only this (user-scoped) client id',
        )

    def handle(self, *args, **options):
        self.stdout.write('=' * 80)
        self.stdout.write('SYNCING OFFLINE QUEUE')
        self.stdout.write('=' * 80)

        if options['client_id']:
            results = {options['client_id']: sync_queue(options['client_id'])}
        else:
            results = sync_all_clients()

        if not results:
            self.stdout.write(self.style.SUCCESS('No pending items'))
            return

        failed = 0
        for client_id, result in results.items():
            if result.get('in_progress'):
                self.stdout.write(self.style.WARNING(f'  {client_id}: sync already in progress'))
                continue
            line = (
                f"  {client_id}: {result['succeeded']} succeeded, "
                f"{result['failed']} failed, {result['skipped']} skipped"
            )
            failed += result['failed']
            self.stdout.write(self.style.ERROR(line) if result['failed'] else self.style.SUCCESS(line))

        self.stdout.write('=' * 80)
        summary = f"Synced {len(results)} client(s)"
        self.stdout.write(self.style.WARNING(summary) if failed else self.style.SUCCESS(summary))
