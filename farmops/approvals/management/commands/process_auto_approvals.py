from django.core.management.base import BaseCommand

from farmops.approvals.services import process_auto_approvals


class Command(BaseCommand):
    help = 'Auto-approve pending activities whose auto-approval time has passed'

    def handle(self, *args, **options):
        self.stdout.write('=' * 80)
        self.stdout.write('PROCESSING AUTO-APPROVALS')
        self.stdout.write('=' * 80)

        result = process_auto_approvals()

        for item in result['results']:
            line = f"  Activity #{item['id']} ({item['activity_type']})"
            if item['success']:
                self.stdout.write(self.style.SUCCESS(f'{line}: auto-approved'))
            else:
                self.stdout.write(self.style.ERROR(f"{line}: {item['error']}"))

        self.stdout.write('=' * 80)
        summary = f"Processed {result['processed']}: {result['succeeded']} succeeded, {result['failed']} failed"
        if result['failed']:
            self.stdout.write(self.style.WARNING(summary))
        else:
            self.stdout.write(self.style.SUCCESS(summary))
