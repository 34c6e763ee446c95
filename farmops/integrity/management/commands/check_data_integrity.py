from django.core.management.base import BaseCommand, CommandError

from farmops.core.cache_utils import invalidate_all_feed_summaries, invalidate_feed_summary_cache
from farmops.farms.models import Farm
from farmops.integrity.checks import run_all_integrity_checks
from farmops.integrity.repairs import run_all_repairs


class Command(BaseCommand):
    help = 'Check stored and cached farm data against its source records'

    def add_arguments(self, parser):
        parser.add_argument(
            '--farm-id',
            type=int,
            help='Check a single farm',
        )
        parser.add_argument(
            '--show-all',
            action='store_true',
            help='List every discrepancy instead of the first five per check',
        )
        parser.add_argument(
            '--fix',
            action='store_true',
            help='Repair weight and milk revenue drift before checking',
        )
        parser.add_argument(
            '--clear-cache',
            action='store_true',
            help='Drop cached feed summaries after checking',
        )

    def handle(self, *args, **options):
        farms = Farm.objects.filter(is_deleted=False).order_by('id')
        if options['farm_id']:
            farms = farms.filter(pk=options['farm_id'])
            if not farms.exists():
                raise CommandError(f"Farm {options['farm_id']} not found")

        self.stdout.write('=' * 80)
        self.stdout.write('DATA INTEGRITY CHECK')
        self.stdout.write('=' * 80)

        failed_checks = 0
        for farm in farms:
            self.stdout.write(f'\nFarm #{farm.id}: {farm.name}')
            self.stdout.write('-' * 80)
            if options['fix']:
                for repair in run_all_repairs(farm):
                    self.stdout.write(self.style.WARNING(
                        f"  Repaired {repair['check_name']}: {repair['fixed_count']} fixed"
                    ))
            for check in run_all_integrity_checks(farm):
                line = f"  {check['check_name']}: {check['details']}"
                if check['passed']:
                    self.stdout.write(self.style.SUCCESS(line))
                    continue

                failed_checks += 1
                self.stdout.write(self.style.ERROR(line))
                discrepancies = check['discrepancies']
                shown = discrepancies if options['show_all'] else discrepancies[:5]
                for d in shown:
                    self.stdout.write(f"    {d['id']} {d['field']}: expected {d['expected']}, got {d['actual']}")
                if len(shown) < len(discrepancies):
                    self.stdout.write(f"    ... and {len(discrepancies) - len(shown)} more (use --show-all)")

        if options['clear_cache']:
            if options['farm_id']:
                invalidate_feed_summary_cache(options['farm_id'])
                self.stdout.write(f"\nCleared cached feed summary for farm #{options['farm_id']}")
            else:
                count = invalidate_all_feed_summaries()
                self.stdout.write(f"\nCleared {count} cached feed summaries")

        self.stdout.write('\n' + '=' * 80)
        if failed_checks:
            self.stdout.write(self.style.WARNING(f'{failed_checks} check(s) failed'))
        else:
            self.stdout.write(self.style.SUCCESS('All checks passed'))
