from django.core.management.base import BaseCommand, CommandError

from farmops.animals.services import populate_weights
from farmops.farms.models import Farm


class Command(BaseCommand):
    help = 'Create estimated weight records for animals that have a birth date but no weight'

    def add_arguments(self, parser):
        parser.add_argument(
            '--farm-id',
            type=int,
            help='Only populate this farm (default: every live farm)',
        )

    def handle(self, *args, **options):
        farm_id = options.get('farm_id')
        farms = Farm.objects.filter(is_deleted=False).order_by('id')
        if farm_id:
            farms = farms.filter(pk=farm_id)
            if not farms.exists():
                raise CommandError(f'Farm {farm_id} not found')

        self.stdout.write('=' * 80)
        self.stdout.write('POPULATING ESTIMATED WEIGHTS')
        self.stdout.write('=' * 80)

        total_populated = 0
        for farm in farms:
            result = populate_weights(farm)
            total_populated += result['populated']
            line = f"  {farm.name} (#{farm.id}): {result['populated']} of {result['total']} animals"
            if result['populated']:
                self.stdout.write(self.style.SUCCESS(line))
            else:
                self.stdout.write(line)

        self.stdout.write('=' * 80)
        self.stdout.write(self.style.SUCCESS(f'Done. {total_populated} estimated weights created.'))
