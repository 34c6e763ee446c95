from django.core.management.base import BaseCommand
from django.contrib.auth.models import Group, Permission


class Command(BaseCommand):
    help = 'Create Django user groups for the global roles: SuperAdmin, FarmerOwner, Farmhand, Government, Merchant'

    def handle(self, *args, **options):
        groups_config = [
            {
                'name': 'SuperAdmin',
                'description': 'Platform administrators - full system access including user creation',
                'apps': '*',
            },
            {
                'name': 'FarmerOwner',
                'description': 'Farm owners - manage their farms, animals, feed, finance and approvals',
                'apps': ['farms', 'animals', 'feed', 'finance', 'approvals', 'sync'],
            },
            {
                'name': 'Farmhand',
                'description': 'Farm workers - record activities that wait for owner approval',
                'apps': ['animals', 'approvals', 'sync'],
                'view_only': True,
            },
            {
                'name': 'Government',
                'description': 'Government users - read-only aggregate views',
                'apps': ['farms', 'animals'],
                'view_only': True,
            },
            {
                'name': 'Merchant',
                'description': 'Merchants - read-only access to farm listings',
                'apps': ['farms'],
                'view_only': True,
            },
        ]

        created_count = 0
        updated_count = 0

        for group_config in groups_config:
            group, created = Group.objects.get_or_create(name=group_config['name'])

            if created:
                self.stdout.write(self.style.SUCCESS(f'✓ Created group: {group_config["name"]}'))
                created_count += 1
            else:
                self.stdout.write(f'  Group already exists: {group_config["name"]}')
                updated_count += 1

            if group_config['apps'] == '*':
                group.permissions.set(Permission.objects.all())
                self.stdout.write(f'  Added all permissions to {group_config["name"]} group')
                continue

            permissions = Permission.objects.filter(content_type__app_label__in=group_config['apps'])
            if group_config.get('view_only'):
                permissions = permissions.filter(codename__startswith='view_')
            group.permissions.set(permissions)
            self.stdout.write(f'  Set {permissions.count()} permissions for {group_config["name"]} group')

        self.stdout.write(self.style.SUCCESS(
            f'\nCompleted: {created_count} groups created, {updated_count} groups already existed'
        ))
