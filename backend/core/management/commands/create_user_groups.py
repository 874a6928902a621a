from django.core.management.base import BaseCommand
from django.contrib.auth.models import Group, Permission

# Apps a technician may work in besides reading everything
TECHNICUS_APPS = ['notes', 'repairs', 'todos']


class Command(BaseCommand):
    help = 'Create Django user groups for RBAC: Admin, Support, Technicus'

    def handle(self, *args, **options):
        groups_config = [
            {
                'name': 'Admin',
                'description': 'Team leads and developers - full system access including backend',
            },
            {
                'name': 'Support',
                'description': 'Customer service - cases, returns, purchasing and notes, no user management',
            },
            {
                'name': 'Technicus',
                'description': 'Repair technicians - read access plus repairs, notes and todos',
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

            if group_config['name'] == 'Admin':
                group.permissions.set(Permission.objects.all())
                self.stdout.write('  Added all permissions to Admin group')
            elif group_config['name'] == 'Support':
                permissions = Permission.objects.exclude(
                    content_type__app_label__in=['admin', 'auth', 'contenttypes', 'sessions']
                ).exclude(
                    content_type__app_label='core',
                    codename__in=['add_user', 'change_user', 'delete_user']
                )
                group.permissions.set(permissions)
                self.stdout.write('  Added module permissions to Support group')
            else:
                permissions = Permission.objects.filter(
                    content_type__app_label__in=TECHNICUS_APPS
                ) | Permission.objects.filter(codename__startswith='view_').exclude(
                    content_type__app_label__in=['admin', 'auth', 'contenttypes', 'sessions']
                )
                group.permissions.set(permissions.distinct())
                self.stdout.write('  Added read, repair and notes permissions to Technicus group')

        self.stdout.write(self.style.SUCCESS(
            f'\nCompleted: {created_count} groups created, {updated_count} groups already existed'
        ))
