"""
Management command to grant or revoke master-administrator status.

On a fresh installation with no master admin, designates the first one
without an actor. After that an existing master admin must be named
with --actor, and the usual guard checks and audit entry apply.
"""
from django.core.management.base import BaseCommand, CommandError
from apps.core.exceptions import PlatformException
from apps.rbac.models import User
from apps.rbac.services import MasterAdminService


class Command(BaseCommand):
    help = 'Grant or revoke master administrator status for a user'

    def add_arguments(self, parser):
        parser.add_argument(
            '--email',
            type=str,
            required=True,
            help='Email of the user to designate',
        )
        parser.add_argument(
            '--actor',
            type=str,
            help='Email of the master admin performing the change (not needed for the first designation)',
        )
        parser.add_argument(
            '--revoke',
            action='store_true',
            help='Revoke master administrator status instead of granting it',
        )
        parser.add_argument(
            '--create-user',
            action='store_true',
            help='Create the user if they do not exist',
        )
        parser.add_argument(
            '--name',
            type=str,
            default='',
            help='Display name for a newly created user',
        )

    def handle(self, *args, **options):
        email = options['email']
        actor_email = options.get('actor')

        user = User.objects.by_email(email)
        if not user:
            if not options['create_user']:
                raise CommandError(
                    f'User not found: {email}\n'
                    f'Use --create-user to create the user'
                )
            user = User.objects.create_user(email=email, name=options.get('name', ''))
            self.stdout.write(self.style.SUCCESS(f'Created user: {user.email}'))
        else:
            self.stdout.write(f'User: {user.name or "-"} ({user.email})')

        actor = None
        if actor_email:
            actor = User.objects.by_email(actor_email)
            if not actor:
                raise CommandError(f'Actor not found: {actor_email}')

        try:
            if options['revoke']:
                if actor is None:
                    raise CommandError('--actor is required to revoke master administrator status')
                MasterAdminService.revoke(actor, user)
                self.stdout.write(self.style.SUCCESS(
                    f'{user.email} is no longer a master administrator'
                ))
            elif actor is not None:
                MasterAdminService.grant(actor, user)
                self.stdout.write(self.style.SUCCESS(
                    f'{user.email} has been designated as a master administrator'
                ))
            else:
                if User.objects.master_admins().exists():
                    raise CommandError(
                        'A master administrator already exists. '
                        'Pass --actor=<master admin email> to grant further designations.'
                    )
                MasterAdminService.bootstrap(user)
                self.stdout.write(self.style.SUCCESS(
                    f'{user.email} has been designated as the first master administrator'
                ))
        except PlatformException as e:
            raise CommandError(e.message) from e

        self.stdout.write('Audit log entry recorded.')
