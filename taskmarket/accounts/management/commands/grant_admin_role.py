from django.core.management.base import BaseCommand, CommandError
from django.contrib.auth import get_user_model

User = get_user_model()


class Command(BaseCommand):
    help = "Gives a user the ADMIN marketplace role so they can resolve disputes."

    def add_arguments(self, parser):
        parser.add_argument('--email', type=str, required=True, help='Email of the user to promote')
        parser.add_argument('--revoke', action='store_true', help='Demote the user back to the DOER role')

    def handle(self, *args, **options):
        email = options['email']
        try:
            user = User.objects.get(email=email)
        except User.DoesNotExist:
            raise CommandError(f"User with email {email} does not exist.")

        role = User.Role.DOER if options['revoke'] else User.Role.ADMIN
        if user.role == role:
            self.stdout.write(f"User {email} already has the {role} role.")
            return

        user.role = role
        user.save(update_fields=['role', 'updated_at'])
        self.stdout.write(self.style.SUCCESS(f"User {email} now has the {role} role."))
