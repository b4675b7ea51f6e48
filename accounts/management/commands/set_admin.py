from django.core.exceptions import ImproperlyConfigured
from django.core.management.base import BaseCommand, CommandError
from firebase_admin import auth
from firebase_admin.exceptions import FirebaseError

from accounts.services import grant_admin
from orders.exceptions import OrderError


class Command(BaseCommand):
    help = "Grants the admin custom claim to the Firebase user with the given email."

    def add_arguments(self, parser):
        parser.add_argument('email', help="Email of the account to make an admin.")

    def handle(self, *args, **options):
        email = options['email'].strip()
        if not email:
            raise CommandError("Please provide the email address to make an admin.")

        self.stdout.write(f"Attempting to make {email} an admin...")
        try:
            grant_admin(email)
        except auth.UserNotFoundError:
            raise CommandError(f"No Firebase user with email {email}.")
        except (FirebaseError, OrderError, ImproperlyConfigured, ValueError) as e:
            raise CommandError(f"Error setting custom claim or writing to Firestore: {e}")

        self.stdout.write(self.style.SUCCESS(f"Success! Custom claim set for {email}. They are now an admin."))
        self.stdout.write("Remember to re-login on the frontend to get the new custom token.")
