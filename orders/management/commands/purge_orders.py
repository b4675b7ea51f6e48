from django.core.management.base import BaseCommand, CommandError

from orders.exceptions import OrderError
from orders.jobs import purge_all_orders


class Command(BaseCommand):
    help = "Deletes every order in the orders collection, whatever its status."

    def handle(self, *args, **options):
        try:
            deleted = purge_all_orders()
        except OrderError as e:
            raise CommandError(f"Purge failed: {e}")
        self.stdout.write(self.style.SUCCESS(f"Deleted {deleted} orders."))
