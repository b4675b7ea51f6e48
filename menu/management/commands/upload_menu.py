import json

from django.core.management.base import BaseCommand, CommandError

from menu.services import load_menu_file, upload_menu
from orders.exceptions import OrderError


class Command(BaseCommand):
    help = "Bulk-loads a menu JSON file into the menu collection."

    def add_arguments(self, parser):
        parser.add_argument('path', help="JSON file with a list of {category, items}.")
        parser.add_argument('--no-progress', action='store_true', help="Hide the progress bar.")

    def handle(self, *args, **options):
        path = options['path']
        try:
            menu = load_menu_file(path)
        except FileNotFoundError:
            raise CommandError(f"Error: The file '{path}' was not found.")
        except json.JSONDecodeError:
            raise CommandError(f"Error: Could not decode JSON from the file '{path}'.")
        except ValueError as e:
            raise CommandError(str(e))

        if not menu:
            self.stdout.write(f"No categories found in '{path}'. Nothing to upload.")
            return

        try:
            count = upload_menu(menu, progress=not options['no_progress'])
        except OrderError as e:
            raise CommandError(f"Menu upload failed: {e}")
        self.stdout.write(self.style.SUCCESS(f"All menu data uploaded! ({count} categories)"))
