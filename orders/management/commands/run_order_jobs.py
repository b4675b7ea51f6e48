from django.core.management.base import BaseCommand

from orders.jobs import JobRunner


class Command(BaseCommand):
    help = "Runs delayed deletion of delivered orders and the daily purge until interrupted."

    def add_arguments(self, parser):
        parser.add_argument(
            '--poll-seconds', type=float, default=None,
            help="Seconds between ticks (defaults to ORDER_JOBS_POLL_SECONDS).",
        )

    def handle(self, *args, **options):
        runner = JobRunner(poll_seconds=options['poll_seconds'])
        pending = runner.deletions.pending()
        self.stdout.write(
            f"Order jobs running; {len(pending)} pending deletion(s), "
            f"next purge at {runner.next_purge.isoformat()}. Press Ctrl+C to stop."
        )
        runner.start()
        try:
            while runner.is_alive():
                runner.join(timeout=1.0)
        except KeyboardInterrupt:
            self.stdout.write("Stopping order jobs...")
        finally:
            runner.stop()
