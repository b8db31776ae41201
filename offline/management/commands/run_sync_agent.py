"""
Django management command running the offline sync agent in the foreground.

Starts connectivity polling and the periodic drain, then blocks until
interrupted.

Usage:
    python manage.py run_sync_agent
    python manage.py run_sync_agent --once
"""
import time

from django.core.management.base import BaseCommand

from offline.runtime import get_runtime, reset_runtime


class Command(BaseCommand):
    help = 'Run the offline queue sync agent (connectivity polling + auto-sync)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--once',
            action='store_true',
            help='Drain the queue a single time and exit',
        )

    def handle(self, *args, **options):
        runtime = get_runtime()

        if options['once']:
            if not runtime.connectivity.check():
                self.stdout.write(self.style.WARNING('Dispatch API unreachable - nothing synced'))
                return
            result = runtime.engine.process_queue()
            self.stdout.write(self.style.SUCCESS(
                f"Synced {result.processed}/{result.total} actions "
                f"({result.failed} failed, {result.skipped} skipped)"
            ))
            return

        runtime.start()
        self.stdout.write(self.style.SUCCESS('Offline sync agent running. Press Ctrl+C to stop.'))
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stdout.write('Stopping...')
        finally:
            reset_runtime()
        self.stdout.write(self.style.SUCCESS('Offline sync agent stopped'))
