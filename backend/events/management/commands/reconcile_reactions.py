# events/management/commands/reconcile_reactions.py
"""
Management command to find and repair events whose reactions did not all succeed.

Usage:
    # List unreconciled events without touching them
    python manage.py reconcile_reactions --list

    # Re-dispatch everything older than the grace period
    python manage.py reconcile_reactions

    # Re-dispatch one event, whatever its age
    python manage.py reconcile_reactions --event 3f0c...

    # Include events younger than the configured grace period
    python manage.py reconcile_reactions --grace-seconds 0
"""

from django.core.management.base import BaseCommand, CommandError

from common.errors import NotFoundError
from events.reactions import reaction_registry
from events.reconciliation import find_unreconciled, reconcile_events, reconcile_event


class Command(BaseCommand):
    help = "Re-run failed or missing reactions for recorded domain events"

    def add_arguments(self, parser):
        parser.add_argument(
            "--list",
            action="store_true",
            help="Only list unreconciled events",
        )
        parser.add_argument(
            "--event",
            type=str,
            help="Reconcile a single event by id",
        )
        parser.add_argument(
            "--grace-seconds",
            type=int,
            default=None,
            help="Skip events younger than this (default: RECONCILE_GRACE_SECONDS)",
        )
        parser.add_argument(
            "--limit",
            type=int,
            default=100,
            help="Maximum events to handle",
        )

    def handle(self, *args, **options):
        if options["event"]:
            try:
                item = reconcile_event(options["event"])
            except NotFoundError as exc:
                raise CommandError(str(exc))
            self._report([item])
            return

        events = find_unreconciled(grace_seconds=options["grace_seconds"], limit=options["limit"])
        if not events:
            self.stdout.write(self.style.SUCCESS("All events reconciled."))
            return

        if options["list"]:
            self.stdout.write(f"{len(events)} unreconciled event(s):")
            for event in events:
                runs = {run.reaction_name: run.status for run in event.reaction_runs.all()}
                expected = [r.name for r in reaction_registry.for_event_type(event.event_type)]
                missing = [name for name in expected if runs.get(name) != "SUCCEEDED"]
                self.stdout.write(
                    f"  {event.id}  {event.event_type:<28} {event.recorded_at:%Y-%m-%d %H:%M}  "
                    f"pending: {', '.join(missing)}"
                )
            return

        self._report(reconcile_events(events))

    def _report(self, report):
        for item in report:
            failed = [name for name, status in item["results"].items() if status != "SUCCEEDED"]
            line = f"{item['event_id']}  {item['event_type']}"
            if failed:
                self.stdout.write(self.style.ERROR(f"{line}  still failing: {', '.join(failed)}"))
            else:
                self.stdout.write(self.style.SUCCESS(f"{line}  reconciled"))
