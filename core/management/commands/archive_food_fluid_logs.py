import datetime
import logging

from django.core.management.base import BaseCommand, CommandError

from core.services.food_fluid import archive_previous_day_logs

logger = logging.getLogger('core.food_fluid')


class Command(BaseCommand):
    help = "Lock the previous day's food and fluid entries (run daily at 7am)."

    def add_arguments(self, parser):
        parser.add_argument('--date', help='Day to archive (YYYY-MM-DD); defaults to yesterday.')

    def handle(self, *args, **opts):
        target = None
        if opts.get('date'):
            try:
                target = datetime.date.fromisoformat(opts['date'])
            except ValueError:
                raise CommandError('--date must be YYYY-MM-DD')
        result = archive_previous_day_logs(target)
        logger.info('food/fluid logs archived', extra={'operation': 'archive_food_fluid_logs', 'extra_data': result})
        self.stdout.write(self.style.SUCCESS(
            f"archived {result['archivedCount']} entries for {result['targetDate']}"
        ))
