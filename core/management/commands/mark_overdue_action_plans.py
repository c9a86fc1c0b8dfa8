import logging

from django.core.management.base import BaseCommand

from core.services.action_plans import mark_overdue_action_plans

logger = logging.getLogger('core.action_plans')


class Command(BaseCommand):
    help = "Flip open action plans past their due date to overdue."

    def handle(self, *args, **opts):
        count = mark_overdue_action_plans()
        logger.info('action plans marked overdue',
                    extra={'operation': 'mark_overdue_action_plans', 'extra_data': {'count': count}})
        self.stdout.write(self.style.SUCCESS(f"ok: {count} action plan(s) marked overdue"))
