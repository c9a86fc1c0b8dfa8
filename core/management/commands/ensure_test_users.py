from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand

from core.models import Organization, Team, User

ORGANIZATION = 'Demo Care Home'
TEAM = 'Ground Floor'
TEST_SET = [
    ("owner1", User.ROLE_OWNER),
    ("admin1", User.ROLE_ADMIN),
    ("manager1", User.ROLE_MANAGER),
    ("nurse1", User.ROLE_NURSE),
    ("carer1", User.ROLE_CARE_ASSISTANT),
]


class Command(BaseCommand):
    help = "Ensure a demo care home and one user per role exist, password=123456 (idempotent)."

    def handle(self, *args, **opts):
        org, _ = Organization.objects.get_or_create(name=ORGANIZATION)
        team, _ = Team.objects.get_or_create(organization=org, name=TEAM)
        for username, role in TEST_SET:
            u, created = User.objects.get_or_create(
                username=username,
                defaults={
                    "role": role,
                    "password": make_password("123456"),
                    "is_active": True,
                    "organization": org,
                    "team": team,
                },
            )
            if not created:
                # reset password, role and tenant of an existing account
                u.password = make_password("123456")
                u.role = role
                u.is_active = True
                u.organization = org
                u.team = team
                u.save(update_fields=["password", "role", "is_active", "organization", "team"])
            self.stdout.write(self.style.SUCCESS(f"ok: {username} ({role})"))
        self.stdout.write(self.style.SUCCESS("All test users ensured."))
