"""
Database models for the care-home backend.

These models capture the core concepts of the system: organizations
(care homes) and their teams (units), staff users, residents, audit
templates and their completions, follow-up action plans, progress and
multidisciplinary notes, food/fluid intake logs and the per-resident
care file forms.  Every record is scoped to an organization so that
access checks can be expressed as a single filter.
"""
from __future__ import annotations

import datetime
import os
import uuid

from django.contrib.auth.models import AbstractUser
from django.db import models


class Organization(models.Model):
    """A care home (tenant)."""
    name = models.CharField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.name} ({self.id})"


class Team(models.Model):
    """A unit or floor within a care home."""
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='teams')
    name = models.CharField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [('organization', 'name')]

    def __str__(self) -> str:
        return f"{self.name} @ {self.organization_id}"


class User(AbstractUser):
    """Staff user with a role inside one organization.

    ``is_saas_admin`` marks platform operators who may see every
    organization; it is independent of ``role``.
    """
    ROLE_OWNER = 'owner'
    ROLE_ADMIN = 'admin'
    ROLE_MANAGER = 'manager'
    ROLE_NURSE = 'nurse'
    ROLE_CARE_ASSISTANT = 'care_assistant'
    ROLE_CHOICES = [
        (ROLE_OWNER, 'Owner'),
        (ROLE_ADMIN, 'Administrator'),
        (ROLE_MANAGER, 'Manager'),
        (ROLE_NURSE, 'Nurse'),
        (ROLE_CARE_ASSISTANT, 'Care assistant'),
    ]
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_CARE_ASSISTANT)
    is_saas_admin = models.BooleanField(default=False)
    organization = models.ForeignKey(
        Organization, null=True, blank=True, on_delete=models.SET_NULL, related_name='users', db_index=True
    )
    team = models.ForeignKey(Team, null=True, blank=True, on_delete=models.SET_NULL, related_name='users')

    def display_name(self) -> str:
        return self.get_full_name() or self.email or self.username

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Resident(models.Model):
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='residents')
    team = models.ForeignKey(Team, null=True, blank=True, on_delete=models.SET_NULL, related_name='residents')
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    date_of_birth = models.DateField()
    phone_number = models.CharField(max_length=32, blank=True)
    room_number = models.CharField(max_length=32, blank=True)
    admission_date = models.DateField()
    nhs_health_number = models.CharField(max_length=10, blank=True)
    # GP details
    gp_name = models.CharField(max_length=255, blank=True)
    gp_address = models.TextField(blank=True)
    gp_phone = models.CharField(max_length=32, blank=True)
    # Care manager details
    care_manager_name = models.CharField(max_length=255, blank=True)
    care_manager_address = models.TextField(blank=True)
    care_manager_phone = models.CharField(max_length=32, blank=True)
    health_conditions = models.JSONField(default=list, blank=True)
    risks = models.JSONField(default=list, blank=True)
    dependencies = models.JSONField(default=dict, blank=True)
    allergies = models.TextField(blank=True)
    medications = models.TextField(blank=True)
    medical_conditions = models.TextField(blank=True)
    # soft delete: listings only show active residents
    is_active = models.BooleanField(default=True, db_index=True)
    created_by = models.ForeignKey(User, null=True, on_delete=models.SET_NULL, related_name='residents_created')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [models.Index(fields=['organization', 'is_active'])]

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self) -> str:
        return f"{self.full_name} (room {self.room_number or '-'})"


class EmergencyContact(models.Model):
    resident = models.ForeignKey(Resident, on_delete=models.CASCADE, related_name='emergency_contacts')
    name = models.CharField(max_length=255)
    phone_number = models.CharField(max_length=32)
    relationship = models.CharField(max_length=64)
    address = models.TextField(blank=True)
    is_primary = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.name} for {self.resident_id}"


class AuditTemplate(models.Model):
    """A reusable checklist definition, instantiated per completion."""
    CATEGORY_RESIDENT = 'resident'
    CATEGORY_CAREFILE = 'carefile'
    CATEGORY_GOVERNANCE = 'governance'
    CATEGORY_CLINICAL = 'clinical'
    CATEGORY_ENVIRONMENT = 'environment'
    CATEGORY_CHOICES = [
        (CATEGORY_RESIDENT, 'Resident'),
        (CATEGORY_CAREFILE, 'Care file'),
        (CATEGORY_GOVERNANCE, 'Governance'),
        (CATEGORY_CLINICAL, 'Clinical'),
        (CATEGORY_ENVIRONMENT, 'Environment'),
    ]
    FREQUENCY_CHOICES = [
        ('daily', 'Daily'),
        ('weekly', 'Weekly'),
        ('monthly', 'Monthly'),
        ('quarterly', 'Quarterly'),
        ('3months', 'Every 3 months'),
        ('6months', 'Every 6 months'),
        ('yearly', 'Yearly'),
        ('adhoc', 'Ad hoc'),
    ]
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='audit_templates')
    team = models.ForeignKey(Team, null=True, blank=True, on_delete=models.SET_NULL, related_name='audit_templates')
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, db_index=True)
    questions = models.JSONField(default=list, blank=True)
    frequency = models.CharField(max_length=16, choices=FREQUENCY_CHOICES, default='monthly')
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(User, null=True, on_delete=models.SET_NULL, related_name='audit_templates_created')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['organization', 'category', 'is_active']),
            models.Index(fields=['team', 'category']),
        ]

    def __str__(self) -> str:
        return f"{self.name} [{self.category}]"


class AuditResponse(models.Model):
    """The filled-in record of a template for an organization or resident."""
    STATUS_DRAFT = 'draft'
    STATUS_IN_PROGRESS = 'in-progress'
    STATUS_COMPLETED = 'completed'
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_IN_PROGRESS, 'In progress'),
        (STATUS_COMPLETED, 'Completed'),
    ]
    OPEN_STATUSES = (STATUS_DRAFT, STATUS_IN_PROGRESS)

    template = models.ForeignKey(AuditTemplate, on_delete=models.CASCADE, related_name='responses')
    template_name = models.CharField(max_length=255)
    category = models.CharField(max_length=20, choices=AuditTemplate.CATEGORY_CHOICES, db_index=True)
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='audit_responses')
    team = models.ForeignKey(Team, null=True, blank=True, on_delete=models.SET_NULL, related_name='audit_responses')
    resident = models.ForeignKey(
        Resident, null=True, blank=True, on_delete=models.CASCADE, related_name='audit_responses'
    )
    items = models.JSONField(default=list, blank=True)
    overall_notes = models.TextField(blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_DRAFT, db_index=True)
    audited_by = models.ForeignKey(User, null=True, on_delete=models.SET_NULL, related_name='audits_performed')
    audited_at = models.DateTimeField(auto_now_add=True)
    frequency = models.CharField(max_length=16, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    next_audit_due = models.DateTimeField(null=True, blank=True)
    content_hash = models.CharField(max_length=64, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['template', 'organization', 'status']),
            models.Index(fields=['template', 'team', 'status']),
            models.Index(fields=['template', 'resident', 'status']),
            models.Index(fields=['organization', 'next_audit_due']),
        ]

    @property
    def is_open(self) -> bool:
        return self.status in self.OPEN_STATUSES

    def __str__(self) -> str:
        return f"{self.template_name} #{self.id} ({self.status})"


class ActionPlan(models.Model):
    """Follow-up task attached to an audit completion."""
    PRIORITY_CHOICES = [('Low', 'Low'), ('Medium', 'Medium'), ('High', 'High')]
    STATUS_PENDING = 'pending'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_OVERDUE = 'overdue'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_IN_PROGRESS, 'In progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_OVERDUE, 'Overdue'),
    ]
    audit_response = models.ForeignKey(AuditResponse, on_delete=models.CASCADE, related_name='action_plans')
    template = models.ForeignKey(AuditTemplate, on_delete=models.CASCADE, related_name='action_plans')
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='action_plans')
    team = models.ForeignKey(Team, null=True, blank=True, on_delete=models.SET_NULL, related_name='action_plans')
    description = models.TextField()
    assigned_to = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='action_plans_assigned'
    )
    priority = models.CharField(max_length=8, choices=PRIORITY_CHOICES, default='Medium', db_index=True)
    due_date = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    latest_comment = models.TextField(blank=True)
    created_by = models.ForeignKey(User, null=True, on_delete=models.SET_NULL, related_name='action_plans_created')
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['team', 'status']),
            models.Index(fields=['assigned_to', 'status']),
        ]

    def __str__(self) -> str:
        return f"{self.description[:30]} ({self.status})"


class Notification(models.Model):
    recipient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications')
    sender = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    type = models.CharField(max_length=64)
    title = models.CharField(max_length=255)
    message = models.TextField()
    link = models.CharField(max_length=512, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(default=False, db_index=True)
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='notifications')
    team = models.ForeignKey(Team, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=['recipient', 'is_read', 'created_at'])]

    def __str__(self) -> str:
        return f"{self.type} -> {self.recipient_id}"


class ProgressNote(models.Model):
    TYPE_CHOICES = [
        ('daily', 'Daily'),
        ('incident', 'Incident'),
        ('medical', 'Medical'),
        ('behavioral', 'Behavioral'),
        ('other', 'Other'),
    ]
    MOOD_CHOICES = [
        ('happy', 'Happy'),
        ('calm', 'Calm'),
        ('anxious', 'Anxious'),
        ('agitated', 'Agitated'),
        ('confused', 'Confused'),
        ('sad', 'Sad'),
        ('neutral', 'Neutral'),
    ]
    PARTICIPATION_CHOICES = [
        ('engaged', 'Engaged'),
        ('partially_engaged', 'Partially engaged'),
        ('refused', 'Refused'),
        ('sleeping', 'Sleeping'),
        ('not_applicable', 'Not applicable'),
    ]
    resident = models.ForeignKey(Resident, on_delete=models.CASCADE, related_name='progress_notes')
    type = models.CharField(max_length=16, choices=TYPE_CHOICES, db_index=True)
    subject = models.CharField(max_length=255)
    note = models.TextField()
    mood = models.CharField(max_length=16, choices=MOOD_CHOICES, blank=True)
    participation = models.CharField(max_length=20, choices=PARTICIPATION_CHOICES, blank=True)
    author = models.ForeignKey(User, null=True, on_delete=models.SET_NULL, related_name='progress_notes')
    author_name = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.subject} ({self.type})"


class CareTeamMember(models.Model):
    """A visiting professional on a resident's multidisciplinary team."""
    resident = models.ForeignKey(Resident, on_delete=models.CASCADE, related_name='care_team')
    name = models.CharField(max_length=255)
    specialty = models.CharField(max_length=128, blank=True)
    organization_name = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=32, blank=True)
    email = models.EmailField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.name} ({self.specialty})"


class MultidisciplinaryNote(models.Model):
    RELATIVE_INFORMED_CHOICES = [('yes', 'Yes'), ('no', 'No')]
    resident = models.ForeignKey(Resident, on_delete=models.CASCADE, related_name='mdt_notes')
    team_member = models.ForeignKey(
        CareTeamMember, null=True, blank=True, on_delete=models.SET_NULL, related_name='notes'
    )
    team_member_name = models.CharField(max_length=255)
    reason_for_visit = models.TextField()
    outcome = models.TextField()
    relative_informed = models.CharField(max_length=3, choices=RELATIVE_INFORMED_CHOICES)
    relative_informed_details = models.TextField(blank=True)
    signature = models.CharField(max_length=255)
    note_date = models.DateField()
    note_time = models.TimeField()
    created_by = models.ForeignKey(User, null=True, on_delete=models.SET_NULL, related_name='mdt_notes_created')
    updated_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"MDT {self.team_member_name} {self.note_date}"


class FoodFluidLog(models.Model):
    SECTION_CHOICES = [
        ('midnight-7am', 'Midnight - 7am'),
        ('7am-12pm', '7am - 12pm'),
        ('12pm-5pm', '12pm - 5pm'),
        ('5pm-midnight', '5pm - midnight'),
    ]
    AMOUNT_CHOICES = [('None', 'None'), ('1/4', '1/4'), ('1/2', '1/2'), ('3/4', '3/4'), ('All', 'All')]
    resident = models.ForeignKey(Resident, on_delete=models.CASCADE, related_name='food_fluid_logs')
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='food_fluid_logs')
    timestamp = models.DateTimeField()
    section = models.CharField(max_length=16, choices=SECTION_CHOICES)
    type_of_food_drink = models.CharField(max_length=100)
    portion_served = models.CharField(max_length=64, blank=True)
    amount_eaten = models.CharField(max_length=8, choices=AMOUNT_CHOICES, blank=True)
    fluid_consumed_ml = models.PositiveIntegerField(null=True, blank=True)
    signature = models.CharField(max_length=50)
    date = models.DateField(db_index=True)
    is_archived = models.BooleanField(default=False)
    archived_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(User, null=True, on_delete=models.SET_NULL, related_name='food_fluid_logs')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['resident', 'date']),
            models.Index(fields=['date', 'is_archived']),
        ]

    def __str__(self) -> str:
        return f"{self.type_of_food_drink} @ {self.section} ({self.date})"


def _care_file_upload(instance, filename: str) -> str:
    ext = os.path.splitext(filename)[1]
    return f"care-files/{datetime.date.today().strftime('%Y/%m')}/{uuid.uuid4().hex}{ext}"


class CareFileForm(models.Model):
    """One submission of a care-file form for a resident.

    ``data`` holds the form body; its shape depends on ``form_key`` and is
    validated by the matching serializer before it is stored.
    """
    FORM_KEYS = (
        'preAdmission-form',
        'admission-form',
        'infection-prevention',
        'blader-bowel-form',
        'moving-handling-form',
        'long-term-fall-risk-form',
        'resident-valuables-form',
        'timl-form',
        'photography-consent',
        'dnacpr',
        'peep',
        'dependency',
        'pain-assessment',
        'skin-integrity',
        'oral-assessment',
        'choking-risk',
        'cornell-depression',
        'diet-notification',
    )
    FORM_KEY_CHOICES = [(k, k) for k in FORM_KEYS]

    resident = models.ForeignKey(Resident, on_delete=models.CASCADE, related_name='care_file_forms')
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='care_file_forms')
    form_key = models.CharField(max_length=40, choices=FORM_KEY_CHOICES, db_index=True)
    data = models.JSONField(default=dict, blank=True)
    saved_as_draft = models.BooleanField(default=False)
    pdf_file = models.FileField(upload_to=_care_file_upload, max_length=512, blank=True)
    created_by = models.ForeignKey(User, null=True, on_delete=models.SET_NULL, related_name='care_file_forms')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [models.Index(fields=['resident', 'form_key', 'created_at'])]

    def __str__(self) -> str:
        return f"{self.form_key} for {self.resident_id}"


class AuditEvent(models.Model):
    """Data-access trail for compliance reviews."""
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.CharField(max_length=64, blank=True, null=True)
    resident = models.ForeignKey(Resident, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    detail = models.JSONField(default=dict, blank=True)
    ip = models.GenericIPAddressField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at']),
            models.Index(fields=['object_type', 'object_id', 'created_at']),
        ]

    def __str__(self):
        return f"{self.action}:{self.user_id}@{self.created_at:%F %T}"
