"""
Django admin registrations for the core models.

Superusers use ``/admin/`` to fix up tenants, staff accounts and
templates by hand; clinical records are listed read-mostly.
"""

from django.contrib import admin

from .models import (
    ActionPlan,
    AuditEvent,
    AuditResponse,
    AuditTemplate,
    CareFileForm,
    CareTeamMember,
    EmergencyContact,
    FoodFluidLog,
    MultidisciplinaryNote,
    Notification,
    Organization,
    ProgressNote,
    Resident,
    Team,
    User,
)


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'created_at')
    search_fields = ('name',)


@admin.register(Team)
class TeamAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'organization')
    list_filter = ('organization',)
    search_fields = ('name',)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'organization', 'team', 'is_saas_admin', 'is_superuser')
    list_filter = ('role', 'organization', 'is_saas_admin')
    search_fields = ('username', 'first_name', 'last_name', 'email')


class EmergencyContactInline(admin.TabularInline):
    model = EmergencyContact
    extra = 0


@admin.register(Resident)
class ResidentAdmin(admin.ModelAdmin):
    list_display = ('id', 'first_name', 'last_name', 'room_number', 'organization', 'team', 'is_active')
    list_filter = ('organization', 'is_active')
    search_fields = ('first_name', 'last_name', 'nhs_health_number', 'room_number')
    inlines = [EmergencyContactInline]


@admin.register(AuditTemplate)
class AuditTemplateAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'category', 'frequency', 'organization', 'team', 'is_active')
    list_filter = ('category', 'frequency', 'is_active')
    search_fields = ('name',)


@admin.register(AuditResponse)
class AuditResponseAdmin(admin.ModelAdmin):
    list_display = ('id', 'template_name', 'category', 'status', 'team', 'resident', 'completed_at', 'next_audit_due')
    list_filter = ('status', 'category')
    search_fields = ('template_name',)
    readonly_fields = ('content_hash',)


@admin.register(ActionPlan)
class ActionPlanAdmin(admin.ModelAdmin):
    list_display = ('id', 'description', 'priority', 'status', 'assigned_to', 'due_date')
    list_filter = ('status', 'priority')
    search_fields = ('description',)


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('id', 'recipient', 'type', 'title', 'is_read', 'created_at')
    list_filter = ('type', 'is_read')


@admin.register(ProgressNote)
class ProgressNoteAdmin(admin.ModelAdmin):
    list_display = ('id', 'resident', 'type', 'subject', 'author_name', 'created_at')
    list_filter = ('type',)
    search_fields = ('subject', 'note')


@admin.register(CareTeamMember)
class CareTeamMemberAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'specialty', 'resident')
    search_fields = ('name', 'specialty')


@admin.register(MultidisciplinaryNote)
class MultidisciplinaryNoteAdmin(admin.ModelAdmin):
    list_display = ('id', 'resident', 'team_member_name', 'note_date', 'relative_informed')


@admin.register(FoodFluidLog)
class FoodFluidLogAdmin(admin.ModelAdmin):
    list_display = ('id', 'resident', 'date', 'section', 'type_of_food_drink', 'fluid_consumed_ml', 'is_archived')
    list_filter = ('section', 'is_archived', 'date')


@admin.register(CareFileForm)
class CareFileFormAdmin(admin.ModelAdmin):
    list_display = ('id', 'resident', 'form_key', 'saved_as_draft', 'created_at')
    list_filter = ('form_key', 'saved_as_draft')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('id', 'action', 'user', 'object_type', 'object_id', 'created_at')
    list_filter = ('action', 'object_type')
    search_fields = ('object_id',)
