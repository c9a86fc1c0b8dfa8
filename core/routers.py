"""
URL mappings for the care home API.

Paths carry no trailing slash; resident-owned records are nested under
``api/residents/<id>/``.
"""
from django.urls import include, path

from .auth_views import jwt_logout_view, jwt_refresh_view, login_view, me_view
from .views import action_plans, audits, care_files, food_fluid, health, notes, notifications, residents
from .views.dashboard import dashboard

resident_patterns = [
    path('', residents.resident_detail, name='resident_detail'),
    path('/audit-trail', residents.resident_audit_trail, name='resident_audit_trail'),
    # progress notes
    path('/progress-notes', notes.progress_notes, name='progress_notes'),
    path('/progress-notes/<int:pk>', notes.progress_note_detail, name='progress_note_detail'),
    # MDT
    path('/care-team', notes.care_team, name='care_team'),
    path('/care-team/<int:pk>', notes.care_team_member_detail, name='care_team_member_detail'),
    path('/mdt-notes', notes.mdt_notes, name='mdt_notes'),
    path('/mdt-notes/<int:pk>', notes.mdt_note_detail, name='mdt_note_detail'),
    # food & fluid
    path('/food-fluid', food_fluid.food_fluid_logs, name='food_fluid_logs'),
    path('/food-fluid/archived', food_fluid.food_fluid_archived, name='food_fluid_archived'),
    path('/food-fluid/summary', food_fluid.food_fluid_summary, name='food_fluid_summary'),
    path('/food-fluid/<int:pk>', food_fluid.food_fluid_detail, name='food_fluid_detail'),
    # care file
    path('/care-file', care_files.care_file_forms, name='care_file_forms'),
    path('/care-file/status', care_files.care_file_status, name='care_file_status'),
    path('/care-file/<int:pk>', care_files.care_file_form_detail, name='care_file_form_detail'),
    path('/care-file/<int:pk>/pdf', care_files.care_file_pdf, name='care_file_pdf'),
]

urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz, name='healthz'),
    # Authentication
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/me', me_view, name='me_view'),
    path('api/auth/refresh', jwt_refresh_view, name='jwt_refresh_view'),
    path('api/auth/logout', jwt_logout_view, name='jwt_logout_view'),
    # Dashboard
    path('api/dashboard', dashboard, name='dashboard'),
    # Residents
    path('api/residents', residents.residents_list, name='residents_list'),
    path('api/residents/<int:resident_id>', include(resident_patterns)),
    path('api/progress-notes/recent', notes.recent_progress_notes, name='recent_progress_notes'),
    path('api/care-file/forms', care_files.care_file_form_keys, name='care_file_form_keys'),
    # Audit templates
    path('api/audit-templates', audits.templates_list, name='audit_templates'),
    path('api/audit-templates/<int:pk>', audits.template_detail, name='audit_template_detail'),
    path('api/audit-templates/<int:pk>/archive', audits.template_archive, name='audit_template_archive'),
    path('api/audit-templates/<int:pk>/responses', audits.template_responses, name='audit_template_responses'),
    path('api/audit-templates/<int:pk>/drafts', audits.template_drafts, name='audit_template_drafts'),
    path('api/audit-templates/<int:pk>/latest', audits.template_latest, name='audit_template_latest'),
    # Audit responses
    path('api/audits/drafts', audits.open_draft, name='audit_open_draft'),
    path('api/audits/drafts/state', audits.draft_state, name='audit_draft_state'),
    path('api/audits/latest', audits.latest_per_template, name='audit_latest_per_template'),
    path('api/audits/overdue', audits.overdue, name='audit_overdue'),
    path('api/audits/upcoming', audits.upcoming, name='audit_upcoming'),
    path('api/audits/<int:pk>', audits.response_detail, name='audit_response_detail'),
    path('api/audits/<int:pk>/autosave', audits.response_autosave, name='audit_autosave'),
    path('api/audits/<int:pk>/complete', audits.response_complete, name='audit_complete'),
    path('api/teams/<int:team_id>/drafts', audits.team_drafts, name='team_drafts'),
    # Action plans
    path('api/action-plans', action_plans.action_plans_list, name='action_plans'),
    path('api/action-plans/mine', action_plans.my_action_plans, name='my_action_plans'),
    path('api/action-plans/overdue', action_plans.overdue_action_plans, name='overdue_action_plans'),
    path('api/action-plans/stats', action_plans.action_plan_stats, name='action_plan_stats'),
    path('api/action-plans/<int:pk>', action_plans.action_plan_detail, name='action_plan_detail'),
    path('api/action-plans/<int:pk>/complete', action_plans.action_plan_complete, name='action_plan_complete'),
    # Notifications
    path('api/notifications', notifications.notifications_list, name='notifications'),
    path('api/notifications/read-all', notifications.notifications_read_all, name='notifications_read_all'),
    path('api/notifications/<int:pk>/read', notifications.notification_read, name='notification_read'),
]
