from rest_framework import serializers

from core.models import ActionPlan, AuditTemplate


class QuestionSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=64)
    text = serializers.CharField()
    type = serializers.ChoiceField(choices=['compliance', 'yesno', 'checkbox', 'notes'])


class AuditTemplateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    category = serializers.ChoiceField(choices=AuditTemplate.CATEGORY_CHOICES)
    questions = QuestionSerializer(many=True, required=False, default=list)
    frequency = serializers.ChoiceField(choices=AuditTemplate.FREQUENCY_CHOICES, required=False, default='monthly')
    teamId = serializers.IntegerField(source='team_id', required=False, allow_null=True)
    isActive = serializers.BooleanField(source='is_active', required=False)


class AuditItemSerializer(serializers.Serializer):
    """One answered row: a question for governance/environment audits,
    a resident for resident audits."""
    questionId = serializers.CharField(required=False, allow_blank=True)
    residentId = serializers.CharField(required=False, allow_blank=True)
    residentName = serializers.CharField(required=False, allow_blank=True)
    roomNumber = serializers.CharField(required=False, allow_blank=True)
    status = serializers.CharField(required=False, allow_blank=True)
    value = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    answers = serializers.ListField(child=serializers.DictField(), required=False)
    date = serializers.CharField(required=False, allow_blank=True)
    comment = serializers.CharField(required=False, allow_blank=True)


class DraftRequestSerializer(serializers.Serializer):
    templateId = serializers.IntegerField()
    residentId = serializers.IntegerField(required=False, allow_null=True)
    teamId = serializers.IntegerField(required=False, allow_null=True)


class AutosaveSerializer(serializers.Serializer):
    items = AuditItemSerializer(many=True)
    overallNotes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    baseHash = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=64)


class CompleteSerializer(serializers.Serializer):
    items = AuditItemSerializer(many=True, required=False)
    overallNotes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class ActionPlanSerializer(serializers.Serializer):
    auditResponseId = serializers.IntegerField(required=False)
    description = serializers.CharField()
    assignedTo = serializers.IntegerField(required=False, allow_null=True)
    priority = serializers.ChoiceField(choices=ActionPlan.PRIORITY_CHOICES, required=False, default='Medium')
    dueDate = serializers.DateTimeField(required=False, allow_null=True)
    status = serializers.ChoiceField(choices=ActionPlan.STATUS_CHOICES, required=False)
    latestComment = serializers.CharField(required=False, allow_blank=True)
