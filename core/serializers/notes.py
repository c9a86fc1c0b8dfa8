from rest_framework import serializers

from core.models import MultidisciplinaryNote, ProgressNote


class ProgressNoteSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=ProgressNote.TYPE_CHOICES)
    subject = serializers.CharField(max_length=255)
    note = serializers.CharField()
    mood = serializers.ChoiceField(choices=ProgressNote.MOOD_CHOICES, required=False, allow_blank=True)
    participation = serializers.ChoiceField(
        choices=ProgressNote.PARTICIPATION_CHOICES, required=False, allow_blank=True
    )


class CareTeamMemberSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    specialty = serializers.CharField(required=False, allow_blank=True, default='')
    organizationName = serializers.CharField(source='organization_name', required=False, allow_blank=True, default='')
    phone = serializers.CharField(required=False, allow_blank=True, default='')
    email = serializers.EmailField(required=False, allow_blank=True, default='')


class MdtNoteSerializer(serializers.Serializer):
    teamMemberId = serializers.IntegerField(required=False, allow_null=True)
    teamMemberName = serializers.CharField(source='team_member_name', max_length=255)
    reasonForVisit = serializers.CharField(source='reason_for_visit')
    outcome = serializers.CharField()
    relativeInformed = serializers.ChoiceField(
        source='relative_informed', choices=MultidisciplinaryNote.RELATIVE_INFORMED_CHOICES
    )
    relativeInformedDetails = serializers.CharField(
        source='relative_informed_details', required=False, allow_blank=True, default=''
    )
    signature = serializers.CharField(max_length=255)
    date = serializers.DateField(source='note_date')
    time = serializers.TimeField(source='note_time')


class FoodFluidLogSerializer(serializers.Serializer):
    # range checks live in core.services.security.validate_food_fluid_log
    section = serializers.CharField()
    typeOfFoodDrink = serializers.CharField(source='type_of_food_drink', allow_blank=True, trim_whitespace=False)
    portionServed = serializers.CharField(source='portion_served', required=False, allow_blank=True, default='')
    amountEaten = serializers.CharField(source='amount_eaten', required=False, allow_blank=True, default='')
    fluidConsumedMl = serializers.IntegerField(source='fluid_consumed_ml', required=False, allow_null=True)
    signature = serializers.CharField(allow_blank=True)

