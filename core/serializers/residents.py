import re

from rest_framework import serializers

NHS_NUMBER_RE = re.compile(r'^\d{10}$')


class EmergencyContactSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    phoneNumber = serializers.CharField(source='phone_number', max_length=32)
    relationship = serializers.CharField(max_length=64)
    address = serializers.CharField(required=False, allow_blank=True)
    isPrimary = serializers.BooleanField(source='is_primary', required=False, default=False)


class ResidentSerializer(serializers.Serializer):
    firstName = serializers.CharField(source='first_name', max_length=100)
    lastName = serializers.CharField(source='last_name', max_length=100)
    dateOfBirth = serializers.DateField(source='date_of_birth')
    phoneNumber = serializers.CharField(source='phone_number', required=False, allow_blank=True, max_length=32)
    roomNumber = serializers.CharField(source='room_number', required=False, allow_blank=True, max_length=32)
    admissionDate = serializers.DateField(source='admission_date')
    nhsHealthNumber = serializers.CharField(source='nhs_health_number', required=False, allow_blank=True)
    teamId = serializers.IntegerField(source='team_id', required=False, allow_null=True)
    gpName = serializers.CharField(source='gp_name', required=False, allow_blank=True)
    gpAddress = serializers.CharField(source='gp_address', required=False, allow_blank=True)
    gpPhone = serializers.CharField(source='gp_phone', required=False, allow_blank=True)
    careManagerName = serializers.CharField(source='care_manager_name', required=False, allow_blank=True)
    careManagerAddress = serializers.CharField(source='care_manager_address', required=False, allow_blank=True)
    careManagerPhone = serializers.CharField(source='care_manager_phone', required=False, allow_blank=True)
    healthConditions = serializers.ListField(child=serializers.CharField(), source='health_conditions', required=False)
    risks = serializers.ListField(child=serializers.CharField(), required=False)
    dependencies = serializers.DictField(required=False)
    allergies = serializers.CharField(required=False, allow_blank=True)
    medications = serializers.CharField(required=False, allow_blank=True)
    medicalConditions = serializers.CharField(source='medical_conditions', required=False, allow_blank=True)
    emergencyContacts = EmergencyContactSerializer(many=True, required=False, write_only=True)

    def validate_nhsHealthNumber(self, v):
        v = (v or '').replace(' ', '')
        if v and not NHS_NUMBER_RE.match(v):
            raise serializers.ValidationError('NHS number must be 10 digits')
        return v

    def validate(self, attrs):
        if attrs.get('date_of_birth') and attrs.get('admission_date') and attrs['admission_date'] < attrs['date_of_birth']:
            raise serializers.ValidationError({'admissionDate': 'Admission date cannot be before date of birth'})
        return attrs
