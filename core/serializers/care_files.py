"""
Field-level validation for care file forms.

The form bodies are stored as JSON with the same camelCase keys the
forms use; dates are epoch milliseconds.  Forms without a serializer
here are accepted as free-form objects.
"""
from decimal import Decimal

from rest_framework import serializers

from core.models import CareFileForm


def _required(max_length=None, message=None):
    kwargs = {'error_messages': {'blank': message, 'required': message}} if message else {}
    return serializers.CharField(max_length=max_length, **kwargs)


def _optional():
    return serializers.CharField(required=False, allow_blank=True)


class AdmissionFormSerializer(serializers.Serializer):
    # resident
    firstName = _required(message='First name is required')
    lastName = _required(message='Last name is required')
    dateOfBirth = serializers.IntegerField()
    bedroomNumber = _required(message='Bedroom number is required')
    admittedFrom = _optional()
    religion = _optional()
    telephoneNumber = _optional()
    gender = serializers.ChoiceField(choices=['MALE', 'FEMALE'], required=False)
    NHSNumber = _required(message='NHS number is required')
    ethnicity = _optional()
    # next of kin
    kinFirstName = _required(message='Next of kin first name is required')
    kinLastName = _required(message='Next of kin last name is required')
    kinRelationship = _required(message='Next of kin relationship is required')
    kinTelephoneNumber = _required(message='Next of kin telephone number is required')
    kinAddress = _required(message='Next of kin address is required')
    kinEmail = serializers.EmailField(error_messages={'invalid': 'Valid email is required'})
    # emergency contact
    emergencyContactName = _required(message='Emergency contact name is required')
    emergencyContactTelephoneNumber = _required(message='Emergency contact telephone number is required')
    emergencyContactRelationship = _required(message='Emergency contact relationship is required')
    emergencyContactPhoneNumber = _required(message='Emergency contact phone number is required')
    # care manager / GP
    careManagerName = _optional()
    careManagerTelephoneNumber = _optional()
    careManagerRelationship = _optional()
    careManagerPhoneNumber = _optional()
    careManagerAddress = _optional()
    careManagerJobRole = _optional()
    GPName = _optional()
    GPAddress = _optional()
    GPPhoneNumber = _optional()
    # clinical
    allergies = _optional()
    medicalHistory = _optional()
    prescribedMedications = _optional()
    consentCapacityRights = _optional()
    medication = _optional()
    skinIntegrityEquipment = _optional()
    skinIntegrityWounds = _optional()
    bedtimeRoutine = _optional()
    currentInfection = _optional()
    antibioticsPrescribed = serializers.BooleanField()
    prescribedBreathing = _optional()
    mobilityIndependent = serializers.BooleanField()
    assistanceRequired = _optional()
    equipmentRequired = _optional()
    # nutrition
    weight = _required(message='Weight is required')
    height = _required(message='Height is required')
    iddsiFood = _required(message='IDDSI food level is required')
    iddsiFluid = _required(message='IDDSI fluid level is required')
    dietType = _required(message='Diet type is required')
    nutritionalSupplements = _optional()
    nutritionalAssistanceRequired = _optional()
    chockingRisk = serializers.BooleanField()
    additionalComments = _optional()
    continence = _optional()
    hygiene = _optional()


class ValueItemSerializer(serializers.Serializer):
    value = serializers.CharField(allow_blank=True)


class OtherItemSerializer(serializers.Serializer):
    details = serializers.CharField(allow_blank=True)
    receivedBy = serializers.CharField(allow_blank=True)
    witnessedBy = serializers.CharField(allow_blank=True)
    date = serializers.IntegerField()
    time = serializers.CharField(allow_blank=True)


# count field -> face value in pounds
DENOMINATIONS = {
    'n50': Decimal('50'), 'n20': Decimal('20'), 'n10': Decimal('10'),
    'n5': Decimal('5'), 'n2': Decimal('2'), 'n1': Decimal('1'),
    'p50': Decimal('0.50'), 'p20': Decimal('0.20'), 'p10': Decimal('0.10'),
    'p5': Decimal('0.05'), 'p2': Decimal('0.02'), 'p1': Decimal('0.01'),
}


class ResidentValuablesSerializer(serializers.Serializer):
    residentName = _required(message='Resident name is required')
    bedroomNumber = _required(message='Bedroom number is required')
    date = serializers.IntegerField()
    completedBy = _required(message='Completed by is required')
    witnessedBy = _required(message='Witnessed by is required')
    valuables = ValueItemSerializer(many=True)
    n50 = serializers.IntegerField(required=False, min_value=0)
    n20 = serializers.IntegerField(required=False, min_value=0)
    n10 = serializers.IntegerField(required=False, min_value=0)
    n5 = serializers.IntegerField(required=False, min_value=0)
    n2 = serializers.IntegerField(required=False, min_value=0)
    n1 = serializers.IntegerField(required=False, min_value=0)
    p50 = serializers.IntegerField(required=False, min_value=0)
    p20 = serializers.IntegerField(required=False, min_value=0)
    p10 = serializers.IntegerField(required=False, min_value=0)
    p5 = serializers.IntegerField(required=False, min_value=0)
    p2 = serializers.IntegerField(required=False, min_value=0)
    p1 = serializers.IntegerField(required=False, min_value=0)
    total = serializers.DecimalField(max_digits=10, decimal_places=2, coerce_to_string=False)
    clothing = ValueItemSerializer(many=True)
    other = OtherItemSerializer(many=True)

    def validate(self, attrs):
        counted = sum((DENOMINATIONS[k] * attrs.get(k, 0) for k in DENOMINATIONS), Decimal('0'))
        if 'total' in attrs and counted.quantize(Decimal('0.01')) != attrs['total']:
            raise serializers.ValidationError({'total': f'Total does not match the money counted ({counted:.2f})'})
        if 'total' in attrs:
            # keep the stored JSON numeric
            attrs['total'] = float(attrs['total'])
        return attrs


class TimlFormSerializer(serializers.Serializer):
    agree = serializers.BooleanField()
    firstName = _required(message='First name is required')
    lastName = _required(message='Last name is required')
    dateOfBirth = serializers.IntegerField()
    desiredName = _required(message='Desired name is required')
    # childhood
    born = serializers.CharField(allow_blank=True)
    parentsSiblingsNames = serializers.CharField(allow_blank=True)
    familyMembersOccupation = serializers.CharField(allow_blank=True)
    whereLived = serializers.CharField(allow_blank=True)
    schoolAttended = serializers.CharField(allow_blank=True)
    favouriteSubject = serializers.CharField(allow_blank=True)
    pets = serializers.BooleanField()
    petsNames = _optional()
    # adolescence
    whenLeavingSchool = serializers.CharField(allow_blank=True)
    whatWork = serializers.CharField(allow_blank=True)
    whereWorked = serializers.CharField(allow_blank=True)
    specialTraining = serializers.CharField(allow_blank=True)
    specialMemoriesWork = serializers.CharField(allow_blank=True)
    nationalService = serializers.CharField(allow_blank=True)
    # adulthood
    partner = serializers.CharField(allow_blank=True)
    partnerName = serializers.CharField(allow_blank=True)
    whereMet = serializers.CharField(allow_blank=True)
    whereWhenMarried = serializers.CharField(allow_blank=True)
    whatDidYouWear = serializers.CharField(allow_blank=True)
    flowers = serializers.CharField(allow_blank=True)
    honeyMoon = serializers.CharField(allow_blank=True)
    whereLivedAdult = serializers.CharField(allow_blank=True)
    childrenAndNames = serializers.CharField(allow_blank=True)
    grandchildrenAndNames = serializers.CharField(allow_blank=True)
    specialFriendsAndNames = serializers.CharField(allow_blank=True)
    specialFriendsMetAndStillTouch = serializers.CharField(allow_blank=True)
    # retirement, likes
    whenRetired = serializers.CharField(allow_blank=True)
    lookingForwardTo = serializers.CharField(allow_blank=True)
    hobbiesInterests = serializers.CharField(allow_blank=True)
    biggestChangesRetirement = serializers.CharField(allow_blank=True)
    whatEnjoyNow = serializers.CharField(allow_blank=True)
    whatLikeRead = serializers.CharField(allow_blank=True)
    # sign-off
    completedBy = _required(message='Completed by is required')
    completedByJobRole = _required(message='Job role is required')
    completedBySignature = _required(message='Signature is required')
    date = serializers.IntegerField()

    def validate_agree(self, v):
        if v is not True:
            raise serializers.ValidationError('You must agree before continuing')
        return v


FORM_SERIALIZERS = {
    'admission-form': AdmissionFormSerializer,
    'resident-valuables-form': ResidentValuablesSerializer,
    'timl-form': TimlFormSerializer,
}


class CareFileSubmitSerializer(serializers.Serializer):
    formKey = serializers.ChoiceField(choices=CareFileForm.FORM_KEYS)
    data = serializers.DictField()
    savedAsDraft = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        form_serializer = FORM_SERIALIZERS.get(attrs['formKey'])
        if form_serializer is not None:
            # drafts may be incomplete, but what is there must be valid
            s = form_serializer(data=attrs['data'], partial=attrs['savedAsDraft'])
            if not s.is_valid():
                raise serializers.ValidationError({'data': s.errors})
            attrs['data'] = dict(s.validated_data)
        return attrs
