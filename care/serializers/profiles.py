from rest_framework import serializers

from care.serializers.auth import validate_phone_for_role


class ProfileUpdateSerializer(serializers.Serializer):
    role = 'Patient'

    name = serializers.CharField(max_length=50, required=False)
    phone = serializers.CharField(max_length=20, required=False)
    email = serializers.EmailField(max_length=80, required=False)

    def validate_phone(self, v):
        return validate_phone_for_role(self.role, v)


class PatientUpdateSerializer(ProfileUpdateSerializer):
    role = 'Patient'


class AdminUpdateSerializer(ProfileUpdateSerializer):
    role = 'Admin'


class DoctorUpdateSerializer(ProfileUpdateSerializer):
    role = 'Doctor'

    specialty = serializers.CharField(max_length=100, required=False)


class DoctorListQuerySerializer(serializers.Serializer):
    specialty = serializers.CharField(max_length=100, required=False)
    q = serializers.CharField(max_length=64, required=False)
    page = serializers.IntegerField(min_value=1, required=False)
    pageSize = serializers.IntegerField(min_value=1, max_value=200, required=False)


class AccountUpdateSerializer(serializers.Serializer):
    email = serializers.EmailField(max_length=80, required=False)
    password = serializers.CharField(min_length=8, required=False, write_only=True)
    isActive = serializers.BooleanField(required=False)
