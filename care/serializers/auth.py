import re

import bleach
from rest_framework import serializers

PHONE_PATTERNS = {
    'Doctor': (r'^\d{10}$', 'phone number must be 10 digits'),
    'Patient': (r'^[7-9]\d{9}$', 'phone number must be 10 digits starting with 7, 8 or 9'),
    'Admin': (r'^[7-9]\d{9}$', 'phone number must be 10 digits starting with 7, 8 or 9'),
}


def validate_phone_for_role(role: str, value: str) -> str:
    value = (value or '').strip()
    pattern, message = PHONE_PATTERNS[role]
    if not re.match(pattern, value):
        raise serializers.ValidationError(message)
    return value


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField()

    def validate_email(self, v):
        return (v or '').strip().lower()

    def validate_password(self, v):
        if not v:
            raise serializers.ValidationError('password must not be empty')
        return v


class RegisterSerializer(serializers.Serializer):
    role = 'Patient'

    email = serializers.EmailField(max_length=80)
    password = serializers.CharField(min_length=8, write_only=True)
    name = serializers.CharField(max_length=50)
    phone = serializers.CharField(max_length=20)

    def validate_phone(self, v):
        return validate_phone_for_role(self.role, v)

    def validate_name(self, v):
        v = bleach.clean((v or '').strip(), tags=set(), strip=True)
        if len(v) < 2:
            raise serializers.ValidationError('name must be at least 2 characters')
        return v

    def validate_email(self, v):
        return (v or '').strip().lower()


class PatientRegisterSerializer(RegisterSerializer):
    role = 'Patient'


class AdminRegisterSerializer(RegisterSerializer):
    role = 'Admin'


class DoctorRegisterSerializer(RegisterSerializer):
    role = 'Doctor'

    specialty = serializers.CharField(max_length=100)

    def validate_specialty(self, v):
        v = bleach.clean((v or '').strip(), tags=set(), strip=True)
        if not v:
            raise serializers.ValidationError('specialty is required')
        return v
