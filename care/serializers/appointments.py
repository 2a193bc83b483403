from rest_framework import serializers

from care.models import AppointmentStatus


class AppointmentCreateSerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(min_value=1)
    patientId = serializers.IntegerField(min_value=1, required=False)
    scheduledAt = serializers.DateTimeField()
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True)


class AppointmentUpdateSerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(min_value=1, required=False)
    patientId = serializers.IntegerField(min_value=1, required=False)
    scheduledAt = serializers.DateTimeField(required=False)
    status = serializers.ChoiceField(choices=AppointmentStatus.values, required=False)
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True)


class AppointmentCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True)


class AppointmentListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=AppointmentStatus.values, required=False)
    doctorId = serializers.IntegerField(min_value=1, required=False)
    patientId = serializers.IntegerField(min_value=1, required=False)


class ConflictQuerySerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(min_value=1)
    at = serializers.DateTimeField()
    excludeId = serializers.IntegerField(min_value=1, required=False)
