from rest_framework import serializers


class RecordCreateSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1)
    diagnosis = serializers.CharField(max_length=4000)
    treatment = serializers.CharField(max_length=4000)
    recordedAt = serializers.DateTimeField(required=False)


class RecordUpdateSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1, required=False)
    doctorId = serializers.IntegerField(min_value=1, required=False)
    diagnosis = serializers.CharField(max_length=4000, required=False)
    treatment = serializers.CharField(max_length=4000, required=False)
    recordedAt = serializers.DateTimeField(required=False)
