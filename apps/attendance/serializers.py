"""
Attendance Serializers
"""

from rest_framework import serializers

from apps.assignments.services.types import Location

from .models import AttendanceRecord


class AttendanceRecordSerializer(serializers.ModelSerializer):
    employee_name = serializers.CharField(source='employee.full_name', read_only=True)
    project_name = serializers.CharField(source='project.name', read_only=True)

    class Meta:
        model = AttendanceRecord
        fields = [
            'id', 'employee', 'employee_name', 'project', 'project_name', 'date',
            'check_in', 'check_out', 'status', 'total_hours',
            'check_in_latitude', 'check_in_longitude', 'check_in_accuracy',
            'check_out_latitude', 'check_out_longitude',
            'inside_geofence_at_checkin', 'check_in_distance_meters',
        ]
        read_only_fields = fields


class CheckInSerializer(serializers.Serializer):
    """Check-in request serializer"""

    project = serializers.UUIDField()
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)
    accuracy = serializers.FloatField(min_value=0, max_value=1000, required=False, allow_null=True)

    def to_location(self):
        data = self.validated_data
        if data.get('latitude') is None:
            return None
        return Location(
            latitude=data['latitude'],
            longitude=data['longitude'],
            accuracy=data.get('accuracy'),
        )


class CheckOutSerializer(CheckInSerializer):
    """Check-out request serializer; the location is optional"""

    latitude = serializers.FloatField(min_value=-90, max_value=90, required=False, allow_null=True)
    longitude = serializers.FloatField(min_value=-180, max_value=180, required=False, allow_null=True)

    def validate(self, attrs):
        if (attrs.get('latitude') is None) != (attrs.get('longitude') is None):
            raise serializers.ValidationError('Both latitude and longitude are required')
        return attrs


class AttendanceResultSerializer(serializers.Serializer):
    """Check-in / check-out response serializer"""

    success = serializers.BooleanField()
    message = serializers.CharField()
    attendance = AttendanceRecordSerializer(allow_null=True)
    geofence = serializers.SerializerMethodField()
    warnings = serializers.ListField(child=serializers.CharField())

    def get_geofence(self, obj):
        geofence = obj.get('geofence')
        return geofence.as_dict() if geofence is not None else None
