"""
Assignment Serializers

Requests are normalized by ``services.normalize``; these serializers only
render rows and engine results.
"""

from rest_framework import serializers

from .models import TaskAssignment, TaskIssue, TaskPhoto, TaskProgress


class TaskAssignmentSerializer(serializers.ModelSerializer):
    """Assignment row for list / retrieve"""

    worker_name = serializers.CharField(source='worker.full_name', read_only=True)
    project_name = serializers.CharField(source='project.name', read_only=True)
    task_name = serializers.CharField(source='task.name', read_only=True)

    class Meta:
        model = TaskAssignment
        fields = [
            'id', 'worker', 'worker_name', 'project', 'project_name', 'task', 'task_name',
            'supervisor', 'date', 'status', 'sequence', 'priority', 'dependencies',
            'target_description', 'target_quantity', 'target_unit', 'target_completion_percent',
            'estimated_minutes', 'elapsed_minutes', 'remaining_minutes', 'progress_percent',
            'last_validated_at', 'last_latitude', 'last_longitude', 'last_distance_meters',
            'last_inside_geofence', 'start_time', 'end_time', 'completed_at', 'assigned_at',
            'work_area', 'floor', 'zone', 'version', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class TaskAssignmentDetailSerializer(TaskAssignmentSerializer):
    """Assignment with its progress history, issues and photos"""

    progress_updates = serializers.SerializerMethodField()
    issues = serializers.SerializerMethodField()
    photos = serializers.SerializerMethodField()

    class Meta(TaskAssignmentSerializer.Meta):
        fields = TaskAssignmentSerializer.Meta.fields + ['progress_updates', 'issues', 'photos']
        read_only_fields = fields

    def get_progress_updates(self, obj):
        return TaskProgressSerializer(obj.progress_updates.all(), many=True).data

    def get_issues(self, obj):
        return TaskIssueSerializer(obj.issues.all(), many=True).data

    def get_photos(self, obj):
        return TaskPhotoSerializer(obj.photos.all(), many=True, context=self.context).data


class TaskProgressSerializer(serializers.ModelSerializer):
    class Meta:
        model = TaskProgress
        fields = [
            'id', 'percent', 'description', 'notes', 'completed_quantity',
            'issues_encountered', 'latitude', 'longitude', 'accuracy', 'submitted_at',
        ]
        read_only_fields = fields


class TaskIssueSerializer(serializers.ModelSerializer):
    class Meta:
        model = TaskIssue
        fields = [
            'id', 'ticket_number', 'issue_type', 'priority', 'description', 'status',
            'latitude', 'longitude', 'work_area', 'reported_at',
        ]
        read_only_fields = fields


class TaskPhotoSerializer(serializers.ModelSerializer):
    class Meta:
        model = TaskPhoto
        fields = ['id', 'image', 'file_name', 'content_type', 'size', 'caption', 'created_at']
        read_only_fields = fields


# ---------------------------------------------------------------------------
# Engine results
# ---------------------------------------------------------------------------

class LocationSerializer(serializers.Serializer):
    latitude = serializers.FloatField()
    longitude = serializers.FloatField()
    accuracy = serializers.FloatField(allow_null=True)


class DailyTargetSerializer(serializers.Serializer):
    description = serializers.CharField()
    quantity = serializers.FloatField(allow_null=True)
    unit = serializers.CharField()
    target_completion_percent = serializers.FloatField()


class TimeEstimateSerializer(serializers.Serializer):
    estimated_minutes = serializers.FloatField()
    elapsed_minutes = serializers.FloatField()
    remaining_minutes = serializers.FloatField()


class GeofenceSnapshotSerializer(serializers.Serializer):
    last_validated_at = serializers.DateTimeField()
    location = LocationSerializer()
    distance_meters = serializers.FloatField(allow_null=True)
    inside_geofence = serializers.BooleanField(allow_null=True)


class AssignmentStateSerializer(serializers.Serializer):
    id = serializers.CharField()
    worker_id = serializers.CharField()
    project_id = serializers.CharField()
    task_id = serializers.CharField()
    date = serializers.DateField()
    status = serializers.CharField()
    sequence = serializers.IntegerField(allow_null=True)
    priority = serializers.CharField()
    dependencies = serializers.ListField(child=serializers.CharField())
    daily_target = DailyTargetSerializer()
    time_estimate = TimeEstimateSerializer()
    progress_percent = serializers.FloatField()
    geofence_snapshot = GeofenceSnapshotSerializer(allow_null=True)
    start_time = serializers.DateTimeField(allow_null=True)
    end_time = serializers.DateTimeField(allow_null=True)
    completed_at = serializers.DateTimeField(allow_null=True)
    assigned_at = serializers.DateTimeField(allow_null=True)
    supervisor_id = serializers.CharField(allow_null=True)
    work_area = serializers.CharField()
    floor = serializers.CharField()
    zone = serializers.CharField()
    version = serializers.IntegerField()


class AssignTasksResultSerializer(serializers.Serializer):
    created = serializers.IntegerField()
    assignments = AssignmentStateSerializer(many=True)


class StartResultSerializer(serializers.Serializer):
    assignment = AssignmentStateSerializer()
    geofence = serializers.SerializerMethodField()
    estimated_end_time = serializers.DateTimeField(allow_null=True)

    def get_geofence(self, obj):
        return obj.geofence.as_dict()


class ProgressResultSerializer(serializers.Serializer):
    progress_id = serializers.CharField()
    previous_percent = serializers.FloatField()
    new_percent = serializers.FloatField()
    progress_delta = serializers.FloatField()
    status = serializers.CharField()
    time_estimate = TimeEstimateSerializer()
    next_action = serializers.CharField()
    assignment = AssignmentStateSerializer()


class IssueTicketSerializer(serializers.Serializer):
    id = serializers.CharField()
    ticket_number = serializers.CharField()
    assignment_id = serializers.CharField()
    issue_type = serializers.CharField()
    priority = serializers.CharField()
    description = serializers.CharField()
    status = serializers.CharField()
    reported_at = serializers.DateTimeField()
    location = LocationSerializer(allow_null=True)
    work_area = serializers.CharField()


class IssueResultSerializer(serializers.Serializer):
    ticket = IssueTicketSerializer()
    assignment = AssignmentStateSerializer()
    blocked = serializers.BooleanField()


class StoredPhotoSerializer(serializers.Serializer):
    id = serializers.CharField()
    file_name = serializers.CharField()
    content_type = serializers.CharField()
    size = serializers.IntegerField()
    url = serializers.CharField()
    caption = serializers.CharField()


class PhotoResultSerializer(serializers.Serializer):
    photos = StoredPhotoSerializer(many=True)
    total_photos = serializers.IntegerField()
    remaining_slots = serializers.IntegerField()


class DaySummarySerializer(serializers.Serializer):
    total = serializers.IntegerField()
    queued = serializers.IntegerField()
    in_progress = serializers.IntegerField()
    completed = serializers.IntegerField()
    blocked = serializers.IntegerField()
    overall_progress = serializers.FloatField()


class DayPlanSerializer(serializers.Serializer):
    worker_id = serializers.CharField()
    date = serializers.DateField()
    assignments = AssignmentStateSerializer(many=True)
    summary = DaySummarySerializer()
