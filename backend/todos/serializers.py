from rest_framework import serializers
from django.utils import timezone
from .models import Todo, Subtask


class SubtaskSerializer(serializers.ModelSerializer):
    class Meta:
        model = Subtask
        fields = ['id', 'title', 'completed', 'position', 'created_at']
        read_only_fields = ['created_at']


class TodoSerializer(serializers.ModelSerializer):
    subtasks = SubtaskSerializer(many=True, read_only=True)
    assigned_user_username = serializers.CharField(source='assigned_user.username', read_only=True, default=None)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)
    subtask_progress = serializers.SerializerMethodField()

    class Meta:
        model = Todo
        fields = [
            'id', 'title', 'description', 'status', 'priority', 'category', 'due_date',
            'assigned_user', 'assigned_user_username', 'created_by', 'created_by_username',
            'customer', 'order', 'return_request', 'case', 'repair', 'completed_at',
            'subtasks', 'subtask_progress', 'created_at', 'updated_at'
        ]
        read_only_fields = ['created_by', 'completed_at', 'created_at', 'updated_at']

    def get_subtask_progress(self, obj):
        subtasks = list(obj.subtasks.all())
        return {'done': sum(1 for s in subtasks if s.completed), 'total': len(subtasks)}

    def _sync_completed_at(self, validated_data, instance=None):
        new_status = validated_data.get('status', getattr(instance, 'status', 'todo'))
        if new_status == 'done':
            if instance is None or instance.completed_at is None:
                validated_data['completed_at'] = timezone.now()
        else:
            validated_data['completed_at'] = None

    def create(self, validated_data):
        self._sync_completed_at(validated_data)
        return super().create(validated_data)

    def update(self, instance, validated_data):
        self._sync_completed_at(validated_data, instance)
        return super().update(instance, validated_data)
