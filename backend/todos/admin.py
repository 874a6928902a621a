from django.contrib import admin
from .models import Todo, Subtask


class SubtaskInline(admin.TabularInline):
    model = Subtask
    extra = 0
    fields = ['title', 'completed', 'position']


@admin.register(Todo)
class TodoAdmin(admin.ModelAdmin):
    list_display = ['title', 'status', 'priority', 'category', 'assigned_user', 'due_date', 'completed_at']
    list_filter = ['status', 'priority', 'category', 'due_date']
    search_fields = ['title', 'description']
    ordering = ['-created_at']
    inlines = [SubtaskInline]
