from django.urls import path
from .views import todo_list_create, todo_detail, subtask_list_create, subtask_detail

urlpatterns = [
    path('todos/', todo_list_create, name='todo-list-create'),
    path('todos/<int:pk>/', todo_detail, name='todo-detail'),
    path('todos/<int:pk>/subtasks/', subtask_list_create, name='subtask-list-create'),
    path('todos/<int:pk>/subtasks/<int:subtask_id>/', subtask_detail, name='subtask-detail'),
]
