from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Max, Q
from django.shortcuts import get_object_or_404
from .models import Todo, Subtask
from .serializers import TodoSerializer, SubtaskSerializer
from backend.core.utils import create_audit_log, with_fresh_data_headers


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def todo_list_create(request):
    """List todos or create a todo"""
    if request.method == 'GET':
        queryset = Todo.objects.select_related('assigned_user', 'created_by').prefetch_related('subtasks')

        status_filter = request.query_params.get('status', None)
        assigned_user = request.query_params.get('assigned_user', None)
        category = request.query_params.get('category', None)
        mine = request.query_params.get('mine', None)

        if status_filter:
            queryset = queryset.filter(status=status_filter)
        if assigned_user:
            queryset = queryset.filter(assigned_user_id=assigned_user)
        if category:
            queryset = queryset.filter(category=category)
        if mine and mine.lower() in ('true', '1'):
            queryset = queryset.filter(Q(assigned_user=request.user) | Q(created_by=request.user))

        for field in ('customer', 'order', 'return_request', 'case', 'repair'):
            value = request.query_params.get(field)
            if value:
                queryset = queryset.filter(**{f'{field}_id': value})

        serializer = TodoSerializer(queryset.order_by('-created_at'), many=True)
        return with_fresh_data_headers(Response(serializer.data))
    else:
        serializer = TodoSerializer(data=request.data)
        if serializer.is_valid():
            todo = serializer.save(created_by=request.user)
            create_audit_log(
                request=request,
                action='create',
                model_name='Todo',
                object_id=todo.id,
                object_name=todo.title
            )
            return Response(TodoSerializer(todo).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def todo_detail(request, pk):
    """Retrieve, update or delete a todo"""
    todo = get_object_or_404(Todo.objects.prefetch_related('subtasks'), pk=pk)

    if request.method == 'GET':
        return Response(TodoSerializer(todo).data)
    elif request.method in ('PUT', 'PATCH'):
        old_status = todo.status
        serializer = TodoSerializer(todo, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            todo = serializer.save()
            create_audit_log(
                request=request,
                action='status_change' if todo.status != old_status else 'update',
                model_name='Todo',
                object_id=todo.id,
                object_name=todo.title,
                changes={'fields': sorted(request.data.keys()), 'old_status': old_status, 'new_status': todo.status}
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        todo_id = todo.id
        title = todo.title
        todo.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='Todo',
            object_id=todo_id,
            object_name=title
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def subtask_list_create(request, pk):
    """List subtasks of a todo or append one"""
    todo = get_object_or_404(Todo, pk=pk)

    if request.method == 'GET':
        return Response(SubtaskSerializer(todo.subtasks.all(), many=True).data)

    serializer = SubtaskSerializer(data=request.data)
    if serializer.is_valid():
        if 'position' not in request.data:
            last_position = todo.subtasks.aggregate(last=Max('position'))['last']
            position = 0 if last_position is None else last_position + 1
            subtask = serializer.save(todo=todo, position=position)
        else:
            subtask = serializer.save(todo=todo)
        return Response(SubtaskSerializer(subtask).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def subtask_detail(request, pk, subtask_id):
    """Update or delete a subtask"""
    subtask = get_object_or_404(Subtask, pk=subtask_id, todo_id=pk)

    if request.method == 'PATCH':
        serializer = SubtaskSerializer(subtask, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        subtask.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)
