from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, IsAdminUser, AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError, AuthenticationFailed
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.shortcuts import get_object_or_404
from django.db.models import Q
from .models import Setting, AuditLog, Activity
from .serializers import (
    UserSerializer, UserCreateSerializer,
    SettingSerializer, AuditLogSerializer, ActivitySerializer
)

User = get_user_model()

APPLICATION_GROUPS = ['Admin', 'Support', 'Technicus']


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['role'] = user.role
        token['groups'] = list(user.groups.values_list('name', flat=True))
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh serializer that handles deleted users gracefully"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    """Token refresh view that handles deleted users gracefully"""
    serializer_class = CustomTokenRefreshSerializer


def is_admin_user(user):
    """
    Admin if the user is in the 'Admin' group or has the ADMIN role.
    Superuser/staff counts as admin only when the user has no application group.
    """
    user_groups = list(user.groups.values_list('name', flat=True))
    if 'Admin' in user_groups or user.role == 'ADMIN':
        return True
    has_application_group = any(group in user_groups for group in APPLICATION_GROUPS)
    return not has_application_group and (user.is_superuser or user.is_staff)


@api_view(['POST'])
@permission_classes([AllowAny])
def register(request):
    """User registration endpoint"""
    serializer = UserCreateSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        token = CustomTokenObtainPairSerializer.get_token(user)
        return Response({
            'user': UserSerializer(user).data,
            'access': str(token.access_token),
            'refresh': str(token),
        }, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# User views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminUser])
def user_list_create(request):
    """List all users or create a new user"""
    if request.method == 'GET':
        users = User.objects.all().order_by('username')
        role = request.query_params.get('role')
        if role:
            users = users.filter(role=role)
        serializer = UserSerializer(users, many=True)
        return Response(serializer.data)
    else:
        serializer = UserCreateSerializer(data=request.data)
        if serializer.is_valid():
            user = serializer.save()
            return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminUser])
def user_detail(request, pk):
    """Retrieve, update or delete a user"""
    user = get_object_or_404(User, pk=pk)

    if request.method == 'GET':
        serializer = UserSerializer(user)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = UserSerializer(user, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if user.pk == request.user.pk:
            return Response({'error': 'You cannot delete your own account'}, status=status.HTTP_400_BAD_REQUEST)
        user.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Get current user with groups and capability flags"""
    user = request.user
    user_data = UserSerializer(user).data
    user_data['groups'] = list(user.groups.values_list('name', flat=True))

    is_admin = is_admin_user(user)
    is_technicus = user.role == 'TECHNICUS' or 'Technicus' in user_data['groups']

    user_data['is_admin'] = is_admin
    user_data['can_manage_users'] = is_admin
    # Returns and purchasing are support/admin work; every role handles repairs
    user_data['can_access_returns'] = is_admin or not is_technicus
    user_data['can_access_purchasing'] = is_admin or not is_technicus
    user_data['can_access_repairs'] = True
    user_data['can_access_audit_logs'] = is_admin

    return Response(user_data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_directory(request):
    """Active users for assignment pickers and @mentions"""
    from .serializers import UserSummarySerializer

    users = User.objects.filter(is_active=True).order_by('username')
    query = request.query_params.get('q', '').strip()
    if query:
        users = users.filter(
            Q(username__icontains=query) |
            Q(first_name__icontains=query) |
            Q(last_name__icontains=query)
        )
    return Response(UserSummarySerializer(users[:50], many=True).data)


# Setting views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminUser])
def setting_list_create(request):
    """List all settings or create a new setting"""
    if request.method == 'GET':
        settings = Setting.objects.all().order_by('key')
        serializer = SettingSerializer(settings, many=True)
        return Response(serializer.data)
    else:
        serializer = SettingSerializer(data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminUser])
def setting_detail(request, pk):
    """Retrieve, update or delete a setting"""
    setting = get_object_or_404(Setting, pk=pk)

    if request.method == 'GET':
        serializer = SettingSerializer(setting)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = SettingSerializer(setting, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        setting.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# AuditLog views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_list(request):
    """List audit logs with filtering"""
    queryset = AuditLog.objects.select_related('user')

    # Non-staff users only see their own entries
    if not request.user.is_staff:
        queryset = queryset.filter(user=request.user)

    action_filter = request.query_params.get('action', None)
    if action_filter:
        queryset = queryset.filter(action=action_filter)

    model_filter = request.query_params.get('model', None)
    if model_filter:
        queryset = queryset.filter(model_name=model_filter)

    object_id = request.query_params.get('object_id', None)
    if object_id:
        queryset = queryset.filter(object_id=object_id)

    date_from = request.query_params.get('date_from', None)
    date_to = request.query_params.get('date_to', None)
    if date_from:
        queryset = queryset.filter(created_at__date__gte=date_from)
    if date_to:
        queryset = queryset.filter(created_at__date__lte=date_to)

    queryset = queryset.order_by('-created_at')

    from .utils import paginate_queryset
    return Response(paginate_queryset(request, queryset, AuditLogSerializer, default_limit=50))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_detail(request, pk):
    """Retrieve an audit log"""
    audit_log = get_object_or_404(AuditLog, pk=pk)

    if not request.user.is_staff and audit_log.user != request.user:
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    serializer = AuditLogSerializer(audit_log)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def activity_list(request):
    """Latest dashboard activity"""
    try:
        limit = int(request.query_params.get('limit', 50))
    except ValueError:
        limit = 50
    limit = max(1, min(limit, 200))

    queryset = Activity.objects.select_related('user')
    activity_type = request.query_params.get('type')
    if activity_type:
        queryset = queryset.filter(type=activity_type)

    serializer = ActivitySerializer(queryset[:limit], many=True)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def global_search(request):
    """Global search across customers, orders, returns, repairs, cases, purchase orders and notes"""
    query = request.query_params.get('q', '').strip()

    if not query:
        return Response({
            'customers': [],
            'orders': [],
            'returns': [],
            'repairs': [],
            'cases': [],
            'purchase_orders': [],
            'notes': [],
        })

    from backend.parties.models import Customer
    from backend.orders.models import Order
    from backend.returns.models import Return
    from backend.repairs.models import Repair
    from backend.cases.models import Case
    from backend.purchasing.models import PurchaseOrder
    from backend.notes.models import Note
    from backend.parties.serializers import CustomerSerializer
    from backend.orders.serializers import OrderListSerializer
    from backend.returns.serializers import ReturnListSerializer
    from backend.repairs.serializers import RepairListSerializer
    from backend.cases.serializers import CaseListSerializer
    from backend.purchasing.serializers import PurchaseOrderListSerializer
    from backend.notes.serializers import NoteSerializer

    results = {}

    customers = Customer.objects.filter(
        Q(first_name__icontains=query) |
        Q(last_name__icontains=query) |
        Q(email__icontains=query) |
        Q(phone__icontains=query)
    )[:20]
    results['customers'] = CustomerSerializer(customers, many=True).data

    orders = Order.objects.filter(
        Q(order_number__icontains=query) |
        Q(customer_email__icontains=query) |
        Q(shopify_order_id__icontains=query)
    ).select_related('customer')[:20]
    results['orders'] = OrderListSerializer(orders, many=True).data

    returns = Return.objects.filter(
        Q(return_number__icontains=query) |
        Q(tracking_number__icontains=query) |
        Q(order__order_number__icontains=query)
    ).select_related('customer', 'order', 'assigned_user')[:20]
    results['returns'] = ReturnListSerializer(returns, many=True).data

    repairs = Repair.objects.filter(
        Q(repair_number__icontains=query) |
        Q(title__icontains=query) |
        Q(product_sku__icontains=query) |
        Q(product_name__icontains=query)
    ).select_related('customer', 'order', 'assigned_user')[:20]
    results['repairs'] = RepairListSerializer(repairs, many=True).data

    cases = Case.objects.filter(
        Q(case_number__icontains=query) |
        Q(title__icontains=query) |
        Q(customer_email__icontains=query)
    ).select_related('customer', 'assigned_user')[:20]
    results['cases'] = CaseListSerializer(cases, many=True).data

    purchase_orders = PurchaseOrder.objects.filter(
        Q(po_number__icontains=query) |
        Q(title__icontains=query) |
        Q(supplier__name__icontains=query)
    ).select_related('supplier')[:20]
    results['purchase_orders'] = PurchaseOrderListSerializer(purchase_orders, many=True).data

    notes = Note.objects.filter(
        deleted_at__isnull=True,
        plain_text__icontains=query
    ).select_related('author')[:20]
    results['notes'] = NoteSerializer(notes, many=True, context={'request': request}).data

    return Response(results)
