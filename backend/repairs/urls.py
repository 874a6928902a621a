from django.urls import path
from .views import repair_list_create, repair_detail, repair_from_case, repair_stats

urlpatterns = [
    path('repairs/', repair_list_create, name='repair-list-create'),
    path('repairs/stats/', repair_stats, name='repair-stats'),
    path('repairs/from-case/<int:case_id>/', repair_from_case, name='repair-from-case'),
    path('repairs/<int:pk>/', repair_detail, name='repair-detail'),
]
