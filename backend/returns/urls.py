from django.urls import path
from .views import (
    return_list_create, return_detail, return_from_case, return_photos,
    return_items, return_item_detail, return_stats
)

urlpatterns = [
    path('returns/', return_list_create, name='return-list-create'),
    path('returns/stats/', return_stats, name='return-stats'),
    path('returns/from-case/<int:case_id>/', return_from_case, name='return-from-case'),
    path('returns/<int:pk>/', return_detail, name='return-detail'),
    path('returns/<int:pk>/photos/', return_photos, name='return-photos'),
    path('returns/<int:pk>/items/', return_items, name='return-items'),
    path('returns/<int:pk>/items/<int:item_id>/', return_item_detail, name='return-item-detail'),
]
