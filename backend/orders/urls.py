from django.urls import path
from .views import order_list_create, order_detail, order_stats

urlpatterns = [
    path('orders/', order_list_create, name='order-list-create'),
    path('orders/stats/', order_stats, name='order-stats'),
    path('orders/<int:pk>/', order_detail, name='order-detail'),
]
