from django.urls import path
from .views import (
    case_list_create, case_detail, case_archive,
    case_links, case_link_delete, case_events
)

urlpatterns = [
    path('cases/', case_list_create, name='case-list-create'),
    path('cases/<int:pk>/', case_detail, name='case-detail'),
    path('cases/<int:pk>/archive/', case_archive, name='case-archive'),
    path('cases/<int:pk>/links/', case_links, name='case-links'),
    path('cases/<int:pk>/links/<int:link_id>/', case_link_delete, name='case-link-delete'),
    path('cases/<int:pk>/events/', case_events, name='case-events'),
]
