"""
URL configuration for the support back office.

Every app mounts its routes under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.views.static import serve

admin.site.site_header = "Support Back Office Admin Panel"
admin.site.site_title = "Support Back Office Admin Portal"
admin.site.index_title = "Welcome to the Support Back Office"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('backend.core.urls')),
    path('api/v1/', include('backend.parties.urls')),
    path('api/v1/', include('backend.orders.urls')),
    path('api/v1/', include('backend.cases.urls')),
    path('api/v1/', include('backend.returns.urls')),
    path('api/v1/', include('backend.repairs.urls')),
    path('api/v1/', include('backend.purchasing.urls')),
    path('api/v1/', include('backend.todos.urls')),
    path('api/v1/', include('backend.notes.urls')),
    re_path(r'^media/(?P<path>.*)$', serve, {'document_root': settings.MEDIA_ROOT}),
]
