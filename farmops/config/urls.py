"""
URL configuration for the farmops project.

Every app mounts its resource and function endpoints under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "FarmOps Admin Panel"
admin.site.site_title = "FarmOps Admin Portal"
admin.site.index_title = "Farm Management Administration"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('farmops.core.urls')),
    path('api/v1/', include('farmops.farms.urls')),
    path('api/v1/', include('farmops.animals.urls')),
    path('api/v1/', include('farmops.feed.urls')),
    path('api/v1/', include('farmops.finance.urls')),
    path('api/v1/', include('farmops.approvals.urls')),
    path('api/v1/', include('farmops.sync.urls')),
    path('api/v1/', include('farmops.integrity.urls')),
]
