from django.urls import path
from .views import farm_integrity_report

urlpatterns = [
    path('integrity/farms/<int:farm_id>/', farm_integrity_report, name='farm-integrity-report'),
]
