from django.urls import path
from .views import (
    pending_activity_list_create, pending_activity_detail,
    review_pending_activity, process_auto_approvals,
)

urlpatterns = [
    path('pending-activities/', pending_activity_list_create, name='pending-activity-list-create'),
    path('pending-activities/<int:pk>/', pending_activity_detail, name='pending-activity-detail'),

    # Function endpoints
    path('functions/review-pending-activity/', review_pending_activity, name='fn-review-pending-activity'),
    path('functions/process-auto-approvals/', process_auto_approvals, name='fn-process-auto-approvals'),
]
