from django.urls import path
from .views import (
    farm_list_create, farm_detail,
    farm_member_list_invite, farm_member_remove,
    approval_settings_detail,
    admin_create_user, accept_invitation,
)

urlpatterns = [
    path('farms/', farm_list_create, name='farm-list-create'),
    path('farms/<int:pk>/', farm_detail, name='farm-detail'),
    path('farms/<int:farm_id>/members/', farm_member_list_invite, name='farm-member-list-invite'),
    path('farms/<int:farm_id>/members/<int:pk>/', farm_member_remove, name='farm-member-remove'),
    path('farms/<int:farm_id>/approval-settings/', approval_settings_detail, name='farm-approval-settings'),

    # Function endpoints
    path('functions/admin-create-user/', admin_create_user, name='fn-admin-create-user'),
    path('functions/accept-invitation/', accept_invitation, name='fn-accept-invitation'),
]
