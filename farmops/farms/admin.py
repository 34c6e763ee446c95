from django.contrib import admin
from .models import Farm, FarmMembership, FarmApprovalSettings


class FarmMembershipInline(admin.TabularInline):
    model = FarmMembership
    fk_name = 'farm'
    extra = 0
    fields = ['user', 'invited_email', 'role_in_farm', 'invitation_status', 'expires_at']
    readonly_fields = ['expires_at']


@admin.register(Farm)
class FarmAdmin(admin.ModelAdmin):
    list_display = ['name', 'owner', 'livestock_type', 'region', 'is_deleted', 'created_at']
    list_filter = ['livestock_type', 'is_deleted']
    search_fields = ['name', 'owner__username', 'owner__email', 'region']
    ordering = ['name']
    inlines = [FarmMembershipInline]


@admin.register(FarmMembership)
class FarmMembershipAdmin(admin.ModelAdmin):
    list_display = ['farm', 'user', 'invited_email', 'role_in_farm', 'invitation_status', 'expires_at']
    list_filter = ['role_in_farm', 'invitation_status']
    search_fields = ['farm__name', 'user__username', 'invited_email']
    readonly_fields = ['invitation_token', 'created_at']


@admin.register(FarmApprovalSettings)
class FarmApprovalSettingsAdmin(admin.ModelAdmin):
    list_display = ['farm', 'auto_approve_enabled', 'auto_approve_hours', 'updated_at']
    list_filter = ['auto_approve_enabled']
