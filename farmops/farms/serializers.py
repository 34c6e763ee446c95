from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers
from .models import Farm, FarmMembership, FarmApprovalSettings
from .services import ROLE_TO_GROUP


class FarmSerializer(serializers.ModelSerializer):
    owner_name = serializers.CharField(source='owner.get_display_name', read_only=True)

    class Meta:
        model = Farm
        fields = ['id', 'name', 'owner', 'owner_name', 'livestock_type', 'region', 'gps_lat', 'gps_lng', 'is_deleted', 'created_at', 'updated_at']
        read_only_fields = ['owner', 'is_deleted', 'created_at', 'updated_at']


class FarmMembershipSerializer(serializers.ModelSerializer):
    user_email = serializers.EmailField(source='user.email', read_only=True, default=None)
    user_name = serializers.CharField(source='user.get_display_name', read_only=True, default=None)

    class Meta:
        model = FarmMembership
        fields = ['id', 'farm', 'user', 'user_email', 'user_name', 'role_in_farm', 'invited_email',
                  'invited_by', 'invitation_status', 'expires_at', 'created_at']
        read_only_fields = fields


class InvitationCreateSerializer(serializers.Serializer):
    email = serializers.EmailField()
    role = serializers.ChoiceField(choices=['farmhand', 'farm_manager', 'farmer_owner'], default='farmhand')


class FarmApprovalSettingsSerializer(serializers.ModelSerializer):
    ACTIVITY_TYPES = ['milking', 'feeding', 'weight_measurement', 'health_observation', 'injection']

    class Meta:
        model = FarmApprovalSettings
        fields = ['id', 'farm', 'auto_approve_enabled', 'auto_approve_hours', 'require_approval_for', 'updated_at']
        read_only_fields = ['farm', 'updated_at']

    def validate_require_approval_for(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError('Must be a list of activity types')
        unknown = [v for v in value if v not in self.ACTIVITY_TYPES]
        if unknown:
            raise serializers.ValidationError(f"Unknown activity types: {', '.join(map(str, unknown))}")
        return value

    def validate_auto_approve_hours(self, value):
        if value < 1:
            raise serializers.ValidationError('Must be at least 1 hour')
        return value


class AdminCreateUserSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, validators=[validate_password])
    invitationToken = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    role = serializers.ChoiceField(choices=list(ROLE_TO_GROUP.keys()), required=False, allow_null=True)


class AcceptInvitationSerializer(serializers.Serializer):
    token = serializers.CharField()
