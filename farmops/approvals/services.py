"""
Pending activity workflow

Farmhands submit activities; owners and managers approve or reject them.
Approval writes the production records inside one transaction, then
deducts feed inventory for feeding activities outside of it.
"""
import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from farmops.animals.models import (
    Animal, MilkingRecord, FeedingRecord, WeightRecord, HealthRecord, InjectionRecord,
)
from farmops.animals.services import AnimalError, normalize_session
from farmops.core.exceptions import ServiceError, NotFoundError, PermissionDeniedError
from farmops.core.utils import create_audit_log, notify_user
from farmops.farms.models import FarmMembership
from farmops.farms.permissions import can_manage_farm, is_farm_member
from farmops.farms.services import auto_approve_deadline, get_approval_settings, requires_approval
from farmops.feed.services import deduct_feed_inventory
from .models import PendingActivity

logger = logging.getLogger(__name__)

REVIEW_ACTIONS = ('approve', 'reject')
ACTIVITY_TYPES = [choice[0] for choice in PendingActivity.ACTIVITY_TYPE_CHOICES]
NO_REASON = 'No reason provided'
ALREADY_PROCESSED = 'Activity not found or already processed'


class ActivityReviewError(ServiceError):
    pass


def _decimal(value, field, activity_type):
    if value is None or value == '':
        raise ActivityReviewError(f'{field} is required for {activity_type}')
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ActivityReviewError(f'{field} must be a number')


def _record_date(data):
    raw = data.get('validated_date')
    parsed = parse_date(str(raw)[:10]) if raw else None
    return parsed or timezone.localdate()


def _record_datetime(data):
    raw = data.get('validated_datetime')
    parsed = parse_datetime(str(raw)) if raw else None
    return parsed or timezone.now()


def _animal_ids(activity):
    """Animal ids the activity touches, checked against the farm's live animals"""
    data = activity.activity_data or {}
    if activity.activity_type == 'feeding' and data.get('distributions'):
        raw_ids = [dist.get('animal_id') for dist in data['distributions']]
    else:
        raw_ids = list(activity.animal_ids or [])
    if not raw_ids:
        raise ActivityReviewError('No animals selected for this activity')
    try:
        ids = [int(i) for i in raw_ids]
    except (TypeError, ValueError):
        raise ActivityReviewError('Animal ids must be integers')

    known = set(
        Animal.objects.filter(farm=activity.farm, is_deleted=False, pk__in=ids)
        .values_list('id', flat=True)
    )
    missing = [i for i in ids if i not in known]
    if missing:
        raise ActivityReviewError(f"Animals not found on this farm: {', '.join(map(str, missing))}")
    return ids


def write_production_records(activity):
    """Create the production rows of an activity; returns the number written"""
    data = activity.activity_data or {}
    activity_type = activity.activity_type
    submitter = activity.submitted_by
    animal_ids = _animal_ids(activity)
    notes = data.get('notes')

    if activity_type == 'milking':
        liters = _decimal(data.get('quantity'), 'quantity', activity_type)
        try:
            session = normalize_session(data.get('session'))
        except AnimalError as e:
            raise ActivityReviewError(e.message)
        rows = [
            MilkingRecord(animal_id=animal_id, record_date=_record_date(data), liters=liters,
                          session=session, created_by=submitter)
            for animal_id in animal_ids
        ]
        MilkingRecord.objects.bulk_create(rows)
    elif activity_type == 'feeding':
        feed_type = data.get('feed_type') or ''
        record_datetime = _record_datetime(data)
        if data.get('distributions'):
            amounts = [(int(dist['animal_id']), _decimal(dist.get('feed_amount'), 'feed_amount', activity_type))
                       for dist in data['distributions']]
        else:
            quantity = _decimal(data.get('quantity'), 'quantity', activity_type)
            amounts = [(animal_id, quantity) for animal_id in animal_ids]
        rows = [
            FeedingRecord(animal_id=animal_id, record_datetime=record_datetime, feed_type=feed_type,
                          kilograms=amount, notes=notes, created_by=submitter)
            for animal_id, amount in amounts
        ]
        FeedingRecord.objects.bulk_create(rows)
    elif activity_type == 'weight_measurement':
        weight = _decimal(data.get('quantity'), 'quantity', activity_type)
        # Saved one by one so the current-weight signal fires
        rows = [
            WeightRecord.objects.create(animal_id=animal_id, weight_kg=weight, measurement_date=_record_date(data),
                                        recorded_by=submitter, notes=notes)
            for animal_id in animal_ids
        ]
    elif activity_type == 'health_observation':
        rows = [
            HealthRecord(animal_id=animal_id, visit_date=_record_date(data), notes=notes, created_by=submitter)
            for animal_id in animal_ids
        ]
        HealthRecord.objects.bulk_create(rows)
    elif activity_type == 'injection':
        rows = [
            InjectionRecord(animal_id=animal_id, record_datetime=_record_datetime(data),
                            medicine_name=data.get('medicine_name'), dosage=data.get('dosage'),
                            instructions=notes, created_by=submitter)
            for animal_id in animal_ids
        ]
        InjectionRecord.objects.bulk_create(rows)
    else:
        raise ActivityReviewError(f'Unknown activity type: {activity_type}')

    return len(rows)


def _feeding_total_kg(data):
    total = data.get('total_kg') or data.get('quantity')
    if not total and data.get('distributions'):
        total = sum(Decimal(str(dist.get('feed_amount') or 0)) for dist in data['distributions'])
    return total


def deduct_for_feeding(activity, user=None, is_auto=False):
    """Deduct an approved feeding activity's feed from inventory"""
    data = activity.activity_data or {}
    total_kg = _feeding_total_kg(data)
    if not data.get('feed_type') or not total_kg:
        logger.warning(f"Feeding activity {activity.id} has no feed type or amount, inventory not deducted")
        return None

    original_quantity = data.get('quantity') or total_kg
    original_unit = data.get('unit') or 'kg'
    note = f"Auto-approved feeding: {original_quantity} {original_unit} distributed" if is_auto else None
    return deduct_feed_inventory(
        activity.farm, data['feed_type'], total_kg, user=user,
        original_quantity=original_quantity, original_unit=original_unit, note=note,
    )


def approve_activity(activity_id, reviewer=None, is_auto=False):
    """
    Approve a pending activity.

    Returns {success, activity_id} or {success: False, error} when the
    activity is missing or no longer pending. Invalid activity data raises
    ActivityReviewError and leaves the activity pending.
    """
    with transaction.atomic():
        activity = (
            PendingActivity.objects.select_for_update()
            .filter(pk=activity_id, status='pending')
            .first()
        )
        if activity is None:
            return {'success': False, 'error': ALREADY_PROCESSED}

        records_written = write_production_records(activity)

        activity.status = 'auto_approved' if is_auto else 'approved'
        activity.reviewed_by = reviewer
        activity.reviewed_at = timezone.now()
        activity.save(update_fields=['status', 'reviewed_by', 'reviewed_at'])

        notify_user(
            activity.submitted_by,
            'activity_approved',
            'Activity Auto-Approved' if is_auto else 'Activity Approved',
            f"Your {activity.activity_type} submission has been {'auto-approved' if is_auto else 'approved'}.",
        )

    logger.info(f"Activity {activity.id} {activity.status} ({records_written} records)")
    result = {'success': True, 'activity_id': activity.id}
    if activity.activity_type == 'feeding':
        result['inventory'] = deduct_for_feeding(activity, user=reviewer, is_auto=is_auto)
    return result


def reject_activity(activity_id, reviewer, reason=None):
    reason = reason or NO_REASON
    with transaction.atomic():
        activity = (
            PendingActivity.objects.select_for_update()
            .filter(pk=activity_id, status='pending')
            .first()
        )
        if activity is None:
            raise ActivityReviewError(ALREADY_PROCESSED)

        activity.status = 'rejected'
        activity.reviewed_by = reviewer
        activity.reviewed_at = timezone.now()
        activity.rejection_reason = reason
        activity.save(update_fields=['status', 'reviewed_by', 'reviewed_at', 'rejection_reason'])

        notify_user(
            activity.submitted_by,
            'activity_rejected',
            'Activity Rejected',
            f"Your {activity.activity_type} submission was rejected. Reason: {reason}",
        )
    logger.info(f"Activity {activity.id} rejected by {reviewer.pk if reviewer else 'system'}")
    return activity


def review_pending_activity(pending_id, action, reviewer, rejection_reason=None):
    """Approve or reject a pending activity on behalf of a farm owner or manager"""
    if not pending_id or not action:
        raise ActivityReviewError('pendingId and action are required')
    if action not in REVIEW_ACTIONS:
        raise ActivityReviewError('Invalid action. Use "approve" or "reject"')

    try:
        pending_id = int(pending_id)
    except (TypeError, ValueError):
        raise NotFoundError('Activity not found')
    activity = PendingActivity.objects.select_related('farm').filter(pk=pending_id).first()
    if activity is None:
        raise NotFoundError('Activity not found')
    if not can_manage_farm(reviewer, activity.farm):
        raise PermissionDeniedError('Only farm owners and managers can review activities')

    logger.info(f"User {reviewer.pk} attempting to {action} activity {pending_id}")
    if action == 'approve':
        data = approve_activity(pending_id, reviewer=reviewer)
        return {'success': True, 'message': 'Activity approved', 'data': data}

    reject_activity(pending_id, reviewer, rejection_reason)
    return {'success': True, 'message': 'Activity rejected'}


def _farm_reviewers(farm):
    reviewers = {farm.owner}
    memberships = FarmMembership.objects.filter(
        farm=farm, invitation_status='accepted', role_in_farm__in=['farmer_owner', 'farm_manager']
    ).exclude(user__isnull=True).select_related('user')
    reviewers.update(m.user for m in memberships)
    return reviewers


def submit_activity(farm, user, activity_type, activity_data=None, animal_ids=None, submitted_at=None):
    """
    Record a farmhand activity for review.

    Activity types the farm does not require approval for are approved
    straight away by the system.
    """
    if activity_type not in ACTIVITY_TYPES:
        raise ActivityReviewError(f'Unknown activity type: {activity_type}')
    if not is_farm_member(user, farm):
        raise PermissionDeniedError('You do not have access to this farm')

    submitted_at = submitted_at or timezone.now()
    activity = PendingActivity(
        farm=farm,
        submitted_by=user,
        activity_type=activity_type,
        activity_data=activity_data or {},
        animal_ids=list(animal_ids or []),
        submitted_at=submitted_at,
        auto_approve_at=auto_approve_deadline(farm, submitted_at),
    )
    _animal_ids(activity)

    with transaction.atomic():
        activity.save()
        logger.info(f"Activity {activity.id} ({activity_type}) submitted on farm {farm.id} by {user.pk}")
        if not requires_approval(farm, activity_type):
            approve_activity(activity.id, reviewer=None, is_auto=True)
            activity.refresh_from_db()
            return activity

    for reviewer in _farm_reviewers(farm):
        if reviewer.pk != user.pk:
            notify_user(
                reviewer,
                'activity_submitted',
                'Activity Awaiting Review',
                f"{user.get_display_name()} submitted a {activity_type} activity for review.",
            )
    return activity


def process_auto_approvals(now=None):
    """
    Approve every pending activity whose auto-approval time has passed.

    Farms with auto-approval switched off are skipped; farms without
    settings count as enabled.
    """
    now = now or timezone.now()
    due = (
        PendingActivity.objects.filter(status='pending', auto_approve_at__lte=now)
        .select_related('farm')
        .order_by('auto_approve_at', 'id')
    )
    logger.info(f"Found {due.count()} activities to auto-approve")

    results = []
    for activity in due:
        approval_settings = get_approval_settings(activity.farm)
        enabled = approval_settings.auto_approve_enabled if approval_settings else True
        if not enabled:
            logger.info(f"Auto-approval disabled for farm {activity.farm_id}, skipping activity {activity.id}")
            continue

        error = None
        try:
            outcome = approve_activity(activity.id, reviewer=None, is_auto=True)
            if not outcome['success']:
                error = outcome['error']
        except ServiceError as e:
            error = e.message
        except Exception as e:
            logger.error(f"Error auto-approving activity {activity.id}: {str(e)}", exc_info=True)
            error = str(e)

        if error is None:
            create_audit_log(
                action='activity_auto_approve',
                model_name='PendingActivity',
                object_id=activity.id,
                object_name=activity.activity_type,
                object_reference=str(activity.farm_id),
            )
        else:
            logger.warning(f"Auto-approval of activity {activity.id} failed: {error}")
        results.append({
            'id': activity.id,
            'activity_type': activity.activity_type,
            'success': error is None,
            'error': error,
        })

    succeeded = sum(1 for r in results if r['success'])
    logger.info(f"Auto-approval complete: {succeeded} succeeded, {len(results) - succeeded} failed")
    return {
        'processed': len(results),
        'succeeded': succeeded,
        'failed': len(results) - succeeded,
        'results': results,
    }

