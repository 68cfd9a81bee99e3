"""
Audit Service - Centralized activity logging for loops, templates and users.

Provides helper functions to log activity consistently throughout the application.
Logging is best-effort: a failure to write an entry is logged and never
propagates to the caller.
"""

import logging
from datetime import datetime, timedelta

from flask import request
from flask_login import current_user
from models import db, ActivityLog, User

logger = logging.getLogger(__name__)


def get_request_context():
    """
    Extract IP address and user agent from the current request.
    Returns (ip_address, user_agent) tuple.
    """
    ip_address = None
    user_agent = None

    try:
        if request:
            # Get IP, handling proxies
            ip_address = request.headers.get('X-Forwarded-For', request.remote_addr)
            if ip_address and ',' in ip_address:
                ip_address = ip_address.split(',')[0].strip()

            user_agent = request.headers.get('User-Agent', '')[:500]  # Truncate if too long
    except RuntimeError:
        # Outside of request context
        pass

    return ip_address, user_agent


def get_current_actor_id():
    """Get the current user's ID if authenticated."""
    try:
        if current_user and current_user.is_authenticated:
            return current_user.id
    except RuntimeError:
        pass
    return None


def log_event(action_type, description, event_data=None, actor_id=None):
    """
    Log an activity entry with automatic context extraction.

    Args:
        action_type: One of the ActivityLog action type constants
        description: Human-readable description of the action
        event_data: Dict of additional context data
        actor_id: Override for the actor (defaults to current user)

    Returns:
        The created ActivityLog instance, or None if it could not be written
    """
    ip_address, user_agent = get_request_context()

    if actor_id is None:
        actor_id = get_current_actor_id()

    try:
        return ActivityLog.log(
            action_type=action_type,
            description=description,
            user_id=actor_id,
            event_data=event_data or {},
            ip_address=ip_address,
            user_agent=user_agent
        )
    except Exception as e:
        db.session.rollback()
        logger.exception(f"Failed to write activity log {action_type}: {e}")
        return None


# =============================================================================
# AUTH EVENTS
# =============================================================================

def log_login(user):
    """Log a successful login."""
    return log_event(
        action_type=ActivityLog.LOGIN,
        description=f"{user.name} logged in",
        event_data={'email': user.email},
        actor_id=user.id
    )


def log_logout(user):
    return log_event(
        action_type=ActivityLog.LOGOUT,
        description=f"{user.name} logged out",
        actor_id=user.id
    )


def log_password_changed(user):
    return log_event(
        action_type=ActivityLog.PASSWORD_CHANGED,
        description=f"{user.name} changed their password",
        actor_id=user.id
    )


# =============================================================================
# LOOP EVENTS
# =============================================================================

def log_loop_created(loop, actor_id=None):
    """Log when a loop is created."""
    return log_event(
        action_type=ActivityLog.LOOP_CREATED,
        description=f"Loop created for {loop.property_address}",
        event_data={
            'loop_id': loop.id,
            'type': loop.type,
            'status': loop.status
        },
        actor_id=actor_id
    )


def log_loop_updated(loop, changed_fields, actor_id=None):
    """Log when a loop is updated."""
    return log_event(
        action_type=ActivityLog.LOOP_UPDATED,
        description=f"Loop updated: {loop.property_address}",
        event_data={
            'loop_id': loop.id,
            'changed_fields': changed_fields
        },
        actor_id=actor_id
    )


def log_loop_status_changed(loop, old_status, new_status, actor_id=None):
    """Log when a loop status changes."""
    return log_event(
        action_type=ActivityLog.LOOP_STATUS_CHANGED,
        description=f"Status changed from '{old_status}' to '{new_status}'",
        event_data={
            'loop_id': loop.id,
            'old_status': old_status,
            'new_status': new_status
        },
        actor_id=actor_id
    )


def log_loop_deleted(loop_id, address, actor_id=None):
    """Log when a loop is deleted."""
    return log_event(
        action_type=ActivityLog.LOOP_DELETED,
        description=f"Loop deleted: {address}",
        event_data={
            'loop_id': loop_id,
            'address': address
        },
        actor_id=actor_id
    )


def log_loop_archived(loop, actor_id=None):
    return log_event(
        action_type=ActivityLog.LOOP_ARCHIVED,
        description=f"Loop archived: {loop.property_address}",
        event_data={'loop_id': loop.id},
        actor_id=actor_id
    )


def log_loop_unarchived(loop, actor_id=None):
    return log_event(
        action_type=ActivityLog.LOOP_UNARCHIVED,
        description=f"Loop restored from archive: {loop.property_address}",
        event_data={'loop_id': loop.id},
        actor_id=actor_id
    )


def log_loop_image_deleted(loop, filename, actor_id=None):
    return log_event(
        action_type=ActivityLog.LOOP_IMAGE_DELETED,
        description=f"Image removed from loop: {loop.property_address}",
        event_data={
            'loop_id': loop.id,
            'filename': filename
        },
        actor_id=actor_id
    )


# =============================================================================
# TEMPLATE & DOCUMENT EVENTS
# =============================================================================

def log_template_uploaded(template, actor_id=None):
    """Log when a document template is uploaded."""
    return log_event(
        action_type=ActivityLog.TEMPLATE_UPLOADED,
        description=f"Template uploaded: {template.name}",
        event_data={
            'template_id': template.id,
            'category': template.category,
            'file_name': template.file_name,
            'file_type': template.file_type,
            'file_size': template.file_size
        },
        actor_id=actor_id
    )


def log_template_updated(template, actor_id=None):
    return log_event(
        action_type=ActivityLog.TEMPLATE_UPDATED,
        description=f"Template updated: {template.name}",
        event_data={
            'template_id': template.id,
            'category': template.category
        },
        actor_id=actor_id
    )


def log_template_deleted(template_id, name, actor_id=None):
    return log_event(
        action_type=ActivityLog.TEMPLATE_DELETED,
        description=f"Template deleted: {name}",
        event_data={'template_id': template_id, 'name': name},
        actor_id=actor_id
    )


def log_template_fields_mapped(template, mapping_count, actor_id=None):
    """Log when a template's field mappings are replaced."""
    return log_event(
        action_type=ActivityLog.TEMPLATE_FIELDS_MAPPED,
        description=f"Field mappings saved for {template.name} ({mapping_count} fields)",
        event_data={
            'template_id': template.id,
            'mapping_count': mapping_count
        },
        actor_id=actor_id
    )


def log_document_generated(result, actor_id=None):
    """Log when a document is generated from a template."""
    return log_event(
        action_type=ActivityLog.DOCUMENT_GENERATED,
        description=f"Document generated: {result.template_name} for loop {result.loop_id}",
        event_data={
            'template_id': result.template_id,
            'loop_id': result.loop_id,
            'file_name': result.file_name,
            'substituted': result.substituted,
            'fields_replaced': result.fields_replaced
        },
        actor_id=actor_id
    )


def log_document_deleted(file_name, actor_id=None):
    return log_event(
        action_type=ActivityLog.DOCUMENT_DELETED,
        description=f"Generated document deleted: {file_name}",
        event_data={'file_name': file_name},
        actor_id=actor_id
    )


# =============================================================================
# ADMIN EVENTS
# =============================================================================

def log_export(export_type, record_count, actor_id=None):
    """Log a data export (CSV or PDF)."""
    return log_event(
        action_type=ActivityLog.EXPORT_DATA,
        description=f"Exported {export_type} ({record_count} records)",
        event_data={
            'export_type': export_type,
            'record_count': record_count
        },
        actor_id=actor_id
    )


def log_user_suspended(user, actor_id=None):
    return log_event(
        action_type=ActivityLog.USER_SUSPENDED,
        description=f"User suspended: {user.email}",
        event_data={'user_id': user.id},
        actor_id=actor_id
    )


def log_user_unsuspended(user, actor_id=None):
    return log_event(
        action_type=ActivityLog.USER_UNSUSPENDED,
        description=f"User unsuspended: {user.email}",
        event_data={'user_id': user.id},
        actor_id=actor_id
    )


def log_user_promoted(user, actor_id=None):
    return log_event(
        action_type=ActivityLog.USER_PROMOTED,
        description=f"User promoted to admin: {user.email}",
        event_data={'user_id': user.id},
        actor_id=actor_id
    )


def log_users_imported(successful, failed, actor_id=None):
    """Log a bulk user import."""
    return log_event(
        action_type=ActivityLog.USER_IMPORTED,
        description=f"Imported {successful} users ({failed} failed)",
        event_data={
            'successful': successful,
            'failed': failed
        },
        actor_id=actor_id
    )


def log_settings_updated(user, changes, actor_id=None):
    return log_event(
        action_type=ActivityLog.SETTINGS_UPDATED,
        description=f"Notification settings updated for {user.email}",
        event_data={
            'user_id': user.id,
            'changes': changes
        },
        actor_id=actor_id
    )


# =============================================================================
# QUERY HELPERS
# =============================================================================

def build_activity_query(user_id=None, action_type=None, start_date=None,
                         end_date=None, search=None):
    """
    Build a filtered activity log query, most recent first.

    Args:
        user_id: Only entries by this user
        action_type: Only entries of this type
        start_date: Entries on or after this date
        end_date: Entries on or before this date (whole day included)
        search: Case-insensitive substring of the description
    """
    query = ActivityLog.query

    if user_id:
        query = query.filter(ActivityLog.user_id == user_id)
    if action_type:
        query = query.filter(ActivityLog.action_type == action_type)
    if start_date:
        query = query.filter(ActivityLog.created_at >= datetime.combine(start_date, datetime.min.time()))
    if end_date:
        next_day = datetime.combine(end_date, datetime.min.time()) + timedelta(days=1)
        query = query.filter(ActivityLog.created_at < next_day)
    if search:
        query = query.filter(ActivityLog.description.ilike(f'%{search}%'))

    return query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())


def get_activity_logs(limit=100, offset=0, **filters):
    """
    Get activity logs matching the filters.

    Returns:
        List of ActivityLog objects
    """
    return build_activity_query(**filters).offset(offset).limit(limit).all()


def get_activity_stats(days=30):
    """Counts per action type and per day over the last `days` days."""
    since = datetime.utcnow() - timedelta(days=days)

    by_type = db.session.query(
        ActivityLog.action_type, db.func.count(ActivityLog.id)
    ).filter(
        ActivityLog.created_at >= since
    ).group_by(ActivityLog.action_type).all()

    day = db.func.date(ActivityLog.created_at)
    by_day = db.session.query(
        day, db.func.count(ActivityLog.id)
    ).filter(
        ActivityLog.created_at >= since
    ).group_by(day).order_by(day).all()

    return {
        'total': ActivityLog.query.count(),
        'recent': sum(count for _, count in by_type),
        'by_type': {action_type: count for action_type, count in by_type},
        'by_day': [{'date': str(d), 'count': count} for d, count in by_day],
    }


def get_user_activity_summary():
    """Per-user totals: number of entries, last action time, loops created."""
    rows = db.session.query(
        User.id,
        User.name,
        User.email,
        db.func.count(ActivityLog.id),
        db.func.max(ActivityLog.created_at),
        db.func.sum(db.case((ActivityLog.action_type == ActivityLog.LOOP_CREATED, 1), else_=0)),
    ).outerjoin(
        ActivityLog, ActivityLog.user_id == User.id
    ).group_by(User.id, User.name, User.email).order_by(User.name).all()

    return [
        {
            'user_id': user_id,
            'name': name,
            'email': email,
            'total_actions': int(total or 0),
            'last_action_at': last.isoformat() if last else None,
            'loops_created': int(created or 0),
        }
        for user_id, name, email, total, last, created in rows
    ]


def clear_all_logs():
    """Delete every activity log entry. Returns the number removed."""
    count = ActivityLog.query.delete()
    db.session.commit()
    logger.info(f"Cleared {count} activity log entries")
    return count


def format_event_for_display(event):
    """
    Format an activity entry for the admin API.

    Returns a dict with display-friendly data.
    """
    return {
        'id': event.id,
        'action_type': event.action_type,
        'label': event.action_type.replace('_', ' ').title(),
        'description': event.description,
        'event_data': event.event_data,
        'ip_address': event.ip_address,
        'user_agent': event.user_agent,
        'created_at': event.created_at.isoformat() + 'Z' if event.created_at else None,  # Append Z to indicate UTC
        'user_id': event.user_id,
        'user_name': event.user.name if event.user else None,
        'user_email': event.user.email if event.user else None,
    }
