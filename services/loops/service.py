"""
Loop Service

CRUD, archive and image operations on loops. Every operation takes the
acting user explicitly. Audit entries and notification emails run as
post-commit hooks after the write has been committed; a failing hook
never changes the operation's result.
"""

import logging

from flask import current_app

from forms import LoopForm
from models import db, Loop
from services import audit_service, email_service
from services.exceptions import NotFound, PermissionDenied, ValidationError
from services.hooks import PostCommitHooks
from .images import delete_images, image_path, process_uploaded_images
from .store import LoopStore
from .types import LoopFilters, LoopPatch, LoopStatus, PATCHABLE_FIELDS, normalize_status

logger = logging.getLogger(__name__)

# Hook events
LOOP_CREATED = 'loop_created'
LOOP_UPDATED = 'loop_updated'
LOOP_STATUS_CHANGED = 'loop_status_changed'
LOOP_DELETED = 'loop_deleted'
LOOP_ARCHIVED = 'loop_archived'
LOOP_UNARCHIVED = 'loop_unarchived'
LOOP_IMAGE_DELETED = 'loop_image_deleted'

hooks = PostCommitHooks()

END_BEFORE_START = 'End date must be on or after the start date'


def _actor_id(actor):
    return getattr(actor, 'id', None)


def _is_admin(actor):
    return bool(getattr(actor, 'is_admin', False))


def _require_admin(actor):
    if not _is_admin(actor):
        raise PermissionDenied('Admin access required')


def _clean(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _field_value(form, name):
    value = form[name].data
    if name == 'status':
        return normalize_status(_clean(value))
    return _clean(value)


# =============================================================================
# DEFAULT HOOKS
# =============================================================================

def _audit_created(loop, actor, **_):
    audit_service.log_loop_created(loop, actor_id=_actor_id(actor))


def _notify_created(loop, actor, **_):
    email_service.send_new_loop_notification(loop, actor)


def _audit_updated(loop, actor, changes, **_):
    audit_service.log_loop_updated(loop, changes, actor_id=_actor_id(actor))


def _notify_updated(loop, actor, changes, **_):
    email_service.send_updated_loop_notification(loop, actor, changes)


def _audit_status_changed(loop, actor, old_status, new_status, **_):
    audit_service.log_loop_status_changed(loop, old_status, new_status, actor_id=_actor_id(actor))


def _audit_deleted(loop_id, address, actor, **_):
    audit_service.log_loop_deleted(loop_id, address, actor_id=_actor_id(actor))


def _audit_archived(loop, actor, **_):
    audit_service.log_loop_archived(loop, actor_id=_actor_id(actor))


def _audit_unarchived(loop, actor, **_):
    audit_service.log_loop_unarchived(loop, actor_id=_actor_id(actor))


def _audit_image_deleted(loop, actor, filename, **_):
    audit_service.log_loop_image_deleted(loop, filename, actor_id=_actor_id(actor))


def register_default_hooks(registry: PostCommitHooks):
    registry.register(LOOP_CREATED, _audit_created)
    registry.register(LOOP_CREATED, _notify_created)
    registry.register(LOOP_UPDATED, _audit_updated)
    registry.register(LOOP_UPDATED, _notify_updated)
    registry.register(LOOP_STATUS_CHANGED, _audit_status_changed)
    registry.register(LOOP_DELETED, _audit_deleted)
    registry.register(LOOP_ARCHIVED, _audit_archived)
    registry.register(LOOP_UNARCHIVED, _audit_unarchived)
    registry.register(LOOP_IMAGE_DELETED, _audit_image_deleted)


register_default_hooks(hooks)


# =============================================================================
# READ
# =============================================================================

def get_loop(loop_id, actor) -> Loop:
    """
    Fetch a loop the actor may view (its creator or an admin).

    Raises:
        NotFound: no such loop
        PermissionDenied: actor is neither the creator nor an admin
    """
    loop = LoopStore.get_by_id(loop_id)
    if loop is None:
        raise NotFound('Loop not found')
    if not _is_admin(actor) and loop.creator_id != _actor_id(actor):
        raise PermissionDenied('Access denied')
    return loop


def list_loops(filters: LoopFilters, actor):
    """List loops; non-admins only ever see their own."""
    if not _is_admin(actor):
        filters.creator_id = _actor_id(actor)
    return LoopStore.query(filters)


def closing_soon(actor, days=None):
    days = days if days is not None else current_app.config.get('CLOSING_SOON_DAYS', 3)
    loops = LoopStore.closing_within(days)
    if _is_admin(actor):
        return loops
    return [loop for loop in loops if loop.creator_id == _actor_id(actor)]


def dashboard_stats(actor):
    """Store stats plus the closing-soon count, scoped like closing_soon()."""
    stats = LoopStore.stats()
    stats['closing_soon'] = len(closing_soon(actor))
    return stats


def loop_image_path(loop_id, filename, actor):
    """Path of one of a loop's stored images."""
    loop = get_loop(loop_id, actor)
    if filename not in {img.get('filename') for img in loop.image_list}:
        raise NotFound('Image not found')
    path = image_path(filename)
    if path is None:
        raise NotFound('Image not found')
    return path


# =============================================================================
# WRITE
# =============================================================================

def create_loop(payload, actor, images=None) -> Loop:
    """
    Validate a payload and create a loop owned by the actor.

    Status defaults to pre-offer; legacy statuses are stored as their
    canonical value.
    """
    form = LoopForm(payload)
    if not form.validate():
        raise ValidationError('Validation failed', form.error_map())

    records = process_uploaded_images(images)

    loop = Loop(
        type=_field_value(form, 'type'),
        property_address=_field_value(form, 'property_address'),
        sale=form.sale.data,
        status=_field_value(form, 'status') or LoopStatus.PRE_OFFER.value,
        client_name=_field_value(form, 'client_name'),
        client_email=_field_value(form, 'client_email'),
        client_phone=_field_value(form, 'client_phone'),
        start_date=form.start_date.data,
        end_date=form.end_date.data,
        tags=_field_value(form, 'tags'),
        notes=_field_value(form, 'notes'),
        images=records,
        creator_id=_actor_id(actor),
    )
    try:
        LoopStore.create(loop)
    except Exception:
        db.session.rollback()
        delete_images(records)
        raise

    hooks.run(LOOP_CREATED, loop=loop, actor=actor)
    return loop


def build_patch(payload, loop) -> LoopPatch:
    """
    Validate the fields present in an update payload.

    Fields absent from the payload are left alone. The end date is checked
    against the start date after merging with the stored values.
    """
    present = [name for name in PATCHABLE_FIELDS if name in (payload or {})]

    form = LoopForm(payload)
    form.validate()
    errors = form.error_map(only=present)

    start = form.start_date.data if 'start_date' in present else loop.start_date
    end = form.end_date.data if 'end_date' in present else loop.end_date
    if start and end and end < start:
        messages = errors.setdefault('end_date', [])
        if END_BEFORE_START not in messages:
            messages.append(END_BEFORE_START)

    if errors:
        raise ValidationError('Validation failed', errors)

    patch = LoopPatch()
    for name in present:
        patch.set(name, _field_value(form, name))
    return patch


def update_loop(loop_id, payload, actor, images=None, replace_images=False) -> Loop:
    """
    Apply a partial update.

    New images are appended to the manifest unless replace_images is set,
    in which case the previous images are removed best-effort after the
    update commits.
    """
    loop = get_loop(loop_id, actor)
    patch = build_patch(payload, loop)

    records = process_uploaded_images(images)
    replaced = []
    if replace_images:
        replaced = loop.image_list
        patch.set('images', records)
    elif records:
        patch.set('images', loop.image_list + records)

    old_status = loop.status

    try:
        updated = LoopStore.update(loop_id, patch)
    except Exception:
        db.session.rollback()
        delete_images(records)
        raise
    if updated == 0:
        delete_images(records)
        raise NotFound('Loop not found')

    if replaced:
        delete_images(replaced)

    loop = LoopStore.get_by_id(loop_id)
    changes = sorted(patch.changes)

    hooks.run(LOOP_UPDATED, loop=loop, actor=actor, changes=changes)
    if 'status' in patch and normalize_status(old_status) != patch.get('status'):
        hooks.run(LOOP_STATUS_CHANGED, loop=loop, actor=actor,
                  old_status=old_status, new_status=patch.get('status'))
    return loop


def delete_loop(loop_id, actor) -> None:
    """Hard-delete a loop and its stored images (admin only)."""
    _require_admin(actor)
    loop = LoopStore.get_by_id(loop_id)
    if loop is None:
        raise NotFound('Loop not found')

    images = loop.image_list
    address = loop.property_address

    if LoopStore.delete(loop_id) == 0:
        raise NotFound('Loop not found')

    removed = delete_images(images)
    logger.info(f"Deleted loop {loop_id} and {removed} of {len(images)} images")

    hooks.run(LOOP_DELETED, loop_id=loop_id, address=address, actor=actor)


def archive_loop(loop_id, actor) -> Loop:
    _require_admin(actor)
    if LoopStore.archive(loop_id) == 0:
        raise NotFound('Loop not found')
    loop = LoopStore.get_by_id(loop_id)
    hooks.run(LOOP_ARCHIVED, loop=loop, actor=actor)
    return loop


def unarchive_loop(loop_id, actor) -> Loop:
    _require_admin(actor)
    if LoopStore.unarchive(loop_id) == 0:
        raise NotFound('Loop not found')
    loop = LoopStore.get_by_id(loop_id)
    hooks.run(LOOP_UNARCHIVED, loop=loop, actor=actor)
    return loop


def delete_loop_image(loop_id, filename, actor) -> Loop:
    """Remove one image from a loop's manifest and from storage."""
    loop = get_loop(loop_id, actor)
    images = loop.image_list
    remaining = [img for img in images if img.get('filename') != filename]
    if len(remaining) == len(images):
        raise NotFound('Image not found')

    patch = LoopPatch()
    patch.set('images', remaining)
    if LoopStore.update(loop_id, patch) == 0:
        raise NotFound('Loop not found')

    delete_images([img for img in images if img.get('filename') == filename])

    loop = LoopStore.get_by_id(loop_id)
    hooks.run(LOOP_IMAGE_DELETED, loop=loop, actor=actor, filename=filename)
    return loop
