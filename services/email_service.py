"""
Loop notification emails.
Uses Flask-Mail for transactional emails to administrators who opted in.
Sending is fire-and-forget: failures are logged and reported as False.
"""
import logging

from flask import current_app
from flask_mail import Message
from models import User

logger = logging.getLogger(__name__)

NEW_LOOPS = 'new'
UPDATED_LOOPS = 'updated'


def get_mail():
    """Get Flask-Mail instance from app extensions."""
    return current_app.extensions.get('mail')


def send_email(to, subject, text, html=None):
    """
    Send one email.

    Args:
        to: Recipient address or list of addresses
        subject: Subject line
        text: Plain-text body
        html: Optional HTML body

    Returns:
        True if handed to the mail server, False otherwise
    """
    mail = get_mail()
    if not mail:
        logger.warning("Flask-Mail not configured, skipping email")
        return False

    recipients = [to] if isinstance(to, str) else list(to or [])
    if not recipients:
        return False

    try:
        msg = Message(subject=subject, recipients=recipients, body=text, html=html)
        mail.send(msg)
        logger.info(f"Email '{subject}' sent to {len(recipients)} recipient(s)")
        return True
    except Exception as e:
        logger.error(f"Failed to send email '{subject}': {e}")
        return False


def get_notification_admins(kind):
    """Active admins who opted in to new- or updated-loop emails."""
    query = User.query.filter_by(role='admin', suspended=False)
    if kind == NEW_LOOPS:
        query = query.filter_by(notify_on_new_loops=True)
    elif kind == UPDATED_LOOPS:
        query = query.filter_by(notify_on_updated_loops=True)
    return query.all()


def _loop_summary(loop):
    sale = f"${float(loop.sale):,.2f}" if loop.sale is not None else 'N/A'
    return [
        ('Property', loop.property_address),
        ('Type', loop.type),
        ('Status', loop.status),
        ('Client', loop.client_name or 'N/A'),
        ('Sale', sale),
        ('End Date', loop.end_date.isoformat() if loop.end_date else 'N/A'),
    ]


def _render(heading, loop, extra_rows=()):
    rows = _loop_summary(loop) + list(extra_rows)
    text = heading + "\n\n" + "\n".join(f"{label}: {value}" for label, value in rows)
    html_rows = "".join(
        f'<tr><td style="padding: 4px 12px 4px 0; color: #6b7280;">{label}</td>'
        f'<td style="padding: 4px 0; color: #111827;">{value}</td></tr>'
        for label, value in rows
    )
    html = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
        <h2 style="color: #1f2937; margin: 0 0 16px;">{heading}</h2>
        <table style="font-size: 14px;">{html_rows}</table>
    </div>
    """
    return text, html


def _notify(kind, subject, heading, loop, actor, extra_rows=()):
    actor_id = getattr(actor, 'id', None)
    admins = [a for a in get_notification_admins(kind) if a.id != actor_id]
    if not admins:
        return 0

    text, html = _render(heading, loop, extra_rows)
    sent = 0
    for admin in admins:
        if send_email(admin.email, subject, text, html):
            sent += 1
    return sent


def send_new_loop_notification(loop, creator):
    """Email opted-in admins about a new loop. Returns how many were sent."""
    creator_name = getattr(creator, 'name', None) or 'Unknown'
    return _notify(
        NEW_LOOPS,
        subject=f"New loop: {loop.property_address}",
        heading=f"{creator_name} created a new loop",
        loop=loop,
        actor=creator,
    )


def send_updated_loop_notification(loop, updater, changes):
    """Email opted-in admins about an updated loop. Returns how many were sent."""
    updater_name = getattr(updater, 'name', None) or 'Unknown'
    return _notify(
        UPDATED_LOOPS,
        subject=f"Loop updated: {loop.property_address}",
        heading=f"{updater_name} updated a loop",
        loop=loop,
        actor=updater,
        extra_rows=[('Changed', ', '.join(changes) if changes else 'images')],
    )
