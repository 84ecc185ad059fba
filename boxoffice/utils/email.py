"""
Email utility module for BoxOffice.
Handles customer emails (ticket confirmations, guestlist passes) using
Flask-Mailman, with retry and exponential backoff.
"""
import re
import time
import uuid
import logging

from flask import render_template, current_app
from flask_mailman import EmailMultiAlternatives

from boxoffice.utils.qr import qr_png, ticket_qr_payload

logger = logging.getLogger(__name__)

# Retry configuration
MAX_RETRIES = 3
RETRY_BASE_DELAY = 2  # seconds (2, 4, 8 with exponential backoff)


def send_email(subject, recipient, template, attachments=None, **kwargs):
    """
    Send an email using Flask-Mailman with retry logic.

    Args:
        subject: Email subject (prefixed with MAIL_SUBJECT_PREFIX)
        recipient: Email address of the recipient
        template: Template name (without extension) in templates/email/
        attachments: Optional list of (filename, content, mimetype) tuples
        **kwargs: Context variables for the template

    Returns:
        bool: True if email sent successfully, False otherwise
    """
    # Generate unique email ID for tracking
    email_id = str(uuid.uuid4())[:8]

    logger.info(f"[EMAIL:{email_id}] Sending to {recipient} - {subject} (template: {template})")

    try:
        html_body = render_template(f'email/{template}.html', **kwargs)
        text_body = (render_template(f'email/{template}.txt', **kwargs)
                     if _template_exists(f'email/{template}.txt')
                     else _html_to_text(html_body))

        prefix = current_app.config.get('MAIL_SUBJECT_PREFIX', '[BoxOffice]')
        msg = EmailMultiAlternatives(
            subject=f"{prefix} {subject}",
            body=text_body,
            from_email=current_app.config.get('MAIL_DEFAULT_SENDER'),
            to=[recipient],
        )
        msg.attach_alternative(html_body, 'text/html')
        for filename, content, mimetype in attachments or []:
            msg.attach(filename, content, mimetype)

        # Send with retry
        return _send_with_retry(msg, email_id, recipient)
    except Exception as e:
        logger.error(f"[EMAIL:{email_id}] Failed to build message for {recipient}: {e}")
        return False


def _send_with_retry(msg, email_id, recipient):
    """
    Send a prepared message with exponential backoff retry.

    Returns:
        bool: True if sent successfully after retries
    """
    last_error = None
    for attempt in range(1, MAX_RETRIES + 1):
        try:
            msg.send()
            logger.info(f"[EMAIL:{email_id}] Sent to {recipient}"
                        + (f" (attempt {attempt})" if attempt > 1 else ""))
            return True
        except Exception as e:
            last_error = e
            if attempt < MAX_RETRIES:
                delay = RETRY_BASE_DELAY * (2 ** (attempt - 1))
                logger.warning(
                    f"[EMAIL:{email_id}] Attempt {attempt}/{MAX_RETRIES} failed "
                    f"for {recipient}: {e}, retrying in {delay}s"
                )
                time.sleep(delay)
            else:
                logger.error(
                    f"[EMAIL:{email_id}] Giving up after {MAX_RETRIES} attempts "
                    f"for {recipient}: {last_error}"
                )
    return False


def send_ticket_confirmation(order):
    """
    Email an order confirmation with one QR code per ticket tier.

    Args:
        order: Completed Order

    Returns:
        bool: True if email sent successfully
    """
    attachments = []
    lines = []
    for line in order.tickets:
        payload = ticket_qr_payload(order.id, line.ticket_tier_id, line.quantity, order.customer_email)
        filename = f'ticket-{order.id[:8]}-{line.ticket_tier_id}.png'
        attachments.append((filename, qr_png(payload), 'image/png'))
        lines.append({
            'tier_name': line.ticket_tier.name if line.ticket_tier else f'Tier {line.ticket_tier_id}',
            'quantity': line.quantity,
            'total_price': line.total_price,
            'qr_filename': filename,
        })

    return send_email(
        subject=f'Your tickets for {order.event.title}',
        recipient=order.customer_email,
        template='ticket_confirmation',
        attachments=attachments,
        order=order,
        event=order.event,
        lines=lines,
    )


def send_guestlist_pass(guestlist):
    """
    Email a guestlist pass QR code to the lead guest.

    Args:
        guestlist: GuestlistPass

    Returns:
        bool: True if email sent successfully
    """
    filename = f'guestlist-{guestlist.id}.png'
    return send_email(
        subject=f'Your guestlist for {guestlist.event.title}',
        recipient=guestlist.lead_email,
        template='guestlist_pass',
        attachments=[(filename, qr_png(guestlist.qr_code_data), 'image/png')],
        guestlist=guestlist,
        event=guestlist.event,
        qr_filename=filename,
    )


def format_amount(amount, currency='gbp'):
    """Format minor units for display, e.g. 1250 -> £12.50."""
    symbols = {'gbp': '£', 'eur': '€', 'usd': '$'}
    symbol = symbols.get((currency or '').lower(), '')
    return f"{symbol}{(amount or 0) / 100:.2f}"


def _template_exists(template_name):
    """Check if a template file exists."""
    try:
        current_app.jinja_env.get_template(template_name)
        return True
    except Exception:
        return False


def _html_to_text(html_content):
    """
    Basic HTML to plain text conversion.
    Strips HTML tags for plain text email version.
    """
    text = re.sub(r'<[^>]+>', '', html_content)
    text = re.sub(r'\s+', ' ', text).strip()
    return text
