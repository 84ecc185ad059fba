# =============================================================================
# BoxOffice - Email System Tests
# =============================================================================
"""
Tests for customer emails. The testing config uses the Flask-Mailman
locmem backend, so sent messages land in the outbox fixture.
"""

import json
from unittest.mock import patch, MagicMock

from boxoffice.utils.email import (
    send_email,
    send_ticket_confirmation,
    send_guestlist_pass,
    format_amount,
    _send_with_retry,
    _html_to_text,
)
from boxoffice.utils.qr import ticket_qr_payload, qr_png


# =============================================================================
# Helpers
# =============================================================================

class TestHelpers:

    def test_format_amount(self):
        assert format_amount(1250) == '£12.50'
        assert format_amount(500, 'eur') == '€5.00'
        assert format_amount(0, 'usd') == '$0.00'
        assert format_amount(99, 'chf') == '0.99'

    def test_html_to_text(self):
        assert _html_to_text('<p>Hello <b>there</b></p>\n\n<p>!</p>') == 'Hello there !'

    def test_ticket_qr_payload(self):
        payload = json.loads(ticket_qr_payload('order-1', 3, 2, 'fan@example.com'))
        assert payload == {
            'orderId': 'order-1',
            'ticketTierId': 3,
            'quantity': 2,
            'customer': 'fan@example.com',
        }

    def test_qr_png(self):
        assert qr_png('hello').startswith(b'\x89PNG')


# =============================================================================
# Sending
# =============================================================================

class TestSendEmail:
    """send_email and retry."""

    def test_send_with_prefix(self, completed_order, outbox):
        assert send_email('Hello', 'fan@example.com', 'ticket_confirmation',
                          order=completed_order, event=completed_order.event, lines=[])

        assert len(outbox) == 1
        assert outbox[0].subject == '[BoxOffice] Hello'
        assert outbox[0].alternatives[0][1] == 'text/html'

    def test_missing_template_returns_false(self, outbox):
        assert send_email('Hello', 'fan@example.com', 'does_not_exist') is False
        assert outbox == []

    @patch('boxoffice.utils.email.time.sleep')
    def test_retry_then_succeed(self, mock_sleep, app):
        msg = MagicMock()
        msg.send.side_effect = [ConnectionError('smtp down'), None]

        assert _send_with_retry(msg, 'abc', 'fan@example.com') is True
        assert msg.send.call_count == 2
        mock_sleep.assert_called_once_with(2)

    @patch('boxoffice.utils.email.time.sleep')
    def test_gives_up_after_max_retries(self, mock_sleep, app):
        msg = MagicMock()
        msg.send.side_effect = ConnectionError('smtp down')

        assert _send_with_retry(msg, 'abc', 'fan@example.com') is False
        assert msg.send.call_count == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [2, 4]


class TestCustomerEmails:
    """Ticket confirmation and guestlist pass."""

    def test_ticket_confirmation(self, completed_order, outbox):
        assert send_ticket_confirmation(completed_order)

        message = outbox[0]
        assert message.to == ['fan@example.com']
        assert 'Your tickets for Warehouse Rave' in message.subject
        assert '2 x General Admission: £30.00' in message.body
        filename, content, mimetype = message.attachments[0]
        assert filename.startswith(f'ticket-{completed_order.id[:8]}-')
        assert mimetype == 'image/png'
        assert content.startswith(b'\x89PNG')

    def test_guestlist_pass(self, sample_guestlist, outbox):
        assert send_guestlist_pass(sample_guestlist)

        message = outbox[0]
        assert message.to == ['sam@example.com']
        assert 'admits 3 people' in message.body
        assert message.attachments[0][0] == f'guestlist-{sample_guestlist.id}.png'
