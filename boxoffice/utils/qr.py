"""
QR code generation for tickets and guestlist passes.
"""
import json
from io import BytesIO

import qrcode


def ticket_qr_payload(order_id, ticket_tier_id, quantity, customer_email):
    """JSON payload printed on a ticket: what the door scanner reads back."""
    return json.dumps({
        'orderId': order_id,
        'ticketTierId': ticket_tier_id,
        'quantity': quantity,
        'customer': customer_email,
    })


def qr_png(data):
    """Render data as a PNG QR code and return the bytes."""
    qr = qrcode.QRCode(version=1, box_size=10, border=5)
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color='black', back_color='white')
    buffered = BytesIO()
    img.save(buffered, format='PNG')
    return buffered.getvalue()
