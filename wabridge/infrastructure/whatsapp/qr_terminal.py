"""Render a WhatsApp Web QR payload on the console."""

import io
import sys
from typing import Optional, TextIO

import qrcode

LINK_INSTRUCTIONS = """
Scan the QR code above with WhatsApp:
1. Open WhatsApp on your phone
2. Go to Settings > Linked Devices
3. Tap "Link a Device"
4. Scan the QR code
"""


def render_qr(payload: str) -> str:
    """Return the QR code for `payload` as block-character text."""
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        border=1,
    )
    qr.add_data(payload)
    qr.make(fit=True)
    buf = io.StringIO()
    qr.print_ascii(out=buf, invert=True)
    return buf.getvalue()


def print_qr(payload: str, out: Optional[TextIO] = None) -> None:
    out = out or sys.stdout
    out.write(render_qr(payload))
    out.write(LINK_INSTRUCTIONS)
    out.flush()
