"""
QR Code Generator Module - HackScan Attendance Tracker

This module creates the unguessable tokens printed on badges and renders
them as PNG images. Tokens are SHA-256 digests over the subject kind, id,
email, the creation time and a random salt, so they cannot be derived from
anything printed next to them.

Features:
- Badge token generation for participants and volunteers
- QR code PNG rendering with an optional name label
"""

import qrcode
import io
import hashlib
import secrets
from datetime import datetime
import logging
from typing import Optional

from PIL import Image, ImageDraw, ImageFont


class QRGenerator:
    """
    Badge token and QR image generator.
    """

    def __init__(self, box_size: int = 10, border: int = 4):
        """
        Initialize the QR code generator with default settings.

        Args:
            box_size (int): Size of each QR module in pixels
            border (int): Quiet zone width in modules
        """
        self.logger = logging.getLogger(__name__)

        self.default_settings = {
            'version': 1,
            'error_correction': qrcode.constants.ERROR_CORRECT_M,  # ~15% error correction
            'box_size': box_size,
            'border': border,
            'fill_color': 'black',
            'back_color': 'white'
        }

    def generate_qr_hash(self, kind: str, identifier) -> str:
        """
        Generate a badge token.

        Args:
            kind (str): 'participant' or 'volunteer'
            identifier: Email address or database ID of the subject

        Returns:
            str: 64 character hex digest
        """
        seed = f"{kind}-{identifier}-{datetime.now().isoformat()}-{secrets.token_hex(16)}"
        return hashlib.sha256(seed.encode('utf-8')).hexdigest()

    def render_badge_png(self, qr_hash: str, label: Optional[str] = None) -> bytes:
        """
        Render a badge token as a PNG QR code.

        Args:
            qr_hash (str): Token to encode
            label (str): Text printed under the code

        Returns:
            bytes: PNG image data
        """
        settings = self.default_settings
        qr = qrcode.QRCode(
            version=settings['version'],
            error_correction=settings['error_correction'],
            box_size=settings['box_size'],
            border=settings['border']
        )
        qr.add_data(qr_hash)
        qr.make(fit=True)

        img = qr.make_image(
            fill_color=settings['fill_color'],
            back_color=settings['back_color']
        ).convert('RGB')

        if label:
            img = self._add_label(img, label)

        buffer = io.BytesIO()
        img.save(buffer, format='PNG')
        return buffer.getvalue()

    def _add_label(self, qr_img: Image.Image, label: str) -> Image.Image:
        """
        Add a centered name label below the QR code.

        Args:
            qr_img (Image.Image): QR code image
            label (str): Text to draw

        Returns:
            Image.Image: QR code with label
        """
        width, height = qr_img.size
        canvas = Image.new('RGB', (width, height + 40), 'white')
        canvas.paste(qr_img, (0, 0))

        draw = ImageDraw.Draw(canvas)
        try:
            font = ImageFont.truetype("arial.ttf", 16)
        except (IOError, OSError):
            font = ImageFont.load_default()

        bbox = draw.textbbox((0, 0), label, font=font)
        text_width = bbox[2] - bbox[0]
        draw.text(((width - text_width) // 2, height + 10), label, fill='black', font=font)
        return canvas
