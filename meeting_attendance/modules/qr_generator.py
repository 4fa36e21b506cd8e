"""
QR Code Generator Module - QR Meeting Attendance

This module creates meeting scan codes and renders them as QR images.

A scan code is six decimal digits, never starting with zero, so members can type it
when a camera is unavailable. The QR symbol encodes exactly that code; the rendered
image also prints the digits underneath.
"""

import qrcode
import io
import base64
from PIL import Image, ImageDraw, ImageFont
import secrets
import logging
from typing import Callable


class ScanCodeExhausted(Exception):
    """Raised when no unused scan code could be found."""


class QRGenerator:
    """
    Scan code generation and QR image rendering.
    """

    def __init__(self, code_length: int = 6, max_attempts: int = 50):
        """
        Initialize the QR code generator.

        Args:
            code_length (int): Number of digits in a scan code
            max_attempts (int): Collision retries before giving up
        """
        self.logger = logging.getLogger(__name__)
        self.code_length = code_length
        self.max_attempts = max_attempts

        self.default_settings = {
            'version': 1,
            'error_correction': qrcode.constants.ERROR_CORRECT_M,
            'box_size': 10,
            'border': 4,
            'fill_color': 'black',
            'back_color': 'white'
        }

    def generate_scan_code(self) -> str:
        """Return a random code of ``code_length`` digits with a non-zero first digit."""
        low = 10 ** (self.code_length - 1)
        return str(low + secrets.randbelow(9 * low))

    def generate_unique_scan_code(self, code_exists: Callable[[str], bool]) -> str:
        """
        Generate a scan code not already taken.

        Args:
            code_exists: Predicate telling whether a code is in use

        Returns:
            str: An unused scan code

        Raises:
            ScanCodeExhausted: If every attempt collided
        """
        for _ in range(self.max_attempts):
            code = self.generate_scan_code()
            if not code_exists(code):
                return code
            self.logger.debug(f"Scan code collision on {code}, regenerating")

        raise ScanCodeExhausted(f"No free scan code after {self.max_attempts} attempts")

    def generate_qr_png(self, data: str, with_caption: bool = True) -> bytes:
        """
        Render ``data`` as a QR code PNG.

        Args:
            data (str): Payload to encode
            with_caption (bool): Print the payload under the symbol

        Returns:
            bytes: PNG image
        """
        settings = self.default_settings

        qr = qrcode.QRCode(
            version=settings['version'],
            error_correction=settings['error_correction'],
            box_size=settings['box_size'],
            border=settings['border']
        )
        qr.add_data(data)
        qr.make(fit=True)

        img = qr.make_image(
            fill_color=settings['fill_color'],
            back_color=settings['back_color']
        ).get_image()

        if with_caption:
            img = self._add_caption(img, data)

        buffer = io.BytesIO()
        img.save(buffer, format='PNG')
        return buffer.getvalue()

    def generate_qr_data_url(self, data: str) -> str:
        """Render ``data`` as a PNG ``data:`` URL for embedding in JSON responses."""
        img_base64 = base64.b64encode(self.generate_qr_png(data)).decode()
        return f"data:image/png;base64,{img_base64}"

    def _add_caption(self, qr_img: Image.Image, text: str) -> Image.Image:
        """
        Add the encoded text below the QR code image.

        Args:
            qr_img (Image.Image): QR code image
            text (str): Caption

        Returns:
            Image.Image: QR code with caption
        """
        try:
            original_size = qr_img.size
            new_img = Image.new('RGB', (original_size[0], original_size[1] + 40), 'white')
            new_img.paste(qr_img, (0, 0))

            draw = ImageDraw.Draw(new_img)

            try:
                font = ImageFont.truetype("arial.ttf", 24)
            except (IOError, OSError):
                font = ImageFont.load_default()

            bbox = draw.textbbox((0, 0), text, font=font)
            text_width = bbox[2] - bbox[0]
            draw.text(((original_size[0] - text_width) // 2, original_size[1] + 5), text,
                      fill='black', font=font)

            return new_img

        except Exception as e:
            self.logger.warning(f"Failed to add caption, returning plain QR code: {str(e)}")
            return qr_img
