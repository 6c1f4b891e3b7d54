import base64
import logging
from io import BytesIO

import qrcode
import qrcode.image.svg
from PIL import Image

from app.core.exceptions import BadRequestError

logger = logging.getLogger(__name__)

MIN_QR_SIZE = 100
MAX_QR_SIZE = 2000
DEFAULT_QR_SIZE = 256
SUPPORTED_FORMATS = ("png", "svg")


def _build_qr(data: str) -> qrcode.QRCode:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)
    return qr


def validate_qr_request(image_format: str, size: int) -> str:
    image_format = (image_format or "png").lower()
    if image_format not in SUPPORTED_FORMATS:
        raise BadRequestError("format must be 'png' or 'svg'")
    if image_format == "png" and not MIN_QR_SIZE <= size <= MAX_QR_SIZE:
        raise BadRequestError(f"size must be between {MIN_QR_SIZE} and {MAX_QR_SIZE} pixels")
    return image_format


def generate_qr_png(data: str, size: int = DEFAULT_QR_SIZE) -> bytes:
    """Render ``data`` as a square PNG of ``size`` pixels."""
    if not data:
        raise BadRequestError("QR code data cannot be empty")

    img = _build_qr(data).make_image(fill_color="black", back_color="white")
    pil_image = img.get_image().convert("RGB").resize((size, size), Image.NEAREST)

    buffer = BytesIO()
    pil_image.save(buffer, format="PNG")
    return buffer.getvalue()


def generate_qr_svg(data: str) -> bytes:
    if not data:
        raise BadRequestError("QR code data cannot be empty")

    img = _build_qr(data).make_image(image_factory=qrcode.image.svg.SvgPathImage)
    buffer = BytesIO()
    img.save(buffer)
    return buffer.getvalue()


def render_qr(data: str, image_format: str = "png", size: int = DEFAULT_QR_SIZE):
    """Returns ``(content, media_type)`` for the requested format."""
    image_format = validate_qr_request(image_format, size)
    if image_format == "svg":
        return generate_qr_svg(data), "image/svg+xml"
    return generate_qr_png(data, size), "image/png"


def to_data_url(content: bytes, media_type: str) -> str:
    encoded = base64.b64encode(content).decode("utf-8")
    return f"data:{media_type};base64,{encoded}"
