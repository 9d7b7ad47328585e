import io
import base64

import qrcode
from PIL import Image

QR_SIZE = 200


def generate_qr_code_base64(data: str, size: int = QR_SIZE) -> str:
    """Generate a size x size QR code as a base64 PNG data URL."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=2,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white").get_image()
    img = img.convert("RGB").resize((size, size), Image.Resampling.NEAREST)

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return f"data:image/png;base64,{base64.b64encode(buffer.getvalue()).decode()}"
