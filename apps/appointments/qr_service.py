# apps/appointments/qr_service.py

import base64
import logging
from io import BytesIO

import qrcode
from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)


class QRCodeService:
    """Renders the check-in QR code of an appointment"""

    def __init__(self):
        self.qr_version = 1
        self.box_size = 10
        self.border = 4

    def checkin_url(self, appointment):
        return settings.CHECKIN_URL_TEMPLATE.format(token=appointment.qr_token)

    def generate_checkin_qr(self, appointment):
        """PNG of the check-in URL, base64 encoded"""
        url = self.checkin_url(appointment)
        try:
            qr = qrcode.QRCode(
                version=self.qr_version,
                error_correction=qrcode.constants.ERROR_CORRECT_M,
                box_size=self.box_size,
                border=self.border,
            )
            qr.add_data(url)
            qr.make(fit=True)

            img = qr.make_image(fill_color="black", back_color="white")

            buffer = BytesIO()
            img.save(buffer, format="PNG")
            img_base64 = base64.b64encode(buffer.getvalue()).decode()
        except Exception as e:
            logger.error(f"Error generating check-in QR for appointment {appointment.pk}: {str(e)}")
            raise

        return {
            'qr_token': appointment.qr_token,
            'checkin_url': url,
            'image_base64': img_base64,
            'image_url': f"data:image/png;base64,{img_base64}",
            'timestamp': timezone.now().isoformat(),
        }
