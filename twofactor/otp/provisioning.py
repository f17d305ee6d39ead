# twofactor/otp/provisioning.py

import base64
from dataclasses import dataclass
from io import BytesIO
from typing import Optional
from urllib.parse import quote

import qrcode

from twofactor.otp.base32 import Base32Codec

DEFAULT_ISSUER = "FinanceAI"
DEFAULT_SECRET_LENGTH = 32


@dataclass(frozen=True)
class ProvisioningResult:
    secret: str
    provisioning_uri: str
    qr_code: Optional[str] = None

    def __repr__(self):
        # keep the secret out of tracebacks and log lines
        return f"ProvisioningResult(provisioning_uri=<redacted>, has_qr_code={self.qr_code is not None})"


def build_provisioning_uri(secret: str, account_label: str, issuer: str = DEFAULT_ISSUER) -> str:
    """Return the otpauth:// URI authenticator apps import."""
    enc_issuer = quote(issuer, safe='')
    enc_label = quote(account_label, safe='')
    return f"otpauth://totp/{enc_issuer}:{enc_label}?secret={secret}&issuer={enc_issuer}"


class QrCodeRenderer:
    def __init__(self, box_size=6, border=2):
        self.box_size = box_size
        self.border = border

    def render(self, uri: str) -> str:
        """Render uri as a base64 encoded PNG for the enrollment screen"""
        qr = qrcode.QRCode(box_size=self.box_size, border=self.border)
        qr.add_data(uri)
        qr.make(fit=True)
        img = qr.make_image(fill_color="black", back_color="white")

        buffered = BytesIO()
        img.save(buffered, format="PNG")
        return base64.b64encode(buffered.getvalue()).decode()


class SecretProvisioner:
    def __init__(self, issuer=DEFAULT_ISSUER, secret_length=DEFAULT_SECRET_LENGTH,
                 codec=None, qr_renderer=None):
        self.issuer = issuer
        self.secret_length = secret_length
        self.codec = codec if codec is not None else Base32Codec()
        self.qr_renderer = qr_renderer

    def provision(self, account_label: str) -> ProvisioningResult:
        if not account_label:
            raise ValueError("Account label is required")
        secret = self.codec.random_secret(self.secret_length)
        uri = build_provisioning_uri(secret, account_label, self.issuer)
        qr_code = self.qr_renderer.render(uri) if self.qr_renderer is not None else None
        return ProvisioningResult(secret=secret, provisioning_uri=uri, qr_code=qr_code)
