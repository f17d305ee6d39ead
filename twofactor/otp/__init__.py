# twofactor/otp/__init__.py

from twofactor.otp.base32 import Base32Codec
from twofactor.otp.generator import TotpCodeGenerator
from twofactor.otp.hmac_engine import HmacEngine
from twofactor.otp.provisioning import ProvisioningResult, QrCodeRenderer, SecretProvisioner
from twofactor.otp.verifier import TotpVerifier

__all__ = [
    'Base32Codec',
    'HmacEngine',
    'ProvisioningResult',
    'QrCodeRenderer',
    'SecretProvisioner',
    'TotpCodeGenerator',
    'TotpVerifier',
]
