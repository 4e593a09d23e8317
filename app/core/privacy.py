"""
Data privacy protocol
Encryption of sensitive profile fields and PII masking for logs
"""
from typing import Optional
from cryptography.fernet import Fernet, InvalidToken
import os
from enum import Enum


class DataClassification(str, Enum):
    """Data classification by sensitivity"""
    PUBLIC = "public"  # Journeys, legs, public feedback
    INTERNAL = "internal"  # Notifications, preferences
    CONFIDENTIAL = "confidential"  # Email, phone
    RESTRICTED = "restricted"  # Passport data, AI assessments


class PrivacyProtocol:
    """
    Privacy protocol for SailMatch user data
    """

    def __init__(self):
        encryption_key = os.getenv("ENCRYPTION_KEY")
        if not encryption_key:
            raise ValueError(
                "ENCRYPTION_KEY must be set in environment variables. "
                "Generate with: python scripts/generate_encryption_key.py"
            )
        self.cipher = Fernet(encryption_key.encode())

    def encrypt_sensitive_data(self, data: str, classification: DataClassification) -> str:
        """
        Encrypt sensitive data according to its classification

        Args:
            data: Plain text value
            classification: Must be confidential or restricted

        Returns:
            Fernet token as text
        """
        if classification not in [DataClassification.CONFIDENTIAL, DataClassification.RESTRICTED]:
            raise ValueError(f"Encryption only allowed for {DataClassification.CONFIDENTIAL} or {DataClassification.RESTRICTED}")

        return self.cipher.encrypt(data.encode()).decode()

    def decrypt_sensitive_data(self, encrypted_data: str) -> str:
        try:
            return self.cipher.decrypt(encrypted_data.encode()).decode()
        except InvalidToken as e:
            raise ValueError(f"Failed to decrypt data: {str(e)}")

    def mask_pii(self, data: str | None, mask_char: str = "*") -> str:
        """
        Mask PII for logging/display, keeping the first and last two characters
        """
        if not data or len(data) < 3:
            return mask_char * len(data) if data else ""

        if len(data) <= 4:
            return data[0] + mask_char * (len(data) - 1)

        return data[:2] + mask_char * (len(data) - 4) + data[-2:]

    def mask_email(self, email: str | None) -> str:
        """Mask the local part of an email address, keep the domain"""
        if not email or "@" not in email:
            return self.mask_pii(email)
        local, domain = email.split("@", 1)
        return f"{self.mask_pii(local)}@{domain}"

_privacy_protocol: Optional[PrivacyProtocol] = None


def get_privacy_protocol() -> PrivacyProtocol:
    """Get singleton instance of PrivacyProtocol"""
    global _privacy_protocol
    if _privacy_protocol is None:
        _privacy_protocol = PrivacyProtocol()
    return _privacy_protocol
