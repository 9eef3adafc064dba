"""Security helpers: PII masking for safe logging (minimal)."""
import re

_PHONE = re.compile(r"(?<!\d)(?:\+?\d[\d\-\s]{8,}\d)(?!\d)")
_EMAIL = re.compile(r"[\w.+-]+@[\w-]+\.[\w.]+")


def mask_pii(text: str) -> str:
    if not text:
        return ""
    masked = _EMAIL.sub("[EMAIL]", text)
    masked = _PHONE.sub("[REDACTED]", masked)
    return masked
