"""Application-wide constants shared by every console page."""

from typing import Optional
from urllib.parse import quote

COMPANY = {
    "name": "Kyooar",
    "website": "https://kyooar.com",
}

EMAILS = {
    "support": "support@kyooar.com",
    "privacy": "privacy@kyooar.com",
    "billing": "support@kyooar.com",
    "noreply": "noreply@kyooar.com",
}

# Persisted session keys
STORAGE_KEYS = {
    "auth_token": "auth_token",
    "auth_user": "auth_user",
}

LEGAL = {
    "terms_version": "1.0",
    "terms_last_updated": "2024-01-15",
    "privacy_version": "1.0",
    "privacy_last_updated": "2024-01-15",
}

LINKS = {
    "documentation": "https://docs.kyooar.com",
}

LOCALE = "en-US"
DATE_FORMAT = "%b %d, %Y"

PRODUCT_CATEGORIES = (
    "Electronics",
    "Clothing",
    "Books",
    "Home & Garden",
    "Sports & Outdoors",
    "Health & Beauty",
    "Automotive",
    "Tools & Hardware",
    "Food & Beverages",
    "Office Supplies",
    "Other",
)


def create_mailto_link(email: str, subject: Optional[str] = None) -> str:
    if email not in EMAILS:
        raise KeyError(f"unknown contact email: {email}")
    address = EMAILS[email]
    if subject:
        return f"mailto:{address}?subject={quote(subject)}"
    return f"mailto:{address}"
