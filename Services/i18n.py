# Services/i18n.py
"""Two-locale string tables (English and Amharic) with key fallback."""
import os
from typing import Dict, Optional

LANGUAGES = ("en", "am")
DEFAULT_LANGUAGE = os.getenv("DEFAULT_LANGUAGE", "en")
LANGUAGE_COOKIE = "language"

TRANSLATIONS: Dict[str, Dict[str, str]] = {
    "en": {
        # Navigation
        "nav.home": "Home",
        "nav.inventory": "Inventory",
        "nav.spareParts": "Spare Parts",
        "nav.tradeIn": "Trade-In",
        "nav.sendUsYourCar": "Send Us Your Car",
        "nav.contact": "Contact",
        "nav.login": "Login",
        "nav.savedVehicles": "Saved Vehicles",
        "nav.messages": "Messages",
        "nav.adminDashboard": "Admin Dashboard",

        # Inventory
        "inventory.title": "Explore Your Dream Cars",
        "inventory.filters.model": "Model",
        "inventory.filters.year": "Year",
        "inventory.filters.minPrice": "Min Price",
        "inventory.filters.maxPrice": "Max Price",
        "inventory.filters.condition": "Condition",
        "inventory.filters.reset": "Reset Filters",
        "inventory.pagination.previous": "Previous",
        "inventory.pagination.next": "Next",
        "inventory.errors.load": "Failed to load vehicles. Please try again later.",
        "inventory.errors.notFound": "Vehicle not found",

        # Vehicle
        "vehicle.sold": "SOLD",
        "vehicle.viewDetails": "View Details",
        "vehicle.interested": "I'm Interested",

        # Spare parts
        "spareParts.title": "Spare Parts Catalog",
        "spareParts.filters.category": "Category",
        "spareParts.filters.brand": "Brand",
        "spareParts.errors.load": "Failed to load spare parts",
        "spareParts.errors.notFound": "Spare part not found",
        "spareParts.outOfStock": "Out of Stock",

        # Contact
        "contact.form.loginRequired": "Please log in or create an account to send us a message.",
        "contact.form.success": "Your message has been sent successfully! Redirecting to chat...",
        "contact.form.error": "There was an error sending your message. Please try again.",

        # Submissions
        "submission.errors.upload": "Failed to upload images. Please try again.",
        "submission.errors.heading": "Please fix the following issues:",
        "submission.errors.submit": "Failed to submit form. Please try again.",

        # Messages
        "messages.errors.load": "Failed to load messages.",

        # Common
        "common.loading": "Loading...",
        "common.error": "Error",
        "common.tryAgain": "Try Again",
        "common.backToHome": "Back to Home",
        "common.offline": "You are currently offline. Some features may be limited.",
        "common.unexpected": "An unexpected error occurred. Please try again later.",

        # Language toggle
        "language.toggle": "Language",
        "language.english": "English",
        "language.amharic": "አማርኛ",
    },
    "am": {
        # Navigation
        "nav.home": "መነሻ",
        "nav.inventory": "መኪናዎች",
        "nav.spareParts": "መለዋወጫዎች",
        "nav.tradeIn": "መኪና መለዋወጥ",
        "nav.sendUsYourCar": "መኪናዎን ይላኩልን",
        "nav.contact": "አግኙን",
        "nav.login": "ግባ",
        "nav.savedVehicles": "የተቀመጡ መኪናዎች",
        "nav.messages": "መልዕክቶች",
        "nav.adminDashboard": "Admin Dashboard",

        # Inventory
        "inventory.title": "የህልም መኪናዎችዎን ያስሱ",
        "inventory.filters.model": "ሞዴል",
        "inventory.filters.year": "ዓመት",
        "inventory.filters.minPrice": "ዝቅተኛ ዋጋ",
        "inventory.filters.maxPrice": "ከፍተኛ ዋጋ",
        "inventory.filters.condition": "ሁኔታ",
        "inventory.filters.reset": "ማጣሪያዎችን ዳግም አስጀምር",
        "inventory.pagination.previous": "ቀዳሚ",
        "inventory.pagination.next": "ቀጣይ",

        # Vehicle
        "vehicle.sold": "ተሽጧል",
        "vehicle.viewDetails": "ዝርዝር ይመልከቱ",
        "vehicle.interested": "ፍላጎት አለኝ",

        # Spare parts
        "spareParts.title": "የመለዋወጫ ካታሎግ",
        "spareParts.filters.category": "ምድብ",
        "spareParts.filters.brand": "ብራንድ",

        # Contact
        "contact.form.loginRequired": "መልዕክት ለመላክ እባክዎ ይግቡ ወይም መለያ ይፍጠሩ።",
        "contact.form.success": "መልዕክትዎ በተሳካ ሁኔታ ተልኳል! ወደ ውይይት በማዛወር ላይ...",
        "contact.form.error": "መልዕክትዎን በመላክ ላይ ስህተት ተፈጥሯል። እባክዎ እንደገና ይሞክሩ።",

        # Common
        "common.loading": "በመጫን ላይ...",
        "common.error": "ስህተት",
        "common.tryAgain": "እንደገና ሞክር",
        "common.backToHome": "ወደ መነሻ ተመለስ",

        # Language toggle
        "language.toggle": "ቋንቋ",
        "language.english": "English",
        "language.amharic": "አማርኛ",
    },
}


def normalize_language(value: Optional[str]) -> str:
    if value in LANGUAGES:
        return value
    return DEFAULT_LANGUAGE if DEFAULT_LANGUAGE in LANGUAGES else "en"


class Translator:
    def __init__(self, language: Optional[str] = None):
        self.language = normalize_language(language)

    def set_language(self, language: str) -> None:
        self.language = normalize_language(language)

    def t(self, key: str) -> str:
        # Missing keys render as the key itself
        return TRANSLATIONS[self.language].get(key, key)

    __call__ = t
