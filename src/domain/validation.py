"""
Validation helpers - phone, email, URL and age-bracket checks.

Two phone rules coexist on purpose: forms that collect parent contacts
require the strict ``+254`` format, while generic helpers accept any
7-15 digit number once non-digits are stripped.
"""

import re
from dataclasses import dataclass
from datetime import date

# Kenyan local/international numbers, or any international number
PHONE_REGEX = re.compile(r"^(?:07\d{8}|01\d{8}|\+254(?:7\d{8}|1\d{8})|\+\d{10,15})$")
STRICT_PHONE_REGEX = re.compile(r"^\+254\d{9}$")

EMAIL_REGEX = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}\.?$")
SIMPLE_EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

WEBSITE_REGEX = re.compile(r"^https?://.+\..+")

PHONE_EXAMPLES = ["0712345678", "0112345678", "+254712345678", "+254112345678"]

_PHONE_SEPARATORS = re.compile(r"[\s\-()]")


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    error_message: str = ""


def validate_phone_strict(phone: str) -> bool:
    """+254 followed by exactly 9 digits."""
    return bool(STRICT_PHONE_REGEX.match(phone or ""))


def validate_phone_permissive(phone: str) -> bool:
    """Strip non-digits and accept 7 to 15 digits."""
    digits = re.sub(r"\D", "", phone or "")
    return 7 <= len(digits) <= 15


def validate_phone_number(phone: str) -> bool:
    """Kenyan (07/01/+254) or international (+ and 10-15 digits) number."""
    if not phone or not phone.strip():
        return False
    return bool(PHONE_REGEX.match(_PHONE_SEPARATORS.sub("", phone)))


def validate_email(email: str) -> bool:
    """Single @ with a dot after it. Intentionally not RFC-complete."""
    return bool(SIMPLE_EMAIL_REGEX.match(email or ""))


def validate_email_strict(email: str) -> bool:
    if not email or not email.strip():
        return False
    return bool(EMAIL_REGEX.match(email.strip()))


def validate_phone_with_details(phone: str) -> ValidationResult:
    if not phone or not phone.strip():
        return ValidationResult(False, "Phone number is required")
    if not PHONE_REGEX.match(_PHONE_SEPARATORS.sub("", phone)):
        return ValidationResult(
            False,
            "Invalid phone number format. Please use Kenyan format "
            f"({', '.join(PHONE_EXAMPLES)}) or international format (+1234567890)",
        )
    return ValidationResult(True)


def validate_email_with_details(email: str) -> ValidationResult:
    if not email or not email.strip():
        return ValidationResult(False, "Email is required")
    if not EMAIL_REGEX.match(email.strip()):
        return ValidationResult(
            False, "Please enter a valid email address (e.g., user@example.com)"
        )
    return ValidationResult(True)


def validate_website(website: str) -> bool:
    return bool(WEBSITE_REGEX.match(website.strip()))


def normalize_phone_number(phone: str) -> str:
    """Convert local 07/01 numbers to +254 form and drop separators."""
    if not phone:
        return ""
    clean = _PHONE_SEPARATORS.sub("", phone)
    if clean.startswith("07") or clean.startswith("01"):
        return "+254" + clean[1:]
    return clean


def format_phone_number(phone: str) -> str:
    """Group digits for display: +254 712 345 678 / 071 234 567 8."""
    if not phone:
        return ""
    clean = re.sub(r"[\s-]", "", phone)
    if clean.startswith("+254"):
        return re.sub(r"(\+254)(\d{3})(\d{3})(\d{3})", r"\1 \2 \3 \4", clean)
    if clean.startswith("07") or clean.startswith("01"):
        return re.sub(r"(\d{2})(\d{3})(\d{3})(\d{3})", r"\1 \2 \3 \4", clean)
    return phone


# --- Age brackets --------------------------------------------------------


@dataclass(frozen=True)
class AgeGroup:
    min: int
    max: int
    label: str

    def contains(self, age: int) -> bool:
        return self.min <= age <= self.max


AGE_GROUPS = [
    AgeGroup(0, 9, "U9"),
    AgeGroup(10, 11, "U11"),
    AgeGroup(12, 13, "U13"),
    AgeGroup(14, 15, "U15"),
    AgeGroup(16, 17, "U17"),
    AgeGroup(18, 19, "U19"),
    AgeGroup(20, 23, "20-23"),
    AgeGroup(24, 26, "24-26"),
    AgeGroup(27, 29, "27-29"),
    AgeGroup(30, 35, "30-35"),
    AgeGroup(36, 40, "36-40"),
    AgeGroup(41, 45, "41-45"),
    AgeGroup(46, 50, "46-50"),
    AgeGroup(51, 100, "51+"),
]

# Alternative bracket layout used by institution sport teams
AGE_GROUPS_ALT = [
    AgeGroup(0, 12, "Under 12"),
    AgeGroup(12, 14, "12-14"),
    AgeGroup(15, 17, "15-17"),
    AgeGroup(18, 20, "18-20"),
    AgeGroup(21, 23, "21-23"),
    AgeGroup(24, 26, "24-26"),
    AgeGroup(27, 29, "27-29"),
    AgeGroup(30, 35, "30-35"),
    AgeGroup(36, 40, "36-40"),
    AgeGroup(41, 45, "41-45"),
    AgeGroup(46, 50, "46-50"),
    AgeGroup(51, 100, "51+"),
]


def _groups(use_alt_format: bool) -> list[AgeGroup]:
    return AGE_GROUPS_ALT if use_alt_format else AGE_GROUPS


def calculate_age(date_of_birth: date | str, today: date | None = None) -> int:
    """Age in whole years on ``today`` (defaults to the current date)."""
    if isinstance(date_of_birth, str):
        date_of_birth = date.fromisoformat(date_of_birth[:10])
    today = today or date.today()
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def get_age_group(age: int, use_alt_format: bool = False) -> AgeGroup | None:
    return next((g for g in _groups(use_alt_format) if g.contains(age)), None)


def get_valid_age_groups(age: int, use_alt_format: bool = False) -> list[AgeGroup]:
    return [g for g in _groups(use_alt_format) if g.contains(age)]


def parse_age_group(label: str) -> tuple[int, int] | None:
    """
    Parse a bracket label into an inclusive (min, max) range.

    Supported forms: ``U12`` (0-12), ``12-14``, ``Under 12`` (0-11), ``51+``.
    """
    if label.startswith("U") and label[1:].isdigit():
        return 0, int(label[1:])

    match = re.search(r"(\d+)-(\d+)", label)
    if match:
        return int(match.group(1)), int(match.group(2))

    match = re.search(r"Under (\d+)", label)
    if match:
        return 0, int(match.group(1)) - 1

    match = re.search(r"(\d+)\+", label)
    if match:
        return int(match.group(1)), 100

    return None


def validate_age_for_age_group(
    age: int, age_group: str, use_alt_format: bool = False
) -> ValidationResult:
    """
    Check a numeric age against a named bracket.

    Labels from the bracket table win; otherwise the label is parsed.
    """
    group = next((g for g in _groups(use_alt_format) if g.label == age_group), None)
    if group is not None:
        bounds = (group.min, group.max)
    else:
        bounds = parse_age_group(age_group)

    if bounds is None:
        return ValidationResult(False, f"Invalid age group: {age_group}")

    low, high = bounds
    if low <= age <= high:
        return ValidationResult(True)
    return ValidationResult(
        False,
        f"Student age {age} does not match age group {age_group} ({low}-{high} years)",
    )
