import re

from unidecode import unidecode

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
MAX_SLUG_LENGTH = 100


def slugify(text: str, max_length: int = MAX_SLUG_LENGTH) -> str:
    text = unidecode(text).lower()
    text = re.sub(r"[^a-z0-9]+", "-", text).strip("-")
    return text[:max_length].rstrip("-")


def is_valid_slug(slug: str) -> bool:
    # Numeric slugs would be read as organization ids
    return bool(slug) and len(slug) <= MAX_SLUG_LENGTH and bool(SLUG_PATTERN.match(slug)) and not slug.isdigit()
