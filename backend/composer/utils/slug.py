import re

_STRIP = re.compile(r"[^\w\s-]", re.ASCII)
_SPACES = re.compile(r"\s+")
_DASHES = re.compile(r"-+")


def slugify(value: str) -> str:
    value = (value or "").lower().strip()
    value = _STRIP.sub("", value)
    value = _SPACES.sub("-", value)
    return _DASHES.sub("-", value)


def is_url_safe(slug: str) -> bool:
    return bool(slug) and slugify(slug) == slug
