# utils/validators.py

def has_min_length(text: str, minimum: int) -> bool:
    """
    True if the stripped text has at least `minimum` characters.
    """
    return len(str(text or "").strip()) >= minimum


def clean_text(text) -> str | None:
    """
    Strip surrounding whitespace; blank input becomes None so it can be
    omitted from API payloads.
    """
    if text is None:
        return None
    s = str(text).strip()
    return s or None
