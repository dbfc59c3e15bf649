"""Security utilities: LIKE pattern escaping."""


def escape_like(value: str) -> str:
    """Escape SQL LIKE wildcard characters, using backslash as the escape character.

    Args:
        value: Raw search term.

    Returns:
        Escaped string safe for use inside a LIKE pattern.
    """
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
