# helpers/utils.py
import posixpath
import re


def glob_to_regex(pattern: str) -> re.Pattern:
    """Compile a file-name glob where only * is special. Matching is case-insensitive."""
    escaped = re.escape(pattern.strip()).replace(r'\*', '.*')
    return re.compile(f"^{escaped}$", re.IGNORECASE)


def matches_patterns(name: str, patterns) -> bool:
    """True if the file name matches any of the globs."""
    return any(glob_to_regex(pattern).match(name) for pattern in patterns if pattern.strip())


def join_remote_path(directory: str, name: str) -> str:
    """Join a remote directory and file name with forward slashes."""
    return posixpath.join(directory or '/', name)


def normalize_remote_path(path: str) -> str:
    """Backslashes to slashes, no leading slash. Used for whitelist file keys."""
    return path.replace('\\', '/').lstrip('/')


def truncate(text: str, limit: int) -> str:
    """Cut text to limit characters, marking the cut with an ellipsis."""
    if text is None or len(text) <= limit:
        return text
    return text[:limit - 3] + '...'
