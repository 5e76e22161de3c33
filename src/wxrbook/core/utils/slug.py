"""Slug and filename sanitizing"""

import re
import unicodedata


# characters WordPress strips from uploaded file names
_FILENAME_SPECIAL = set('?[]/\\=<>:;,\'"&$#*()|~`!{}%+’«»”“') | {chr(0)}
_CONTROL_RE = re.compile(r'[\x00-\x1f\x7f]')


def slugify(text: str) -> str:
    """Convert text to a lowercase, hyphen-separated URL-safe slug."""
    text = text.lower()
    text = re.sub(r'[^\w\s-]', '', text)
    text = re.sub(r'[\s_]+', '-', text)
    return re.sub(r'-+', '-', text).strip('-')


def remove_control_characters(text: str) -> str:
    return _CONTROL_RE.sub('', text)


def sanitize_filename(name: str) -> str:
    """Return a filesystem-safe version of name, keeping its extension.

    Special characters are dropped, whitespace runs become a single dash and
    leading/trailing dots, dashes and underscores are trimmed.
    """
    name = unicodedata.normalize('NFC', name).replace('%20', '-')
    name = ''.join(c for c in name if c not in _FILENAME_SPECIAL)
    name = remove_control_characters(re.sub(r'[\r\n\t -]+', '-', name))
    return name.strip('.-_')
