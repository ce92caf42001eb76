"""Choice path codec.

A path is the ordered sequence of A/B choices from a story's root to a node.
Its canonical key joins the labels with "," so keys are stable, readable in
URLs and analytics payloads, and map one-to-one onto paths. The empty path
(key "") is the story root.
"""

from collections.abc import Iterable, Sequence

from forkline.errors import InvalidPathError

PATH_SEPARATOR = ","
PATH_DISPLAY_SEPARATOR = " → "
VALID_LABELS = frozenset({"A", "B"})


def encode_path(labels: Iterable[str]) -> str:
    """Encode a choice sequence as its canonical key.

    Raises:
        InvalidPathError: If any label is not "A" or "B".
    """
    labels = list(labels)
    for label in labels:
        if label not in VALID_LABELS:
            raise InvalidPathError(f"Invalid choice label {label!r}; expected 'A' or 'B'")
    return PATH_SEPARATOR.join(labels)


def decode_path(key: str) -> list[str]:
    """Decode a canonical key back into its choice sequence.

    Decoding is strict: whitespace, empty segments, lowercase labels and any
    other character are rejected rather than normalized.

    Raises:
        InvalidPathError: If the key is not a canonical path key.
    """
    if not isinstance(key, str):
        raise InvalidPathError("Path key must be a string")
    if key == "":
        return []

    labels = key.split(PATH_SEPARATOR)
    for label in labels:
        if label not in VALID_LABELS:
            raise InvalidPathError(f"Invalid path key {key!r}")
    return labels


def format_path(labels: Sequence[str]) -> str:
    """Render a path for display, e.g. "A → B"."""
    return PATH_DISPLAY_SEPARATOR.join(labels)


def is_valid_path(labels: Sequence[str]) -> bool:
    """Whether every label is A or B. An empty sequence is the story root."""
    return all(label in VALID_LABELS for label in labels)
