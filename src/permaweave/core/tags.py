"""
Transaction tag codec.

Tags are name/value pairs of UTF-8 strings. On the wire both halves are
base64url encoded: ``{"name": "QXBwLU5hbWU", "value": "..."}``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Union

from permaweave.core.encoding import b64url_decode, b64url_encode

logger = logging.getLogger(__name__)

TagValue = Union[str, list[str]]


@dataclass(frozen=True)
class Tag:
    """A decoded tag."""
    name: str
    value: str


def encode_tag(name: str, value: str) -> dict[str, str]:
    """Encode a name/value pair into its wire form."""
    return {
        "name": b64url_encode(str(name).encode("utf-8")),
        "value": b64url_encode(str(value).encode("utf-8")),
    }


def decode_tag(raw: Mapping[str, Any]) -> Tag:
    """Decode a wire-form tag.

    Raises:
        ValueError: If either half is not base64url or not UTF-8
    """
    try:
        name = b64url_decode(raw["name"]).decode("utf-8")
        value = b64url_decode(raw["value"]).decode("utf-8")
    except KeyError as exc:
        raise ValueError(f"Tag is missing field {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ValueError(f"Tag is not valid UTF-8: {exc}") from exc
    return Tag(name=name, value=value)


def _raw_tags(source: Any) -> Iterable[Mapping[str, Any]]:
    """Accept a transaction (anything with ``.tags``) or a raw tag list."""
    tags = getattr(source, "tags", source)
    return tags or []


def iter_tags(source: Any) -> Iterable[Tag]:
    """Yield decoded tags in order, skipping ones that fail to decode."""
    for raw in _raw_tags(source):
        try:
            yield decode_tag(raw)
        except ValueError as exc:
            logger.debug(
                f"Skipping undecodable tag: {exc}",
                extra={"event": "tags.decode_skipped"},
            )


def unpack_tags(source: Any) -> dict[str, TagValue]:
    """Decode all tags into a mapping.

    The first occurrence of a name maps to its value; later occurrences turn
    the entry into a list of every value in order.
    """
    result: dict[str, TagValue] = {}
    for tag in iter_tags(source):
        if tag.name not in result:
            result[tag.name] = tag.value
            continue
        existing = result[tag.name]
        if isinstance(existing, list):
            existing.append(tag.value)
        else:
            result[tag.name] = [existing, tag.value]
    return result


def get_tag(source: Any, name: str) -> str | None:
    """Return the value of the first tag called ``name``, or None."""
    for tag in iter_tags(source):
        if tag.name == name:
            return tag.value
    return None
