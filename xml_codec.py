"""Conversion between parameter maps and the gateway's ``<xml>`` wire format."""

from __future__ import annotations

from lxml import etree

from pay_errors import WireFormatError

_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=False)


def encode(params: dict[str, str]) -> bytes:
    root = etree.Element("xml")
    for k, v in params.items():
        try:
            etree.SubElement(root, k).text = etree.CDATA(str(v))
        except ValueError as e:
            raise WireFormatError(f"cannot encode field {k!r}: {e}") from e
    return etree.tostring(root, encoding="utf-8")


def decode(raw: bytes) -> dict[str, str]:
    """Flatten the root element's children into a ``dict`` of their text."""

    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    try:
        root = etree.fromstring(raw, parser=_PARSER)
    except etree.XMLSyntaxError as e:
        raise WireFormatError(f"malformed gateway response: {e}") from e
    # comments and processing instructions have non-string tags
    return {child.tag: child.text or "" for child in root if isinstance(child.tag, str)}


__all__ = ["encode", "decode"]
