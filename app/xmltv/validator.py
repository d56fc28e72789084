"""
XMLTV validation

Never publish unvalidated XML: every generated or transformed document is
parsed back to verify it is well-formed and has the minimal XMLTV shape.
"""
from pathlib import Path
import logging

from lxml import etree  # type: ignore

from app.errors import ValidationError

logger = logging.getLogger(__name__)

ROOT_TAG = "tv"


def validate_xmltv(content: bytes | str) -> None:
    """
    Validate an in-memory XMLTV document

    Raises:
        ValidationError: If the document is empty, malformed, or lacks the
            declaration, the <tv> root, a channel or a programme
    """
    raw = content.encode("utf-8") if isinstance(content, str) else content
    if not raw or not raw.strip():
        raise ValidationError("XML document is empty")

    _check_declaration(raw[:64])
    if f"</{ROOT_TAG}>".encode() not in raw[-256:]:
        raise ValidationError(f"Missing closing </{ROOT_TAG}> tag")

    try:
        root = etree.fromstring(raw)
    except etree.XMLSyntaxError as e:
        raise ValidationError(f"XML parsing failed: {e}") from e

    if root.tag != ROOT_TAG:
        raise ValidationError(f"Missing <{ROOT_TAG}> root element (found <{root.tag}>)")
    if root.find("channel") is None:
        raise ValidationError("No channels found in XMLTV")
    if root.find("programme") is None:
        raise ValidationError("No programmes found in XMLTV")


def validate_xmltv_file(file_path: Path | str) -> tuple[int, int]:
    """
    Validate an XMLTV file without loading it into memory

    Elements are cleared as soon as they are parsed, so memory stays bounded
    regardless of document size.

    Returns:
        Tuple of (channel_count, programme_count)

    Raises:
        ValidationError: Same conditions as validate_xmltv
    """
    path = Path(file_path)
    logger.debug(f"Validating XMLTV file: {path}")

    try:
        with path.open("rb") as handle:
            _check_declaration(handle.read(64))
    except OSError as e:
        raise ValidationError(f"Cannot read {path}: {e}") from e

    channels = 0
    programmes = 0
    root_tag = None
    try:
        for event, element in etree.iterparse(str(path), events=("start", "end")):
            if event == "start":
                if root_tag is None:
                    root_tag = element.tag
                continue
            parent = element.getparent()
            if parent is None or parent.getparent() is not None:
                continue
            if element.tag == "channel":
                channels += 1
            elif element.tag == "programme":
                programmes += 1
            element.clear()
            while element.getprevious() is not None:
                del parent[0]
    except etree.XMLSyntaxError as e:
        raise ValidationError(f"XML parsing failed: {e}") from e

    if root_tag != ROOT_TAG:
        raise ValidationError(f"Missing <{ROOT_TAG}> root element (found <{root_tag}>)")
    if not channels:
        raise ValidationError("No channels found in XMLTV")
    if not programmes:
        raise ValidationError("No programmes found in XMLTV")

    logger.debug(f"XMLTV file valid: {channels} channels, {programmes} programmes")
    return channels, programmes


def _check_declaration(head: bytes) -> None:
    if not head.lstrip().startswith(b"<?xml"):
        raise ValidationError("Missing XML declaration")
