"""
Metadata handling for deflicker.

The original luminance of every frame is cached in an XMP sidecar next to the
image (``IMG_0001.JPG`` -> ``IMG_0001.JPG.xmp``) so later runs can skip
decoding. Output images get the source's EXIF/IPTC/XMP tags copied over with
exiftool when it is installed.
"""

import io
import logging
import math
import os
import re
import subprocess
import tempfile
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Optional, Protocol

from defusedxml import DefusedXmlException
from defusedxml import ElementTree as SafeET

from .utils import has_exiftool

LOGGER = logging.getLogger("deflicker")

EXIFTOOL_OK = has_exiftool()

# ElementTree refuses to register its own generated prefixes (ns0, ns1, ...)
_AUTO_PREFIX = re.compile(r"ns\d+$")

LUMINANCE_NS = "https://github.com/cyberang3l/timelapse-deflicker"
LUMINANCE_PREFIX = "luminance"
LUMINANCE_TAG = f"{{{LUMINANCE_NS}}}luminance"

X_NS = "adobe:ns:meta/"
RDF_NS = "http://www.w3.org/1999/02/22-rdf-syntax-ns#"

XPACKET_BEGIN = "<?xpacket begin='\ufeff' id='W5M0MpCehiHzreSzNTczkc9d'?>\n"
XPACKET_END = "\n<?xpacket end='w'?>\n"

ET.register_namespace("x", X_NS)
ET.register_namespace("rdf", RDF_NS)
ET.register_namespace(LUMINANCE_PREFIX, LUMINANCE_NS)


class LuminanceStore(Protocol):
    """Persists one original-luminance value per image filename."""

    def get(self, filename: str) -> Optional[float]:
        ...

    def set(self, filename: str, value: float) -> None:
        ...


def sidecar_path_for(filename: str) -> Path:
    """Sidecar location for an image: the full filename plus ``.xmp``."""
    return Path(f"{filename}.xmp")


def _parse_float(text: Optional[str]) -> Optional[float]:
    if text is None:
        return None
    try:
        value = float(text.strip())
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def _register_file_namespaces(data: bytes):
    """Keep the prefixes an existing sidecar already uses when it is rewritten."""
    for _event, (prefix, uri) in SafeET.iterparse(io.BytesIO(data), events=("start-ns",)):
        if prefix and uri != LUMINANCE_NS and not _AUTO_PREFIX.match(prefix):
            ET.register_namespace(prefix, uri)


def _new_xmp_tree() -> ET.ElementTree:
    root = ET.Element(f"{{{X_NS}}}xmpmeta")
    rdf = ET.SubElement(root, f"{{{RDF_NS}}}RDF")
    ET.SubElement(rdf, f"{{{RDF_NS}}}Description", {f"{{{RDF_NS}}}about": ""})
    return ET.ElementTree(root)


def _find_luminance(root: ET.Element) -> Optional[str]:
    for desc in root.iter(f"{{{RDF_NS}}}Description"):
        if LUMINANCE_TAG in desc.attrib:
            return desc.attrib[LUMINANCE_TAG]
    node = root.find(f".//{LUMINANCE_TAG}")
    return node.text if node is not None else None


def _set_luminance(root: ET.Element, value: float):
    text = repr(float(value))
    for desc in root.iter(f"{{{RDF_NS}}}Description"):
        if LUMINANCE_TAG in desc.attrib:
            desc.attrib[LUMINANCE_TAG] = text
            return
    node = root.find(f".//{LUMINANCE_TAG}")
    if node is not None:
        node.text = text
        return
    rdf = root if root.tag == f"{{{RDF_NS}}}RDF" else root.find(f".//{{{RDF_NS}}}RDF")
    if rdf is None:
        rdf = ET.SubElement(root, f"{{{RDF_NS}}}RDF")
    desc = rdf.find(f"{{{RDF_NS}}}Description")
    if desc is None:
        desc = ET.SubElement(rdf, f"{{{RDF_NS}}}Description", {f"{{{RDF_NS}}}about": ""})
    ET.SubElement(desc, LUMINANCE_TAG).text = text


class XmpLuminanceStore:
    """
    LuminanceStore backed by per-image XMP sidecar files.

    Existing sidecars (e.g. written by a raw editor) are updated in place: only
    the luminance property is added or replaced, everything else is kept.
    """

    def get(self, filename: str) -> Optional[float]:
        path = sidecar_path_for(filename)
        if not path.exists():
            return None
        try:
            root = SafeET.parse(path).getroot()
        except (SafeET.ParseError, DefusedXmlException) as e:
            LOGGER.warning("Ignoring unreadable sidecar %s: %s", path, e)
            return None
        value = _parse_float(_find_luminance(root))
        if value is not None:
            LOGGER.debug("Read luminance %s from xmp file: %s", value, path)
        return value

    def set(self, filename: str, value: float) -> None:
        path = sidecar_path_for(filename)
        tree = None
        if path.exists():
            data = path.read_bytes()
            try:
                _register_file_namespaces(data)
                tree = ET.ElementTree(SafeET.fromstring(data))
            except (SafeET.ParseError, DefusedXmlException) as e:
                LOGGER.warning("Replacing unreadable sidecar %s: %s", path, e)
        if tree is None:
            tree = _new_xmp_tree()
        _set_luminance(tree.getroot(), value)

        body = ET.tostring(tree.getroot(), encoding="unicode")
        # Write next to the target and rename so a crashed worker never leaves half a sidecar.
        fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(XPACKET_BEGIN)
                f.write(body)
                f.write(XPACKET_END)
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        LOGGER.debug("Wrote luminance %s to xmp file: %s", value, path)


def copy_all_metadata_with_exiftool(src_path: Path, dst_path: Path):
    """
    Copy ALL tags (EXIF/IPTC/XMP) from src to dst using exiftool, if available.

    Args:
        src_path: Source image file
        dst_path: Deflickered output file
    """
    if not EXIFTOOL_OK:
        return
    cmd = [
        "exiftool",
        "-overwrite_original",
        "-TagsFromFile", str(src_path),
        "-All:All",
        str(dst_path),
    ]
    subprocess.run(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, check=False)
