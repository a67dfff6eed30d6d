"""Read and update artifact-level maven-metadata.xml documents using lxml."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from lxml import etree

from m2_mirror.models import Coordinate

METADATA_FILENAME = "maven-metadata.xml"
TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


@dataclass
class Versioning:
    """The `<versioning>` block of an artifact-level metadata document."""

    latest: str | None = None
    release: str | None = None
    versions: list[str] = field(default_factory=list)
    last_updated: str | None = None


def _child_text(node: etree._Element, name: str) -> str | None:
    found = node.xpath(f"./*[local-name()='{name}']")
    if not found:
        return None
    text = (found[0].text or "").strip()
    return text or None


def parse_versioning(data: bytes) -> Versioning:
    """Parse the versioning of a metadata document.

    Raises:
        etree.XMLSyntaxError: If the document is not well-formed.
    """
    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    root = etree.fromstring(data, parser=parser)
    blocks = root.xpath("./*[local-name()='versioning']")
    if not blocks:
        return Versioning()
    block = blocks[0]
    versions = [
        (v.text or "").strip()
        for v in block.xpath("./*[local-name()='versions']/*[local-name()='version']")
        if (v.text or "").strip()
    ]
    return Versioning(
        latest=_child_text(block, "latest"),
        release=_child_text(block, "release"),
        versions=versions,
        last_updated=_child_text(block, "lastUpdated"),
    )


def merge_version(data: bytes | None, coordinate: Coordinate, now: datetime | None = None) -> bytes:
    """Return a metadata document that lists `coordinate.version` as the latest version.

    Non-snapshot versions also become the release version. An unreadable
    existing document is replaced.
    """
    versioning = Versioning()
    if data:
        try:
            versioning = parse_versioning(data)
        except etree.XMLSyntaxError:
            versioning = Versioning()

    if coordinate.version not in versioning.versions:
        versioning.versions.append(coordinate.version)
    versioning.latest = coordinate.version
    if not coordinate.is_snapshot:
        versioning.release = coordinate.version
    versioning.last_updated = (now or datetime.now(timezone.utc)).strftime(TIMESTAMP_FORMAT)

    root = etree.Element("metadata")
    etree.SubElement(root, "groupId").text = coordinate.group_id
    etree.SubElement(root, "artifactId").text = coordinate.artifact_id
    block = etree.SubElement(root, "versioning")
    etree.SubElement(block, "latest").text = versioning.latest
    if versioning.release:
        etree.SubElement(block, "release").text = versioning.release
    versions = etree.SubElement(block, "versions")
    for version in versioning.versions:
        etree.SubElement(versions, "version").text = version
    etree.SubElement(block, "lastUpdated").text = versioning.last_updated
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8", pretty_print=True)
