"""Parse Maven pom.xml files using lxml."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Mapping

from lxml import etree

from m2_mirror.exceptions import ConfigurationError, PomModelError, PomNotFoundError, PomParseError
from m2_mirror.models import Coordinate, MavenProject, StoreTarget

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\$\{([^}]+)\}")

_PROJECT = "/*[local-name()='project']"
_DIST_MGMT = _PROJECT + "/*[local-name()='distributionManagement']"


def _text_first(node: etree._Element, xpath_expr: str) -> str | None:
    """Get text of the first matching element using namespace-agnostic XPath.

    Args:
        node: Root element to query under.
        xpath_expr: XPath expression (should use local-name()).

    Returns:
        Text content if found and non-empty, otherwise None.
    """
    found = node.xpath(xpath_expr)
    if not found:
        return None
    first = found[0]
    if isinstance(first, etree._Element):
        text = (first.text or "").strip()
        return text or None
    if isinstance(first, str):
        text = first.strip()
        return text or None
    return None


def _parse_xml(path: Path) -> etree._Element:
    """Parse an XML file and return its root element.

    Raises:
        PomNotFoundError: If the file does not exist.
        PomParseError: If XML cannot be parsed.
    """
    if not path.exists():
        raise PomNotFoundError(f"pom.xml not found: {path}")
    try:
        parser = etree.XMLParser(resolve_entities=False, no_network=True, recover=False)
        tree = etree.parse(str(path), parser=parser)
        return tree.getroot()
    except (OSError, etree.XMLSyntaxError) as exc:
        raise PomParseError(f"Failed to parse pom.xml: {path}") from exc


def _resolve_placeholders(value: str, props: Mapping[str, str]) -> str:
    """Resolve ${...} placeholders using provided properties.

    Unknown placeholders are preserved as-is.
    """
    current = value
    for _ in range(5):
        changed = False

        def _sub(m: re.Match[str]) -> str:
            nonlocal changed
            replacement = props.get(m.group(1))
            if replacement:
                changed = True
                return replacement
            return m.group(0)

        current = _PLACEHOLDER_RE.sub(_sub, current)
        if not changed:
            break
    return current


def _parse_properties(root: etree._Element) -> dict[str, str]:
    props: dict[str, str] = {}
    for n in root.xpath(_PROJECT + "/*[local-name()='properties']/*"):
        if not isinstance(n, etree._Element):
            continue
        key = etree.QName(n).localname
        val = (n.text or "").strip()
        if key and val:
            props[key] = val
    return props


def _repository(root: etree._Element, element: str, props: Mapping[str, str]) -> StoreTarget | None:
    base = f"{_DIST_MGMT}/*[local-name()='{element}']"
    repo_id = _text_first(root, base + "/*[local-name()='id']")
    url = _text_first(root, base + "/*[local-name()='url']")
    if repo_id is None and url is None:
        return None
    if not repo_id or not url:
        raise ConfigurationError(f"distributionManagement/{element} requires both <id> and <url>")
    return StoreTarget(id=_resolve_placeholders(repo_id, props), url=_resolve_placeholders(url, props))


def parse_pom(path: str | Path) -> MavenProject:
    """Parse a Maven pom.xml into its coordinate, modules and deployment repositories.

    Notes:
        - Namespace handling: uses `local-name()` XPath so it works with or without XML namespaces.
        - groupId and version fall back to the `<parent>` values.
        - Property placeholders like `${...}` are resolved when possible.

    Raises:
        PomModelError: If required fields are missing.
    """
    pom_path = Path(path)
    root = _parse_xml(pom_path)

    raw_group_id = _text_first(root, _PROJECT + "/*[local-name()='groupId']")
    raw_artifact_id = _text_first(root, _PROJECT + "/*[local-name()='artifactId']")
    raw_version = _text_first(root, _PROJECT + "/*[local-name()='version']")
    parent_group_id = _text_first(root, _PROJECT + "/*[local-name()='parent']/*[local-name()='groupId']")
    parent_version = _text_first(root, _PROJECT + "/*[local-name()='parent']/*[local-name()='version']")

    if raw_artifact_id is None:
        raise PomModelError(f"Missing required <artifactId> in {pom_path}")

    raw_group_id = raw_group_id or parent_group_id
    raw_version = raw_version or parent_version
    if raw_group_id is None:
        raise PomModelError(f"Missing required <groupId> (or parent <groupId>) in {pom_path}")
    if raw_version is None:
        raise PomModelError(f"Missing required <version> (or parent <version>) in {pom_path}")

    builtins: dict[str, str] = {
        "project.groupId": raw_group_id,
        "project.artifactId": raw_artifact_id,
        "project.version": raw_version,
        "pom.groupId": raw_group_id,
        "pom.artifactId": raw_artifact_id,
        "pom.version": raw_version,
    }
    props = {**_parse_properties(root), **builtins}

    version = _resolve_placeholders(raw_version, props).strip()
    if _PLACEHOLDER_RE.search(version):
        raise PomModelError(f"Unresolvable <version> {raw_version!r} in {pom_path}")

    modules = [
        (m.text or "").strip()
        for m in root.xpath(_PROJECT + "/*[local-name()='modules']/*[local-name()='module']")
        if isinstance(m, etree._Element) and (m.text or "").strip()
    ]

    return MavenProject(
        project=Coordinate(
            group_id=_resolve_placeholders(raw_group_id, props),
            artifact_id=raw_artifact_id,
            version=version,
        ),
        path=pom_path,
        modules=modules,
        release_repository=_repository(root, "repository", props),
        snapshot_repository=_repository(root, "snapshotRepository", props),
    )


def reactor_projects(project_dir: Path) -> list[MavenProject]:
    """Parse the root pom.xml of `project_dir` and every module reachable from it.

    Module entries may name a directory (containing pom.xml) or a POM file.
    Each POM is visited once.
    """
    root_pom = project_dir / "pom.xml" if project_dir.is_dir() else project_dir
    projects: list[MavenProject] = []
    seen: set[Path] = set()
    pending = [root_pom]
    while pending:
        pom = pending.pop(0).resolve()
        if pom in seen:
            continue
        seen.add(pom)
        model = parse_pom(pom)
        projects.append(model)
        for module in model.modules:
            target = pom.parent / module
            pending.append(target / "pom.xml" if target.is_dir() else target)
    logger.debug("Reactor for %s has %d project(s)", project_dir, len(projects))
    return projects
