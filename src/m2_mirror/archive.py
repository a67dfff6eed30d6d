"""Pack and unpack the index directory as a jar (zip) archive."""

from __future__ import annotations

import shutil
import zipfile
from pathlib import Path, PurePosixPath

MANIFEST_NAME = "META-INF/MANIFEST.MF"
_DEFAULT_MANIFEST = "Manifest-Version: 1.0\r\nCreated-By: m2-mirror\r\n\r\n"


def _entry_rel_path(name: str) -> PurePosixPath | None:
    rel = name.lstrip("/").rstrip("/")
    if not rel:
        return None
    path = PurePosixPath(rel)
    if ".." in path.parts:
        raise ValueError(f"Archive entry escapes the target directory: {name}")
    return path


def extract_archive(src: Path, dest_dir: Path) -> Path:
    """Extract every entry of `src` below `dest_dir` and return `dest_dir`."""
    dest_dir.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(src) as zf:
        for info in zf.infolist():
            rel = _entry_rel_path(info.filename)
            if rel is None:
                continue
            target = dest_dir.joinpath(*rel.parts)
            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(info) as contents, target.open("wb") as out:
                shutil.copyfileobj(contents, out)
    return dest_dir


def create_archive(target: Path, src_dir: Path) -> Path:
    """Write `src_dir` into the jar file `target`, manifest first."""
    target.parent.mkdir(parents=True, exist_ok=True)
    manifest = src_dir / MANIFEST_NAME
    with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        if manifest.is_file():
            zf.write(manifest, MANIFEST_NAME)
        else:
            zf.writestr(MANIFEST_NAME, _DEFAULT_MANIFEST)
        for path in sorted(src_dir.rglob("*")):
            name = path.relative_to(src_dir).as_posix()
            if name == MANIFEST_NAME:
                continue
            zf.write(path, name)
    return target


def read_entry(archive: zipfile.ZipFile, name: str) -> list[str] | None:
    """Return the non-empty lines of a UTF-8 text entry, or None when it is absent."""
    try:
        raw = archive.read(name)
    except KeyError:
        return None
    return [line.strip() for line in raw.decode("utf-8").splitlines() if line.strip()]
