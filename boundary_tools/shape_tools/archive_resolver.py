"""Work out which shapefiles to read from a .shp path or an extract .zip.

Extract archives come in three shapes:

1.  A bare ``.shp`` file (with its companions next to it on disk).
2.  A zip of zips - one inner archive per layer, each holding a shapefile.
3.  A zip holding the shapefile companion sets directly.

Archives are unpacked into a scoped temporary directory that lives exactly as
long as the ``with`` block around :func:`resolve_shape_files`; it is removed
whether the block finishes normally or raises.

Only one level of nesting is unpacked. Zips inside the inner archives are left
alone.
"""

from __future__ import annotations

import logging
import tempfile
import zipfile
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import Final, Iterator, Sequence

from boundary_tools.utils.errors import AmbiguousSelection, MalformedArchive, UnsupportedInputFormat
from boundary_tools.utils.file_select import LayerFilter, select_names
from boundary_tools.utils.logging_helper import progress_level

# =============================================================================
# CONFIGURATION
# =============================================================================

SHAPE_EXTENSION: Final[str] = ".shp"
ARCHIVE_EXTENSION: Final[str] = ".zip"

#: Companions extracted with every shapefile (.sbn/.sbx are never read)
COMPANION_SUFFIXES: Final[tuple[str, ...]] = (".shp", ".dbf", ".prj", ".shx")
ENCODING_SUFFIX: Final[str] = ".cpg"

TEMP_PREFIX: Final[str] = "boundary_tools_"

LOGGER = logging.getLogger(__name__)

# =============================================================================
# FUNCTIONS
# =============================================================================


def list_archive_entries(
    zip_path: str | Path,
    extension: str,
    layer_filter: LayerFilter = None,
) -> list[str]:
    """Return entry names in *zip_path* ending in *extension*, filtered by layer.

    Args:
        zip_path:     Archive to list.
        extension:    Case-sensitive suffix, e.g. ``".zip"`` or ``".shp"``.
        layer_filter: See :mod:`boundary_tools.utils.file_select`.

    Returns:
        Matching entry names in archive order.
    """
    try:
        with zipfile.ZipFile(zip_path) as zf:
            names = [n for n in zf.namelist() if n.endswith(extension)]
    except zipfile.BadZipFile as exc:
        raise MalformedArchive(str(zip_path), "Not a readable zip file") from exc
    return select_names(names, layer_filter)


def _check_ambiguity(candidates: Sequence[str], allow_multiple: bool) -> None:
    if not allow_multiple and len(candidates) > 1:
        raise AmbiguousSelection(candidates)


def _extract_nested_archives(
    zip_path: str | Path,
    members: Sequence[str],
    dest: Path,
) -> list[str]:
    """Unpack each inner archive into its own folder and collect the .shp files."""
    found: list[str] = []
    with zipfile.ZipFile(zip_path) as outer:
        for idx, member in enumerate(members):
            layer_dir = dest / f"{idx:03d}_{PurePosixPath(member).stem}"
            layer_dir.mkdir()
            inner_path = outer.extract(member, layer_dir)
            try:
                with zipfile.ZipFile(inner_path) as inner:
                    inner.extractall(layer_dir)
            except zipfile.BadZipFile as exc:
                raise MalformedArchive(str(zip_path), f"Inner archive {member} is not a zip") from exc
            found.extend(sorted(str(p) for p in layer_dir.rglob(f"*{SHAPE_EXTENSION}")))
    return found


def _extract_shapefiles(
    zip_path: str | Path,
    members: Sequence[str],
    dest: Path,
) -> list[str]:
    """Extract each shapefile's companion set (plus any .cpg) and return the .shp paths."""
    out: list[str] = []
    with zipfile.ZipFile(zip_path) as zf:
        entries = zf.namelist()
        present = set(entries)
        for member in members:
            stem = member[: -len(SHAPE_EXTENSION)]
            wanted = [stem + suffix for suffix in COMPANION_SUFFIXES]
            missing = [name for name in wanted if name not in present]
            if missing:
                raise MalformedArchive(
                    str(zip_path),
                    f"Shape file {member} is missing companion files: {', '.join(missing)}",
                    missing,
                )
            wanted.extend(
                e for e in entries
                if e[: -len(ENCODING_SUFFIX)] == stem and e[-len(ENCODING_SUFFIX):].lower() == ENCODING_SUFFIX
            )
            extracted = [zf.extract(name, dest) for name in wanted]
            out.append(extracted[0])
    return out


@contextmanager
def resolve_shape_files(
    path: str | Path,
    layer_filter: LayerFilter = None,
    allow_multiple: bool = True,
    verbose: bool = True,
) -> Iterator[list[str | Path]]:
    """Yield the ordered list of shapefile paths to read from *path*.

    Args:
        path:           A ``.shp`` file or a ``.zip`` extract (decided by the last
                        four characters, case-sensitively).
        layer_filter:   Which layers to keep when the archive holds several.
        allow_multiple: If ``False``, more than one matching layer is an error.
        verbose:        Log progress at INFO rather than DEBUG.

    Yields:
        ``[path]`` unchanged for a bare shapefile, otherwise paths inside a
        temporary directory that is deleted when the ``with`` block exits.

    Raises:
    ------
    UnsupportedInputFormat
        *path* is neither a .zip nor a .shp file.
    AmbiguousSelection
        Several layers matched and *allow_multiple* is ``False``.
    MalformedArchive
        Nothing usable was found in the archive, or a companion is missing.
    """
    suffix = str(path)[-4:]
    if suffix == SHAPE_EXTENSION:
        yield [path]
        return
    if suffix != ARCHIVE_EXTENSION:
        raise UnsupportedInputFormat(str(path))

    level = progress_level(verbose)
    with tempfile.TemporaryDirectory(prefix=TEMP_PREFIX) as tmp:
        temp_root = Path(tmp)
        shape_files: list[str | Path] = []

        # ------------------------------------------------------------------ zip of zips
        nested = list_archive_entries(path, ARCHIVE_EXTENSION, layer_filter)
        _check_ambiguity(nested, allow_multiple)
        if nested:
            LOGGER.log(level, "Found %d inner archive(s) in %s", len(nested), path)
            shape_files = _extract_nested_archives(path, nested, temp_root)

        # ------------------------------------------------------------------ zip of shapefiles
        if not shape_files:
            members = list_archive_entries(path, SHAPE_EXTENSION, layer_filter)
            _check_ambiguity(members, allow_multiple)
            if members:
                LOGGER.log(level, "Found %d shape file(s) in %s", len(members), path)
                shape_files = _extract_shapefiles(path, members, temp_root)

        if not shape_files:
            raise MalformedArchive(
                str(path),
                "Zip file not formatted as expected. Please check your `layer_filter` "
                "argument or unzip and try again",
            )

        yield shape_files
        LOGGER.debug("Removing temporary directory %s", temp_root)
