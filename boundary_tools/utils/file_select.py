"""Select files (layers) from a list of names.

``layer_filter`` arguments across the package accept:

* ``None`` - keep everything;
* a plain string - the exact entry name, its basename, or its basename
  without extension (``"tracts_2010"`` selects ``"shape/tracts_2010.zip"``);
* a glob string such as ``"tl_*_tract.shp"`` - matched against the basename;
* selector helpers: :func:`contains`, :func:`starts_with`, :func:`ends_with`,
  :func:`matches`, :func:`everything`;
* :func:`exclude` to negate any of the above;
* a list/tuple mixing all of them.

Positive selectors are unioned; negative selectors are then removed. A
filter made only of negative selectors starts from every name.
"""

from __future__ import annotations

import fnmatch
import re
from dataclasses import dataclass, replace
from pathlib import PurePosixPath
from typing import Iterable, Sequence, Union

_GLOB_CHARS = "*?["


@dataclass(frozen=True)
class Selector:
    """One name test plus a negation flag."""

    kind: str
    pattern: str = ""
    ignore_case: bool = True
    negate: bool = False

    def test(self, name: str) -> bool:
        base = PurePosixPath(name).name
        if self.kind == "everything":
            return True
        if self.kind == "name":
            return self.pattern in (name, base, PurePosixPath(base).stem)
        if self.kind == "glob":
            return fnmatch.fnmatchcase(base, self.pattern)
        if self.kind == "matches":
            flags = re.IGNORECASE if self.ignore_case else 0
            return re.search(self.pattern, base, flags) is not None

        value, pattern = (base.lower(), self.pattern.lower()) if self.ignore_case else (base, self.pattern)
        if self.kind == "contains":
            return pattern in value
        if self.kind == "starts_with":
            return value.startswith(pattern)
        if self.kind == "ends_with":
            return value.endswith(pattern)
        raise ValueError(f"Unknown selector kind: {self.kind}")


LayerFilter = Union[None, str, Selector, Sequence[Union[str, Selector]]]


def everything() -> Selector:
    return Selector("everything")


def contains(text: str, ignore_case: bool = True) -> Selector:
    return Selector("contains", text, ignore_case)


def starts_with(prefix: str, ignore_case: bool = True) -> Selector:
    return Selector("starts_with", prefix, ignore_case)


def ends_with(suffix: str, ignore_case: bool = True) -> Selector:
    return Selector("ends_with", suffix, ignore_case)


def matches(regex: str, ignore_case: bool = True) -> Selector:
    """Select basenames where *regex* is found (``re.search``)."""
    return Selector("matches", regex, ignore_case)


def exclude(selection: str | Selector | Sequence[str | Selector]) -> tuple[Selector, ...]:
    """Negate one or more selectors."""
    return tuple(replace(s, negate=True) for s in _as_selectors(selection))


def _as_selector(item: str | Selector) -> Selector:
    if isinstance(item, Selector):
        return item
    if isinstance(item, str):
        if any(ch in item for ch in _GLOB_CHARS):
            return Selector("glob", item, ignore_case=False)
        return Selector("name", item, ignore_case=False)
    raise TypeError(f"Cannot select files with {item!r}")


def _as_selectors(layer_filter: str | Selector | Iterable) -> list[Selector]:
    if isinstance(layer_filter, (str, Selector)):
        return [_as_selector(layer_filter)]
    out: list[Selector] = []
    for item in layer_filter:
        if isinstance(item, (list, tuple)):
            out.extend(_as_selectors(item))
        else:
            out.append(_as_selector(item))
    return out


def select_names(names: Iterable[str], layer_filter: LayerFilter = None) -> list[str]:
    """Return the subset of *names* picked by *layer_filter*, in input order."""
    candidates = list(dict.fromkeys(names))
    if layer_filter is None:
        return candidates

    selectors = _as_selectors(layer_filter)
    if not selectors:
        return []

    positives = [s for s in selectors if not s.negate]
    negatives = [s for s in selectors if s.negate]

    if positives:
        chosen = [n for n in candidates if any(s.test(n) for s in positives)]
    else:
        chosen = candidates
    return [n for n in chosen if not any(s.test(n) for s in negatives)]
