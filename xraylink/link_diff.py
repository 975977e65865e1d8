"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XRAYLINK, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Diffing of link selections.

Pure functions, no I/O. Whether a folder move is actually performed is decided
by the reconciler; the diff always reports both ends of the folder.
"""

from collections.abc import Iterable

from xraylink.models import (
    ROOT_FOLDER,
    CategoryDiff,
    FolderChange,
    LinkCategory,
    LinkDiff,
    LinkSelection,
)


def _ordered_difference(source: Iterable[str], exclude: Iterable[str]) -> list[str]:
    """Set difference that keeps the first-seen order of ``source``."""
    excluded = set(exclude)
    seen: set[str] = set()
    result = []
    for item in source:
        if item in excluded or item in seen:
            continue
        seen.add(item)
        result.append(item)
    return result


def diff_ids(original: Iterable[str], current: Iterable[str]) -> CategoryDiff:
    original = list(original)
    current = list(current)
    return CategoryDiff(
        to_add=_ordered_difference(current, original),
        to_remove=_ordered_difference(original, current),
    )


def compute_diff(original: LinkSelection, current: LinkSelection) -> LinkDiff:
    """
    Compute the minimal add/remove sets that move ``original`` to ``current``.

    Within every category the result satisfies ``to_add ∩ to_remove = ∅`` and
    duplicates collapse.
    """
    categories = {
        category.attribute: diff_ids(original.ids_for(category), current.ids_for(category))
        for category in LinkCategory
    }
    return LinkDiff(
        **categories,
        folder=FolderChange(original=original.folder_path, current=current.folder_path),
    )


def empty_selection(folder_path: str = ROOT_FOLDER, project_id: str | None = None) -> LinkSelection:
    """A selection with no links; diffing against it yields a first-time link plan."""
    return LinkSelection(folder_path=folder_path, project_id=project_id)
