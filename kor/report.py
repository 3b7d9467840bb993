"""Result records and the table, JSON and YAML renderings of unused resources."""

from __future__ import annotations

import json
import re
import textwrap
from dataclasses import dataclass, field
from itertools import zip_longest
from typing import Any, Iterable, Mapping, MutableMapping, Optional, Sequence

import yaml

__all__ = [
    "ResourceInfo",
    "ResourceDiff",
    "ResourceException",
    "UnsupportedFormatError",
    "resource_difference",
    "dedupe_sorted",
    "is_resource_exception",
    "append_resources",
    "group_diff",
    "table_header",
    "format_namespace_table",
    "format_resource_table",
    "format_output",
    "format_output_all",
    "render_unused",
]

_COLUMN_WIDTH = 60
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")

Resources = MutableMapping[str, MutableMapping[str, Optional[list]]]


@dataclass
class ResourceInfo:
    """An unused resource and why it is considered unused."""

    name: str
    reason: str = ""

    def to_dict(self) -> dict:
        data = {"name": self.name}
        if self.reason:
            data["reason"] = self.reason
        return data


@dataclass
class ResourceDiff:
    """The unused resources of one type."""

    resource_type: str
    diff: list[ResourceInfo] = field(default_factory=list)


@dataclass(frozen=True)
class ResourceException:
    """A resource that must never be reported; fields may be regular expressions."""

    namespace: str
    resource_name: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResourceException":
        return cls(data.get("Namespace", ""), data.get("ResourceName", ""))


class UnsupportedFormatError(ValueError):
    """Raised for an output format that cannot be produced."""


def resource_difference(used: Iterable[str], names: Iterable[str]) -> list[str]:
    """Return the names that are not in ``used``, in their original order."""
    used_set = set(used or ())
    return [name for name in names or () if name not in used_set]


def dedupe_sorted(names: Iterable[str]) -> list[str]:
    """Return the distinct names in sorted order."""
    return sorted(set(names or ()))


def is_resource_exception(name: str, namespace: str, exceptions: Iterable[ResourceException]) -> bool:
    """Return whether an exception matches the name and namespace exactly or by pattern."""
    for exc in exceptions or ():
        if exc.resource_name == name and exc.namespace == namespace:
            return True
        try:
            ns_pattern = re.compile(exc.namespace)
            name_pattern = re.compile(exc.resource_name)
        except re.error as err:
            raise ValueError(f"invalid exception pattern: {err}") from err
        if ns_pattern.fullmatch(namespace) and name_pattern.fullmatch(name):
            return True
    return False


def append_resources(
    resources: Resources, resource_type: str, namespace: str, diff: Optional[Iterable[ResourceInfo]]
) -> None:
    """Add ``diff`` under ``resources[resource_type][namespace]``; empty diffs add nothing."""
    for info in diff or ():
        resources.setdefault(resource_type, {}).setdefault(namespace, []).append(info)


def group_diff(
    resources: Resources,
    namespace: str,
    resource_type: str,
    diff: Optional[list[ResourceInfo]],
    group_by: str,
) -> None:
    """Store ``diff`` grouped by namespace or by resource type."""
    if group_by == "namespace":
        resources.setdefault(namespace, {})[resource_type] = diff
    elif group_by == "resource":
        append_resources(resources, resource_type, namespace, diff)


def table_header(group_by: str, show_reason: bool) -> list[str]:
    """Return the table header columns for a grouping, or an empty list."""
    if group_by == "namespace":
        header = ["#", "RESOURCE TYPE", "RESOURCE NAME"]
    elif group_by == "resource":
        header = ["#", "NAMESPACE", "RESOURCE NAME"]
    else:
        return []
    return header + ["REASON"] if show_reason else header


def _quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _wrap(text: str) -> list[str]:
    if len(text) <= _COLUMN_WIDTH:
        return [text]
    return textwrap.wrap(
        text, _COLUMN_WIDTH, break_long_words=False, break_on_hyphens=False
    ) or [""]


def _pad_center(text: str, width: int) -> str:
    gap = width - len(text)
    left = gap // 2
    return " " * left + text + " " * (gap - left)


def _pad_cell(text: str, width: int) -> str:
    return text.rjust(width) if _NUMBER.fullmatch(text) else text.ljust(width)


def _render_table(header: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    columns = max([len(header)] + [len(row) for row in rows])
    head = list(header) + [""] * (columns - len(header)) if header else []
    wrapped_rows = [
        [_wrap(cell) for cell in list(row) + [""] * (columns - len(row))] for row in rows
    ]
    widths = [0] * columns
    for cells in ([[h] for h in head], *wrapped_rows):
        widths = [max([w, *map(len, lines)]) for w, lines in zip_longest(widths, cells, fillvalue=[""])]

    border = "+" + "+".join("-" * (w + 2) for w in widths) + "+"
    lines = [border]
    if head:
        lines.append("| " + " | ".join(_pad_center(h, w) for h, w in zip(head, widths)) + " |")
        lines.append(border)
    for cells in wrapped_rows:
        for parts in zip_longest(*cells, fillvalue=""):
            lines.append("| " + " | ".join(_pad_cell(p, w) for p, w in zip(parts, widths)) + " |")
    lines.append(border)
    return "\n".join(lines) + "\n"


def _row(index: int, first: str, info: ResourceInfo, show_reason: bool) -> list[str]:
    row = [str(index + 1), first, info.name]
    if show_reason and info.reason:
        row.append(info.reason)
    return row


def format_namespace_table(namespace: str, resources: Mapping[str, Optional[list]], opts: Any) -> str:
    """Render the unused resources of one namespace, keyed by resource type."""
    entries = [
        (resource_type, info)
        for resource_type, diff in sorted(resources.items())
        for info in diff or ()
    ]
    if not entries:
        if opts.verbose:
            return f"No unused resources found in the namespace: {_quote(namespace)}\n"
        return ""
    rows = [_row(i, rtype, info, opts.show_reason) for i, (rtype, info) in enumerate(entries)]
    table = _render_table(table_header(opts.group_by, opts.show_reason), rows)
    return f"Unused resources in namespace: {_quote(namespace)}\n{table}\n"


def format_resource_table(resource: str, resources: Mapping[str, Optional[list]], opts: Any) -> str:
    """Render the unused resources of one type, keyed by namespace."""
    if not resources:
        if opts.verbose:
            return f"No unused {resource}s found\n"
        return ""
    entries = [(ns, info) for ns, infos in sorted(resources.items()) for info in infos or ()]
    rows = [_row(i, ns, info, opts.show_reason) for i, (ns, info) in enumerate(entries)]
    table = _render_table(table_header(opts.group_by, opts.show_reason), rows)
    return f"Unused {resource}s:\n{table}\n"


def format_output(resources: Mapping[str, Mapping[str, Optional[list]]], opts: Any) -> str:
    """Render every group as a table according to ``opts.group_by``."""
    if opts.group_by == "namespace":
        render = format_namespace_table
    elif opts.group_by == "resource":
        render = format_resource_table
    else:
        return ""
    return "".join(render(key, diffs, opts) for key, diffs in sorted(resources.items()))


def format_output_all(namespace: str, diffs: Iterable[ResourceDiff], opts: Any) -> str:
    """Render a namespace table from a sequence of per-type diffs."""
    entries = [(d.resource_type, info) for d in diffs or () for info in d.diff or ()]
    if not entries:
        if opts.verbose:
            return f"No unused resources found in the namespace: {_quote(namespace)}\n"
        return ""
    rows = [_row(i, rtype, info, opts.show_reason) for i, (rtype, info) in enumerate(entries)]
    table = _render_table(table_header(opts.group_by, opts.show_reason), rows)
    return f"Unused resources in namespace: {_quote(namespace)}\n{table}\n"


def _structured(resources: Mapping[str, Mapping[str, Optional[list]]], show_reason: bool) -> dict:
    if show_reason:
        return {
            outer: {
                inner: None if infos is None else [info.to_dict() for info in infos]
                for inner, infos in groups.items()
            }
            for outer, groups in resources.items()
        }
    names: dict[str, dict[str, list[str]]] = {}
    for outer, groups in resources.items():
        for inner, infos in groups.items():
            for info in infos or ():
                names.setdefault(outer, {}).setdefault(inner, []).append(info.name)
    return names


def render_unused(output_format: str, resources: Mapping[str, Mapping[str, Optional[list]]], opts: Any) -> str:
    """Render grouped results as ``table``, ``json`` or ``yaml``.

    Without ``opts.show_reason`` the structured forms list names only and leave
    out empty groups. A table bound for a chat webhook is not returned here.
    """
    if output_format == "table":
        if opts.webhook_url or (opts.channel and opts.token):
            raise UnsupportedFormatError(f"unsupported output format: {output_format}")
        return format_output(resources, opts)
    if output_format in ("json", "yaml"):
        data = _structured(resources, opts.show_reason)
        if output_format == "yaml":
            return yaml.safe_dump(data, sort_keys=True, default_flow_style=False, allow_unicode=True)
        return json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False)
    raise UnsupportedFormatError(f"unsupported output format: {output_format}")