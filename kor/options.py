"""Command options and resource filter options."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from kor.cluster import NotFoundError
from kor.durations import parse_duration

__all__ = ["Opts", "FilterOptions"]


@dataclass
class Opts:
    """General behaviour switches for a run."""

    delete_flag: bool = False
    no_interactive: bool = False
    verbose: bool = False
    webhook_url: str = ""
    channel: str = ""
    token: str = ""
    group_by: str = ""
    show_reason: bool = False
    namespaced: bool = False


def _parse_labels(text: str) -> dict[str, str]:
    labels = {}
    for pair in text.split(","):
        key, sep, value = pair.partition("=")
        if not sep:
            raise ValueError(f"invalid label format: {pair}")
        labels[key] = value
    return labels


@dataclass
class FilterOptions:
    """Criteria that decide which resources are considered at all.

    ``exclude_labels`` are selectors; a resource matching any is skipped.
    ``include_labels`` is a selector used when listing; setting it disables
    ``exclude_labels``. ``include_namespaces`` likewise overrides
    ``exclude_namespaces``.
    """

    older_than: str = ""
    newer_than: str = ""
    exclude_labels: list[str] = field(default_factory=list)
    include_labels: str = ""
    exclude_namespaces: list[str] = field(default_factory=list)
    include_namespaces: list[str] = field(default_factory=list)
    _namespaces: Optional[list[str]] = field(default=None, init=False, repr=False, compare=False)
    _resolved: bool = field(default=False, init=False, repr=False, compare=False)

    def validate(self) -> None:
        """Raise ValueError if labels or durations are malformed or negative."""
        for label_text in self.exclude_labels:
            _parse_labels(label_text)
        if self.older_than and parse_duration(self.older_than) < timedelta(0):
            raise ValueError("OlderThan must be a non-negative duration")
        if self.newer_than and parse_duration(self.newer_than) < timedelta(0):
            raise ValueError("NewerThan must be a non-negative duration")

    def modify(self) -> None:
        """Drop exclude labels when include labels are given."""
        if self.include_labels:
            if self.exclude_labels:
                print(
                    "Exclude labels can't be used together with include labels. "
                    "Ignoring --exclude-labels (-l) flag",
                    file=sys.stderr,
                )
            self.exclude_labels = []

    def namespaces(self, cluster) -> list[str]:
        """Resolve the namespaces to inspect; computed once and then cached."""
        if self._resolved:
            return list(self._namespaces or [])
        self._resolved = True

        if self.include_namespaces and self.exclude_namespaces:
            print(
                "Exclude namespaces can't be used together with include namespaces. "
                "Ignoring --exclude-namespaces (-e) flag",
                file=sys.stderr,
            )
            self.exclude_namespaces = []

        selected: dict[str, bool] = {}
        if self.include_namespaces:
            for ns in sorted(set(self.include_namespaces)):
                try:
                    cluster.get("Namespace", "", ns)
                except NotFoundError as err:
                    print(f"namespace [{ns}] not found: {err}", file=sys.stderr)
                else:
                    selected[ns] = True
        else:
            try:
                items = cluster.list("Namespace")
            except Exception as err:  # any listing failure leaves no namespaces
                print(f"Failed to retrieve namespaces: {err}", file=sys.stderr)
                return []
            for item in items:
                selected[item["metadata"]["name"]] = True
            for ns in self.exclude_namespaces:
                if ns in selected:
                    selected[ns] = False

        self._namespaces = sorted(ns for ns, keep in selected.items() if keep)
        return list(self._namespaces)