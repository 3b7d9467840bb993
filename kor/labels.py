"""Label selector parsing and matching."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

__all__ = ["LabelSelectorError", "LabelSelector", "parse_selector"]

_LEXEME = re.compile(r"\s*(==|!=|!|=|\(|\)|,|<|>|[^\s!=(),<>]+)")
_SPECIAL = {"==", "!=", "!", "=", "(", ")", ",", "<", ">"}
_KEYWORDS = {"in", "notin"}

_NAME = re.compile(r"([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9]")
_DNS_SUBDOMAIN = re.compile(r"[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*")
_INTEGER = re.compile(r"[+-]?\d+")


class LabelSelectorError(ValueError):
    """Raised when a label selector cannot be parsed."""


class _Op(Enum):
    EXISTS = "exists"
    DOES_NOT_EXIST = "!"
    EQUALS = "="
    NOT_EQUALS = "!="
    IN = "in"
    NOT_IN = "notin"
    GREATER = ">"
    LESS = "<"


@dataclass(frozen=True)
class _Requirement:
    key: str
    op: _Op
    values: tuple[str, ...] = ()

    def matches(self, labels: Mapping[str, str]) -> bool:
        present = self.key in labels
        if self.op is _Op.EXISTS:
            return present
        if self.op is _Op.DOES_NOT_EXIST:
            return not present
        if self.op in (_Op.EQUALS, _Op.IN):
            return present and labels[self.key] in self.values
        if self.op in (_Op.NOT_EQUALS, _Op.NOT_IN):
            return not present or labels[self.key] not in self.values
        if not present or not _INTEGER.fullmatch(labels[self.key]):
            return False
        actual, wanted = int(labels[self.key]), int(self.values[0])
        return actual > wanted if self.op is _Op.GREATER else actual < wanted


def _tokenize(text: str) -> list[str]:
    lexemes = []
    pos = 0
    while pos < len(text):
        if text[pos:].strip() == "":
            break
        match = _LEXEME.match(text, pos)
        lexemes.append(match.group(1))
        pos = match.end()
    return lexemes


def _validate_key(key: str) -> None:
    parts = key.split("/")
    if len(parts) == 1:
        name = parts[0]
    elif len(parts) == 2:
        prefix, name = parts
        if not prefix or len(prefix) > 253 or not _DNS_SUBDOMAIN.fullmatch(prefix):
            raise LabelSelectorError(f"invalid label key {key!r}: bad prefix")
    else:
        raise LabelSelectorError(f"invalid label key {key!r}")
    if not name or len(name) > 63 or not _NAME.fullmatch(name):
        raise LabelSelectorError(f"invalid label key {key!r}")


def _validate_value(value: str) -> None:
    if value and (len(value) > 63 or not _NAME.fullmatch(value)):
        raise LabelSelectorError(f"invalid label value {value!r}")


class _Parser:
    def __init__(self, lexemes: list[str]) -> None:
        self._lexemes = lexemes
        self._pos = 0

    def _peek(self) -> Optional[str]:
        return self._lexemes[self._pos] if self._pos < len(self._lexemes) else None

    def _take(self) -> Optional[str]:
        tok = self._peek()
        if tok is not None:
            self._pos += 1
        return tok

    @staticmethod
    def _describe(tok: Optional[str]) -> str:
        return "end of string" if tok is None else tok

    def parse(self) -> list[_Requirement]:
        requirements: list[_Requirement] = []
        if not self._lexemes:
            return requirements
        while True:
            requirements.append(self._requirement())
            tok = self._take()
            if tok is None:
                return requirements
            if tok != ",":
                raise LabelSelectorError(f"found '{tok}', expected: ',' or 'end of string'")
            if self._peek() is None:
                raise LabelSelectorError("found 'end of string', expected: identifier")

    def _key(self, tok: Optional[str]) -> str:
        if tok is None or tok in _SPECIAL or tok in _KEYWORDS:
            raise LabelSelectorError(f"found '{self._describe(tok)}', expected: identifier")
        _validate_key(tok)
        return tok

    def _requirement(self) -> _Requirement:
        tok = self._take()
        if tok == "!":
            return _Requirement(self._key(self._take()), _Op.DOES_NOT_EXIST)
        key = self._key(tok)
        nxt = self._peek()
        if nxt is None or nxt == ",":
            return _Requirement(key, _Op.EXISTS)
        op = self._take()
        if op in ("=", "=="):
            return _Requirement(key, _Op.EQUALS, (self._single_value(),))
        if op == "!=":
            return _Requirement(key, _Op.NOT_EQUALS, (self._single_value(),))
        if op in ("in", "notin"):
            values = self._value_set()
            if not values:
                raise LabelSelectorError(
                    "for 'in', 'notin' operators, values set can't be empty"
                )
            return _Requirement(key, _Op.IN if op == "in" else _Op.NOT_IN, values)
        if op in (">", "<"):
            value = self._single_value()
            if not _INTEGER.fullmatch(value):
                raise LabelSelectorError(
                    f"for 'Gt', 'Lt' operators, the value must be an integer: {value!r}"
                )
            return _Requirement(key, _Op.GREATER if op == ">" else _Op.LESS, (value,))
        raise LabelSelectorError(
            f"found '{op}', expected: '=', '!=', '==', 'in', 'notin', '>' or '<'"
        )

    def _single_value(self) -> str:
        nxt = self._peek()
        if nxt is None or nxt == ",":
            return ""
        if nxt in _SPECIAL:
            raise LabelSelectorError(f"found '{nxt}', expected: identifier")
        value = self._take()
        _validate_value(value)
        return value

    def _value_set(self) -> tuple[str, ...]:
        tok = self._take()
        if tok != "(":
            raise LabelSelectorError(f"found '{self._describe(tok)}', expected: '('")
        values: list[str] = []
        if self._peek() == ")":
            self._take()
            return ()
        while True:
            nxt = self._peek()
            if nxt in (",", ")"):
                values.append("")
            elif nxt is None or nxt in _SPECIAL:
                raise LabelSelectorError(f"found '{self._describe(nxt)}', expected: identifier")
            else:
                value = self._take()
                _validate_value(value)
                values.append(value)
            sep = self._take()
            if sep == ")":
                return tuple(dict.fromkeys(values))
            if sep != ",":
                raise LabelSelectorError(f"found '{self._describe(sep)}', expected: ',' or ')'")


@dataclass(frozen=True)
class LabelSelector:
    """A conjunction of label requirements; an empty selector matches everything."""

    requirements: tuple[_Requirement, ...] = ()

    @classmethod
    def parse(cls, text: str) -> "LabelSelector":
        """Parse selector syntax such as ``app=web,tier!=db,env in (a,b)``."""
        return cls(tuple(_Parser(_tokenize(text)).parse()))

    def matches(self, labels: Optional[Mapping[str, str]]) -> bool:
        """Return whether every requirement holds for ``labels``."""
        labels = labels or {}
        return all(req.matches(labels) for req in self.requirements)


def parse_selector(text: str) -> LabelSelector:
    """Parse a label selector string."""
    return LabelSelector.parse(text)