"""
Generate strings that match a regular expression.

Handles the subset of regex syntax that shows up in API schemas: literals,
escapes (``\\d``, ``\\w``, ``\\s`` and their negations), character classes
with ranges, groups, alternation and the usual quantifiers. Backreferences
and lookaround are not supported; callers get ``None`` and fall back to
plain text.
"""

from __future__ import annotations

import random
import re
import string
from typing import Any

_PRINTABLE = string.ascii_letters + string.digits + " _-.,:;!@#"
_DIGITS = string.digits
_WORD = string.ascii_letters + string.digits + "_"
_SPACE = " "

# Extra repetitions allowed past the lower bound of *, + and {n,}
DEFAULT_MAX_REPEAT = 5

Node = tuple[Any, ...]


class UnsupportedPattern(Exception):
    pass


def _complement(chars: str) -> str:
    return "".join(c for c in _PRINTABLE if c not in chars)


class _PatternParser:
    def __init__(self, pattern: str) -> None:
        self.pattern = pattern
        self.pos = 0

    def parse(self) -> Node:
        node = self._alternation()
        if self.pos != len(self.pattern):
            raise UnsupportedPattern(f"unbalanced ')' at {self.pos}")
        return node

    def _peek(self) -> str | None:
        return self.pattern[self.pos] if self.pos < len(self.pattern) else None

    def _next(self) -> str:
        if self.pos >= len(self.pattern):
            raise UnsupportedPattern("unexpected end of pattern")
        ch = self.pattern[self.pos]
        self.pos += 1
        return ch

    def _alternation(self) -> Node:
        branches = [self._sequence()]
        while self._peek() == "|":
            self.pos += 1
            branches.append(self._sequence())
        return ("alt", branches) if len(branches) > 1 else branches[0]

    def _sequence(self) -> Node:
        items: list[Node] = []
        while (ch := self._peek()) is not None and ch not in "|)":
            atom = self._atom()
            if atom is not None:
                items.append(self._quantified(atom))
        return ("seq", items)

    def _atom(self) -> Node | None:
        ch = self._next()
        if ch in "^$":
            return None
        if ch == "(":
            return self._group()
        if ch == "[":
            return self._char_class()
        if ch == ".":
            return ("set", _PRINTABLE)
        if ch == "\\":
            return self._escape()
        if ch in "*+?":
            raise UnsupportedPattern(f"nothing to repeat at {self.pos - 1}")
        return ("lit", ch)

    def _group(self) -> Node:
        if self.pattern.startswith("?:", self.pos):
            self.pos += 2
        elif self.pattern.startswith("?P<", self.pos) or (
            self.pattern.startswith("?<", self.pos)
            and self.pattern[self.pos + 2 : self.pos + 3] not in ("=", "!")
        ):
            end = self.pattern.find(">", self.pos)
            if end < 0:
                raise UnsupportedPattern("unterminated group name")
            self.pos = end + 1
        elif self._peek() == "?":
            raise UnsupportedPattern("lookaround and inline flags are not supported")
        node = self._alternation()
        if self._next() != ")":
            raise UnsupportedPattern("unterminated group")
        return node

    def _escape(self) -> Node | None:
        ch = self._next()
        if ch == "d":
            return ("set", _DIGITS)
        if ch == "w":
            return ("set", _WORD)
        if ch == "s":
            return ("set", _SPACE)
        if ch == "D":
            return ("set", _complement(_DIGITS))
        if ch == "W":
            return ("set", _complement(_WORD))
        if ch == "S":
            return ("set", _complement(_SPACE))
        if ch in "bBAZz":
            return None
        if ch.isdigit():
            raise UnsupportedPattern("backreferences are not supported")
        if ch == "n":
            return ("lit", "\n")
        if ch == "t":
            return ("lit", "\t")
        if ch in "xu":
            width = 2 if ch == "x" else 4
            code = self.pattern[self.pos : self.pos + width]
            self.pos += width
            try:
                return ("lit", chr(int(code, 16)))
            except ValueError as e:
                raise UnsupportedPattern(f"bad \\{ch} escape") from e
        return ("lit", ch)

    def _char_class(self) -> Node:
        negate = self._peek() == "^"
        if negate:
            self.pos += 1

        chars: list[str] = []
        first = True
        while True:
            ch = self._next()
            if ch == "]" and not first:
                break
            first = False
            if ch == "\\":
                escaped = self._escape()
                if escaped is None:
                    raise UnsupportedPattern("anchor inside character class")
                if escaped[0] == "set":
                    chars.extend(escaped[1])
                    continue
                ch = escaped[1]
            if (
                self._peek() == "-"
                and self.pos + 1 < len(self.pattern)
                and self.pattern[self.pos + 1] != "]"
            ):
                self.pos += 1
                end = self._next()
                if end == "\\":
                    escaped = self._escape()
                    if escaped is None or escaped[0] != "lit":
                        raise UnsupportedPattern("bad range in character class")
                    end = escaped[1]
                if ord(end) < ord(ch):
                    raise UnsupportedPattern(f"bad range {ch}-{end}")
                chars.extend(chr(c) for c in range(ord(ch), ord(end) + 1))
            else:
                chars.append(ch)

        members = "".join(dict.fromkeys(chars))
        if negate:
            members = _complement(members)
        if not members:
            raise UnsupportedPattern("empty character class")
        return ("set", members)

    def _quantified(self, atom: Node) -> Node:
        ch = self._peek()
        if ch == "*":
            lo, hi = 0, None
            self.pos += 1
        elif ch == "+":
            lo, hi = 1, None
            self.pos += 1
        elif ch == "?":
            lo, hi = 0, 1
            self.pos += 1
        elif ch == "{":
            m = re.match(r"\{(\d*)(,?)(\d*)\}", self.pattern[self.pos :])
            if not m or not (m.group(1) or m.group(3)):
                # Python treats a malformed brace as a literal
                return atom
            lo = int(m.group(1) or 0)
            hi = int(m.group(3)) if m.group(3) else (None if m.group(2) else lo)
            self.pos += m.end()
        else:
            return atom

        # Lazy and possessive suffixes don't change what can match
        if self._peek() in ("?", "+"):
            self.pos += 1
        return ("repeat", atom, lo, hi)


def _render(node: Node, rng: random.Random, max_repeat: int, out: list[str]) -> None:
    kind = node[0]
    if kind == "lit":
        out.append(node[1])
    elif kind == "set":
        out.append(rng.choice(node[1]))
    elif kind == "seq":
        for child in node[1]:
            _render(child, rng, max_repeat, out)
    elif kind == "alt":
        _render(rng.choice(node[1]), rng, max_repeat, out)
    elif kind == "repeat":
        _, child, lo, hi = node
        upper = lo + max_repeat if hi is None else hi
        for _ in range(rng.randint(lo, upper)):
            _render(child, rng, max_repeat, out)


def generate_matching(
    pattern: str,
    rng: random.Random,
    *,
    min_length: int = 0,
    max_length: int | None = None,
    attempts: int = 10,
) -> str | None:
    """Generate a string matching ``pattern`` within the length bounds.

    Candidates are checked with ``re.search`` (JSON Schema patterns are not
    implicitly anchored). Returns None when the pattern uses unsupported
    syntax or no candidate fits after ``attempts`` tries.
    """
    try:
        compiled = re.compile(pattern)
        tree = _PatternParser(pattern).parse()
    except (re.error, UnsupportedPattern):
        return None

    for _ in range(attempts):
        out: list[str] = []
        _render(tree, rng, DEFAULT_MAX_REPEAT, out)
        candidate = "".join(out)
        if len(candidate) < min_length:
            continue
        if max_length is not None and len(candidate) > max_length:
            continue
        if compiled.search(candidate):
            return candidate
    return None
