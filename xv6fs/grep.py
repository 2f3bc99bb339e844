"""A small grep supporting the ^ . * $ operators."""

from __future__ import annotations

import sys
from typing import Iterator

_CHUNK = 1024


def match(re: str, text: str) -> bool:
    """Search for ``re`` anywhere in ``text``."""
    if re.startswith("^"):
        return match_here(re[1:], text)
    # Every suffix is tried, the empty one included.
    return any(match_here(re, text[i:]) for i in range(len(text) + 1))


def match_here(re: str, text: str) -> bool:
    """Search for ``re`` at the beginning of ``text``."""
    if not re:
        return True
    if len(re) >= 2 and re[1] == "*":
        return match_star(re[0], re[2:], text)
    if re == "$":
        return text == ""
    if text and (re[0] == "." or re[0] == text[0]):
        return match_here(re[1:], text[1:])
    return False


def match_star(c: str, re: str, text: str) -> bool:
    """Search for ``c*`` followed by ``re`` at the beginning of ``text``."""
    while True:
        if match_here(re, text):
            return True
        if text and (text[0] == c or c == "."):
            text = text[1:]
        else:
            return False


def grep(pattern: str, stream) -> Iterator[str]:
    """Yield the newline-terminated lines of ``stream`` that match ``pattern``.

    A final line without a newline is not considered.
    """
    pending = ""
    while chunk := stream.read(_CHUNK):
        pending += chunk
        *lines, pending = pending.split("\n")
        for line in lines:
            if match(pattern, line):
                yield line + "\n"


def main(argv=None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        sys.stderr.write("usage: grep pattern [file ...]\n")
        return 1
    pattern, paths = args[0], args[1:]

    if not paths:
        sys.stdout.writelines(grep(pattern, sys.stdin))
        return 0

    for path in paths:
        try:
            stream = open(path, encoding="latin-1", newline="")
        except OSError:
            sys.stdout.write(f"grep: cannot open {path}\n")
            return 1
        with stream:
            sys.stdout.writelines(grep(pattern, stream))
    return 0