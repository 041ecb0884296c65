"""
Compiler log parsing.

Turns the free-form text a TeX engine prints into ordered error and
warning records. Parsing never fails: a line that matches none of the
rules below is ignored.

Rules, applied per physical line (first match wins):
  1. starts with "!"              -> error, text after the marker(s)
  2. "l.<digits> <text>"          -> error at <digits>, dropped if text is empty
  3. contains "Warning:"          -> warning, whole line
  4. contains "LaTeX Error:"      -> error, whole line

File attribution is never populated; the log does not carry it reliably
without tracking nested file-entry markers.
"""

from __future__ import annotations

import re
from typing import List, Tuple

from texforge.app.schemas.compilation import (
    CompilationError,
    CompilationWarning,
)

_LINE_REFERENCE_RE = re.compile(r"^l\.([0-9]+) (.*)$", re.DOTALL)


def parse_latex_log(
    log: str,
) -> Tuple[List[CompilationError], List[CompilationWarning]]:
    """
    Extract diagnostics from raw compiler output.

    Returns:
        (errors, warnings), each in log order.
    """
    errors: List[CompilationError] = []
    warnings: List[CompilationWarning] = []

    for raw_line in log.split("\n"):
        line = raw_line.rstrip("\r")

        if line.startswith("!"):
            errors.append(
                CompilationError(line=0, message=line.lstrip("!").strip())
            )
            continue

        match = _LINE_REFERENCE_RE.match(line)
        if match:
            message = match.group(2).strip()
            if message:
                errors.append(
                    CompilationError(
                        line=int(match.group(1)),
                        message=message,
                    )
                )
            continue

        if "Warning:" in line:
            warnings.append(CompilationWarning(line=0, message=line))
        elif "LaTeX Error:" in line:
            errors.append(CompilationError(line=0, message=line))

    return errors, warnings
