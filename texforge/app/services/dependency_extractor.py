"""
Declared package extraction.

Scans document source for the two package-loading directives,
\\usepackage and \\RequirePackage, each with optional bracketed options
and one or more comma-separated package names in braces:

    \\usepackage[utf8]{inputenc,geometry}

Every named package becomes its own DeclaredDependency carrying the
directive's raw option string. Duplicates are kept; deduplication is
the resolver's concern.

Ordering: all \\usepackage occurrences (in document order) precede all
\\RequirePackage occurrences (in document order).
"""

from __future__ import annotations

import re
from typing import List, Pattern

from texforge.app.schemas.dependencies import DeclaredDependency


def _directive_pattern(command: str) -> Pattern[str]:
    return re.compile(
        r"\\" + command + r"\s*(?:\[([^\]]*)\])?\s*\{([^}]+)\}"
    )


DIRECTIVE_PATTERNS = (
    _directive_pattern("usepackage"),
    _directive_pattern("RequirePackage"),
)


def extract_dependencies(source: str) -> List[DeclaredDependency]:
    """Return every package declared in `source`, per occurrence."""
    declared: List[DeclaredDependency] = []

    for pattern in DIRECTIVE_PATTERNS:
        for match in pattern.finditer(source):
            options = match.group(1)
            for raw_name in match.group(2).split(","):
                name = raw_name.strip()
                if name:
                    declared.append(
                        DeclaredDependency(name=name, options=options)
                    )

    return declared
