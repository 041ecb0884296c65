"""
Essential package registry.

The essential set is the baseline every workstation is expected to
carry regardless of the document being edited: Korean/CJK script
support, mathematics, graphics, tables, fonts, page layout, references,
code listings and common layout helpers.

It is passed explicitly into the essential audit and install operations
so callers (and tests) can substitute their own set.
"""

from texforge.app.schemas.dependencies import EssentialPackageSet


ESSENTIAL_PACKAGES = EssentialPackageSet(
    name="essential",
    packages=(
        # Korean/CJK support
        "kotex-utf",
        "cjk",
        "xecjk",
        # Math
        "amsmath",
        "amssymb",
        "amsfonts",
        "mathtools",
        # Graphics (pgf provides tikz)
        "graphicx",
        "xcolor",
        "pgf",
        # Tables
        "booktabs",
        "array",
        "tabularx",
        "longtable",
        # Fonts
        "fontspec",
        # Layout
        "geometry",
        "fancyhdr",
        "titlesec",
        # References
        "hyperref",
        "biblatex",
        # Code
        "listings",
        # Misc
        "enumitem",
        "caption",
        "float",
    ),
)
