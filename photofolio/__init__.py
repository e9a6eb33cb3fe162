from photofolio.document import (
    DocumentError,
    load_document,
    save_document,
    sort_photos,
)
from photofolio.layout import LayoutConfig, MasonryLayout, compute_columns, layout
from photofolio.protocols import PortfolioPaths

__all__ = [
    "DocumentError",
    "LayoutConfig",
    "MasonryLayout",
    "PortfolioPaths",
    "compute_columns",
    "layout",
    "load_document",
    "save_document",
    "sort_photos",
]
