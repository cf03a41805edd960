"""
Post-build verification of the exported JSON tree.
"""

from sitegen.validation.validate import (
    SiteValidator,
    ValidationReport,
    merge_reports,
)

__all__ = [
    "SiteValidator",
    "ValidationReport",
    "merge_reports",
]
