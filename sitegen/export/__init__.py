"""
Site Export Module

Provides the building blocks of the static JSON export:
- Tokenizing and prefix-sharded search indexes
- Pagination and page links
- Related entity extraction
- Item, summary and page document mappers
- Parallel JSON file writing

The dataset-level exporter lives in sitegen.export.build_site_data.
"""

from sitegen.export.tokenizer import tokenize

from sitegen.export.pagination import (
    paginate,
    page_path,
    build_page_links,
)

from sitegen.export.entities import (
    Entity,
    BackRef,
    extract_entities,
)

from sitegen.export.mappers import (
    DocumentMapper,
    FieldSpec,
    build_mapper,
)

from sitegen.export.writer import (
    ExportResult,
    JsonFileWriter,
)

from sitegen.export.build_search_index import (
    SearchIndexBuilder,
    SearchSettings,
    build_search_index,
)

__all__ = [
    "tokenize",
    "paginate",
    "page_path",
    "build_page_links",
    "Entity",
    "BackRef",
    "extract_entities",
    "DocumentMapper",
    "FieldSpec",
    "build_mapper",
    "ExportResult",
    "JsonFileWriter",
    "SearchIndexBuilder",
    "SearchSettings",
    "build_search_index",
]
