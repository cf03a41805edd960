"""
Document Mappers

Turn raw records into their public on-disk shapes:
- item documents ({base_path}/{name}.json)
- page summaries inside paginated listings
- page documents ({collection_key: [...], pagination: {...}})

Mappers are plain data (field lists plus a collection key) resolved once from
the site configuration. Presets cover the common dataset layouts; any preset
field list can be overridden per dataset.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

from sitegen.export.entities import iter_references
from sitegen.export.pagination import build_page_links

Record = Mapping[str, Any]


@dataclass(frozen=True)
class FieldSpec:
    """Output field `name` copied from record[source], or `default` when missing."""
    name: str
    source: str
    default: Any = None

    @classmethod
    def parse(cls, spec: Union[str, Mapping[str, Any], "FieldSpec"]) -> "FieldSpec":
        """Accept "title", {"name": "image", "source": "url"} or a FieldSpec."""
        if isinstance(spec, FieldSpec):
            return spec
        if isinstance(spec, str):
            return cls(spec, spec)
        name = spec["name"]
        return cls(name, spec.get("source", name), spec.get("default"))

    def extract(self, record: Record) -> Any:
        value = record.get(self.source)
        if value is None:
            return copy.deepcopy(self.default)
        return value


@dataclass(frozen=True)
class EmbeddedRelation:
    """A relation field rendered inside item documents as [{id, title, link}]."""
    field: str
    id_field: str = "id"
    name_field: str = "name"
    links: Mapping[Any, str] = field(default_factory=dict)


def _fields(specs: Sequence[Any]) -> Tuple[FieldSpec, ...]:
    return tuple(FieldSpec.parse(spec) for spec in specs)


@dataclass(frozen=True)
class DocumentMapper:
    """Item, summary and page shaping for one collection."""
    item_fields: Optional[Tuple[FieldSpec, ...]]
    summary_fields: Tuple[FieldSpec, ...]
    collection_key: str = "items"

    def map_item(
        self,
        record: Record,
        link: str,
        relations: Sequence[EmbeddedRelation] = ()
    ) -> Dict[str, Any]:
        """
        Build the item document of a record.

        With item_fields=None the whole record is copied. Relation fields are
        replaced by [{id, title, link}] lists; malformed references are dropped.
        """
        if self.item_fields is None:
            item = dict(record)
        else:
            item = {spec.name: spec.extract(record) for spec in self.item_fields}

        for relation in relations:
            refs = []
            seen = set()
            for ref_id, name in iter_references(
                record, relation.field, relation.id_field, relation.name_field, quiet=True
            ):
                if ref_id in seen:
                    continue
                seen.add(ref_id)
                refs.append({"id": ref_id, "title": name, "link": relation.links.get(ref_id)})
            item[relation.field] = refs

        item["link"] = link
        return item

    def map_summary(self, record: Record, link: str) -> Dict[str, Any]:
        summary = {spec.name: spec.extract(record) for spec in self.summary_fields}
        summary["link"] = link
        return summary

    def map_page(
        self,
        records: Sequence[Record],
        links: Sequence[str],
        current_page: int,
        total_pages: int,
        base_path: str,
        first_page_link: Optional[str] = None
    ) -> Dict[str, Any]:
        """Build one page document of a paginated listing."""
        return {
            self.collection_key: [
                self.map_summary(record, link) for record, link in zip(records, links)
            ],
            "pagination": build_page_links(current_page, total_pages, base_path, first_page_link),
        }


@dataclass(frozen=True)
class MapperPreset:
    item_fields: Optional[Tuple[FieldSpec, ...]]
    summary_fields: Tuple[FieldSpec, ...]
    collection_key: str


MAPPER_PRESETS: Dict[str, MapperPreset] = {
    "posts": MapperPreset(
        item_fields=_fields([
            "id",
            "title",
            {"name": "aliases", "default": []},
            "description",
            "image",
        ]),
        summary_fields=_fields(["id", "title", "image"]),
        collection_key="posts",
    ),
    "favs": MapperPreset(
        item_fields=_fields([
            "title",
            {"name": "image", "source": "url"},
        ]),
        summary_fields=_fields([
            "title",
            {"name": "image", "source": "url"},
        ]),
        collection_key="posts",
    ),
    "movies": MapperPreset(
        item_fields=_fields([
            "id",
            "title",
            "director",
            "year",
            {"name": "genres", "default": []},
            "poster",
        ]),
        summary_fields=_fields(["id", "title", "poster"]),
        collection_key="movies",
    ),
    "generic": MapperPreset(
        item_fields=None,
        summary_fields=_fields(["id", "title"]),
        collection_key="items",
    ),
    # Derived entities (see sitegen.export.entities.Entity.to_record)
    "entity": MapperPreset(
        item_fields=_fields(["id", "title", {"name": "posts", "default": []}]),
        summary_fields=_fields(["id", "title"]),
        collection_key="items",
    ),
}


def build_mapper(
    preset: str = "generic",
    item_fields: Optional[Sequence[Any]] = None,
    summary_fields: Optional[Sequence[Any]] = None,
    collection_key: Optional[str] = None
) -> DocumentMapper:
    """
    Resolve a preset plus per-dataset overrides into a DocumentMapper.

    Raises:
        ValueError: unknown preset name
    """
    try:
        base = MAPPER_PRESETS[preset]
    except KeyError:
        raise ValueError(
            f"Unknown mapper preset {preset!r} (expected one of {sorted(MAPPER_PRESETS)})"
        ) from None

    return DocumentMapper(
        item_fields=_fields(item_fields) if item_fields is not None else base.item_fields,
        summary_fields=_fields(summary_fields) if summary_fields is not None else base.summary_fields,
        collection_key=collection_key or base.collection_key,
    )
