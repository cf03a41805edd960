"""
Related Entity Extraction

Derives secondary collections (developers, directors, publishers, ...) from a
primary record collection by grouping on the ids found in a relation field:

    {"id": 1, "title": "A", "developers": [{"id": "d1", "name": "Dev"}]}

becomes an Entity ``d1`` titled "Dev" whose ``posts`` list links back to
record 1. Entities keep first-seen order and back-references keep record order.

Usage:
    from sitegen.export.entities import extract_entities

    developers = extract_entities(
        records,
        relation_field="developers",
        id_field="id",
        link_generator=lambda record: f"vn/posts/{record['id']}.json",
    )
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

logger = logging.getLogger(__name__)

Record = Mapping[str, Any]
LinkGenerator = Callable[[Record], Optional[str]]


@dataclass
class BackRef:
    """Reference from an entity back to a record that mentions it."""
    id: Any
    title: Any
    image: Optional[str]
    link: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "image": self.image, "link": self.link}


@dataclass
class Entity:
    """Aggregate built from all references sharing one id."""
    id: Any
    title: Any
    posts: List[BackRef] = field(default_factory=list)

    def to_record(self) -> Dict[str, Any]:
        """Plain mapping so entities can be paginated and mapped like records."""
        return {
            "id": self.id,
            "title": self.title,
            "posts": [post.to_dict() for post in self.posts],
        }


def iter_references(
    record: Record,
    relation_field: str,
    id_field: str = "id",
    name_field: str = "name",
    quiet: bool = False
) -> Iterable[Tuple[Any, Any]]:
    """
    Yield (id, name) for every well-formed reference in record[relation_field].

    Malformed references are skipped with a warning (DEBUG when quiet).
    """
    warn = logger.debug if quiet else logger.warning
    references = record.get(relation_field)
    if references is None:
        return
    if not isinstance(references, list):
        warn(
            f"Record {record.get('id')!r}: '{relation_field}' is not a list - skipping"
        )
        return

    for position, reference in enumerate(references):
        if not isinstance(reference, Mapping):
            warn(
                f"Record {record.get('id')!r}: {relation_field}[{position}] is not an object - skipping"
            )
            continue

        ref_id = reference.get(id_field)
        name = reference.get(name_field)
        if ref_id is None or ref_id == "" or name is None or name == "":
            warn(
                f"Record {record.get('id')!r}: {relation_field}[{position}] "
                f"missing {id_field} or {name_field} - skipping"
            )
            continue

        try:
            hash(ref_id)
        except TypeError:
            warn(
                f"Record {record.get('id')!r}: {relation_field}[{position}] "
                f"has unusable id {ref_id!r} - skipping"
            )
            continue

        yield ref_id, name


def extract_entities(
    records: Iterable[Record],
    relation_field: str,
    id_field: str,
    link_generator: LinkGenerator,
    *,
    name_field: str = "name",
    record_id_field: str = "id"
) -> List[Entity]:
    """
    Group records by the entities they reference.

    Args:
        records: Primary records, in source order
        relation_field: Record field holding a list of references
        id_field: Reference field used as the grouping key
        link_generator: Returns the link of a record's item document
        name_field: Reference field used as the entity title
        record_id_field: Record field used as the back-reference id

    Returns:
        Entities in first-seen order
    """
    entities: Dict[Any, Entity] = {}
    # entity id -> record ids already posted to it
    posted_ids: Dict[Any, Set[Any]] = {}
    skipped = 0
    duplicates = 0

    for position, record in enumerate(records):
        record_id = record.get(record_id_field)
        if record_id is None:
            if record.get(relation_field):
                logger.warning(
                    f"Record {position} missing '{record_id_field}' - skipping its {relation_field}"
                )
                skipped += 1
            continue
        try:
            hash(record_id)
        except TypeError:
            logger.warning(
                f"Record {position} has unusable {record_id_field} {record_id!r} - skipping its {relation_field}"
            )
            skipped += 1
            continue

        in_record = set()
        for ref_id, name in iter_references(record, relation_field, id_field, name_field):
            if ref_id in in_record:
                continue
            in_record.add(ref_id)

            entity = entities.get(ref_id)
            if entity is None:
                entity = entities[ref_id] = Entity(id=ref_id, title=name)
                posted_ids[ref_id] = set()

            if record_id in posted_ids[ref_id]:
                logger.warning(
                    f"Record {position}: {record_id_field} {record_id!r} already posted to "
                    f"{relation_field} {ref_id!r} - skipping duplicate back-reference"
                )
                duplicates += 1
                continue
            posted_ids[ref_id].add(record_id)

            entity.posts.append(BackRef(
                id=record_id,
                title=record.get("title"),
                image=record.get("image") or None,
                link=link_generator(record),
            ))

    if skipped:
        logger.info(f"Skipped {skipped} records without usable ids while extracting {relation_field}")
    if duplicates:
        logger.info(f"Dropped {duplicates} duplicate back-references while extracting {relation_field}")
    logger.debug(f"Extracted {len(entities)} {relation_field} entities")

    return list(entities.values())
