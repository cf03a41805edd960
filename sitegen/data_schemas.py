from __future__ import annotations

from typing import Any, Dict

SCHEMA_VERSION = "1.0.0"
SCHEMA_URI = "https://json-schema.org/draft/2020-12/schema"

RECORDS_SCHEMA: Dict[str, Any] = {
    "$schema": SCHEMA_URI,
    "type": "array",
    "items": {"type": "object"},
}

PAGINATION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["currentPage", "totalPages", "nextPage", "previousPage"],
    "properties": {
        "currentPage": {"type": "integer", "minimum": 1},
        "totalPages": {"type": "integer", "minimum": 1},
        "nextPage": {"type": ["string", "null"]},
        "previousPage": {"type": ["string", "null"]},
    },
}

SUMMARY_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["link"],
    "properties": {
        "link": {"type": "string"},
    },
}

BACKREF_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["id", "title", "image", "link"],
    "properties": {
        "image": {"type": ["string", "null"]},
        "link": {"type": ["string", "null"]},
    },
}

ENTITY_ITEM_SCHEMA: Dict[str, Any] = {
    "$schema": SCHEMA_URI,
    "type": "object",
    "required": ["id", "title", "posts", "link"],
    "properties": {
        "posts": {"type": "array", "items": BACKREF_SCHEMA},
        "link": {"type": "string"},
    },
}

SHARD_SCHEMA: Dict[str, Any] = {
    "$schema": SCHEMA_URI,
    "type": "object",
    "propertyNames": {"pattern": "^[a-z0-9]+$"},
    "additionalProperties": {
        "type": "array",
        "minItems": 1,
        "items": {"type": ["integer", "number", "string", "boolean"]},
    },
}


def page_schema(collection_key: str) -> Dict[str, Any]:
    """Schema of one page document whose summaries live under collection_key."""
    return {
        "$schema": SCHEMA_URI,
        "type": "object",
        "required": [collection_key, "pagination"],
        "properties": {
            collection_key: {"type": "array", "minItems": 1, "items": SUMMARY_SCHEMA},
            "pagination": PAGINATION_SCHEMA,
        },
    }


FIELD_SPEC_SCHEMA: Dict[str, Any] = {
    "oneOf": [
        {"type": "string", "minLength": 1},
        {
            "type": "object",
            "required": ["name"],
            "additionalProperties": False,
            "properties": {
                "name": {"type": "string", "minLength": 1},
                "source": {"type": "string", "minLength": 1},
                "default": {},
            },
        },
    ]
}

FILE_NAMING_PROPERTIES: Dict[str, Any] = {
    "file_name": {"enum": ["id", "slug"]},
    "slug_field": {"type": "string", "minLength": 1},
    "slug_max_length": {"type": "integer", "minimum": 0},
    "slug_unicode": {"type": "boolean"},
}

RELATION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["field", "base_path"],
    "additionalProperties": False,
    "properties": {
        "field": {"type": "string", "minLength": 1},
        "base_path": {"type": "string", "minLength": 1},
        "id_field": {"type": "string", "minLength": 1},
        "name_field": {"type": "string", "minLength": 1},
        "collection_key": {"type": "string", "minLength": 1},
        "page_size": {"type": "integer"},
        "first_page_link": {"type": "string"},
        **FILE_NAMING_PROPERTIES,
    },
}

# Lengths are left loosely typed: bad values fall back to defaults at build time
SEARCH_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "enabled": {"type": "boolean"},
        "fields_to_index": {"type": "array", "minItems": 1, "items": {"type": "string", "minLength": 1}},
        "id_field": {"type": "string", "minLength": 1},
        "min_word_length": {},
        "prefix_length": {},
        "output_subdir": {"type": "string", "minLength": 1},
    },
}

DATASET_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["name", "base_path"],
    "additionalProperties": False,
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "data_url": {"type": "string", "minLength": 1},
        "data_path": {"type": "string", "minLength": 1},
        "base_path": {"type": "string", "minLength": 1},
        "page_size": {"type": "integer"},
        "id_field": {"type": "string", "minLength": 1},
        "mapper": {"type": "string", "minLength": 1},
        "collection_key": {"type": "string", "minLength": 1},
        "item_fields": {"type": "array", "items": FIELD_SPEC_SCHEMA},
        "summary_fields": {"type": "array", "items": FIELD_SPEC_SCHEMA},
        "first_page_link": {"type": "string"},
        "relations": {"type": "array", "items": RELATION_SCHEMA},
        "search": SEARCH_SCHEMA,
        **FILE_NAMING_PROPERTIES,
    },
}

SITE_CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": SCHEMA_URI,
    "type": "object",
    "required": ["datasets"],
    "additionalProperties": False,
    "properties": {
        "output_dir": {"type": "string", "minLength": 1},
        "page_size": {"type": "integer"},
        "link_prefix": {"type": "string"},
        "minify": {"type": "boolean"},
        "max_workers": {"type": "integer", "minimum": 1},
        "http": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "timeout": {"type": "number", "exclusiveMinimum": 0},
                "max_attempts": {"type": "integer", "minimum": 1},
                "backoff_seconds": {"type": "number", "minimum": 0},
                "user_agent": {"type": "string", "minLength": 1},
            },
        },
        "datasets": {"type": "array", "items": DATASET_SCHEMA},
    },
}
