import pytest

from sitegen.export.mappers import (
    MAPPER_PRESETS,
    DocumentMapper,
    EmbeddedRelation,
    FieldSpec,
    build_mapper,
)


@pytest.fixture
def vn_record():
    return {
        "id": 7,
        "title": "Tales",
        "description": "A story",
        "image": "https://img.example/7.jpg",
        "rating": 8.5,
        "developers": [
            {"id": "d1", "name": "Dev One"},
            {"id": "d1", "name": "Dev One"},
            {"name": "No Id"},
            {"id": "d9", "name": "Unlinked"},
        ],
    }


def test_field_spec_parse():
    assert FieldSpec.parse("title") == FieldSpec("title", "title")
    assert FieldSpec.parse({"name": "image", "source": "url"}) == FieldSpec("image", "url")
    assert FieldSpec.parse({"name": "tags", "default": []}) == FieldSpec("tags", "tags", [])
    spec = FieldSpec("a", "b")
    assert FieldSpec.parse(spec) is spec


def test_field_spec_default_only_for_missing_values():
    spec = FieldSpec("tags", "tags", default=[])
    assert spec.extract({}) == []
    assert spec.extract({"tags": None}) == []
    assert spec.extract({"tags": ["x"]}) == ["x"]
    assert FieldSpec("title", "title", "untitled").extract({"title": ""}) == ""


def test_field_spec_default_is_copied():
    spec = FieldSpec("tags", "tags", default=[])
    spec.extract({}).append("mutated")
    assert spec.extract({}) == []


def test_posts_item(vn_record):
    mapper = build_mapper("posts")
    item = mapper.map_item(vn_record, "vn/posts/tales.json")

    assert item == {
        "id": 7,
        "title": "Tales",
        "aliases": [],
        "description": "A story",
        "image": "https://img.example/7.jpg",
        "link": "vn/posts/tales.json",
    }


def test_item_embeds_relation_links(vn_record):
    relation = EmbeddedRelation("developers", links={"d1": "vn/developers/dev-one.json"})
    item = build_mapper("posts").map_item(vn_record, "vn/posts/tales.json", [relation])

    assert item["developers"] == [
        {"id": "d1", "title": "Dev One", "link": "vn/developers/dev-one.json"},
        {"id": "d9", "title": "Unlinked", "link": None},
    ]
    assert list(item)[-1] == "link"


def test_favs_image_comes_from_url():
    mapper = build_mapper("favs")
    record = {"title": "Cat", "url": "https://img.example/cat.png", "extra": 1}

    assert mapper.map_item(record, "favs/posts/cat.json") == {
        "title": "Cat",
        "image": "https://img.example/cat.png",
        "link": "favs/posts/cat.json",
    }
    assert mapper.map_summary(record, "favs/posts/cat.json") == {
        "title": "Cat",
        "image": "https://img.example/cat.png",
        "link": "favs/posts/cat.json",
    }


def test_movies_preset():
    mapper = build_mapper("movies")
    item = mapper.map_item({"id": 1, "title": "M", "year": 1999}, "movies/1.json")
    assert item["genres"] == []
    assert item["director"] is None
    assert mapper.collection_key == "movies"


def test_generic_copies_whole_record(vn_record):
    mapper = build_mapper("generic")
    item = mapper.map_item(vn_record, "x/7.json")

    assert item["rating"] == 8.5
    assert item["link"] == "x/7.json"
    assert "link" not in vn_record


def test_summary_and_page():
    mapper = build_mapper("posts")
    records = [{"id": 1, "title": "A", "image": None}, {"id": 2, "title": "B"}]

    page = mapper.map_page(records, ["vn/posts/1.json", "vn/posts/2.json"], 2, 3, "vn/posts")

    assert page == {
        "posts": [
            {"id": 1, "title": "A", "image": None, "link": "vn/posts/1.json"},
            {"id": 2, "title": "B", "image": None, "link": "vn/posts/2.json"},
        ],
        "pagination": {
            "currentPage": 2,
            "totalPages": 3,
            "nextPage": "vn/posts/page/3.json",
            "previousPage": "vn/posts/index.json",
        },
    }


def test_build_mapper_overrides():
    mapper = build_mapper(
        "posts",
        summary_fields=["id", {"name": "cover", "source": "image"}],
        collection_key="games",
    )
    assert mapper.collection_key == "games"
    assert mapper.item_fields == MAPPER_PRESETS["posts"].item_fields
    assert mapper.map_summary({"id": 1, "image": "i.png"}, "l") == {"id": 1, "cover": "i.png", "link": "l"}


def test_build_mapper_unknown_preset():
    with pytest.raises(ValueError, match="Unknown mapper preset"):
        build_mapper("blog")


def test_entity_preset_round_trips_entity_records():
    mapper = build_mapper("entity", collection_key="developers")
    record = {"id": "d1", "title": "Dev", "posts": [{"id": 1, "title": "A", "image": None, "link": "l"}]}

    assert mapper.map_item(record, "vn/developers/d1.json") == {**record, "link": "vn/developers/d1.json"}
    assert mapper.map_summary(record, "vn/developers/d1.json") == {
        "id": "d1", "title": "Dev", "link": "vn/developers/d1.json"
    }
    assert isinstance(mapper, DocumentMapper)
