import os
from pathlib import Path

import pytest

from sitegen.config import (
    ConfigError,
    FileNaming,
    _is_placeholder,
    _load_env_file,
    build_site_config,
    get_detected_env_vars,
    load_site_config,
    validate_config,
)
from sitegen.data_loader import FileDataSource, HttpDataSource


def minimal_dataset(**overrides):
    return {"name": "vn", "base_path": "vn/posts", "data_path": "records.json", **overrides}


def test_minimal_config_defaults(tmp_path):
    config = build_site_config({"datasets": [minimal_dataset(base_path="/vn/posts/")]}, tmp_path)

    dataset = config.dataset("vn")
    assert config.output_dir == Path("public")
    assert config.page_size == 10
    assert config.minify is False
    assert dataset.base_path == "vn/posts"
    assert dataset.page_size == 10
    assert dataset.mapper.collection_key == "items"
    assert dataset.naming == FileNaming()
    assert dataset.search is None
    assert not dataset.has_search
    assert not dataset.has_relations


def test_dataset_inherits_site_page_size(make_config):
    config = make_config(minimal_dataset(), minimal_dataset(name="favs", page_size=3), page_size=25)
    assert config.dataset("vn").page_size == 25
    assert config.dataset("favs").page_size == 3


def test_relations_and_search(make_config, vn_dataset_raw):
    dataset = make_config(vn_dataset_raw).dataset("vn")

    (relation,) = dataset.relations
    assert relation.field == "developers"
    assert relation.page_size == 2
    assert relation.mapper.collection_key == "developers"
    assert dataset.has_search
    assert dataset.search.fields_to_index == ("title", "description")
    assert dataset.search.id_field == "id"
    assert dataset.search.output_subdir == "search-index"


def test_search_id_field_follows_dataset(make_config):
    dataset = make_config(minimal_dataset(id_field="title", search={})).dataset("vn")
    assert dataset.search.id_field == "title"


def test_file_naming_options(make_config):
    raw = minimal_dataset(file_name="slug", slug_field="name", slug_max_length=30, slug_unicode=True)
    naming = make_config(raw).dataset("vn").naming
    assert naming == FileNaming(strategy="slug", slug_field="name", slug_max_length=30, slug_unicode=True)


@pytest.mark.parametrize("raw", [
    {},
    None,
    {"datasets": [{"name": "vn"}]},
    {"datasets": [], "unknown": 1},
    {"datasets": [minimal_dataset(file_name="hash")]},
    {"datasets": [minimal_dataset(search={"fields_to_index": []})]},
    {"datasets": [minimal_dataset()], "max_workers": 0},
])
def test_schema_violations(raw, tmp_path):
    assert validate_config(raw)
    with pytest.raises(ConfigError, match="Invalid site config"):
        build_site_config(raw, tmp_path)


@pytest.mark.parametrize("dataset", [
    minimal_dataset(page_size=0),
    minimal_dataset(page_size=-5),
    minimal_dataset(relations=[{"field": "developers", "base_path": "d", "page_size": 0}]),
    minimal_dataset(data_path=None),
    minimal_dataset(mapper="blog"),
])
def test_invalid_datasets(dataset, tmp_path):
    dataset = {k: v for k, v in dataset.items() if v is not None}
    with pytest.raises(ConfigError):
        build_site_config({"datasets": [dataset]}, tmp_path)


def test_duplicate_dataset_names(tmp_path):
    with pytest.raises(ConfigError, match="Duplicate"):
        build_site_config({"datasets": [minimal_dataset(), minimal_dataset()]}, tmp_path)


def test_unknown_dataset(make_config):
    with pytest.raises(ConfigError, match="Unknown dataset"):
        make_config(minimal_dataset()).dataset("favs")


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("SITEGEN_OUTPUT_DIR", str(tmp_path / "dist"))
    monkeypatch.setenv("POSTS_PER_PAGE", "5")

    config = build_site_config({"datasets": [minimal_dataset()], "page_size": 50}, tmp_path)

    assert config.output_dir == tmp_path / "dist"
    assert config.page_size == 5
    assert config.dataset("vn").page_size == 5


def test_env_placeholders_ignored(monkeypatch, tmp_path):
    monkeypatch.setenv("SITEGEN_PAGE_SIZE", "changeme")
    monkeypatch.setenv("OUTPUT_DIR", "your_output_dir")

    config = build_site_config({"datasets": [minimal_dataset()]}, tmp_path)

    assert config.page_size == 10
    assert config.output_dir == Path("public")


def test_env_page_size_must_be_integer(monkeypatch, tmp_path):
    monkeypatch.setenv("SITEGEN_PAGE_SIZE", "ten")
    with pytest.raises(ConfigError, match="SITEGEN_PAGE_SIZE"):
        build_site_config({"datasets": [minimal_dataset()]}, tmp_path)


def test_is_placeholder():
    assert _is_placeholder("")
    assert _is_placeholder("CHANGEME")
    assert _is_placeholder("your-key")
    assert not _is_placeholder("public")


def test_detected_env_vars(monkeypatch):
    monkeypatch.setenv("SITE_CONFIG", "other.yaml")
    detected = get_detected_env_vars()
    assert detected["config_path"] == {"var_name": "SITE_CONFIG", "configured": True, "value": "other.yaml"}
    assert detected["page_size"]["configured"] is False


def test_load_env_file(monkeypatch, tmp_path):
    monkeypatch.setenv("SITEGEN_TEST_EXISTING", "keep")
    # Registered with monkeypatch so the value loaded below is removed afterwards
    monkeypatch.setenv("SITEGEN_TEST_NEW", "")
    monkeypatch.delenv("SITEGEN_TEST_NEW")

    env_file = tmp_path / ".env.local"
    env_file.write_text(
        "# comment\n"
        "SITEGEN_TEST_NEW=\"quoted value\"\n"
        "SITEGEN_TEST_EXISTING=replaced\n"
        "not a pair\n"
    )
    _load_env_file(env_file)

    assert os.environ["SITEGEN_TEST_NEW"] == "quoted value"
    assert os.environ["SITEGEN_TEST_EXISTING"] == "keep"


def test_load_site_config_from_yaml(tmp_path):
    path = tmp_path / "site.config.yaml"
    path.write_text(
        "output_dir: out\n"
        "link_prefix: /data/\n"
        "http:\n"
        "  max_attempts: 5\n"
        "datasets:\n"
        "  - name: vn\n"
        "    data_path: records.json\n"
        "    base_path: vn/posts\n"
        "  - name: favs\n"
        "    data_url: https://example.org/favs.json\n"
        "    base_path: favs/posts\n"
        "    mapper: favs\n",
        encoding="utf-8",
    )

    config = load_site_config(path)

    assert config.link_prefix == "/data/"
    assert config.config_dir == tmp_path.resolve()
    assert [d.name for d in config.datasets] == ["vn", "favs"]

    file_source = config.source_for(config.dataset("vn"))
    assert isinstance(file_source, FileDataSource)
    assert file_source.path == tmp_path.resolve() / "records.json"

    http_source = config.source_for(config.dataset("favs"))
    assert isinstance(http_source, HttpDataSource)
    assert http_source.url == "https://example.org/favs.json"
    assert http_source.retry.max_attempts == 5


def test_load_site_config_env_path(monkeypatch, tmp_path):
    path = tmp_path / "custom.yaml"
    path.write_text("datasets: []\n", encoding="utf-8")
    monkeypatch.setenv("SITEGEN_CONFIG", str(path))

    assert load_site_config().datasets == ()


def test_load_site_config_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="Config not found"):
        load_site_config(tmp_path / "missing.yaml")


def test_load_site_config_bad_yaml(tmp_path):
    path = tmp_path / "site.config.yaml"
    path.write_text("datasets: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="Cannot parse"):
        load_site_config(path)


def test_sample_config_is_valid():
    sample = Path(__file__).resolve().parent.parent / "site.config.yaml"
    config = load_site_config(sample)

    vn = config.dataset("vn")
    favs = config.dataset("favs")
    assert vn.relations[0].base_path == "vn/developers"
    assert favs.naming.slug_unicode
    assert favs.search.min_word_length == 1
    assert favs.search.id_field == "title"


@pytest.mark.parametrize("template", ["{base}/index.json", "{0}/index.json", "{base_path/index.json"])
def test_invalid_first_page_link_rejected_at_load(make_config, vn_dataset_raw, template):
    with pytest.raises(ConfigError, match="first_page_link"):
        make_config(dict(vn_dataset_raw, first_page_link=template))

    relation = dict(vn_dataset_raw["relations"][0], first_page_link=template)
    with pytest.raises(ConfigError, match="datasets/vn/relations/developers"):
        make_config(dict(vn_dataset_raw, relations=[relation]))


def test_valid_first_page_link_templates(make_config, vn_dataset_raw):
    dataset = make_config(dict(vn_dataset_raw, first_page_link="{base_path}/")).dataset("vn")
    assert dataset.first_page_link == "{base_path}/"

    literal = make_config(dict(vn_dataset_raw, first_page_link="/vn/")).dataset("vn")
    assert literal.first_page_link == "/vn/"
