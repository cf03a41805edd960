from unittest.mock import MagicMock, patch

import pytest
import requests

from sitegen.data_loader import (
    DataSourceError,
    FileDataSource,
    HttpDataSource,
    RetryPolicy,
    load_records,
    source_for,
)


def make_response(status_code=200, payload=None, json_error=None):
    response = MagicMock()
    response.status_code = status_code
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} Error")
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def sleep():
    return MagicMock()


def make_source(session, sleep, **kwargs):
    return HttpDataSource("https://example.org/data.json", session=session, sleep=sleep, **kwargs)


def test_http_fetch(session, sleep):
    session.get.return_value = make_response(payload=[{"id": 1}])

    source = make_source(session, sleep, timeout=5)

    assert load_records(source) == [{"id": 1}]
    session.get.assert_called_once_with("https://example.org/data.json", timeout=5)
    session.headers.update.assert_called_once()
    sleep.assert_not_called()


def test_http_retries_transient_status(session, sleep):
    session.get.side_effect = [make_response(503), make_response(429), make_response(payload=[])]

    assert make_source(session, sleep).fetch() == []
    assert session.get.call_count == 3
    assert [c.args[0] for c in sleep.call_args_list] == pytest.approx([0.6, 1.2])


def test_http_retries_connection_errors(session, sleep):
    session.get.side_effect = [requests.ConnectionError("reset"), make_response(payload=[{"id": 2}])]

    assert make_source(session, sleep).fetch() == [{"id": 2}]
    sleep.assert_called_once()


def test_http_gives_up_after_max_attempts(session, sleep):
    session.get.return_value = make_response(502)
    source = make_source(session, sleep, retry=RetryPolicy(max_attempts=2, backoff_seconds=1))

    with pytest.raises(DataSourceError, match="after 2 attempts"):
        source.fetch()
    assert session.get.call_count == 2
    sleep.assert_called_once_with(1)


def test_http_client_error_is_not_retried(session, sleep):
    session.get.return_value = make_response(404)

    with pytest.raises(DataSourceError, match="404"):
        make_source(session, sleep).fetch()
    assert session.get.call_count == 1


def test_http_invalid_json(session, sleep):
    session.get.return_value = make_response(json_error=ValueError("Expecting value"))

    with pytest.raises(DataSourceError, match="Invalid JSON"):
        make_source(session, sleep).fetch()


def test_retry_policy_delay():
    assert RetryPolicy().delay(1) == pytest.approx(0.6)
    assert RetryPolicy(backoff_seconds=2).delay(3) == 6


def test_file_source(write_records):
    path = write_records([{"id": 1, "title": "A"}])
    assert load_records(FileDataSource(path)) == [{"id": 1, "title": "A"}]


def test_file_source_missing(tmp_path):
    with pytest.raises(DataSourceError, match="Cannot read"):
        FileDataSource(tmp_path / "missing.json").fetch()


def test_file_source_invalid_json(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("[{", encoding="utf-8")
    with pytest.raises(DataSourceError, match="Invalid JSON"):
        FileDataSource(path).fetch()


@pytest.mark.parametrize("payload", [{"id": 1}, "text", None, 3])
def test_non_array_payload_is_fatal(write_records, payload):
    with pytest.raises(DataSourceError, match="is not an array"):
        load_records(FileDataSource(write_records(payload)))


def test_array_of_non_objects_is_fatal(write_records):
    with pytest.raises(DataSourceError, match="Invalid records"):
        load_records(FileDataSource(write_records([{"id": 1}, 2])))


def test_empty_array_is_valid(write_records):
    assert load_records(FileDataSource(write_records([]))) == []


def test_source_for_prefers_path(tmp_path):
    source = source_for(data_url="https://example.org/x.json", data_path="x.json", base_dir=tmp_path)
    assert isinstance(source, FileDataSource)
    assert source.path == tmp_path / "x.json"


def test_source_for_absolute_path(tmp_path):
    source = source_for(data_path=str(tmp_path / "x.json"), base_dir=tmp_path / "elsewhere")
    assert source.path == tmp_path / "x.json"


def test_source_for_url():
    source = source_for(data_url="https://example.org/x.json", retry=RetryPolicy(max_attempts=7))
    assert isinstance(source, HttpDataSource)
    assert source.retry.max_attempts == 7


def test_source_for_requires_a_source():
    with pytest.raises(DataSourceError):
        source_for()


def test_own_session_is_closed_after_fetch(sleep):
    with patch("sitegen.data_loader.requests.Session") as session_cls:
        session = session_cls.return_value
        session.get.return_value = make_response(payload=[{"id": 1}])

        assert HttpDataSource("https://example.org/data.json", sleep=sleep).fetch() == [{"id": 1}]

    session.close.assert_called_once()


def test_own_session_is_closed_after_failure(sleep):
    with patch("sitegen.data_loader.requests.Session") as session_cls:
        session = session_cls.return_value
        session.get.return_value = make_response(404)

        with pytest.raises(DataSourceError):
            HttpDataSource("https://example.org/data.json", sleep=sleep).fetch()

    session.close.assert_called_once()


def test_injected_session_is_left_open(session, sleep):
    session.get.return_value = make_response(payload=[])

    make_source(session, sleep).fetch()

    session.close.assert_not_called()
