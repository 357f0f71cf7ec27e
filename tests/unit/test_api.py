"""Tests for MediaWikiApi: HTTP client with caching."""

import json
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from topic_watch.api import USER_AGENT, MediaWikiApi


@pytest.fixture
def api_with_mock_session() -> tuple[MediaWikiApi, MagicMock]:
    """Create a MediaWikiApi with a mocked requests.Session and no cache."""
    with patch("topic_watch.api.requests.Session") as mock_session_cls:
        mock_session = MagicMock()
        mock_session_cls.return_value = mock_session
        api = MediaWikiApi("https://wiki.example/w/api.php")

    return api, mock_session


def _make_response(data: dict[str, Any]) -> MagicMock:
    """Create a mock HTTP response with given JSON data."""
    response = MagicMock()
    response.json.return_value = data
    response.text = json.dumps(data)
    return response


def _cached_api(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> tuple[MediaWikiApi, MagicMock]:
    cache_dir = tmp_path / "cache"
    monkeypatch.setattr("topic_watch.api.API_CACHE_PREFIX", str(cache_dir / "cache-"))
    with patch("topic_watch.api.requests.Session") as mock_session_cls:
        mock_session = MagicMock()
        mock_session_cls.return_value = mock_session
        api = MediaWikiApi(from_cache=True)
    return api, mock_session


def test_init_sets_user_agent(api_with_mock_session: tuple[MediaWikiApi, MagicMock]) -> None:
    _api, mock_session = api_with_mock_session
    mock_session.headers.__setitem__.assert_called_with("User-Agent", USER_AGENT)


def test_call_sends_format_parameters(
    api_with_mock_session: tuple[MediaWikiApi, MagicMock],
) -> None:
    api, mock_session = api_with_mock_session
    mock_session.get.return_value = _make_response({"query": {}})

    api.call({"action": "query", "titles": "Talk:X"})

    args, kwargs = mock_session.get.call_args
    assert args[0] == "https://wiki.example/w/api.php"
    assert kwargs["params"] == {
        "format": "json",
        "formatversion": "2",
        "action": "query",
        "titles": "Talk:X",
    }


def test_call_raises_on_api_error(
    api_with_mock_session: tuple[MediaWikiApi, MagicMock],
) -> None:
    api, mock_session = api_with_mock_session
    mock_session.get.return_value = _make_response(
        {"error": {"code": "nosuchrevid", "info": "There is no revision with ID 5."}}
    )

    with pytest.raises(RuntimeError, match="API call failed"):
        api.call({"action": "query"})


def test_call_raises_on_http_error(
    api_with_mock_session: tuple[MediaWikiApi, MagicMock],
) -> None:
    api, mock_session = api_with_mock_session
    mock_session.get.return_value.raise_for_status.side_effect = Exception("500")

    with pytest.raises(Exception, match="500"):
        api.call({"action": "query"})


def test_get_revision(api_with_mock_session: tuple[MediaWikiApi, MagicMock]) -> None:
    api, mock_session = api_with_mock_session
    mock_session.get.return_value = _make_response(
        {
            "query": {
                "pages": [
                    {
                        "title": "Talk:Food",
                        "ns": 1,
                        "revisions": [{"revid": 12, "parentid": 11, "user": "Carol"}],
                    }
                ]
            }
        }
    )

    revision = api.get_revision(12)

    assert revision.revision_id == 12
    assert revision.page_title == "Talk:Food"
    assert revision.namespace == 1
    assert revision.parent_id == 11
    assert revision.user == "Carol"


def test_get_revision_of_new_page_with_hidden_user(
    api_with_mock_session: tuple[MediaWikiApi, MagicMock],
) -> None:
    api, mock_session = api_with_mock_session
    mock_session.get.return_value = _make_response(
        {
            "query": {
                "pages": [
                    {
                        "title": "Talk:Food",
                        "ns": 1,
                        "revisions": [{"revid": 1, "parentid": 0, "userhidden": True}],
                    }
                ]
            }
        }
    )

    revision = api.get_revision(1)

    assert revision.parent_id is None
    assert revision.user is None


def test_get_revision_bad_revid(api_with_mock_session: tuple[MediaWikiApi, MagicMock]) -> None:
    api, mock_session = api_with_mock_session
    mock_session.get.return_value = _make_response({"query": {"badrevids": {"99": {"revid": 99}}}})

    with pytest.raises(RuntimeError, match="Revision 99 not found"):
        api.get_revision(99)


def test_get_page_props(api_with_mock_session: tuple[MediaWikiApi, MagicMock]) -> None:
    api, mock_session = api_with_mock_session
    mock_session.get.return_value = _make_response(
        {"query": {"pages": [{"title": "Project:Help", "pageprops": {"newsectionlink": ""}}]}}
    )
    assert api.get_page_props("Project:Help") == {"newsectionlink": ""}

    mock_session.get.return_value = _make_response({"query": {"pages": [{"title": "X"}]}})
    assert api.get_page_props("X") == {}


def test_get_thread_items_requests_revision(
    api_with_mock_session: tuple[MediaWikiApi, MagicMock],
) -> None:
    api, mock_session = api_with_mock_session
    payload = {"discussiontoolspageinfo": {"threaditemshtml": []}}
    mock_session.get.return_value = _make_response(payload)

    assert api.get_thread_items("Talk:Food", 12) == payload
    params = mock_session.get.call_args.kwargs["params"]
    assert params["action"] == "discussiontoolspageinfo"
    assert params["oldid"] == 12
    assert params["prop"] == "threaditemshtml"


def test_call_writes_cache_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """API call writes response to cache when caching is enabled."""
    api, mock_session = _cached_api(tmp_path, monkeypatch)
    mock_session.get.return_value = _make_response({"query": {"result": 42}})

    api.call({"action": "query", "meta": "siteinfo", "siprop": "general|namespaces"})

    (cache_file,) = (tmp_path / "cache").iterdir()
    assert json.loads(cache_file.read_text()) == {"query": {"result": 42}}


def test_call_reads_from_cache_when_available(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """API call returns cached response without making HTTP request."""
    api, mock_session = _cached_api(tmp_path, monkeypatch)
    mock_session.get.return_value = _make_response({"query": {"cached": True}})
    api.call({"action": "query"})

    api2, mock_session2 = _cached_api(tmp_path, monkeypatch)
    result = api2.call({"action": "query"})

    assert result == {"query": {"cached": True}}
    mock_session2.get.assert_not_called()
