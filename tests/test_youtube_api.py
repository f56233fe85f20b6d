from unittest.mock import MagicMock

import pytest
import requests

from yt_collect.errors import ExternalFetchFailed
from yt_collect.youtube_api import YOUTUBE_API, YouTubeClient


def _response(body=None, status=200, json_error=None):
    r = MagicMock()
    r.status_code = status
    if status >= 400:
        r.raise_for_status.side_effect = requests.HTTPError(f"{status} Client Error")
    if json_error is not None:
        r.json.side_effect = json_error
    else:
        r.json.return_value = body
    return r


def _client(*responses, timeout=12):
    session = MagicMock()
    session.get.side_effect = list(responses)
    return YouTubeClient("k", timeout=timeout, session=session), session


def test_most_popular_requests_chart_for_region():
    client, session = _client(_response({"items": [{"id": "a"}, {"id": "b"}]}))

    items = client.most_popular("KR")

    assert [it["id"] for it in items] == ["a", "b"]
    url = session.get.call_args.args[0]
    params = session.get.call_args.kwargs["params"]
    assert url == f"{YOUTUBE_API}/videos"
    assert params["chart"] == "mostPopular"
    assert params["regionCode"] == "KR"
    assert params["maxResults"] == 50
    assert params["key"] == "k"
    assert session.get.call_args.kwargs["timeout"] == 12


def test_missing_items_means_empty_list():
    client, _ = _client(_response({"kind": "youtube#videoListResponse"}))
    assert client.most_popular("KR") == []


def test_search_returns_video_ids_in_order():
    body = {
        "items": [
            {"id": {"kind": "youtube#video", "videoId": "v2"}},
            {"id": {"kind": "youtube#channel", "channelId": "UCx"}},
            {"id": {"kind": "youtube#video", "videoId": "v1"}},
        ]
    }
    client, session = _client(_response(body))

    assert client.search_video_ids("cats") == ["v2", "v1"]
    params = session.get.call_args.kwargs["params"]
    assert params["q"] == "cats"
    assert params["type"] == "video"


def test_videos_are_fetched_fifty_ids_per_call():
    ids = [f"v{i}" for i in range(75)]
    client, session = _client(
        _response({"items": [{"id": i} for i in ids[:50]]}),
        _response({"items": [{"id": i} for i in ids[50:]]}),
    )

    items = client.videos(ids)

    assert len(items) == 75
    assert session.get.call_count == 2
    first = session.get.call_args_list[0].kwargs["params"]["id"].split(",")
    assert first == ids[:50]


def test_channels_rejects_more_than_fifty_ids():
    client, _ = _client()
    with pytest.raises(ValueError):
        client.channels([f"UC{i}" for i in range(51)])


@pytest.mark.parametrize(
    "response",
    [
        _response(status=403),
        _response(json_error=ValueError("Expecting value")),
        _response({"error": {"code": 403, "message": "quotaExceeded"}}),
        _response(["not", "a", "dict"]),
        _response({"items": {"id": "x"}}),
    ],
)
def test_bad_responses_raise_external_fetch_failed(response):
    client, _ = _client(response)
    with pytest.raises(ExternalFetchFailed):
        client.channels(["UCa"])


def test_timeout_raises_external_fetch_failed():
    session = MagicMock()
    session.get.side_effect = requests.Timeout("read timed out")
    client = YouTubeClient("k", session=session)
    with pytest.raises(ExternalFetchFailed) as exc:
        client.most_popular("KR")
    assert "Timeout" in str(exc.value)


@pytest.mark.parametrize(
    "items",
    [["v1"], [None], [{"id": "v1"}], [{"id": ["v1"]}]],
)
def test_search_with_wrongly_shaped_results_fails(items):
    client, _ = _client(_response({"items": items}))
    with pytest.raises(ExternalFetchFailed):
        client.search_video_ids("cats")
