import pytest

from sloth.availability_plugin import PluginError, sli_plugin

LABELS = {"owner": "myteam", "tier": "2"}


def test_query_without_filter():
    got = sli_plugin({}, LABELS, {"job": "svc"})
    assert got == (
        "\n"
        'sum(rate(http_request_duration_seconds_count{ job="svc",code=~"(5..|429)" }[{{.window}}]))\n'
        "/\n"
        'sum(rate(http_request_duration_seconds_count{ job="svc" }[{{.window}}]))'
    )


def test_filter_is_sanitized_and_prefixed():
    got = sli_plugin({}, LABELS, {"job": "svc", "filter": '{k1="v1",k2="v2",}'})
    assert got.count('{ k1="v1",k2="v2",job="svc"') == 2


def test_filter_without_braces_matches_braced():
    a = sli_plugin({}, LABELS, {"job": "svc", "filter": 'k1="v1"'})
    b = sli_plugin({}, LABELS, {"job": "svc", "filter": '{k1="v1"}'})
    assert a == b


def test_window_placeholder_kept():
    got = sli_plugin({}, LABELS, {"job": "svc"})
    assert got.count("[{{.window}}]") == 2


def test_job_required():
    with pytest.raises(PluginError, match="job options is required"):
        sli_plugin({}, LABELS, {})


@pytest.mark.parametrize("labels", [{"tier": "2"}, {"owner": "myteam"}, {"owner": "", "tier": "2"}])
def test_required_labels(labels):
    with pytest.raises(PluginError, match="invalid labels"):
        sli_plugin({}, labels, {"job": "svc"})


def test_invalid_filter():
    with pytest.raises(PluginError, match="invalid prometheus filter"):
        sli_plugin({}, LABELS, {"job": "svc", "filter": "bad"})