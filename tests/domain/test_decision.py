"""Tests for AgentDecision: block range, sentinels, tags, redirect folding."""
import pytest

from sigsci_module.domain.decision import AgentDecision


def test_none_sentinel():
    decision = AgentDecision.none()
    assert decision.response_code == -1
    assert decision.request_id == ""
    assert decision.headers == ()
    assert decision.blocks() is False
    assert decision.has_request_id() is False


@pytest.mark.parametrize(
    ("code", "blocked"),
    [
        (-1, False),
        (0, False),
        (200, False),
        (299, False),
        (300, True),
        (302, True),
        (406, True),
        (599, True),
        (600, False),
    ],
)
def test_blocks_iff_300_to_599(code, blocked):
    assert AgentDecision(response_code=code).blocks() is blocked


def test_from_result():
    decision = AgentDecision.from_result(
        {
            "WAFResponse": 406,
            "RequestID": "5f2a",
            "RequestHeaders": [["X-SigSci-Tags", "sqli,xss"], ["X-SigSci-Agentresponse", "406"]],
        }
    )
    assert decision.response_code == 406
    assert decision.request_id == "5f2a"
    assert decision.headers == (
        ("X-SigSci-Tags", "sqli,xss"),
        ("X-SigSci-Agentresponse", "406"),
    )
    assert decision.has_request_id()


def test_from_result_missing_keys():
    decision = AgentDecision.from_result({})
    assert decision == AgentDecision.none()


def test_from_result_bad_code():
    assert AgentDecision.from_result({"WAFResponse": "nope"}).response_code == -1


@pytest.mark.parametrize("code", [float("inf"), float("nan"), None, [406], {"x": 1}])
def test_from_result_unusable_code(code):
    assert AgentDecision.from_result({"WAFResponse": code}).response_code == -1


@pytest.mark.parametrize("raw", [5, "X-SigSci-Tags", {"A": "1"}, True])
def test_from_result_headers_not_a_list(raw):
    decision = AgentDecision.from_result({"WAFResponse": 200, "RequestHeaders": raw})
    assert decision.headers == ()
    assert decision.tags() == []


def test_from_result_bin_request_id_decoded():
    decision = AgentDecision.from_result({"RequestID": b"5f2a"})
    assert decision.request_id == "5f2a"
    assert decision.has_request_id()


@pytest.mark.parametrize("raw", [12345, ["abc"], {"id": "abc"}, None])
def test_from_result_non_string_request_id(raw):
    decision = AgentDecision.from_result({"RequestID": raw})
    assert decision.request_id == ""
    assert decision.has_request_id() is False


def test_from_result_bin_headers_decoded():
    decision = AgentDecision.from_result(
        {"RequestHeaders": [[b"X-SigSci-Tags", b"sqli"]]}
    )
    assert decision.tags() == ["sqli"]


def test_from_result_skips_malformed_headers():
    decision = AgentDecision.from_result(
        {"WAFResponse": 200, "RequestHeaders": [["A", "1"], ["lonely"], "junk", ["B", 2]]}
    )
    assert decision.headers == (("A", "1"), ("B", "2"))


def test_meta_later_duplicate_wins():
    decision = AgentDecision(headers=(("A", "1"), ("A", "2")))
    assert decision.meta() == {"A": "2"}


def test_tags():
    decision = AgentDecision(headers=(("X-SigSci-Tags", "sqli,xss"),))
    assert decision.tags() == ["sqli", "xss"]


def test_tags_absent():
    assert AgentDecision(response_code=200).tags() == []


def test_tags_empty_segments_dropped():
    decision = AgentDecision(headers=(("X-SigSci-Tags", "sqli,,xss,"),))
    assert decision.tags() == ["sqli", "xss"]


def test_redirect_folded_for_3xx():
    decision = AgentDecision(
        response_code=302, headers=(("X-Sigsci-Redirect", "/login"),)
    )
    out = decision.fold_redirect([("Content-Type", "text/html")])
    assert ("location", "/login") in out
    assert ("Content-Type", "text/html") in out


def test_redirect_not_folded_for_5xx():
    decision = AgentDecision(
        response_code=500, headers=(("X-Sigsci-Redirect", "/login"),)
    )
    out = decision.fold_redirect([("Content-Type", "text/html")])
    assert all(name.lower() != "location" for name, _ in out)


def test_redirect_overrides_existing_location():
    decision = AgentDecision(
        response_code=301, headers=(("X-Sigsci-Redirect", "/blocked"),)
    )
    out = decision.fold_redirect([("Location", "/home"), ("X-A", "1")])
    assert out == [("X-A", "1"), ("location", "/blocked")]


def test_no_redirect_header_leaves_headers_alone():
    decision = AgentDecision(response_code=302)
    headers = [("Location", "/home")]
    assert decision.fold_redirect(headers) == headers
