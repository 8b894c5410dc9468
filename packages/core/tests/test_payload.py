"""Tests for the overview payload codec."""

from presubmit_core.messages.payload import (
    OVERVIEW_MESSAGE_SIGNATURE,
    PAYLOAD_TAG_CLOSE,
    PAYLOAD_TAG_OPEN,
    ReviewPayload,
    decode_payload,
    encode_payload,
    is_overview_comment,
)

SHA_1 = "a" * 40
SHA_2 = "b" * 40


class TestEncodePayload:
    def test_compact_json_between_markers(self):
        encoded = encode_payload(ReviewPayload(commits=[SHA_1, SHA_2]))
        assert encoded == f'{PAYLOAD_TAG_OPEN}{{"commits":["{SHA_1}","{SHA_2}"]}}{PAYLOAD_TAG_CLOSE}'

    def test_empty_commit_list(self):
        assert '{"commits":[]}' in encode_payload(ReviewPayload())


class TestDecodePayload:
    def test_round_trip_inside_larger_body(self):
        payload = ReviewPayload(commits=[SHA_1, SHA_2])
        body = "### Changes\n\n**a.py**: stuff" + OVERVIEW_MESSAGE_SIGNATURE + encode_payload(payload)
        assert decode_payload(body) == payload

    def test_preserves_order(self):
        body = encode_payload(ReviewPayload(commits=[SHA_2, SHA_1]))
        assert decode_payload(body).commits == [SHA_2, SHA_1]

    def test_missing_markers(self):
        assert decode_payload("just a comment") == ReviewPayload()

    def test_none_and_empty_body(self):
        assert decode_payload(None) == ReviewPayload()
        assert decode_payload("") == ReviewPayload()

    def test_malformed_json(self):
        body = f"{PAYLOAD_TAG_OPEN}{{not json{PAYLOAD_TAG_CLOSE}"
        assert decode_payload(body).commits == []

    def test_wrong_shape(self):
        body = f'{PAYLOAD_TAG_OPEN}{{"commits": "abc"}}{PAYLOAD_TAG_CLOSE}'
        assert decode_payload(body).commits == []

    def test_non_string_entries(self):
        body = f'{PAYLOAD_TAG_OPEN}{{"commits": [1, 2]}}{PAYLOAD_TAG_CLOSE}'
        assert decode_payload(body).commits == []

    def test_json_array_instead_of_object(self):
        body = f"{PAYLOAD_TAG_OPEN}[]{PAYLOAD_TAG_CLOSE}"
        assert decode_payload(body).commits == []

    def test_tolerates_missing_newlines(self):
        body = f'<!-- presubmit.ai: payload --{{"commits":["{SHA_1}"]}}-- presubmit.ai: payload -->'
        assert decode_payload(body).commits == [SHA_1]

    def test_last_commit(self):
        assert ReviewPayload(commits=[SHA_1, SHA_2]).last_commit == SHA_2
        assert ReviewPayload().last_commit is None


class TestIsOverviewComment:
    def test_detects_signature(self):
        assert is_overview_comment("hello" + OVERVIEW_MESSAGE_SIGNATURE)

    def test_rejects_other_comments(self):
        assert not is_overview_comment("LGTM")
        assert not is_overview_comment(None)
