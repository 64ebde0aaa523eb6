"""
Tests for the deduplication fingerprint.
"""

from compintel.fingerprint import fingerprint, subject_identity


class TestFingerprint:
    def test_independent_of_timestamp(self, make_raw):
        first = make_raw(metadata={"timestamp": "2026-01-01T00:00:00Z", "business_id": "b1"})
        second = make_raw(metadata={"timestamp": "2026-06-30T23:59:59Z", "business_id": "b1"})
        assert fingerprint(first) == fingerprint(second)

    def test_independent_of_tenant_and_id(self, make_raw):
        assert fingerprint(make_raw(tenant_id="a", id="1")) == fingerprint(make_raw(tenant_id="b", id="2"))

    def test_content_changes_digest(self, make_raw):
        assert fingerprint(make_raw(content="price raised")) != fingerprint(make_raw(content="price cut"))

    def test_kind_and_source_change_digest(self, make_raw):
        base = fingerprint(make_raw())
        assert fingerprint(make_raw(kind="mention")) != base
        assert fingerprint(make_raw(source="news-feed")) != base

    def test_subject_changes_digest(self, make_raw):
        a = make_raw(metadata={"business_id": "b1"})
        b = make_raw(metadata={"business_id": "b2"})
        assert fingerprint(a) != fingerprint(b)

    def test_competitor_used_when_no_business(self, make_raw):
        item = make_raw(metadata={"competitor_id": "comp-7"})
        assert subject_identity(item) == "comp-7"

    def test_empty_content_still_fingerprinted(self, make_raw):
        item = make_raw(content="", metadata={})
        digest = fingerprint(item)
        assert len(digest) == 64
        assert digest != fingerprint(make_raw(content=" ", metadata={}))

    def test_field_boundaries_do_not_collide(self, make_raw):
        a = make_raw(content="x-b1", metadata={"business_id": ""})
        b = make_raw(content="x", metadata={"business_id": "b1"})
        assert fingerprint(a) != fingerprint(b)
