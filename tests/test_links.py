"""
Unit tests for anchor and link resolution
"""
import pytest

from pdfbuilder.exceptions import UnresolvedAnchorError
from pdfbuilder.links import LinkResolver


class TestLinkResolver:
    """Test deferred resolution of internal and external links"""

    @pytest.fixture
    def resolver(self):
        return LinkResolver()

    def test_forward_reference_resolves(self, resolver):
        resolver.record_internal_link('toc', 1, (72, 72, 50, 12))
        resolver.define_anchor('toc', 2, 150)

        annotations = resolver.resolve()

        assert len(annotations) == 1
        link = annotations[0]
        assert link.page == 1
        assert link.rect == (72, 72, 50, 12)
        assert link.is_internal
        assert (link.target_page, link.target_y) == (2, 150)

    def test_anchor_defined_first(self, resolver):
        resolver.define_anchor('toc', 2, 150)
        resolver.record_internal_link('toc', 1, (72, 72, 50, 12))
        assert resolver.resolve()[0].target_page == 2

    def test_undefined_anchor_is_dropped(self, resolver):
        resolver.record_internal_link('missing', 1, (0, 0, 10, 10))
        assert resolver.resolve() == []

    def test_strict_mode_reports_undefined_anchors(self, resolver):
        resolver.record_internal_link('zeta', 1, (0, 0, 10, 10))
        resolver.record_internal_link('alpha', 1, (0, 20, 10, 10))
        resolver.record_internal_link('zeta', 2, (0, 0, 10, 10))

        with pytest.raises(UnresolvedAnchorError) as exc_info:
            resolver.resolve(strict=True)

        assert exc_info.value.anchors == ['alpha', 'zeta']
        assert 'alpha, zeta' in str(exc_info.value)

    def test_strict_mode_with_all_anchors_defined(self, resolver):
        resolver.record_internal_link('intro', 1, (0, 0, 10, 10))
        resolver.define_anchor('intro', 1, 300)
        assert len(resolver.resolve(strict=True)) == 1

    def test_resolve_is_idempotent(self, resolver):
        resolver.define_anchor('a', 1, 100)
        resolver.record_internal_link('a', 1, (0, 0, 10, 10))
        resolver.record_external_link('https://example.com', 1, (0, 20, 10, 10))

        first = resolver.resolve()
        second = resolver.resolve()

        assert first == second
        assert first is not second
        assert len(first) == 2

    def test_redefined_anchor_uses_last_definition(self, resolver):
        resolver.define_anchor('a', 1, 100)
        resolver.define_anchor('a', 3, 50)
        resolver.record_internal_link('a', 1, (0, 0, 10, 10))
        assert resolver.resolve()[0].target_page == 3

    def test_external_link(self, resolver):
        resolver.record_external_link('https://example.com/docs', 2, (10, 20, 30, 40))

        annotation, = resolver.resolve()

        assert not annotation.is_internal
        assert annotation.uri == 'https://example.com/docs'
        assert annotation.page == 2

    def test_links_keep_recording_order(self, resolver):
        resolver.define_anchor('a', 1, 0)
        resolver.record_external_link('https://one.example', 1, (0, 0, 1, 1))
        resolver.record_internal_link('a', 1, (0, 0, 1, 1))
        resolver.record_external_link('https://two.example', 1, (0, 0, 1, 1))

        uris = [a.uri for a in resolver.resolve()]

        assert uris == ['https://one.example', None, 'https://two.example']
