"""
Tests for the content element index.
"""

from adpulse.services.content_index import ContentElementIndex, split_key
from adpulse.tests.conftest import make_content


class TestContentElementIndex:

    def test_build_maps_elements_to_ads(self) -> None:
        index = ContentElementIndex.build([
            make_content('c1', 'ad1', ['headline:Save now', 'visual:dog']),
            make_content('c2', 'ad2', ['headline:Save now']),
            make_content('c3', 'ad3', ['visual:dog']),
        ])

        assert index.elements['headline:Save now'] == {'ad1', 'ad2'}
        assert index.elements['visual:dog'] == {'ad1', 'ad3'}
        assert len(index) == 2

    def test_content_without_ad_is_ignored(self) -> None:
        index = ContentElementIndex.build([
            make_content('c1', None, ['headline:Unpublished']),
            make_content('c2', '', ['headline:Unpublished']),
        ])

        assert index.elements == {}

    def test_same_ad_counted_once(self) -> None:
        index = ContentElementIndex.build([
            make_content('c1', 'ad1', ['phrase:limited offer']),
            make_content('c1b', 'ad1', ['phrase:limited offer']),
        ])

        assert index.ads_with('phrase:limited offer') == {'ad1'}

    def test_candidates_respect_minimum(self) -> None:
        index = ContentElementIndex.build([
            make_content(f'c{i}', f'ad{i}', ['headline:A'] + (['headline:B'] if i < 2 else []))
            for i in range(3)
        ])

        assert index.candidates(3) == ['headline:A']
        assert index.candidates(2) == ['headline:A', 'headline:B']
        assert index.ads_with('headline:missing') == set()


def test_split_key_uses_first_colon() -> None:
    assert split_key('headline:Save 20%: today only') == ('headline', 'Save 20%: today only')
    assert split_key('visual:') == ('visual', '')
