"""
Content Element Index

Maps each parsed content element ("type:value") to the set of ad ids whose
content contains it. The index is rebuilt for every analysis run from the
business's content records; content that has not been published as an ad
(no ad id) is ignored.
"""

from typing import Dict, Iterable, List, Set, Tuple

from adpulse.models import ContentRecord


def split_key(element_key: str) -> Tuple[str, str]:
    """
    Split an element key on its first colon.

    Example:
        >>> split_key("headline:Save 20%: today only")
        ('headline', 'Save 20%: today only')
    """
    element_type, _, value = element_key.partition(':')
    return element_type, value


class ContentElementIndex:
    """Element key to the ad ids carrying it."""

    def __init__(self) -> None:
        self.elements: Dict[str, Set[str]] = {}

    @classmethod
    def build(cls, content_records: Iterable[ContentRecord]) -> 'ContentElementIndex':
        index = cls()
        for record in content_records:
            if not record.ad_id:
                continue
            for element in record.parsed_content:
                index.add(element.key, record.ad_id)
        return index

    def add(self, element_key: str, ad_id: str) -> None:
        self.elements.setdefault(element_key, set()).add(ad_id)

    def candidates(self, min_ads: int) -> List[str]:
        """Element keys carried by at least `min_ads` distinct ads, in key order."""
        return sorted(key for key, ads in self.elements.items() if len(ads) >= min_ads)

    def ads_with(self, element_key: str) -> Set[str]:
        return self.elements.get(element_key, set())

    def __len__(self) -> int:
        return len(self.elements)
