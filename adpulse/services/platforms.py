"""
Platform Adapters

This module knows the wire shape of each supported ad platform: how to build
the first report request, how to find the next page, how a rate-limit error
looks, and how raw items map onto PerformanceRecord rows.

Supported Platforms:
- Meta (Facebook) Marketing API: GET act_{account}/insights at level=ad for a
  single day, paginated through the `paging.next` URL
- Google Ads REST API: POST customers/{id}/googleAds:search with a GAQL query,
  paginated through `nextPageToken`

Normalization Rules:
- Items without an ad id are dropped
- Unparsable or missing numbers become 0
- Rows for the same ad id are summed so each ad yields one record per day
- Meta leads come from the `actions` entry matching the conversion action
- Google spend is cost_micros / 1e6 and leads are rounded conversions
"""

import json
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from adpulse.core.config import Settings
from adpulse.models import PerformanceRecord, Platform, PlatformIntegration
from adpulse.services.fetcher import PageRequest

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

META_INSIGHT_FIELDS: str = 'ad_id,impressions,clicks,spend,inline_link_clicks,actions'

# Graph API throttling codes: app, user, page and ad-account level
META_RATE_LIMIT_CODES = frozenset({4, 17, 32, 613})

GOOGLE_RATE_LIMIT_MARKERS = frozenset({'rateLimitExceeded', 'RESOURCE_EXHAUSTED'})

GOOGLE_ADS_QUERY_TEMPLATE: str = (
    "SELECT ad_group_ad.ad.id, metrics.impressions, metrics.clicks, "
    "metrics.cost_micros, metrics.conversions "
    "FROM ad_group_ad "
    "WHERE segments.date = '{report_date}'"
)

NORMALIZED_COLUMNS: List[str] = ['ad_id', 'impressions', 'clicks', 'leads', 'spend']


# =============================================================================
# Helpers
# =============================================================================


def _numeric(df: pd.DataFrame, column: str) -> pd.Series:
    """Column coerced to numbers, 0 where missing or unparsable."""
    if column not in df.columns:
        return pd.Series(0.0, index=df.index)
    return pd.to_numeric(df[column], errors='coerce').fillna(0)


def _has_ad_id(series: pd.Series) -> pd.Series:
    return series.notna() & (series.astype(str).str.strip() != '')


class PlatformAdapter:
    """
    Shared normalization for platform adapters.

    Subclasses set `platform` and implement build_initial_request,
    extract_items, next_request, is_rate_limit_error and _to_frame.
    """

    platform: Platform

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def build_initial_request(self, integration: PlatformIntegration, report_date: date) -> PageRequest:
        raise NotImplementedError

    def extract_items(self, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def next_request(self, payload: Dict[str, Any], current: PageRequest) -> Optional[PageRequest]:
        raise NotImplementedError

    def is_rate_limit_error(self, payload: Any) -> bool:
        raise NotImplementedError

    def _to_frame(self, items: List[Dict[str, Any]]) -> pd.DataFrame:
        """Map raw items to a frame with NORMALIZED_COLUMNS."""
        raise NotImplementedError

    def normalize(
        self,
        items: Iterable[Dict[str, Any]],
        business_id: str,
        report_date: date,
    ) -> List[PerformanceRecord]:
        """
        Convert raw platform items into one PerformanceRecord per ad.

        Args:
            items: Raw items collected from every page.
            business_id: Owning business.
            report_date: Day the items describe.

        Returns:
            List of validated PerformanceRecord rows without tags.
        """
        items = [item for item in items if isinstance(item, dict)]
        if not items:
            return []

        df = self._to_frame(items)
        if df.empty:
            return []

        df = df[_has_ad_id(df['ad_id'])].copy()
        dropped = len(items) - len(df)
        if dropped:
            logger.warning(f"Dropped {dropped} {self.platform.value} items without an ad id")
        if df.empty:
            return []

        df['ad_id'] = df['ad_id'].astype(str).str.strip()
        for column in ('impressions', 'clicks', 'leads', 'spend'):
            df[column] = _numeric(df, column).clip(lower=0)

        # Grain: one row per ad for the report date
        df = df.groupby('ad_id', as_index=False, sort=True)[['impressions', 'clicks', 'leads', 'spend']].sum()

        return [
            PerformanceRecord(
                business_id=business_id,
                platform=self.platform,
                ad_id=row['ad_id'],
                date=report_date,
                impressions=int(row['impressions']),
                clicks=int(row['clicks']),
                leads=int(row['leads']),
                spend=round(float(row['spend']), 6),
            )
            for row in df.to_dict('records')
        ]


# =============================================================================
# Meta
# =============================================================================


class MetaAdapter(PlatformAdapter):
    """Meta Marketing API insights at ad level."""

    platform = Platform.META

    def build_initial_request(self, integration: PlatformIntegration, report_date: date) -> PageRequest:
        account_id = integration.account_id
        if account_id.startswith('act_'):
            account_id = account_id[len('act_'):]

        day = report_date.isoformat()
        return PageRequest(
            method='GET',
            url=(
                f"{self.settings.meta_graph_url.rstrip('/')}/"
                f"{self.settings.meta_api_version}/act_{account_id}/insights"
            ),
            params={
                'access_token': integration.access_token,
                'fields': META_INSIGHT_FIELDS,
                'level': 'ad',
                'time_range': json.dumps({'since': day, 'until': day}),
            },
        )

    def extract_items(self, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        data = payload.get('data')
        return data if isinstance(data, list) else []

    def next_request(self, payload: Dict[str, Any], current: PageRequest) -> Optional[PageRequest]:
        paging = payload.get('paging')
        next_url = paging.get('next') if isinstance(paging, dict) else None
        if not next_url:
            return None
        # The next URL already carries the cursor, token and query parameters
        return PageRequest(method='GET', url=next_url, headers=current.headers)

    def is_rate_limit_error(self, payload: Any) -> bool:
        if not isinstance(payload, dict):
            return False
        error = payload.get('error')
        if not isinstance(error, dict):
            return False
        try:
            return int(error.get('code')) in META_RATE_LIMIT_CODES
        except (TypeError, ValueError):
            return False

    def _leads(self, actions: Any) -> float:
        if not isinstance(actions, list):
            return 0.0
        total = 0.0
        for action in actions:
            if isinstance(action, dict) and action.get('action_type') == self.settings.meta_conversion_action:
                try:
                    total += float(action.get('value'))
                except (TypeError, ValueError):
                    continue
        return total

    def _to_frame(self, items: List[Dict[str, Any]]) -> pd.DataFrame:
        df = pd.DataFrame(items)
        if 'ad_id' not in df.columns:
            return pd.DataFrame(columns=NORMALIZED_COLUMNS)

        actions = df['actions'] if 'actions' in df.columns else pd.Series([None] * len(df), index=df.index)
        return pd.DataFrame({
            'ad_id': df['ad_id'],
            'impressions': _numeric(df, 'impressions'),
            'clicks': _numeric(df, 'clicks'),
            'leads': actions.apply(self._leads),
            'spend': _numeric(df, 'spend'),
        })


# =============================================================================
# Google Ads
# =============================================================================


class GoogleAdsAdapter(PlatformAdapter):
    """Google Ads REST search over ad_group_ad for a single day."""

    platform = Platform.GOOGLE

    def build_initial_request(self, integration: PlatformIntegration, report_date: date) -> PageRequest:
        customer_id = integration.account_id.replace('-', '')
        headers = {'Authorization': f"Bearer {integration.access_token}"}
        if self.settings.google_ads_developer_token:
            headers['developer-token'] = self.settings.google_ads_developer_token

        return PageRequest(
            method='POST',
            url=(
                f"{self.settings.google_ads_api_url.rstrip('/')}/"
                f"{self.settings.google_ads_api_version}/customers/{customer_id}/googleAds:search"
            ),
            json_body={'query': GOOGLE_ADS_QUERY_TEMPLATE.format(report_date=report_date.isoformat())},
            headers=headers,
        )

    def extract_items(self, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        results = payload.get('results')
        return results if isinstance(results, list) else []

    def next_request(self, payload: Dict[str, Any], current: PageRequest) -> Optional[PageRequest]:
        token = payload.get('nextPageToken')
        if not token:
            return None
        body = dict(current.json_body or {})
        body['pageToken'] = token
        return current.model_copy(update={'json_body': body})

    def is_rate_limit_error(self, payload: Any) -> bool:
        if isinstance(payload, list):
            # Streaming-style error envelopes arrive as a list
            return any(self.is_rate_limit_error(entry) for entry in payload)
        if not isinstance(payload, dict):
            return False
        error = payload.get('error')
        if not isinstance(error, dict):
            return False
        if error.get('status') in GOOGLE_RATE_LIMIT_MARKERS:
            return True
        for entry in error.get('errors') or []:
            if isinstance(entry, dict) and entry.get('reason') in GOOGLE_RATE_LIMIT_MARKERS:
                return True
        return False

    def _to_frame(self, items: List[Dict[str, Any]]) -> pd.DataFrame:
        df = pd.json_normalize(items)
        if 'adGroupAd.ad.id' not in df.columns:
            return pd.DataFrame(columns=NORMALIZED_COLUMNS)

        return pd.DataFrame({
            'ad_id': df['adGroupAd.ad.id'],
            'impressions': _numeric(df, 'metrics.impressions'),
            'clicks': _numeric(df, 'metrics.clicks'),
            'leads': _numeric(df, 'metrics.conversions').round(),
            'spend': _numeric(df, 'metrics.costMicros') / 1_000_000,
        })


# =============================================================================
# Registry
# =============================================================================


def build_adapters(settings: Settings) -> Dict[Platform, PlatformAdapter]:
    """One adapter instance per supported platform."""
    return {
        Platform.META: MetaAdapter(settings),
        Platform.GOOGLE: GoogleAdsAdapter(settings),
    }
