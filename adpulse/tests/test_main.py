"""
Tests for the adpulse-etl command-line entry point.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from adpulse import main as entry
from adpulse.models import BatchRunSummary
from adpulse.tests.conftest import REPORT_DATE


@pytest.fixture
def summary() -> BatchRunSummary:
    return BatchRunSummary(started_at=datetime(2026, 10, 18, 3, tzinfo=timezone.utc), report_date=REPORT_DATE)


@pytest.fixture
def patched(settings, summary):
    with patch.object(entry, 'get_settings', return_value=settings), \
            patch.object(entry, 'init_db', new=AsyncMock()) as init_db, \
            patch.object(entry, 'ensure_schema', new=AsyncMock()) as ensure_schema, \
            patch.object(entry, 'run_batch', new=AsyncMock(return_value=summary)) as run_batch, \
            patch.object(entry, 'close_db', new=AsyncMock()) as close_db:
        yield {
            'init_db': init_db,
            'ensure_schema': ensure_schema,
            'run_batch': run_batch,
            'close_db': close_db,
        }


class TestParser:

    def test_repeatable_business_id(self) -> None:
        args = entry.build_parser().parse_args(['--business-id', 'a', '--business-id', 'b'])

        assert args.business_ids == ['a', 'b']
        assert args.ensure_schema is False

    def test_defaults(self) -> None:
        args = entry.build_parser().parse_args([])

        assert args.business_ids is None
        assert args.print_schedule is False


class TestMain:

    def test_print_schedule(self, patched, capsys) -> None:
        assert entry.main(['--print-schedule']) == 0

        assert capsys.readouterr().out.strip() == '0 3 * * *'
        patched['init_db'].assert_not_awaited()

    def test_runs_one_batch(self, patched) -> None:
        assert entry.main(['--business-id', 'biz_1']) == 0

        patched['init_db'].assert_awaited_once()
        patched['ensure_schema'].assert_not_awaited()
        patched['run_batch'].assert_awaited_once_with(['biz_1'])
        patched['close_db'].assert_awaited_once()

    def test_ensure_schema_flag(self, patched) -> None:
        entry.main(['--ensure-schema'])

        patched['ensure_schema'].assert_awaited_once()
        patched['run_batch'].assert_awaited_once_with(None)

    @pytest.mark.asyncio
    async def test_pool_closed_when_batch_fails(self, patched) -> None:
        patched['run_batch'].side_effect = RuntimeError('db gone')

        with pytest.raises(RuntimeError):
            await entry.run()

        patched['close_db'].assert_awaited_once()
