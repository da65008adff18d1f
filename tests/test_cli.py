"""Tests for the command-line entry point and the scheduler."""
import json
import signal
from unittest.mock import ANY, Mock, patch

import pytest

import notion_ics
from processor.errors import ConfigError, FetchError
from processor.models import SyncSummary
from sync.scheduler import SyncScheduler


class TestMain:
    """Test cases for notion_ics.main."""

    @patch('notion_ics.setup_logging')
    @patch('notion_ics.run_once')
    @patch('notion_ics.load_settings')
    def test_run_once_success(self, mock_load, mock_run_once, mock_logging, settings, capsys):
        mock_load.return_value = settings
        mock_run_once.return_value = SyncSummary(created=2)

        assert notion_ics.main(['--dry-run']) == notion_ics.EXIT_OK

        mock_run_once.assert_called_once_with(settings, dry_run=True, cancel_event=ANY)
        assert json.loads(capsys.readouterr().out)['created'] == 2

    @patch('notion_ics.setup_logging')
    @patch('notion_ics.run_once')
    @patch('notion_ics.load_settings')
    def test_failed_decisions_exit_nonzero(self, mock_load, mock_run_once, mock_logging, settings):
        mock_load.return_value = settings
        mock_run_once.return_value = SyncSummary(created=1, failed=1)

        assert notion_ics.main([]) == notion_ics.EXIT_FAILED

    @patch('notion_ics.setup_logging')
    @patch('notion_ics.run_once')
    @patch('notion_ics.load_settings')
    def test_pass_error_exit_nonzero(self, mock_load, mock_run_once, mock_logging, settings):
        mock_load.return_value = settings
        mock_run_once.side_effect = FetchError('feed unreachable')

        assert notion_ics.main([]) == notion_ics.EXIT_FAILED

    @patch('notion_ics.setup_logging')
    @patch('notion_ics.run_once')
    @patch('notion_ics.load_settings')
    def test_interrupt_cancels_pass_and_reports_summary(
        self, mock_load, mock_run_once, mock_logging, settings, capsys
    ):
        mock_load.return_value = settings
        handler_before = signal.getsignal(signal.SIGINT)

        def interrupted_pass(settings, dry_run, cancel_event):
            signal.getsignal(signal.SIGINT)(signal.SIGINT, None)
            assert cancel_event.is_set()
            return SyncSummary(created=1, cancelled=3)

        mock_run_once.side_effect = interrupted_pass

        assert notion_ics.main([]) == notion_ics.EXIT_FAILED

        assert json.loads(capsys.readouterr().out)['cancelled'] == 3
        assert signal.getsignal(signal.SIGINT) is handler_before

    @patch('notion_ics.setup_logging')
    @patch('notion_ics.run_once')
    @patch('notion_ics.load_settings')
    def test_sigterm_sets_cancel_event(self, mock_load, mock_run_once, mock_logging, settings):
        mock_load.return_value = settings

        def terminated_pass(settings, dry_run, cancel_event):
            signal.getsignal(signal.SIGTERM)(signal.SIGTERM, None)
            return SyncSummary(cancelled=int(cancel_event.is_set()))

        mock_run_once.side_effect = terminated_pass

        assert notion_ics.main([]) == notion_ics.EXIT_FAILED

    @patch('notion_ics.setup_logging')
    @patch('notion_ics.load_settings')
    def test_config_error(self, mock_load, mock_logging):
        mock_load.side_effect = ConfigError('Missing required settings: ical_url')

        assert notion_ics.main([]) == notion_ics.EXIT_CONFIG

    @patch('notion_ics.setup_logging')
    @patch('notion_ics.SyncScheduler')
    @patch('notion_ics.load_settings')
    def test_schedule_flag_starts_scheduler(self, mock_load, mock_scheduler_class, mock_logging, settings):
        mock_load.return_value = settings

        assert notion_ics.main(['--schedule', '*/15 * * * *']) == notion_ics.EXIT_OK

        mock_scheduler_class.assert_called_once_with(settings, '*/15 * * * *', dry_run=False)
        mock_scheduler_class.return_value.start.assert_called_once()

    @patch('notion_ics.setup_logging')
    @patch('notion_ics.SyncScheduler')
    @patch('notion_ics.load_settings')
    def test_schedule_from_settings(self, mock_load, mock_scheduler_class, mock_logging, settings):
        settings.schedule = '0 * * * *'
        mock_load.return_value = settings

        notion_ics.main([])

        assert mock_scheduler_class.call_args.args[1] == '0 * * * *'


class TestSyncScheduler:
    """Test cases for SyncScheduler."""

    def test_invalid_cron_expression(self, settings):
        with pytest.raises(ConfigError):
            SyncScheduler(settings, 'every now and then')

    def test_run_pass_uses_shared_cancel_event(self, settings):
        runner = Mock(return_value=SyncSummary())
        scheduler = SyncScheduler(settings, '*/5 * * * *', dry_run=True, runner=runner)

        scheduler.run_pass()

        runner.assert_called_once_with(settings, True, cancel_event=scheduler.cancel_event)

    def test_pass_error_waits_for_next_tick(self, settings):
        runner = Mock(side_effect=FetchError('feed unreachable'))
        scheduler = SyncScheduler(settings, '*/5 * * * *', runner=runner)

        scheduler.run_pass()
        scheduler.run_pass()

        assert runner.call_count == 2

    def test_stop_cancels_and_skips_later_passes(self, settings):
        runner = Mock(return_value=SyncSummary())
        scheduler = SyncScheduler(settings, '*/5 * * * *', runner=runner)

        scheduler.stop()
        scheduler.run_pass()

        assert scheduler.cancel_event.is_set()
        runner.assert_not_called()

    def test_start_registers_job_and_signal_handlers(self, settings):
        scheduler = SyncScheduler(settings, '*/5 * * * *', runner=Mock())
        scheduler.scheduler = Mock()

        with patch('sync.scheduler.signal.signal') as mock_signal:
            scheduler.start()

        job_kwargs = scheduler.scheduler.add_job.call_args.kwargs
        assert job_kwargs['max_instances'] == 1
        assert job_kwargs['coalesce'] is True
        assert 'next_run_time' in job_kwargs
        assert mock_signal.call_count == 2
        scheduler.scheduler.start.assert_called_once()
