from __future__ import annotations

from unittest.mock import Mock, patch

from member_import.services.progress import ProgressTracker, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch('sys.stdout.isatty', return_value=True):
        assert is_tty_enabled() is True
    with patch('sys.stdout.isatty', return_value=False):
        assert is_tty_enabled() is False


class TestProgressTracker:

    def test_init_with_tty_enabled(self):
        with patch('member_import.services.progress.is_tty_enabled', return_value=True), \
             patch('member_import.services.progress.tqdm') as mock_tqdm:

            tracker = ProgressTracker(120, description="Importing")

            assert tracker.enabled is True
            mock_tqdm.assert_called_once_with(
                total=120,
                desc="Importing",
                unit="rec",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )

    def test_init_with_tty_disabled(self):
        with patch('member_import.services.progress.is_tty_enabled', return_value=False):
            tracker = ProgressTracker(120)
            assert tracker.enabled is False
            assert tracker.pbar is None
            # no-ops
            tracker.start_batch(1, 3)
            tracker.finish_batch(50)
            tracker.set_postfix(ok=1)
            tracker.close()
            assert tracker.current_batch == 1

    def test_batch_updates(self):
        mock_pbar = Mock()
        with patch('member_import.services.progress.is_tty_enabled', return_value=True), \
             patch('member_import.services.progress.tqdm', return_value=mock_pbar):

            with ProgressTracker(120, description="Importing") as tracker:
                tracker.start_batch(2, 3)
                mock_pbar.set_description.assert_called_with("Importing (batch 2/3)")
                tracker.finish_batch(50)
                mock_pbar.update.assert_called_once_with(50)
                mock_pbar.set_description.assert_called_with("Importing")

            mock_pbar.close.assert_called_once()
            assert tracker.pbar is None
