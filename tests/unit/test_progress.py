from __future__ import annotations

from unittest.mock import Mock, patch

from erp_import.services.progress import BatchProgressBar, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch('sys.stdout.isatty', return_value=True):
        assert is_tty_enabled() is True
    with patch('sys.stdout.isatty', return_value=False):
        assert is_tty_enabled() is False


class TestBatchProgressBar:

    def test_init_with_tty_enabled(self):
        with patch('erp_import.services.progress.is_tty_enabled', return_value=True), \
             patch('erp_import.services.progress.tqdm') as mock_tqdm:
            bar = BatchProgressBar(description="vendas.csv")
            assert bar.enabled is True
            mock_tqdm.assert_called_once_with(
                total=100,
                desc="vendas.csv",
                unit="%",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )

    def test_init_with_tty_disabled(self):
        with patch('erp_import.services.progress.is_tty_enabled', return_value=False), \
             patch('erp_import.services.progress.tqdm') as mock_tqdm:
            bar = BatchProgressBar()
            assert bar.enabled is False
            assert bar.pbar is None
            mock_tqdm.assert_not_called()
            # callbacks still track state without a bar
            bar(50, "Imported batch 1 of 2")
            assert bar.percent == 50

    def test_update_to_advances_by_delta(self):
        mock_pbar = Mock()
        with patch('erp_import.services.progress.is_tty_enabled', return_value=True), \
             patch('erp_import.services.progress.tqdm', return_value=mock_pbar):
            bar = BatchProgressBar()
            bar.update_to(33, "Imported batch 1 of 3")
            bar.update_to(67, "Imported batch 2 of 3")
            bar.update_to(67, "again")
            assert [c.args[0] for c in mock_pbar.update.call_args_list] == [33, 34]
            mock_pbar.set_postfix_str.assert_called_with("Imported batch 2 of 3")
            assert bar.last_message == "again"

    def test_context_manager_closes_bar(self):
        mock_pbar = Mock()
        with patch('erp_import.services.progress.is_tty_enabled', return_value=True), \
             patch('erp_import.services.progress.tqdm', return_value=mock_pbar):
            with BatchProgressBar() as bar:
                bar(100, "done")
            mock_pbar.close.assert_called_once()
            assert bar.pbar is None
