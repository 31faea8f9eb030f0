from __future__ import annotations

from unittest.mock import patch

from lot_inventory.services.progress import UpsertProgress, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch("sys.stdout.isatty", return_value=True):
        assert is_tty_enabled() is True
    with patch("sys.stdout.isatty", return_value=False):
        assert is_tty_enabled() is False


def test_bar_created_on_tty():
    with patch("lot_inventory.services.progress.is_tty_enabled", return_value=True), \
         patch("lot_inventory.services.progress.tqdm") as mock_tqdm:
        progress = UpsertProgress(10)
        assert progress.enabled is True
        mock_tqdm.assert_called_once()
        assert mock_tqdm.call_args.kwargs["total"] == 10
        assert mock_tqdm.call_args.kwargs["desc"] == "Upserting lots"

        progress.update_to(3)
        progress.update_to(3)
        progress.update_to(7)
        bar = mock_tqdm.return_value
        assert [c.args[0] for c in bar.update.call_args_list] == [3, 4]

        progress.set_postfix(inserted=1)
        bar.set_postfix.assert_called_once_with(inserted=1)
        progress.close()
        bar.close.assert_called_once()
        assert progress.pbar is None


def test_no_bar_without_tty():
    with patch("lot_inventory.services.progress.is_tty_enabled", return_value=False), \
         patch("lot_inventory.services.progress.tqdm") as mock_tqdm:
        with UpsertProgress(5) as progress:
            progress.update_to(5)
            progress.set_postfix(a=1)
        mock_tqdm.assert_not_called()
        assert progress.done == 5


def test_no_bar_for_zero_rows():
    with patch("lot_inventory.services.progress.is_tty_enabled", return_value=True), \
         patch("lot_inventory.services.progress.tqdm") as mock_tqdm:
        assert UpsertProgress(0).enabled is False
        mock_tqdm.assert_not_called()
