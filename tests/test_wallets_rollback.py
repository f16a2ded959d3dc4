import pytest

from w3gw.wallets.rollback import Rollback, RollbackDetector


def test_increasing_epochs_are_not_rollbacks():
    det = RollbackDetector(5)
    assert det.observe(10) is Rollback.NONE
    assert det.observe(10) is Rollback.NONE
    assert det.observe(11) is Rollback.NONE
    assert det.last_known_epoch == 11


def test_rollback_within_window_is_harmless():
    det = RollbackDetector(5)
    det.observe(100)
    assert det.observe(96) is Rollback.HARMLESS
    assert det.last_known_epoch == 96


def test_rollback_beyond_window_is_threatening():
    det = RollbackDetector(5)
    det.observe(100)
    assert det.observe(94) is Rollback.THREATENING
    assert det.last_known_epoch == 94


def test_rollback_on_window_boundary_is_threatening():
    det = RollbackDetector(5)
    det.observe(100)
    assert det.observe(95) is Rollback.THREATENING


def test_zero_window_makes_every_decrease_threatening():
    det = RollbackDetector(0)
    det.observe(100)
    assert det.observe(99) is Rollback.THREATENING


def test_call_epoch_lags_by_window():
    det = RollbackDetector(3)
    det.observe(50)
    assert det.call_epoch == 47
    assert det.interleave_window == 3


def test_negative_window_rejected():
    with pytest.raises(ValueError):
        RollbackDetector(-1)
