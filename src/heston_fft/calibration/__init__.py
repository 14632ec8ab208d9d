"""Heston parameter calibration and the pricing recovery chain."""

from heston_fft.calibration.calibrator import Calibrator
from heston_fft.calibration.recovery import RecoveryGuard

__all__ = ["Calibrator", "RecoveryGuard"]
