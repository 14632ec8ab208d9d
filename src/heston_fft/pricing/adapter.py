"""
Heuristic FFT grid adaptation for numerically difficult contracts.

These thresholds are policy: they make extreme inputs more likely to produce
a usable curve, not guaranteed to.
"""

from heston_fft.core.config import GridConfig
from heston_fft.core.types import ContractParams, HestonParams
from heston_fft.utils.logging import get_logger

logger = get_logger(__name__)

MONEYNESS_BOUNDS = (0.5, 2.0)
SHORT_EXPIRY = 0.15
HIGH_INITIAL_VARIANCE = 0.04
MAX_VOL_OF_VOL = 1.0
MAX_ABS_CORRELATION = 0.9

# Adjustments applied to challenging contracts
EXTREME_MONEYNESS = (0.7, 1.5)
VERY_SHORT_EXPIRY = 0.1
LONG_EXPIRY = 2.0


class ParameterAdapter:
    """
    Classifies contracts as challenging and adjusts the grid for them.

    Example:
        >>> adapter = ParameterAdapter()
        >>> contract = ContractParams(spot=100, strike=300, time_to_expiry=0.02)
        >>> params = HestonParams(v0=0.04, kappa=1.0, theta=0.04, sigma=0.4, rho=-0.7)
        >>> challenging, grid = adapter.classify_and_adapt(contract, params, GridConfig())
        >>> challenging, grid.fft_n, grid.eta
        (True, 8192, 0.025)
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    @staticmethod
    def is_challenging(contract: ContractParams, heston: HestonParams) -> bool:
        """True when any difficulty heuristic fires for this contract."""
        low, high = MONEYNESS_BOUNDS
        moneyness = contract.moneyness

        if moneyness < low or moneyness > high:
            return True
        if contract.time_to_expiry < SHORT_EXPIRY and heston.v0 > HIGH_INITIAL_VARIANCE:
            return True
        return heston.sigma > MAX_VOL_OF_VOL or abs(heston.rho) > MAX_ABS_CORRELATION

    @staticmethod
    def adapt(contract: ContractParams, grid: GridConfig) -> GridConfig:
        """Return a copy of ``grid`` adjusted for the contract's moneyness and expiry."""
        update: dict[str, float] = {}
        low, high = EXTREME_MONEYNESS
        moneyness = contract.moneyness

        if moneyness > high or moneyness < low:
            update["fft_n"] = 8192
            update["log_strike_range"] = 4.0

        if contract.time_to_expiry < VERY_SHORT_EXPIRY:
            update["eta"] = 0.025
            update["alpha"] = 1.25
        elif contract.time_to_expiry > LONG_EXPIRY:
            update["eta"] = 0.1

        if not update:
            return grid
        return grid.model_copy(update=update)

    def classify_and_adapt(
        self, contract: ContractParams, heston: HestonParams, grid: GridConfig
    ) -> tuple[bool, GridConfig]:
        """
        Classify the contract and adapt the grid when it is challenging.

        Args:
            contract: Contract being priced
            heston: Heston parameters being priced
            grid: Current grid configuration

        Returns:
            (challenging, grid to use); the grid is unchanged when adaptation
            is disabled or the contract is not challenging
        """
        challenging = self.is_challenging(contract, heston)
        if not challenging or not self.enabled:
            return challenging, grid

        adapted = self.adapt(contract, grid)
        if adapted is not grid:
            logger.debug(
                f"Adapted grid for K/S={contract.moneyness:.3f}, T={contract.time_to_expiry:.4f}: "
                f"N={adapted.fft_n}, eta={adapted.eta}, alpha={adapted.alpha}, "
                f"range={adapted.log_strike_range}"
            )
        return challenging, adapted
