"""
Base Calculator Classes and Utilities

This module provides the foundation for all financial metric calculations:
- FinanceInput: Standardized input data structure
- BaseCalculator: Common calculation utilities
"""

from dataclasses import dataclass
from typing import Dict, Any, Optional, Union
import logging

logger = logging.getLogger(__name__)


@dataclass
class FinanceInput:
    """
    Standardized input structure for calculation functions.

    Wraps a raw request payload (camelCase keys, as sent by the dashboard)
    and provides typed property access to the commonly used figures.
    """
    raw_record: Dict[str, Any]
    period: Optional[str] = None

    def number(self, key: str, default: float = 0.0) -> float:
        """Numeric field from the raw record, default when missing or null"""
        value = self.raw_record.get(key)
        if value is None or value == '':
            return default
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning(f"Non-numeric value for {key}: {value!r}, using {default}")
            return default

    # === UNIT ECONOMICS ===

    @property
    def cac(self) -> float:
        """Customer acquisition cost"""
        return self.number('cac')

    @property
    def ltv(self) -> float:
        """Customer lifetime value"""
        return self.number('ltv')

    @property
    def arpu(self) -> float:
        """Average monthly revenue per user"""
        return self.number('averageRevenuePerUser')

    @property
    def gross_margin(self) -> float:
        """Gross margin as a percentage (e.g. 80)"""
        return self.number('grossMargin')

    @property
    def churn_rate(self) -> float:
        """Monthly churn, as decimal or percentage"""
        return self.number('churnRate')

    # === MRR MOVEMENTS ===

    @property
    def new_mrr(self) -> float:
        return self.number('newMRR')

    @property
    def expansion_mrr(self) -> float:
        return self.number('expansionMRR')

    @property
    def contraction_mrr(self) -> float:
        return self.number('contractionMRR')

    @property
    def churned_mrr(self) -> float:
        return self.number('churnedMRR')

    @property
    def previous_mrr(self) -> float:
        return self.number('previousMRR')

    # === GROWTH & PROFITABILITY ===

    @property
    def revenue_growth_rate(self) -> float:
        return self.number('revenueGrowthRate')

    @property
    def ebitda_margin(self) -> float:
        return self.number('ebitdaMargin')

    @property
    def sales_marketing_expenses(self) -> float:
        return self.number('salesMarketingExpenses')

    @property
    def new_customers(self) -> float:
        return self.number('newCustomers')

    # === CASH ===

    @property
    def current_cash(self) -> float:
        return self.number('currentCash')

    @property
    def monthly_burn_rate(self) -> float:
        return self.number('monthlyBurnRate')


class BaseCalculator:
    """
    Base class providing common calculation utilities.

    All calculator classes inherit from this to access shared
    mathematical operations and error handling.
    """

    @staticmethod
    def safe_divide(numerator: Union[int, float], denominator: Union[int, float],
                    default: float = 0.0, decimal_places: Optional[int] = None) -> float:
        """
        Perform safe division with default value for zero denominator.

        Args:
            numerator: The number to divide
            denominator: The number to divide by
            default: Value to return if denominator is 0
            decimal_places: Round the result when given

        Returns:
            Division result, or default if denominator is 0
        """
        try:
            if denominator == 0:
                return default
            result = float(numerator) / float(denominator)
            return round(result, decimal_places) if decimal_places is not None else result
        except (TypeError, ValueError) as e:
            logger.warning(f"safe_divide error: {e}, returning default {default}")
            return default

    @staticmethod
    def safe_percentage(numerator: Union[int, float], denominator: Union[int, float],
                        default: float = 0.0, decimal_places: Optional[int] = None) -> float:
        """
        Calculate percentage with safe division.

        Returns:
            Percentage (0-100), or default if denominator is 0
        """
        try:
            if denominator == 0:
                return default
            result = (float(numerator) / float(denominator)) * 100
            return round(result, decimal_places) if decimal_places is not None else result
        except (TypeError, ValueError) as e:
            logger.warning(f"safe_percentage error: {e}, returning default {default}")
            return default

    @staticmethod
    def safe_round(value: Union[int, float], decimal_places: int = 2) -> float:
        """
        Safely round a numeric value.

        Returns:
            Rounded value, 0.0 if value is not numeric; infinities pass through
        """
        try:
            value = float(value)
            if value in (float('inf'), float('-inf')):
                return value
            return round(value, decimal_places)
        except (TypeError, ValueError) as e:
            logger.warning(f"safe_round error: {e}, returning 0.0")
            return 0.0

    @staticmethod
    def as_decimal_rate(rate: float) -> float:
        """Accept rates as decimal (0.05) or percentage (5) and return the decimal"""
        return rate / 100 if rate > 1 else rate

    @staticmethod
    def validate_input(calc_input: FinanceInput) -> bool:
        """
        Validate that FinanceInput has required data.

        Returns:
            True if input is valid, False otherwise
        """
        if not isinstance(calc_input, FinanceInput):
            logger.error("Input must be FinanceInput instance")
            return False

        if not isinstance(calc_input.raw_record, dict):
            logger.error("raw_record must be a dictionary")
            return False

        return True
