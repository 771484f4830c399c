"""
Acquisition Calculators

Customer acquisition cost (CAC) and how quickly it is paid back.
"""

from typing import Any, Dict
import logging

from .base_calculators import BaseCalculator, FinanceInput

logger = logging.getLogger(__name__)


class AcquisitionCalculators(BaseCalculator):
    """Customer acquisition cost calculation functions"""

    @staticmethod
    def calculate_cac(sales_marketing_expenses: float, new_customers: float) -> float:
        """
        Customer acquisition cost.

        Formula: sales & marketing expenses / new customers acquired

        Returns:
            float: 0 when no customers were acquired
        """
        return AcquisitionCalculators.safe_divide(sales_marketing_expenses, new_customers)

    @staticmethod
    def calculate_cac_from_input(calc_input: FinanceInput) -> float:
        """CAC from a request payload ('salesMarketingExpenses', 'newCustomers')"""
        if not AcquisitionCalculators.validate_input(calc_input):
            return 0.0
        return AcquisitionCalculators.calculate_cac(
            calc_input.sales_marketing_expenses, calc_input.new_customers)

    @staticmethod
    def calculate_cac_by_channel(channel_expenses: Dict[str, float],
                                 customers_by_channel: Dict[str, float]) -> Dict[str, float]:
        """CAC per channel; channels without customers get 0"""
        return {
            channel: AcquisitionCalculators.safe_divide(spend, customers_by_channel.get(channel) or 0)
            for channel, spend in channel_expenses.items()
        }

    @staticmethod
    def calculate_blended_cac(marketing_spend: float, sales_spend: float, new_customers: float) -> float:
        return AcquisitionCalculators.calculate_cac(marketing_spend + sales_spend, new_customers)

    @staticmethod
    def calculate_cac_payback_period(cac: float, arpu: float, gross_margin: float) -> float:
        """
        Months needed to recover CAC from gross profit.

        Formula: cac / (arpu * gross_margin / 100)

        Returns:
            float: inf when ARPU or gross margin is zero
        """
        if arpu == 0 or gross_margin == 0:
            return float('inf')
        return cac / (arpu * (gross_margin / 100))

    @staticmethod
    def calculate_cac_efficiency(cac: float, ltv: float) -> Dict[str, Any]:
        """
        Rate the LTV:CAC ratio.

        Bands: >= 3 excellent, >= 2 good, >= 1 warning, below 1 critical.
        A zero CAC gives an infinite ratio.
        """
        ratio = AcquisitionCalculators.safe_divide(ltv, cac, default=float('inf'))

        if ratio >= 3:
            return {
                'ratio': ratio,
                'isHealthy': True,
                'recommendation': 'Excellent LTV:CAC ratio. Consider increasing marketing spend to accelerate growth.',
            }
        if ratio >= 2:
            return {
                'ratio': ratio,
                'isHealthy': True,
                'recommendation': 'Good LTV:CAC ratio. Unit economics are healthy.',
            }
        if ratio >= 1:
            return {
                'ratio': ratio,
                'isHealthy': False,
                'recommendation': ('Warning: Low LTV:CAC ratio. Focus on reducing acquisition costs '
                                   'or increasing customer lifetime value.'),
            }
        return {
            'ratio': ratio,
            'isHealthy': False,
            'recommendation': ('Critical: Negative unit economics. Each customer costs more to acquire '
                               'than they generate in lifetime value.'),
        }
