"""
Lifetime Value Calculators

Customer lifetime value (LTV) and its relation to acquisition cost.
Churn and expansion rates may be given as a decimal (0.05) or a
percentage (5); anything above 1 is treated as a percentage.
"""

from typing import Any, Dict
import logging

from .base_calculators import BaseCalculator

logger = logging.getLogger(__name__)

INFINITY = float('inf')


class LifetimeValueCalculators(BaseCalculator):
    """Customer lifetime value calculation functions"""

    @staticmethod
    def calculate_ltv(arpu: float, gross_margin: float, churn_rate: float) -> float:
        """
        Customer lifetime value.

        Formula: (arpu * gross_margin / 100) / monthly churn

        Args:
            arpu: Average monthly revenue per user
            gross_margin: Gross margin percentage
            churn_rate: Monthly churn, decimal or percentage

        Returns:
            float: inf with zero churn
        """
        if churn_rate == 0:
            return INFINITY
        churn = LifetimeValueCalculators.as_decimal_rate(churn_rate)
        return (arpu * (gross_margin / 100)) / churn

    @staticmethod
    def calculate_ltv_by_lifespan(arpu: float, gross_margin: float, lifespan_months: float) -> float:
        """Formula: arpu * gross_margin / 100 * lifespan_months"""
        return arpu * (gross_margin / 100) * lifespan_months

    @staticmethod
    def calculate_ltv_cac_ratio(ltv: float, cac: float) -> float:
        return LifetimeValueCalculators.safe_divide(ltv, cac, default=INFINITY)

    @staticmethod
    def calculate_average_customer_lifespan(churn_rate: float) -> float:
        """Average lifespan in months: 1 / monthly churn"""
        if churn_rate == 0:
            return INFINITY
        return 1 / LifetimeValueCalculators.as_decimal_rate(churn_rate)

    @staticmethod
    def analyze_ltv_health(ltv: float, cac: float, industry: str = 'saas') -> Dict[str, Any]:
        """
        Rate LTV against CAC.

        SaaS is healthy at 3:1, other industries at 2:1.
        """
        ratio = LifetimeValueCalculators.calculate_ltv_cac_ratio(ltv, cac)
        healthy_threshold = 3 if industry == 'saas' else 2

        if ratio >= 5:
            recommendation = 'Outstanding unit economics. Consider investing more in customer acquisition.'
        elif ratio >= 3:
            recommendation = 'Strong unit economics. Business model is sustainable.'
        elif ratio >= 2:
            recommendation = 'Acceptable unit economics, but there is room for improvement.'
        elif ratio >= 1:
            recommendation = 'Concerning unit economics. Focus on increasing LTV or reducing CAC.'
        else:
            recommendation = 'Critical: Business is losing money on each customer. Immediate action required.'

        return {
            'ltvCacRatio': ratio,
            'isHealthy': ratio >= healthy_threshold,
            'benchmark': '3:1 (SaaS industry standard)' if industry == 'saas' else '2:1',
            'recommendation': recommendation,
        }

    @staticmethod
    def calculate_ltv_with_expansion(base_ltv: float, expansion_rate: float) -> float:
        """Formula: base_ltv * (1 + expansion)"""
        return base_ltv * (1 + LifetimeValueCalculators.as_decimal_rate(expansion_rate))

    @staticmethod
    def project_ltv_with_expansion(initial_arpu: float, gross_margin: float, churn_rate: float,
                                   monthly_expansion_rate: float, months: int) -> float:
        """
        Month-by-month LTV with survival probability and ARPU expansion.

        Formula: sum over m of arpu_m * gross_margin / 100 * retention ** m,
                 with arpu_{m+1} = arpu_m * (1 + expansion)
        """
        churn = LifetimeValueCalculators.as_decimal_rate(churn_rate)
        expansion = LifetimeValueCalculators.as_decimal_rate(monthly_expansion_rate)
        retention = 1 - churn

        total_value = 0.0
        arpu = initial_arpu
        for month in range(int(months)):
            total_value += arpu * (gross_margin / 100) * (retention ** month)
            arpu *= 1 + expansion

        return total_value
