"""
Runway Calculators

Months of cash remaining at the current burn, scenarios and projections.
A burn of zero or less means the business is breakeven or profitable and
the runway is infinite.
"""

import math
from typing import Any, Dict, List, Optional
import logging

import pandas as pd

from .base_calculators import BaseCalculator
from ...utils.timezone_utils import now_in_timezone

logger = logging.getLogger(__name__)

INFINITY = float('inf')
MAX_PROJECTION_MONTHS = 120


class RunwayCalculators(BaseCalculator):
    """Cash runway calculation functions"""

    @staticmethod
    def calculate_runway(current_cash: float, monthly_burn_rate: float) -> float:
        """
        Formula: current_cash / monthly_burn_rate

        Returns:
            float: inf when burn <= 0, 0 when cash <= 0
        """
        if monthly_burn_rate <= 0:
            return INFINITY
        if current_cash <= 0:
            return 0.0
        return current_cash / monthly_burn_rate

    @staticmethod
    def calculate_runway_with_growth(current_cash: float, monthly_burn: float,
                                     monthly_revenue_growth: float) -> float:
        """
        Simulate month by month, reducing burn by revenue growth each month.

        Returns:
            float: months until cash runs out (capped at 120), inf if the
                   business turns profitable while cash remains
        """
        if monthly_burn <= 0:
            return INFINITY

        cash = current_cash
        burn = monthly_burn
        months = 0
        while cash > 0 and months < MAX_PROJECTION_MONTHS:
            cash -= burn
            months += 1
            burn = max(0.0, burn - monthly_revenue_growth)
            if burn <= 0 and cash > 0:
                return INFINITY

        return float(months)

    @staticmethod
    def calculate_runway_date(runway: float) -> Optional[str]:
        """Date (YYYY-MM-DD) the cash runs out, None for infinite runway"""
        if math.isinf(runway):
            return None
        today = pd.Timestamp(now_in_timezone().date())
        return (today + pd.DateOffset(months=int(math.floor(runway)))).date().isoformat()

    @staticmethod
    def analyze_runway_health(runway: float) -> Dict[str, Any]:
        if math.isinf(runway):
            return {
                'status': 'excellent',
                'urgency': 'low',
                'recommendation': 'Company is profitable or breakeven. No immediate funding concerns.',
                'fundingNeeded': False,
            }
        if runway < 3:
            return {
                'status': 'critical',
                'urgency': 'immediate',
                'recommendation': ('Critical: Less than 3 months of runway. Immediate action required - '
                                   'secure funding or drastically cut costs.'),
                'fundingNeeded': True,
            }
        if runway < 6:
            return {
                'status': 'warning',
                'urgency': 'high',
                'recommendation': ('Warning: Less than 6 months of runway. Start fundraising process '
                                   'immediately or implement cost reduction measures.'),
                'fundingNeeded': True,
            }
        if runway < 12:
            return {
                'status': 'healthy',
                'urgency': 'medium',
                'recommendation': ('Healthy runway, but consider starting fundraising conversations '
                                   'if growth requires capital.'),
                'fundingNeeded': False,
            }
        return {
            'status': 'excellent',
            'urgency': 'low',
            'recommendation': 'Strong cash position. Focus on growth and efficient capital deployment.',
            'fundingNeeded': False,
        }

    @staticmethod
    def calculate_cash_needed(current_cash: float, monthly_burn_rate: float, target_runway_months: float) -> float:
        """Additional cash needed to reach the target runway, 0 if already profitable"""
        if monthly_burn_rate <= 0:
            return 0.0
        return max(0.0, monthly_burn_rate * target_runway_months - current_cash)

    @staticmethod
    def calculate_runway_extension(current_runway: float, new_funding: float,
                                   monthly_burn_rate: float) -> Dict[str, Any]:
        """Runway after raising new_funding at the same burn"""
        if math.isinf(current_runway) or monthly_burn_rate <= 0:
            return {'newRunway': INFINITY, 'extensionMonths': INFINITY, 'newRunwayDate': None}

        additional_months = new_funding / monthly_burn_rate
        new_runway = current_runway + additional_months
        return {
            'newRunway': new_runway,
            'extensionMonths': additional_months,
            'newRunwayDate': RunwayCalculators.calculate_runway_date(new_runway),
        }

    @staticmethod
    def calculate_runway_scenarios(current_cash: float, current_burn: float) -> Dict[str, float]:
        """Base, optimistic (20% less burn) and pessimistic (20% more burn) runway"""
        return {
            'base': RunwayCalculators.calculate_runway(current_cash, current_burn),
            'optimistic': RunwayCalculators.calculate_runway(current_cash, current_burn * 0.8),
            'pessimistic': RunwayCalculators.calculate_runway(current_cash, current_burn * 1.2),
        }

    @staticmethod
    def calculate_zero_based_runway(current_cash: float, total_burn: float,
                                    essential_expenses_percentage: float) -> float:
        """Runway if only the essential share of expenses is kept"""
        essential_burn = total_burn * (essential_expenses_percentage / 100)
        return RunwayCalculators.calculate_runway(current_cash, essential_burn)

    @staticmethod
    def project_cash_over_time(initial_cash: float, monthly_burn_rate: float, revenue_growth: float,
                               expense_growth_rate: float, months: int) -> List[Dict[str, float]]:
        """
        Month-by-month cash projection.

        Each month: cash -= burn; burn = burn * (1 + expense_growth_rate / 100) - revenue_growth.
        Stops after the month the cash runs out.
        """
        projections = []
        cash = initial_cash
        burn = monthly_burn_rate

        for month in range(int(months) + 1):
            projections.append({
                'month': month,
                'cash': cash,
                'burnRate': burn,
                'runway': RunwayCalculators.calculate_runway(cash, burn),
            })
            cash -= burn
            burn = burn * (1 + expense_growth_rate / 100) - revenue_growth
            if cash <= 0:
                break

        return projections
