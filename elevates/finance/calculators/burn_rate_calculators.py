"""
Burn Rate Calculators

Cash burn from categorized transactions. A transaction is a dict with
'type' ('income' or 'expense') and 'amountInBaseCurrency'.
Positive burn means cash is leaving the business.
"""

from typing import Any, Dict, List, Optional
import logging

from .base_calculators import BaseCalculator

logger = logging.getLogger(__name__)


def _sum_transactions(transactions: List[Dict[str, Any]]) -> float:
    return sum(float(t.get('amountInBaseCurrency') or 0) for t in transactions)


def _average(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class BurnRateCalculators(BaseCalculator):
    """Cash burn calculation functions"""

    @staticmethod
    def calculate_burn_rate(transactions: List[Dict[str, Any]], period: Optional[str] = None) -> Dict[str, Any]:
        """
        Cash flow summary for one period.

        Formula: burn = cash_out - cash_in

        Returns:
            dict: CashFlow with camelCase keys; beginning balance and runway are 0
                  since neither can be derived from transactions alone
        """
        cash_in = _sum_transactions([t for t in transactions if t.get('type') == 'income'])
        cash_out = _sum_transactions([t for t in transactions if t.get('type') == 'expense'])
        beginning_balance = 0.0

        return {
            'beginningBalance': beginning_balance,
            'cashIn': cash_in,
            'cashOut': cash_out,
            'endingBalance': beginning_balance + cash_in - cash_out,
            'burnRate': cash_out - cash_in,
            'runway': 0,
            'period': period or '',
        }

    @staticmethod
    def calculate_net_burn_rate(cash_in: float, cash_out: float,
                                one_time_revenue: float = 0, one_time_expenses: float = 0) -> float:
        """Recurring burn, excluding one-time items"""
        return (cash_out - one_time_expenses) - (cash_in - one_time_revenue)

    @staticmethod
    def calculate_gross_burn_rate(transactions: List[Dict[str, Any]]) -> float:
        """Total cash out"""
        return _sum_transactions([t for t in transactions if t.get('type') == 'expense'])

    @staticmethod
    def analyze_burn_rate_trend(burn_rates: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Compare the average burn of the first and second half of a series.

        Args:
            burn_rates: [{'period': 'YYYY-MM', 'burnRate': float}] in chronological order

        Returns:
            dict: trend (increasing|decreasing|stable), averageBurnRate,
                  burnRateChange (percent), recommendation
        """
        values = [float(entry.get('burnRate') or 0) for entry in burn_rates]

        if len(values) < 2:
            return {
                'trend': 'stable',
                'averageBurnRate': values[0] if values else 0.0,
                'burnRateChange': 0.0,
                'recommendation': 'Need more historical data to analyze trend.',
            }

        middle = len(values) // 2
        first_half_avg = _average(values[:middle])
        second_half_avg = _average(values[middle:])

        change = 0.0
        if first_half_avg != 0:
            change = (second_half_avg - first_half_avg) / abs(first_half_avg) * 100

        if abs(change) < 10:
            trend = 'stable'
            recommendation = 'Burn rate is stable. Monitor for any significant changes.'
        elif change > 0:
            trend = 'increasing'
            recommendation = 'Warning: Burn rate is increasing. Review expenses and consider cost optimization.'
        else:
            trend = 'decreasing'
            recommendation = 'Positive: Burn rate is decreasing. Improving cash efficiency.'

        return {
            'trend': trend,
            'averageBurnRate': _average(values),
            'burnRateChange': change,
            'recommendation': recommendation,
        }

    @staticmethod
    def calculate_burn_multiple(burn_rate: float, net_new_arr: float) -> float:
        """
        Capital efficiency, lower is better.

        Formula: |burn| / net new ARR

        Returns:
            float: inf when no ARR was added
        """
        if net_new_arr <= 0:
            return float('inf')
        return abs(burn_rate) / net_new_arr

    @staticmethod
    def analyze_burn_multiple(burn_multiple: float) -> Dict[str, Any]:
        if burn_multiple < 1:
            return {
                'isHealthy': True,
                'rating': 'excellent',
                'recommendation': 'Outstanding capital efficiency. You are generating more ARR than you are burning.',
            }
        if burn_multiple < 1.5:
            return {
                'isHealthy': True,
                'rating': 'good',
                'recommendation': 'Good capital efficiency. Sustainable burn rate for growth.',
            }
        if burn_multiple < 2:
            return {
                'isHealthy': True,
                'rating': 'acceptable',
                'recommendation': 'Acceptable burn multiple, but there is room for improvement.',
            }
        if burn_multiple < 3:
            return {
                'isHealthy': False,
                'rating': 'poor',
                'recommendation': 'High burn multiple. Consider optimizing spend or accelerating revenue growth.',
            }
        return {
            'isHealthy': False,
            'rating': 'critical',
            'recommendation': 'Critical burn multiple. Immediate action required to reduce burn or increase revenue.',
        }

    @staticmethod
    def project_burn_rate(current_burn_rate: float, planned_hires: float, average_salary: float,
                          planned_marketing_increase: float, other_expense_changes: float = 0) -> float:
        """Formula: current + hires * salary + marketing increase + other changes"""
        return (current_burn_rate + planned_hires * average_salary
                + planned_marketing_increase + other_expense_changes)
