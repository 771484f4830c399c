"""
SaaS Metrics Calculators

Composite SaaS health metrics: LTV:CAC, magic number, rule of 40,
net / gross revenue retention and quick ratio, with rating bands for each.
"""

from typing import Any, Dict
import logging

from .base_calculators import BaseCalculator, FinanceInput
from .revenue_calculators import RevenueCalculators
from ...utils.timezone_utils import current_period, utc_now_iso

logger = logging.getLogger(__name__)


class SaaSMetricsCalculators(BaseCalculator):
    """SaaS health metric calculation functions"""

    @staticmethod
    def calculate_saas_metrics(calc_input: FinanceInput) -> Dict[str, Any]:
        """
        Calculate the full SaaS metric set from one payload.

        Args:
            calc_input: raw_record with cac, ltv, newMRR, expansionMRR, contractionMRR,
                        churnedMRR, previousMRR, revenueGrowthRate, ebitdaMargin and
                        salesMarketingExpenses

        Returns:
            dict: SaaSMetrics with camelCase keys
        """
        if not SaaSMetricsCalculators.validate_input(calc_input):
            return {}

        cac = calc_input.cac
        ltv = calc_input.ltv

        return {
            'cac': cac,
            'ltv': ltv,
            'ltvCacRatio': ltv / cac if cac > 0 else 0.0,
            'magicNumber': SaaSMetricsCalculators.calculate_magic_number(
                calc_input.new_mrr, calc_input.sales_marketing_expenses),
            'ruleOf40': SaaSMetricsCalculators.calculate_rule_of_40(
                calc_input.revenue_growth_rate, calc_input.ebitda_margin),
            'nrr': SaaSMetricsCalculators.calculate_nrr(
                calc_input.previous_mrr, calc_input.expansion_mrr,
                calc_input.contraction_mrr, calc_input.churned_mrr),
            'grr': SaaSMetricsCalculators.calculate_grr(
                calc_input.previous_mrr, calc_input.contraction_mrr, calc_input.churned_mrr),
            'quickRatio': RevenueCalculators.calculate_quick_ratio(
                calc_input.new_mrr, calc_input.expansion_mrr,
                calc_input.contraction_mrr, calc_input.churned_mrr),
            'period': calc_input.period or current_period(),
            'calculatedAt': utc_now_iso(),
        }

    # === SALES EFFICIENCY ===

    @staticmethod
    def calculate_magic_number(net_new_mrr: float, sales_marketing_spend: float) -> float:
        """
        Formula: (net new MRR * 12) / sales & marketing spend

        Returns:
            float: 0 when there was no spend
        """
        return SaaSMetricsCalculators.safe_divide(net_new_mrr * 12, sales_marketing_spend)

    @staticmethod
    def analyze_magic_number(magic_number: float) -> Dict[str, Any]:
        if magic_number >= 1.0:
            return {
                'isHealthy': True,
                'rating': 'excellent',
                'recommendation': ('Excellent sales efficiency. Every $1 spent on sales/marketing '
                                   'generates $1+ in ARR.'),
            }
        if magic_number >= 0.75:
            return {
                'isHealthy': True,
                'rating': 'good',
                'recommendation': 'Good sales efficiency. Strong unit economics for a growth company.',
            }
        if magic_number >= 0.5:
            return {
                'isHealthy': True,
                'rating': 'acceptable',
                'recommendation': 'Acceptable efficiency, but there is room for improvement.',
            }
        return {
            'isHealthy': False,
            'rating': 'poor',
            'recommendation': 'Low sales efficiency. Consider optimizing go-to-market strategy or reducing CAC.',
        }

    # === GROWTH VS PROFITABILITY ===

    @staticmethod
    def calculate_rule_of_40(revenue_growth_rate: float, ebitda_margin: float) -> float:
        """Formula: revenue growth % + EBITDA margin %"""
        return revenue_growth_rate + ebitda_margin

    @staticmethod
    def analyze_rule_of_40(score: float) -> Dict[str, Any]:
        if score >= 40:
            return {
                'isHealthy': True,
                'rating': 'excellent',
                'recommendation': ('Excellent balance of growth and profitability. '
                                   'Meeting the Rule of 40 benchmark.'),
            }
        if score >= 25:
            return {
                'isHealthy': True,
                'rating': 'good',
                'recommendation': ('Good performance, but below Rule of 40 target. '
                                   'Consider optimizing for growth or profitability.'),
            }
        return {
            'isHealthy': False,
            'rating': 'below_target',
            'recommendation': 'Below Rule of 40 target. Focus on accelerating growth or improving margins.',
        }

    # === RETENTION ===

    @staticmethod
    def calculate_nrr(starting_mrr: float, expansion_mrr: float,
                      contraction_mrr: float, churned_mrr: float) -> float:
        """
        Net revenue retention.

        Formula: (start + expansion - contraction - churned) / start * 100
        """
        ending_mrr = starting_mrr + expansion_mrr - contraction_mrr - churned_mrr
        return SaaSMetricsCalculators.safe_percentage(ending_mrr, starting_mrr)

    @staticmethod
    def analyze_nrr(nrr: float) -> Dict[str, Any]:
        if nrr >= 120:
            return {
                'isHealthy': True,
                'rating': 'world_class',
                'recommendation': 'World-class NRR. Expansion revenue more than offsets churn. This is exceptional.',
            }
        if nrr >= 110:
            return {
                'isHealthy': True,
                'rating': 'excellent',
                'recommendation': 'Excellent NRR. Strong expansion and low churn indicate product-market fit.',
            }
        if nrr >= 100:
            return {
                'isHealthy': True,
                'rating': 'good',
                'recommendation': 'Good NRR. Expansion roughly offsets churn. Room to improve.',
            }
        if nrr >= 90:
            return {
                'isHealthy': False,
                'rating': 'acceptable',
                'recommendation': ('Acceptable but below ideal. Focus on reducing churn or '
                                   'increasing expansion revenue.'),
            }
        return {
            'isHealthy': False,
            'rating': 'poor',
            'recommendation': 'Low NRR indicates high churn and low expansion. Immediate attention required.',
        }

    @staticmethod
    def calculate_grr(starting_mrr: float, contraction_mrr: float, churned_mrr: float) -> float:
        """
        Gross revenue retention.

        Formula: (start - contraction - churned) / start * 100
        """
        retained_mrr = starting_mrr - contraction_mrr - churned_mrr
        return SaaSMetricsCalculators.safe_percentage(retained_mrr, starting_mrr)

    @staticmethod
    def analyze_quick_ratio(quick_ratio: float) -> Dict[str, Any]:
        if quick_ratio >= 4:
            return {
                'isHealthy': True,
                'rating': 'excellent',
                'recommendation': 'Excellent growth efficiency. Adding revenue 4x faster than losing it.',
            }
        if quick_ratio >= 2:
            return {
                'isHealthy': True,
                'rating': 'good',
                'recommendation': 'Good growth efficiency. Healthy balance of acquisition and retention.',
            }
        if quick_ratio >= 1:
            return {
                'isHealthy': True,
                'rating': 'acceptable',
                'recommendation': 'Growth slightly outpacing churn, but there is room for improvement.',
            }
        return {
            'isHealthy': False,
            'rating': 'poor',
            'recommendation': 'Losing revenue faster than gaining. Focus on retention and expansion.',
        }

    # === CHURN ===

    @staticmethod
    def calculate_monthly_churn_rate(churned_customers: float, starting_customers: float) -> float:
        return SaaSMetricsCalculators.safe_percentage(churned_customers, starting_customers)

    @staticmethod
    def calculate_annual_churn_rate(monthly_churn_rate: float) -> float:
        """Formula: (1 - (1 - monthly / 100) ** 12) * 100"""
        monthly_retention = 1 - monthly_churn_rate / 100
        return (1 - monthly_retention ** 12) * 100

    @staticmethod
    def calculate_revenue_churn_rate(churned_mrr: float, starting_mrr: float) -> float:
        return SaaSMetricsCalculators.safe_percentage(churned_mrr, starting_mrr)

    @staticmethod
    def calculate_expansion_rate(expansion_mrr: float, starting_mrr: float) -> float:
        return SaaSMetricsCalculators.safe_percentage(expansion_mrr, starting_mrr)
