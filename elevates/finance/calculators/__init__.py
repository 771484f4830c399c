"""
Finance Calculators Module

This module contains all SaaS financial metric calculations, organized by metric family.
Each calculator is a class of static methods with no shared state.

=== CALCULATOR ORGANIZATION ===

📊 BASE_CALCULATORS.PY
- FinanceInput: Request payload wrapper with typed property access
- BaseCalculator: Common utilities (safe_divide, safe_percentage, safe_round, ...)

💰 REVENUE_CALCULATORS.PY
- calculate_mrr: MRR / ARR, currency breakdown and MRR movements
- categorize_subscription_movements: new / expansion / contraction / churned
- calculate_mrr_growth: Month-over-month MRR growth %
- calculate_quick_ratio: (new + expansion) / (contraction + churned)

🎯 ACQUISITION_CALCULATORS.PY
- calculate_cac: Sales & marketing spend / new customers
- calculate_cac_by_channel, calculate_blended_cac
- calculate_cac_payback_period: CAC / (ARPU * gross margin)
- calculate_cac_efficiency: LTV:CAC rating

💎 LIFETIME_VALUE_CALCULATORS.PY
- calculate_ltv: (ARPU * gross margin) / churn
- calculate_ltv_by_lifespan, calculate_ltv_cac_ratio, calculate_average_customer_lifespan
- analyze_ltv_health: Rating against the 3:1 SaaS benchmark
- calculate_ltv_with_expansion, project_ltv_with_expansion

🔥 BURN_RATE_CALCULATORS.PY
- calculate_burn_rate: Cash out - cash in from transactions
- calculate_net_burn_rate, calculate_gross_burn_rate
- analyze_burn_rate_trend: First half vs second half of a series
- calculate_burn_multiple, analyze_burn_multiple, project_burn_rate

🛫 RUNWAY_CALCULATORS.PY
- calculate_runway: Cash / monthly burn
- calculate_runway_with_growth, calculate_runway_date, analyze_runway_health
- calculate_cash_needed, calculate_runway_extension, calculate_runway_scenarios
- calculate_zero_based_runway, project_cash_over_time

📈 SAAS_METRICS_CALCULATORS.PY
- calculate_saas_metrics: Full metric set from one payload
- calculate_magic_number, calculate_rule_of_40, calculate_nrr, calculate_grr
- analyze_magic_number, analyze_rule_of_40, analyze_nrr, analyze_quick_ratio
- calculate_monthly_churn_rate, calculate_annual_churn_rate,
  calculate_revenue_churn_rate, calculate_expansion_rate

=== USAGE ===

from elevates.finance.calculators import FinanceInput, SaaSMetricsCalculators

calc_input = FinanceInput(raw_record=request_json)
metrics = SaaSMetricsCalculators.calculate_saas_metrics(calc_input)

Infinite results are returned as float('inf'); the API layer serializes them as null.
"""

from .base_calculators import FinanceInput, BaseCalculator
from .revenue_calculators import RevenueCalculators
from .acquisition_calculators import AcquisitionCalculators
from .lifetime_value_calculators import LifetimeValueCalculators
from .burn_rate_calculators import BurnRateCalculators
from .runway_calculators import RunwayCalculators
from .saas_metrics_calculators import SaaSMetricsCalculators

__all__ = [
    'FinanceInput',
    'BaseCalculator',
    'RevenueCalculators',
    'AcquisitionCalculators',
    'LifetimeValueCalculators',
    'BurnRateCalculators',
    'RunwayCalculators',
    'SaaSMetricsCalculators',
]
