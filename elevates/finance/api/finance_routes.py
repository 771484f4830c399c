"""
Finance Routes

Stateless SaaS metric endpoints: the dashboard posts its figures and gets the
calculated metrics back. Infinite values are returned as null.
"""

import logging

from flask import Blueprint, jsonify

from ...auth import enforce_session
from ...exceptions import ValidationError
from ...integrations.services import stripe_service
from ...utils.http_utils import error_response, get_json_body, json_safe
from ..calculators import (
    AcquisitionCalculators,
    BurnRateCalculators,
    FinanceInput,
    LifetimeValueCalculators,
    RevenueCalculators,
    RunwayCalculators,
    SaaSMetricsCalculators,
)
from ..services.cashflow_service import get_current_period, summarize_cashflow

logger = logging.getLogger(__name__)

# Create Blueprint for finance routes
finance_bp = Blueprint('finance', __name__, url_prefix='/api/finance')
finance_bp.before_request(enforce_session)


def _finance_input(*required):
    """Parse the body into FinanceInput, checking the required keys are present"""
    data = get_json_body()
    missing = [key for key in required if data.get(key) is None]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    return FinanceInput(raw_record=data, period=data.get('period'))


def _list_field(data, key, required=True):
    value = data.get(key)
    if value is None and not required:
        return None
    if not isinstance(value, list):
        raise ValidationError(f"'{key}' must be a list")
    return value


@finance_bp.route('/mrr', methods=['POST'])
def calculate_mrr():
    """MRR / ARR and movements from posted subscriptions, or live from Stripe with {"source": "stripe"}"""
    try:
        calc_input = _finance_input()
        data = calc_input.raw_record
        if data.get('source') == 'stripe':
            subscriptions = stripe_service.get_subscriptions()
        else:
            subscriptions = _list_field(data, 'subscriptions')
        previous = _list_field(data, 'previousSubscriptions', required=False)
        previous_mrr = calc_input.number('previousMRR') if data.get('previousMRR') is not None else None

        metrics = RevenueCalculators.calculate_mrr(subscriptions, previous, previous_mrr)
        metrics['quickRatio'] = RevenueCalculators.calculate_quick_ratio(
            metrics['newMRR'], metrics['expansionMRR'], metrics['contractionMRR'], metrics['churnedMRR'])

        return jsonify({'success': True, 'metrics': json_safe(metrics)})
    except Exception as e:
        return error_response(e, 'calculating MRR')


@finance_bp.route('/cac', methods=['POST'])
def calculate_cac():
    try:
        calc_input = _finance_input('salesMarketingExpenses', 'newCustomers')
        data = calc_input.raw_record
        cac = AcquisitionCalculators.calculate_cac_from_input(calc_input)

        result = {'cac': cac}
        if data.get('averageRevenuePerUser') is not None and data.get('grossMargin') is not None:
            result['paybackMonths'] = AcquisitionCalculators.calculate_cac_payback_period(
                cac, calc_input.arpu, calc_input.gross_margin)
        if data.get('ltv') is not None:
            result['efficiency'] = AcquisitionCalculators.calculate_cac_efficiency(cac, calc_input.ltv)
        if isinstance(data.get('channelExpenses'), dict):
            result['byChannel'] = AcquisitionCalculators.calculate_cac_by_channel(
                data['channelExpenses'], data.get('customersByChannel') or {})

        return jsonify({'success': True, 'metrics': json_safe(result)})
    except Exception as e:
        return error_response(e, 'calculating CAC')


@finance_bp.route('/ltv', methods=['POST'])
def calculate_ltv():
    try:
        calc_input = _finance_input('averageRevenuePerUser', 'grossMargin', 'churnRate')
        data = calc_input.raw_record
        ltv = LifetimeValueCalculators.calculate_ltv(
            calc_input.arpu, calc_input.gross_margin, calc_input.churn_rate)

        result = {
            'ltv': ltv,
            'averageLifespanMonths': LifetimeValueCalculators.calculate_average_customer_lifespan(
                calc_input.churn_rate),
        }
        if data.get('cac') is not None:
            result['health'] = LifetimeValueCalculators.analyze_ltv_health(
                ltv, calc_input.cac, data.get('industry') or 'saas')
        if data.get('expansionRate') is not None:
            result['ltvWithExpansion'] = LifetimeValueCalculators.calculate_ltv_with_expansion(
                ltv, calc_input.number('expansionRate'))
        if data.get('projectionMonths') is not None:
            result['projectedLtv'] = LifetimeValueCalculators.project_ltv_with_expansion(
                calc_input.arpu, calc_input.gross_margin, calc_input.churn_rate,
                calc_input.number('monthlyExpansionRate'), int(calc_input.number('projectionMonths')))

        return jsonify({'success': True, 'metrics': json_safe(result)})
    except Exception as e:
        return error_response(e, 'calculating LTV')


@finance_bp.route('/burn-rate', methods=['POST'])
def calculate_burn_rate():
    try:
        calc_input = _finance_input()
        data = calc_input.raw_record
        transactions = _list_field(data, 'transactions')

        cashflow = BurnRateCalculators.calculate_burn_rate(
            transactions, calc_input.period or get_current_period())
        result = {
            'cashFlow': cashflow,
            'grossBurnRate': BurnRateCalculators.calculate_gross_burn_rate(transactions),
        }
        if data.get('netNewARR') is not None:
            multiple = BurnRateCalculators.calculate_burn_multiple(
                cashflow['burnRate'], calc_input.number('netNewARR'))
            result['burnMultiple'] = multiple
            result['burnMultipleAnalysis'] = BurnRateCalculators.analyze_burn_multiple(multiple)

        return jsonify({'success': True, 'metrics': json_safe(result)})
    except Exception as e:
        return error_response(e, 'calculating burn rate')


@finance_bp.route('/runway', methods=['POST'])
def calculate_runway():
    try:
        calc_input = _finance_input('currentCash', 'monthlyBurnRate')
        data = calc_input.raw_record
        cash = calc_input.current_cash
        burn = calc_input.monthly_burn_rate

        runway = RunwayCalculators.calculate_runway(cash, burn)
        result = {
            'runway': runway,
            'runwayDate': RunwayCalculators.calculate_runway_date(runway),
            'health': RunwayCalculators.analyze_runway_health(runway),
            'scenarios': RunwayCalculators.calculate_runway_scenarios(cash, burn),
        }
        if data.get('monthlyRevenueGrowth') is not None:
            result['runwayWithGrowth'] = RunwayCalculators.calculate_runway_with_growth(
                cash, burn, calc_input.number('monthlyRevenueGrowth'))
        if data.get('targetRunwayMonths') is not None:
            result['cashNeeded'] = RunwayCalculators.calculate_cash_needed(
                cash, burn, calc_input.number('targetRunwayMonths'))
        if data.get('newFunding') is not None:
            result['extension'] = RunwayCalculators.calculate_runway_extension(
                runway, calc_input.number('newFunding'), burn)
        if data.get('essentialExpensesPercentage') is not None:
            result['zeroBasedRunway'] = RunwayCalculators.calculate_zero_based_runway(
                cash, burn, calc_input.number('essentialExpensesPercentage'))
        if data.get('projectionMonths') is not None:
            result['projection'] = RunwayCalculators.project_cash_over_time(
                cash, burn, calc_input.number('monthlyRevenueGrowth'),
                calc_input.number('expenseGrowthRate'), int(calc_input.number('projectionMonths')))

        return jsonify({'success': True, 'metrics': json_safe(result)})
    except Exception as e:
        return error_response(e, 'calculating runway')


@finance_bp.route('/saas-metrics', methods=['POST'])
def calculate_saas_metrics():
    """Full SaaS metric set with a rating for each metric"""
    try:
        calc_input = _finance_input()
        metrics = SaaSMetricsCalculators.calculate_saas_metrics(calc_input)
        analysis = {
            'magicNumber': SaaSMetricsCalculators.analyze_magic_number(metrics['magicNumber']),
            'ruleOf40': SaaSMetricsCalculators.analyze_rule_of_40(metrics['ruleOf40']),
            'nrr': SaaSMetricsCalculators.analyze_nrr(metrics['nrr']),
            'quickRatio': SaaSMetricsCalculators.analyze_quick_ratio(metrics['quickRatio']),
        }
        return jsonify({'success': True, 'metrics': json_safe(metrics), 'analysis': json_safe(analysis)})
    except Exception as e:
        return error_response(e, 'calculating SaaS metrics')


@finance_bp.route('/cashflow', methods=['POST'])
def cashflow():
    """Monthly cash flow and burn trend"""
    try:
        data = get_json_body()
        summary = summarize_cashflow(_list_field(data, 'transactions'))
        return jsonify({'success': True, 'cashflow': json_safe(summary)})
    except Exception as e:
        return error_response(e, 'summarizing cash flow')
