import datetime
import math
from unittest.mock import patch

from elevates.exceptions import ValidationError
from elevates.finance.calculators import (
    AcquisitionCalculators,
    BaseCalculator,
    BurnRateCalculators,
    FinanceInput,
    LifetimeValueCalculators,
    RevenueCalculators,
    RunwayCalculators,
    SaaSMetricsCalculators,
)
from elevates.finance.services.cashflow_service import summarize_cashflow
from tests.base import APITestCase, BaseTestCase

INF = float('inf')


def sub(sub_id, mrr, status='active', currency='GBP'):
    return {'id': sub_id, 'mrr': mrr, 'status': status, 'currency': currency}


class TestBaseCalculator(BaseTestCase):

    def test_safe_divide(self):
        self.assertEqual(BaseCalculator.safe_divide(10, 4), 2.5)
        self.assertEqual(BaseCalculator.safe_divide(10, 0), 0.0)
        self.assertEqual(BaseCalculator.safe_divide(10, 0, default=INF), INF)
        self.assertEqual(BaseCalculator.safe_divide(10, 3, decimal_places=2), 3.33)
        self.assertEqual(BaseCalculator.safe_divide('x', 3), 0.0)

    def test_safe_round_keeps_infinity(self):
        self.assertEqual(BaseCalculator.safe_round(2.456), 2.46)
        self.assertEqual(BaseCalculator.safe_round(INF), INF)
        self.assertEqual(BaseCalculator.safe_round(None), 0.0)

    def test_rates_accept_decimal_or_percentage(self):
        self.assertEqual(BaseCalculator.as_decimal_rate(0.05), 0.05)
        self.assertEqual(BaseCalculator.as_decimal_rate(5), 0.05)

    def test_finance_input_numbers(self):
        calc_input = FinanceInput(raw_record={'cac': '250', 'ltv': None, 'churnRate': 'n/a'})
        self.assertEqual(calc_input.cac, 250.0)
        self.assertEqual(calc_input.ltv, 0.0)
        self.assertEqual(calc_input.churn_rate, 0.0)


class TestRevenueCalculators(BaseTestCase):

    def test_mrr_counts_only_active_subscriptions(self):
        metrics = RevenueCalculators.calculate_mrr([
            sub('a', 100), sub('b', 50, currency='usd'), sub('c', 500, status='cancelled'),
        ])
        self.assertEqual(metrics['mrr'], 150.0)
        self.assertEqual(metrics['arr'], 1800.0)
        self.assertEqual(metrics['mrrByCurrency'], {'GBP': 100.0, 'USD': 50.0, 'EUR': 0.0})
        self.assertEqual(metrics['mrrGrowth'], 0.0)
        self.assertRegex(metrics['period'], r'^\d{4}-\d{2}$')

    def test_movements_between_snapshots(self):
        previous = [sub('keep', 100), sub('grow', 100), sub('shrink', 100), sub('leave', 80), sub('pause', 40)]
        current = [sub('keep', 100), sub('grow', 150), sub('shrink', 70), sub('pause', 40, status='paused'),
                   sub('fresh', 60)]

        metrics = RevenueCalculators.calculate_mrr(current, previous, previous_mrr=420)

        self.assertEqual(metrics['newMRR'], 60.0)
        self.assertEqual(metrics['expansionMRR'], 50.0)
        self.assertEqual(metrics['contractionMRR'], 30.0)
        self.assertEqual(metrics['churnedMRR'], 120.0)
        self.assertEqual(metrics['netNewMRR'], -40.0)
        self.assertEqual(metrics['mrr'], 380.0)
        self.assertAlmostEqual(metrics['mrrGrowth'], (380 - 420) / 420 * 100)

    def test_mrr_growth_from_zero(self):
        self.assertEqual(RevenueCalculators.calculate_mrr_growth(100, 0), 100.0)
        self.assertEqual(RevenueCalculators.calculate_mrr_growth(0, 0), 0.0)
        self.assertEqual(RevenueCalculators.calculate_mrr_growth(110, 100), 10.0)

    def test_quick_ratio(self):
        self.assertEqual(RevenueCalculators.calculate_quick_ratio(300, 100, 50, 50), 4.0)
        self.assertEqual(RevenueCalculators.calculate_quick_ratio(300, 100, 0, 0), INF)


class TestAcquisitionCalculators(BaseTestCase):

    def test_cac(self):
        self.assertEqual(AcquisitionCalculators.calculate_cac(10000, 40), 250.0)
        self.assertEqual(AcquisitionCalculators.calculate_cac(10000, 0), 0.0)
        self.assertEqual(AcquisitionCalculators.calculate_blended_cac(6000, 4000, 40), 250.0)

    def test_cac_by_channel(self):
        result = AcquisitionCalculators.calculate_cac_by_channel(
            {'ads': 5000, 'events': 2000}, {'ads': 25})
        self.assertEqual(result, {'ads': 200.0, 'events': 0.0})

    def test_payback_period(self):
        self.assertEqual(AcquisitionCalculators.calculate_cac_payback_period(800, 100, 80), 10.0)
        self.assertEqual(AcquisitionCalculators.calculate_cac_payback_period(800, 0, 80), INF)

    def test_efficiency_bands(self):
        self.assertTrue(AcquisitionCalculators.calculate_cac_efficiency(100, 300)['isHealthy'])
        self.assertTrue(AcquisitionCalculators.calculate_cac_efficiency(100, 200)['isHealthy'])
        warning = AcquisitionCalculators.calculate_cac_efficiency(100, 150)
        self.assertFalse(warning['isHealthy'])
        self.assertTrue(warning['recommendation'].startswith('Warning'))
        self.assertTrue(AcquisitionCalculators.calculate_cac_efficiency(100, 50)['recommendation']
                        .startswith('Critical'))
        self.assertEqual(AcquisitionCalculators.calculate_cac_efficiency(0, 50)['ratio'], INF)


class TestLifetimeValueCalculators(BaseTestCase):

    def test_ltv_with_percentage_or_decimal_churn(self):
        self.assertAlmostEqual(LifetimeValueCalculators.calculate_ltv(100, 80, 5), 1600.0)
        self.assertAlmostEqual(LifetimeValueCalculators.calculate_ltv(100, 80, 0.05), 1600.0)
        self.assertEqual(LifetimeValueCalculators.calculate_ltv(100, 80, 0), INF)

    def test_lifespan(self):
        self.assertAlmostEqual(LifetimeValueCalculators.calculate_average_customer_lifespan(4), 25.0)
        self.assertEqual(LifetimeValueCalculators.calculate_average_customer_lifespan(0), INF)

    def test_ltv_health(self):
        health = LifetimeValueCalculators.analyze_ltv_health(1500, 500)
        self.assertEqual(health['ltvCacRatio'], 3.0)
        self.assertTrue(health['isHealthy'])
        self.assertFalse(LifetimeValueCalculators.analyze_ltv_health(1000, 500)['isHealthy'])
        self.assertTrue(LifetimeValueCalculators.analyze_ltv_health(1000, 500, industry='services')['isHealthy'])

    def test_ltv_with_expansion(self):
        self.assertAlmostEqual(LifetimeValueCalculators.calculate_ltv_with_expansion(1000, 10), 1100.0)
        self.assertAlmostEqual(LifetimeValueCalculators.calculate_ltv_by_lifespan(100, 80, 12), 960.0)

    def test_projection_without_churn_or_expansion(self):
        self.assertAlmostEqual(LifetimeValueCalculators.project_ltv_with_expansion(100, 50, 0, 0, 12), 600.0)


class TestBurnRateCalculators(BaseTestCase):

    def test_burn_rate_from_transactions(self):
        cashflow = BurnRateCalculators.calculate_burn_rate([
            {'type': 'income', 'amountInBaseCurrency': 4000},
            {'type': 'expense', 'amountInBaseCurrency': 7000},
            {'type': 'expense', 'amountInBaseCurrency': 1000},
            {'type': 'transfer', 'amountInBaseCurrency': 999},
        ], period='2026-03')
        self.assertEqual(cashflow['cashIn'], 4000.0)
        self.assertEqual(cashflow['cashOut'], 8000.0)
        self.assertEqual(cashflow['burnRate'], 4000.0)
        self.assertEqual(cashflow['endingBalance'], -4000.0)
        self.assertEqual(cashflow['period'], '2026-03')

    def test_net_burn_excludes_one_time_items(self):
        self.assertEqual(BurnRateCalculators.calculate_net_burn_rate(5000, 9000, 1000, 2000), 3000)

    def test_trend(self):
        increasing = BurnRateCalculators.analyze_burn_rate_trend(
            [{'burnRate': v} for v in (100, 100, 150, 150)])
        self.assertEqual(increasing['trend'], 'increasing')
        self.assertEqual(increasing['burnRateChange'], 50.0)

        stable = BurnRateCalculators.analyze_burn_rate_trend([{'burnRate': v} for v in (100, 105)])
        self.assertEqual(stable['trend'], 'stable')

        decreasing = BurnRateCalculators.analyze_burn_rate_trend([{'burnRate': v} for v in (200, 100, 100)])
        self.assertEqual(decreasing['trend'], 'decreasing')

        single = BurnRateCalculators.analyze_burn_rate_trend([{'burnRate': 80}])
        self.assertEqual((single['trend'], single['averageBurnRate']), ('stable', 80.0))

    def test_burn_multiple(self):
        self.assertEqual(BurnRateCalculators.calculate_burn_multiple(-50000, 100000), 0.5)
        self.assertEqual(BurnRateCalculators.calculate_burn_multiple(50000, 0), INF)
        self.assertEqual(BurnRateCalculators.analyze_burn_multiple(0.5)['rating'], 'excellent')
        self.assertEqual(BurnRateCalculators.analyze_burn_multiple(INF)['rating'], 'critical')

    def test_projected_burn(self):
        self.assertEqual(BurnRateCalculators.project_burn_rate(10000, 2, 5000, 1000, -500), 20500)


class TestRunwayCalculators(BaseTestCase):

    def test_runway(self):
        self.assertEqual(RunwayCalculators.calculate_runway(120000, 10000), 12.0)
        self.assertEqual(RunwayCalculators.calculate_runway(120000, 0), INF)
        self.assertEqual(RunwayCalculators.calculate_runway(-5, 10000), 0.0)

    def test_runway_with_growth(self):
        self.assertEqual(RunwayCalculators.calculate_runway_with_growth(30000, 10000, 0), 3.0)
        self.assertEqual(RunwayCalculators.calculate_runway_with_growth(30000, 10000, 6000), INF)

    @patch('elevates.finance.calculators.runway_calculators.now_in_timezone')
    def test_runway_date(self, now_in_timezone):
        now_in_timezone.return_value = datetime.datetime(2026, 1, 31, 12, 0)
        self.assertEqual(RunwayCalculators.calculate_runway_date(1.9), '2026-02-28')
        self.assertIsNone(RunwayCalculators.calculate_runway_date(INF))

    def test_health_bands(self):
        self.assertEqual(RunwayCalculators.analyze_runway_health(2)['urgency'], 'immediate')
        self.assertEqual(RunwayCalculators.analyze_runway_health(4)['status'], 'warning')
        self.assertEqual(RunwayCalculators.analyze_runway_health(8)['status'], 'healthy')
        self.assertEqual(RunwayCalculators.analyze_runway_health(18)['status'], 'excellent')
        self.assertFalse(RunwayCalculators.analyze_runway_health(INF)['fundingNeeded'])

    def test_scenarios_and_cash_needed(self):
        scenarios = RunwayCalculators.calculate_runway_scenarios(120000, 10000)
        self.assertEqual(scenarios['base'], 12.0)
        self.assertAlmostEqual(scenarios['optimistic'], 15.0)
        self.assertAlmostEqual(scenarios['pessimistic'], 10.0)
        self.assertEqual(RunwayCalculators.calculate_cash_needed(120000, 10000, 18), 60000.0)
        self.assertEqual(RunwayCalculators.calculate_cash_needed(120000, 10000, 6), 0.0)

    def test_extension_and_zero_based(self):
        extension = RunwayCalculators.calculate_runway_extension(12, 60000, 10000)
        self.assertEqual(extension['newRunway'], 18.0)
        self.assertEqual(extension['extensionMonths'], 6.0)
        self.assertEqual(RunwayCalculators.calculate_zero_based_runway(120000, 20000, 50), 12.0)

    def test_cash_projection_stops_when_cash_runs_out(self):
        projection = RunwayCalculators.project_cash_over_time(25000, 10000, 0, 0, 12)
        self.assertEqual([p['cash'] for p in projection], [25000, 15000, 5000])
        self.assertEqual(projection[0]['runway'], 2.5)


class TestSaaSMetricsCalculators(BaseTestCase):

    def test_full_metric_set(self):
        metrics = SaaSMetricsCalculators.calculate_saas_metrics(FinanceInput(raw_record={
            'cac': 500, 'ltv': 2000, 'newMRR': 5000, 'expansionMRR': 2000, 'contractionMRR': 500,
            'churnedMRR': 1000, 'previousMRR': 50000, 'revenueGrowthRate': 30, 'ebitdaMargin': 15,
            'salesMarketingExpenses': 60000,
        }, period='2026-03'))

        self.assertEqual(metrics['ltvCacRatio'], 4.0)
        self.assertEqual(metrics['magicNumber'], 1.0)
        self.assertEqual(metrics['ruleOf40'], 45)
        self.assertAlmostEqual(metrics['nrr'], 101.0)
        self.assertAlmostEqual(metrics['grr'], 97.0)
        self.assertAlmostEqual(metrics['quickRatio'], 7000 / 1500)
        self.assertEqual(metrics['period'], '2026-03')

    def test_ratings(self):
        self.assertEqual(SaaSMetricsCalculators.analyze_nrr(125)['rating'], 'world_class')
        self.assertEqual(SaaSMetricsCalculators.analyze_nrr(85)['rating'], 'poor')
        self.assertEqual(SaaSMetricsCalculators.analyze_rule_of_40(30)['rating'], 'good')
        self.assertEqual(SaaSMetricsCalculators.analyze_magic_number(0.3)['rating'], 'poor')
        self.assertEqual(SaaSMetricsCalculators.analyze_quick_ratio(INF)['rating'], 'excellent')

    def test_churn_conversions(self):
        self.assertEqual(SaaSMetricsCalculators.calculate_monthly_churn_rate(5, 100), 5.0)
        self.assertAlmostEqual(SaaSMetricsCalculators.calculate_annual_churn_rate(5),
                               (1 - 0.95 ** 12) * 100)
        self.assertEqual(SaaSMetricsCalculators.calculate_expansion_rate(10, 0), 0.0)


class TestCashflowService(BaseTestCase):

    def test_groups_transactions_by_month(self):
        summary = summarize_cashflow([
            {'date': '2026-01-05', 'type': 'income', 'amountInBaseCurrency': 1000},
            {'date': '2026-01-20', 'type': 'expense', 'amountInBaseCurrency': 3000},
            {'date': '2026-02-03T10:00:00Z', 'type': 'expense', 'amountInBaseCurrency': 4500},
            {'date': 'garbage', 'type': 'expense', 'amountInBaseCurrency': 99999},
        ])

        self.assertEqual(summary['months'], [
            {'period': '2026-01', 'cashIn': 1000.0, 'cashOut': 3000.0, 'burnRate': 2000.0},
            {'period': '2026-02', 'cashIn': 0.0, 'cashOut': 4500.0, 'burnRate': 4500.0},
        ])
        self.assertEqual(summary['totals'], {'cashIn': 1000.0, 'cashOut': 7500.0, 'burnRate': 6500.0})
        self.assertEqual(summary['trend']['trend'], 'increasing')

    def test_empty_transactions(self):
        summary = summarize_cashflow([])
        self.assertEqual(summary['months'], [])
        self.assertEqual(summary['trend']['trend'], 'stable')

    def test_missing_columns(self):
        with self.assertRaises(ValidationError):
            summarize_cashflow([{'type': 'income', 'amountInBaseCurrency': 5}])


class TestFinanceRoutes(APITestCase):

    def setUp(self):
        super().setUp()
        self.login()

    def test_mrr(self):
        response = self.client.post('/api/finance/mrr', json={
            'subscriptions': [sub('a', 100), sub('b', 200)],
            'previousSubscriptions': [sub('a', 100)],
        })
        self.assertEqual(response.status_code, 200)
        metrics = response.get_json()['metrics']
        self.assertEqual(metrics['mrr'], 300.0)
        self.assertEqual(metrics['newMRR'], 200.0)
        # nothing lost: infinite quick ratio is serialized as null
        self.assertIsNone(metrics['quickRatio'])

    def test_mrr_requires_subscription_list(self):
        response = self.client.post('/api/finance/mrr', json={'subscriptions': 'nope'})
        self.assertEqual(response.status_code, 400)

    def test_cac(self):
        metrics = self.client.post('/api/finance/cac', json={
            'salesMarketingExpenses': 10000, 'newCustomers': 40,
            'averageRevenuePerUser': 100, 'grossMargin': 80, 'ltv': 1000,
        }).get_json()['metrics']
        self.assertEqual(metrics['cac'], 250.0)
        self.assertAlmostEqual(metrics['paybackMonths'], 3.125)
        self.assertEqual(metrics['efficiency']['ratio'], 4.0)

    def test_missing_fields_listed(self):
        response = self.client.post('/api/finance/cac', json={'newCustomers': 40})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['error'], 'Missing required fields: salesMarketingExpenses')

    def test_ltv_with_zero_churn(self):
        metrics = self.client.post('/api/finance/ltv', json={
            'averageRevenuePerUser': 100, 'grossMargin': 80, 'churnRate': 0, 'cac': 500,
        }).get_json()['metrics']
        self.assertIsNone(metrics['ltv'])
        self.assertIsNone(metrics['health']['ltvCacRatio'])

    def test_burn_rate_with_multiple(self):
        metrics = self.client.post('/api/finance/burn-rate', json={
            'transactions': [
                {'type': 'income', 'amountInBaseCurrency': 2000},
                {'type': 'expense', 'amountInBaseCurrency': 12000},
            ],
            'netNewARR': 20000,
            'period': '2026-03',
        }).get_json()['metrics']
        self.assertEqual(metrics['cashFlow']['burnRate'], 10000.0)
        self.assertEqual(metrics['grossBurnRate'], 12000.0)
        self.assertEqual(metrics['burnMultiple'], 0.5)

    def test_runway_for_profitable_company(self):
        metrics = self.client.post('/api/finance/runway', json={
            'currentCash': 50000, 'monthlyBurnRate': -1000,
        }).get_json()['metrics']
        self.assertIsNone(metrics['runway'])
        self.assertIsNone(metrics['runwayDate'])
        self.assertEqual(metrics['health']['status'], 'excellent')

    def test_runway_with_options(self):
        metrics = self.client.post('/api/finance/runway', json={
            'currentCash': 100000, 'monthlyBurnRate': 10000,
            'targetRunwayMonths': 18, 'newFunding': 50000, 'projectionMonths': 3,
        }).get_json()['metrics']
        self.assertEqual(metrics['runway'], 10.0)
        self.assertEqual(metrics['cashNeeded'], 80000.0)
        self.assertEqual(metrics['extension']['newRunway'], 15.0)
        self.assertEqual(len(metrics['projection']), 4)
        self.assertTrue(math.isfinite(metrics['scenarios']['pessimistic']))

    def test_saas_metrics(self):
        body = self.client.post('/api/finance/saas-metrics', json={
            'cac': 500, 'ltv': 2000, 'previousMRR': 10000, 'expansionMRR': 1500,
            'revenueGrowthRate': 30, 'ebitdaMargin': 20,
        }).get_json()
        self.assertAlmostEqual(body['metrics']['nrr'], 115.0)
        self.assertEqual(body['analysis']['nrr']['rating'], 'excellent')
        self.assertEqual(body['analysis']['ruleOf40']['rating'], 'excellent')

    def test_cashflow(self):
        body = self.client.post('/api/finance/cashflow', json={'transactions': [
            {'date': '2026-01-05', 'type': 'expense', 'amountInBaseCurrency': 500},
        ]}).get_json()
        self.assertEqual(body['cashflow']['months'][0]['period'], '2026-01')

    def test_requires_session(self):
        anonymous = self.app.test_client()
        self.assertEqual(anonymous.post('/api/finance/mrr', json={'subscriptions': []}).status_code, 401)
