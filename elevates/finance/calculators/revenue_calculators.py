"""
Revenue Calculators

MRR / ARR and the MRR movement breakdown between two snapshots of
subscriptions:

- NEW: subscription id not present in the previous snapshot
- EXPANSION / CONTRACTION: same subscription, MRR went up / down
- CHURNED: active previously, now missing or no longer active

A subscription is a dict with at least 'id', 'status', 'mrr' and 'currency'.
Only 'active' subscriptions count towards MRR.
"""

from typing import Any, Dict, List, Optional
import logging

from .base_calculators import BaseCalculator
from ...utils.timezone_utils import current_period, utc_now_iso

logger = logging.getLogger(__name__)

SUPPORTED_CURRENCIES = ('GBP', 'USD', 'EUR')


def _mrr(subscription: Dict[str, Any]) -> float:
    return float(subscription.get('mrr') or 0)


def _is_active(subscription: Dict[str, Any]) -> bool:
    return subscription.get('status') == 'active'


class RevenueCalculators(BaseCalculator):
    """Recurring revenue calculation functions"""

    @staticmethod
    def calculate_mrr(subscriptions: List[Dict[str, Any]],
                      previous_subscriptions: Optional[List[Dict[str, Any]]] = None,
                      previous_mrr: Optional[float] = None) -> Dict[str, Any]:
        """
        Calculate MRR, ARR and MRR movements.

        Formula:
            mrr = sum(active subscription mrr)
            arr = mrr * 12
            netNewMRR = new + expansion - contraction - churned
            mrrGrowth = (mrr - previous_mrr) / previous_mrr * 100  (0 without a previous value)

        Args:
            subscriptions: Current subscription snapshot
            previous_subscriptions: Snapshot from the previous period, enables movements
            previous_mrr: MRR of the previous period, enables growth

        Returns:
            dict: RevenueMetrics with camelCase keys
        """
        active = [sub for sub in subscriptions if _is_active(sub)]

        mrr = 0.0
        mrr_by_currency = {currency: 0.0 for currency in SUPPORTED_CURRENCIES}
        for sub in active:
            amount = _mrr(sub)
            mrr += amount
            currency = str(sub.get('currency') or '').upper()
            if currency in mrr_by_currency:
                mrr_by_currency[currency] += amount

        movements = {'new': 0.0, 'expansion': 0.0, 'contraction': 0.0, 'churned': 0.0}
        if previous_subscriptions:
            for movement in RevenueCalculators.categorize_subscription_movements(
                    subscriptions, previous_subscriptions):
                if movement['type'] in movements:
                    movements[movement['type']] += abs(movement['amount'])

        net_new_mrr = (movements['new'] + movements['expansion']
                       - movements['contraction'] - movements['churned'])

        mrr_growth = 0.0
        if previous_mrr and previous_mrr > 0:
            mrr_growth = (mrr - previous_mrr) / previous_mrr * 100

        return {
            'mrr': mrr,
            'arr': mrr * 12,
            'mrrGrowth': mrr_growth,
            'arrGrowth': mrr_growth,
            'newMRR': movements['new'],
            'expansionMRR': movements['expansion'],
            'contractionMRR': movements['contraction'],
            'churnedMRR': movements['churned'],
            'netNewMRR': net_new_mrr,
            'mrrByCurrency': mrr_by_currency,
            'period': current_period(),
            'calculatedAt': utc_now_iso(),
        }

    @staticmethod
    def categorize_subscription_movements(current_subs: List[Dict[str, Any]],
                                          previous_subs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Classify each subscription change between two snapshots.

        Returns:
            list: [{'type': new|expansion|contraction|churned|unchanged, 'amount': float}]
                  contraction and churned amounts are negative
        """
        current_by_id = {sub.get('id'): sub for sub in current_subs}
        previous_by_id = {sub.get('id'): sub for sub in previous_subs}
        movements = []

        for sub in current_subs:
            if not _is_active(sub):
                continue

            previous = previous_by_id.get(sub.get('id'))
            if previous is None:
                movements.append({'type': 'new', 'amount': _mrr(sub)})
                continue

            diff = _mrr(sub) - _mrr(previous)
            if diff > 0:
                movements.append({'type': 'expansion', 'amount': diff})
            elif diff < 0:
                movements.append({'type': 'contraction', 'amount': diff})
            else:
                movements.append({'type': 'unchanged', 'amount': 0.0})

        for previous in previous_subs:
            if not _is_active(previous):
                continue
            current = current_by_id.get(previous.get('id'))
            if current is None or not _is_active(current):
                movements.append({'type': 'churned', 'amount': -_mrr(previous)})

        return movements

    @staticmethod
    def calculate_mrr_growth(current_mrr: float, previous_mrr: float) -> float:
        """
        Month-over-month MRR growth percentage.

        Returns:
            float: 100 when starting from zero with some MRR, 0 when both are zero
        """
        if previous_mrr == 0:
            return 100.0 if current_mrr > 0 else 0.0
        return (current_mrr - previous_mrr) / previous_mrr * 100

    @staticmethod
    def calculate_quick_ratio(new_mrr: float, expansion_mrr: float,
                              contraction_mrr: float, churned_mrr: float) -> float:
        """
        SaaS quick ratio.

        Formula: (new + expansion) / (contraction + churned)

        Returns:
            float: inf when nothing was lost
        """
        return RevenueCalculators.safe_divide(
            new_mrr + expansion_mrr, contraction_mrr + churned_mrr, default=float('inf'))
