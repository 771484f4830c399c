"""
Cash Flow Service

Monthly cash flow aggregation over categorized transactions.
"""

import logging
from typing import Any, Dict, List

import pandas as pd

from ..calculators.burn_rate_calculators import BurnRateCalculators
from ...exceptions import ValidationError
from ...utils.timezone_utils import current_period

logger = logging.getLogger(__name__)


def get_current_period() -> str:
    """Current reporting period, YYYY-MM"""
    return current_period()


def summarize_cashflow(transactions: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Group transactions by calendar month and analyze the burn trend.

    Args:
        transactions: [{'date': ISO date, 'type': 'income'|'expense', 'amountInBaseCurrency': float}]

    Returns:
        dict: {'months': [{period, cashIn, cashOut, burnRate}], 'totals': {...}, 'trend': {...}}
    """
    if not transactions:
        return {
            'months': [],
            'totals': {'cashIn': 0.0, 'cashOut': 0.0, 'burnRate': 0.0},
            'trend': BurnRateCalculators.analyze_burn_rate_trend([]),
        }

    df = pd.DataFrame(transactions)
    missing = [col for col in ('date', 'type', 'amountInBaseCurrency') if col not in df.columns]
    if missing:
        raise ValidationError(f"Transactions missing fields: {', '.join(missing)}")

    df['date'] = pd.to_datetime(df['date'], errors='coerce', utc=True, format='ISO8601')
    invalid = int(df['date'].isna().sum())
    if invalid:
        logger.warning(f"Skipping {invalid} transactions with unparseable dates")
        df = df.dropna(subset=['date'])

    df['amount'] = pd.to_numeric(df['amountInBaseCurrency'], errors='coerce').fillna(0.0)
    df['period'] = df['date'].dt.strftime('%Y-%m')
    df['cash_in'] = df['amount'].where(df['type'] == 'income', 0.0)
    df['cash_out'] = df['amount'].where(df['type'] == 'expense', 0.0)

    monthly = (
        df.groupby('period', sort=True)[['cash_in', 'cash_out']]
        .sum()
        .reset_index()
    )
    monthly['burn'] = monthly['cash_out'] - monthly['cash_in']

    months = [
        {
            'period': row.period,
            'cashIn': float(row.cash_in),
            'cashOut': float(row.cash_out),
            'burnRate': float(row.burn),
        }
        for row in monthly.itertuples(index=False)
    ]

    trend = BurnRateCalculators.analyze_burn_rate_trend(
        [{'period': m['period'], 'burnRate': m['burnRate']} for m in months]
    )

    logger.info(f"Summarized {len(df)} transactions into {len(months)} months")

    return {
        'months': months,
        'totals': {
            'cashIn': float(monthly['cash_in'].sum()),
            'cashOut': float(monthly['cash_out'].sum()),
            'burnRate': float(monthly['burn'].sum()),
        },
        'trend': trend,
    }
