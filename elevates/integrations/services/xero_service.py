"""
Xero Accounting Integration

- OAuth 2.0 consent and code exchange with requests-oauthlib; the state
  parameter is the same signed, time-boxed state used for Google
- Tokens are stored encrypted through token_storage under the 'xero' provider
- Accounting calls (accounts, bank transactions, balance sheet, profit and
  loss) go through the xero-python SDK, refreshing the token when it is about
  to expire
- A sync pulls the last twelve months into the local cache
"""

import datetime
import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

import pandas as pd
from requests_oauthlib import OAuth2Session
from xero_python.accounting import AccountingApi
from xero_python.api_client import ApiClient
from xero_python.api_client.configuration import Configuration
from xero_python.api_client.oauth2 import OAuth2Token
from xero_python.identity import IdentityApi

from ...config import config
from ...exceptions import ConfigurationError, NotFoundError, OAuthError, TokenRefreshError, TokensNotFoundError
from ...oauth.services import token_storage
from ...oauth.services.google_oauth import generate_state_parameter, tokens_from_response
from ...oauth.services.token_refresh import needs_refresh
from ...utils.timezone_utils import now_ms, utc_now, utc_now_iso
from . import sync_cache

logger = logging.getLogger(__name__)

PROVIDER = 'xero'
AUTH_URI = 'https://login.xero.com/identity/connect/authorize'
TOKEN_URI = 'https://identity.xero.com/connect/token'
SCOPES = [
    'offline_access',
    'openid',
    'profile',
    'email',
    'accounting.transactions',
    'accounting.reports.read',
    'accounting.settings',
]

SYNC_MONTHS = 12
DEFAULT_CURRENCY = 'GBP'


def get_client_settings():
    """Return (client_id, client_secret, redirect_uri) or raise ConfigurationError"""
    missing = [
        name for name in ('XERO_CLIENT_ID', 'XERO_CLIENT_SECRET', 'XERO_REDIRECT_URI')
        if not getattr(config, name)
    ]
    if missing:
        raise ConfigurationError(f"Missing Xero configuration: {', '.join(missing)}")
    return config.XERO_CLIENT_ID, config.XERO_CLIENT_SECRET, config.XERO_REDIRECT_URI


def is_connected(user_id: str) -> bool:
    return token_storage.has_tokens(user_id, provider=PROVIDER)


def _oauth_session(state=None):
    client_id, _, redirect_uri = get_client_settings()
    return OAuth2Session(client_id, redirect_uri=redirect_uri, scope=SCOPES, state=state)


def get_authorization_url(user_id: str) -> str:
    """Consent screen URL for user_id"""
    url, _ = _oauth_session().authorization_url(AUTH_URI, state=generate_state_parameter(user_id))
    return url


def exchange_code_for_tokens(user_id: str, code: str, state=None) -> token_storage.OAuthTokens:
    """Exchange an authorization code and store the resulting tokens"""
    _, client_secret, _ = get_client_settings()
    try:
        token = _oauth_session(state).fetch_token(TOKEN_URI, code=code, client_secret=client_secret)
    except Exception as e:
        logger.error(f"Xero token exchange failed: {e}", exc_info=True)
        raise OAuthError("Failed to exchange Xero authorization code") from e

    tokens = tokens_from_response(token, provider='Xero')
    token_storage.save_tokens(user_id, tokens, provider=PROVIDER)
    logger.info(f"Xero connected for user {user_id}")
    return tokens


def disconnect(user_id: str) -> None:
    token_storage.delete_tokens(user_id, provider=PROVIDER)


def _sdk_token(tokens: token_storage.OAuthTokens) -> Dict[str, Any]:
    """Stored tokens in the dict form the SDK reads (expiry in seconds)"""
    return {
        'access_token': tokens.access_token,
        'refresh_token': tokens.refresh_token,
        'token_type': tokens.token_type,
        'scope': tokens.scope.split(),
        'expires_in': max((tokens.expires_at - now_ms()) // 1000, 0),
        'expires_at': tokens.expires_at / 1000,
    }


def get_api_client(user_id: str) -> ApiClient:
    """SDK client that reads and persists the user's encrypted Xero tokens"""
    client_id, client_secret, _ = get_client_settings()
    api_client = ApiClient(
        Configuration(oauth2_token=OAuth2Token(client_id=client_id, client_secret=client_secret)),
        pool_threads=1,
    )

    @api_client.oauth2_token_getter
    def obtain_token():
        tokens = token_storage.load_tokens(user_id, provider=PROVIDER)
        return _sdk_token(tokens) if tokens else None

    @api_client.oauth2_token_saver
    def store_token(token):
        previous = token_storage.load_tokens(user_id, provider=PROVIDER)
        token_storage.save_tokens(user_id, tokens_from_response(token, previous, provider='Xero'),
                                  provider=PROVIDER)

    return api_client


def _connected_client(user_id: str) -> Tuple[ApiClient, str]:
    """
    Return (api client, tenant id) with a fresh access token.

    Raises:
        TokensNotFoundError: the user has not connected Xero
        TokenRefreshError: Xero rejected the refresh token
        NotFoundError: the grant covers no organisation
    """
    tokens = token_storage.load_tokens(user_id, provider=PROVIDER)
    if tokens is None:
        raise TokensNotFoundError("Xero not connected. Please connect your Xero account first.")

    api_client = get_api_client(user_id)
    if needs_refresh(tokens):
        try:
            api_client.refresh_oauth2_token()
        except Exception as e:
            logger.error(f"Failed to refresh Xero token for user {user_id}: {e}")
            raise TokenRefreshError("Failed to refresh Xero access token") from e

    connections = IdentityApi(api_client).get_connections()
    if not connections:
        raise NotFoundError("No Xero organisation found")
    return api_client, str(connections[0].tenant_id)


def _value(field):
    """Plain value of an SDK enum field"""
    return getattr(field, 'value', field)


def _iso(value):
    return value.isoformat() if isinstance(value, (datetime.date, datetime.datetime)) else value


def _compact(record: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in record.items() if value is not None}


def map_account(account) -> Dict[str, Any]:
    return _compact({
        'accountID': str(account.account_id),
        'code': account.code,
        'name': account.name,
        'type': _value(account.type),
        'currencyCode': _value(account.currency_code) or DEFAULT_CURRENCY,
        'taxType': account.tax_type,
        'enablePaymentsToAccount': account.enable_payments_to_account,
        'bankAccountNumber': account.bank_account_number,
        'status': _value(account.status),
        'description': account.description,
    })


def map_transaction(transaction) -> Dict[str, Any]:
    contact = transaction.contact
    return _compact({
        'bankTransactionID': str(transaction.bank_transaction_id),
        'type': _value(transaction.type),
        'contact': _compact({
            'contactID': str(contact.contact_id) if contact.contact_id else None,
            'name': contact.name,
        }) if contact else None,
        'date': _iso(transaction.date),
        'reference': transaction.reference,
        'isReconciled': bool(transaction.is_reconciled),
        'status': _value(transaction.status) or 'ACTIVE',
        'total': float(transaction.total or 0),
        'currencyCode': _value(transaction.currency_code) or DEFAULT_CURRENCY,
        'lineItems': [
            _compact({
                'description': item.description,
                'quantity': item.quantity,
                'unitAmount': float(item.unit_amount or 0),
                'accountCode': item.account_code or '',
                'taxType': item.tax_type,
                'taxAmount': item.tax_amount,
                'lineAmount': float(item.line_amount or 0),
            })
            for item in transaction.line_items or []
        ],
    })


def _amount(cell) -> float:
    try:
        return float(str(cell.value).replace(',', ''))
    except (TypeError, ValueError):
        return 0.0


def _report_lines(rows, section='') -> Iterator[Tuple[str, str, float, bool]]:
    """Yield (section title, label, amount, is summary) for every row of a report"""
    for row in rows or []:
        row_type = _value(row.row_type)
        if row_type == 'Section':
            yield from _report_lines(row.rows, row.title or section)
        elif row_type in ('Row', 'SummaryRow') and row.cells and len(row.cells) > 1:
            yield section, row.cells[0].value, _amount(row.cells[1]), row_type == 'SummaryRow'


def _first_report(response):
    reports = response.reports or []
    return reports[0] if reports else None


def parse_balance_sheet(report, report_date: str) -> Dict[str, Any]:
    totals = {label: amount for _, label, amount, _ in _report_lines(report.rows if report else None)}
    non_current = totals.get('Total Non-current Liabilities', totals.get('Total Non-Current Liabilities', 0.0))
    return {
        'reportID': report.report_id if report else '',
        'reportName': (report.report_name if report else None) or 'Balance Sheet',
        'reportDate': (report.report_date if report else None) or report_date,
        'updatedDateUTC': _iso(report.updated_date_utc) if report and report.updated_date_utc else utc_now_iso(),
        'assets': {
            'current': totals.get('Total Current Assets', 0.0),
            'fixed': totals.get('Total Fixed Assets', 0.0),
            'total': totals.get('Total Assets', 0.0),
        },
        'liabilities': {
            'current': totals.get('Total Current Liabilities', 0.0),
            'longTerm': non_current,
            'total': totals.get('Total Liabilities', 0.0),
        },
        'equity': totals.get('Total Equity', 0.0),
    }


def parse_profit_and_loss(report, from_date: str, to_date: str) -> Dict[str, Any]:
    lines = list(_report_lines(report.rows if report else None))
    totals = {label: amount for _, label, amount, _ in lines}

    revenue = totals.get('Total Income', totals.get('Total Trading Income', 0.0))
    cogs = totals.get('Total Cost of Sales', 0.0)
    gross_profit = totals.get('Gross Profit', revenue - cogs)
    operating_expenses = {
        label: amount for section, label, amount, summary in lines
        if section == 'Less Operating Expenses' and not summary
    }

    return {
        'reportID': report.report_id if report else '',
        'reportName': (report.report_name if report else None) or 'Profit & Loss',
        'fromDate': from_date,
        'toDate': to_date,
        'updatedDateUTC': _iso(report.updated_date_utc) if report and report.updated_date_utc else utc_now_iso(),
        'revenue': revenue,
        'cogs': cogs,
        'grossProfit': gross_profit,
        'operatingExpenses': operating_expenses,
        'netProfit': totals.get('Net Profit', gross_profit - sum(operating_expenses.values())),
    }


def get_accounts(user_id: str) -> List[Dict[str, Any]]:
    """Chart of accounts; accounts without an id, code, name or type are skipped"""
    api_client, tenant_id = _connected_client(user_id)
    accounts = AccountingApi(api_client).get_accounts(tenant_id).accounts or []
    return [
        map_account(account) for account in accounts
        if account.account_id and account.code and account.name and account.type
    ]


def get_transactions(user_id: str, from_date: Optional[datetime.date] = None,
                     to_date: Optional[datetime.date] = None) -> List[Dict[str, Any]]:
    """Bank transactions, optionally limited to a date range"""
    api_client, tenant_id = _connected_client(user_id)

    where = []
    if from_date:
        where.append(f"Date >= DateTime({from_date.year}, {from_date.month}, {from_date.day})")
    if to_date:
        where.append(f"Date <= DateTime({to_date.year}, {to_date.month}, {to_date.day})")

    response = AccountingApi(api_client).get_bank_transactions(tenant_id, where=' AND '.join(where) or None)
    return [
        map_transaction(tx) for tx in response.bank_transactions or []
        if tx.bank_transaction_id and tx.date and tx.type
    ]


def get_balance_sheet(user_id: str, date: Optional[datetime.date] = None) -> Dict[str, Any]:
    api_client, tenant_id = _connected_client(user_id)
    date_str = date.isoformat() if date else None
    response = AccountingApi(api_client).get_report_balance_sheet(tenant_id, date=date_str)
    return parse_balance_sheet(_first_report(response), date_str or utc_now().date().isoformat())


def get_profit_and_loss(user_id: str, from_date: datetime.date, to_date: datetime.date) -> Dict[str, Any]:
    api_client, tenant_id = _connected_client(user_id)
    response = AccountingApi(api_client).get_report_profit_and_loss(
        tenant_id, from_date=from_date.isoformat(), to_date=to_date.isoformat(),
    )
    return parse_profit_and_loss(_first_report(response), from_date.isoformat(), to_date.isoformat())


def sync_xero_data(user_id: str, today: Optional[datetime.date] = None) -> Dict[str, Any]:
    """Pull the last twelve months of Xero data into the user's cache"""
    to_date = today or utc_now().date()
    from_date = (pd.Timestamp(to_date) - pd.DateOffset(months=SYNC_MONTHS)).date()

    accounts = get_accounts(user_id)
    transactions = get_transactions(user_id, from_date, to_date)
    balance_sheet = get_balance_sheet(user_id, to_date)
    profit_loss = get_profit_and_loss(user_id, from_date, to_date)

    sync_cache.write_cache(PROVIDER, 'accounts', accounts, user_id)
    sync_cache.write_cache(PROVIDER, 'transactions', transactions, user_id)
    sync_cache.write_cache(PROVIDER, 'balance-sheet', balance_sheet, user_id)
    sync_cache.write_cache(PROVIDER, 'profit-loss', profit_loss, user_id)

    counts = {'accounts': len(accounts), 'transactions': len(transactions)}
    metadata = sync_cache.save_sync_metadata(PROVIDER, counts, user_id)
    logger.info(f"Xero sync for {user_id} complete: {counts}")
    return {'success': True, 'syncedAt': metadata['lastSyncAt'], 'counts': counts}


def get_cached_data(user_id: str) -> Dict[str, Any]:
    """Data from the last sync; entries are None before the first sync"""
    return {
        'accounts': sync_cache.read_cache(PROVIDER, 'accounts', user_id),
        'transactions': sync_cache.read_cache(PROVIDER, 'transactions', user_id),
        'balanceSheet': sync_cache.read_cache(PROVIDER, 'balance-sheet', user_id),
        'profitLoss': sync_cache.read_cache(PROVIDER, 'profit-loss', user_id),
    }


def get_sync_metadata(user_id: str) -> Dict[str, Any]:
    return sync_cache.load_sync_metadata(PROVIDER, user_id)
