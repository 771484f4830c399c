"""
Stripe Billing Integration

Reads subscriptions, customers and invoices with the stripe SDK, following
Stripe's cursor pagination to the end of each list. Subscriptions come back
in the shape the revenue calculators expect ('id', 'status', 'mrr',
'currency'), with MRR in major currency units.
"""

import logging
from typing import Any, Dict, List, Optional

import stripe

from ...config import config
from ...exceptions import ConfigurationError
from ...utils.timezone_utils import utc_now_iso
from . import sync_cache

logger = logging.getLogger(__name__)

SERVICE = 'stripe'
PAGE_SIZE = 100

# Multipliers from a price's billing interval to one month
MONTHLY_FACTORS = {
    'day': 30,
    'week': 4.33,
    'month': 1,
    'year': 1 / 12,
}


def is_configured() -> bool:
    return bool(config.STRIPE_SECRET_KEY)


def _api_key():
    if not config.STRIPE_SECRET_KEY:
        raise ConfigurationError("Stripe not configured. Please add STRIPE_SECRET_KEY to environment variables.")
    return config.STRIPE_SECRET_KEY


def _object_id(value):
    """Id of a field that is either an id string or an expanded object"""
    if value is None or isinstance(value, str):
        return value
    return value.get('id')


def subscription_mrr(subscription) -> float:
    """Monthly value of every recurring item, converted from minor units"""
    monthly = 0.0
    for item in subscription['items']['data']:
        price = item.get('price') or {}
        recurring = price.get('recurring')
        if not recurring or recurring.get('interval') not in MONTHLY_FACTORS:
            continue
        amount = (price.get('unit_amount') or 0) * (item.get('quantity') or 1)
        monthly += amount * MONTHLY_FACTORS[recurring['interval']] / (recurring.get('interval_count') or 1)
    return monthly / 100


def map_subscription(subscription) -> Dict[str, Any]:
    items = [
        {
            'id': item['id'],
            'priceId': _object_id(item.get('price')),
            'quantity': item.get('quantity') or 1,
            'amount': (item.get('price') or {}).get('unit_amount') or 0,
        }
        for item in subscription['items']['data']
    ]
    return {
        'id': subscription['id'],
        'customer': _object_id(subscription.get('customer')),
        'status': subscription.get('status'),
        'currentPeriodStart': subscription.get('current_period_start'),
        'currentPeriodEnd': subscription.get('current_period_end'),
        'cancelAtPeriodEnd': bool(subscription.get('cancel_at_period_end')),
        'canceledAt': subscription.get('canceled_at'),
        'currency': subscription.get('currency') or 'gbp',
        'items': items,
        'mrr': subscription_mrr(subscription),
        'metadata': dict(subscription.get('metadata') or {}),
        'created': subscription.get('created'),
    }


def map_customer(customer) -> Dict[str, Any]:
    return {
        'id': customer['id'],
        'email': customer.get('email'),
        'name': customer.get('name'),
        'created': customer.get('created'),
        'currency': customer.get('currency'),
        'metadata': dict(customer.get('metadata') or {}),
        'defaultSource': _object_id(customer.get('default_source')),
        'delinquent': bool(customer.get('delinquent')),
    }


def map_invoice(invoice) -> Dict[str, Any]:
    return {
        'id': invoice['id'],
        'customer': _object_id(invoice.get('customer')) or '',
        'subscription': _object_id(invoice.get('subscription')),
        'status': invoice.get('status'),
        'created': invoice.get('created'),
        'dueDate': invoice.get('due_date'),
        'amountDue': invoice.get('amount_due') or 0,
        'amountPaid': invoice.get('amount_paid') or 0,
        'amountRemaining': invoice.get('amount_remaining') or 0,
        'currency': invoice.get('currency') or 'gbp',
        'periodStart': invoice.get('period_start'),
        'periodEnd': invoice.get('period_end'),
        'hostedInvoiceUrl': invoice.get('hosted_invoice_url'),
        'invoicePdf': invoice.get('invoice_pdf'),
        'metadata': dict(invoice.get('metadata') or {}),
    }


def get_subscriptions() -> List[Dict[str, Any]]:
    """All subscriptions, including canceled ones, with prices expanded"""
    pages = stripe.Subscription.list(
        api_key=_api_key(), limit=PAGE_SIZE, status='all', expand=['data.items.data.price'],
    )
    subscriptions = [map_subscription(sub) for sub in pages.auto_paging_iter()]
    logger.info(f"Fetched {len(subscriptions)} Stripe subscriptions")
    return subscriptions


def get_subscription(subscription_id: str) -> Optional[Dict[str, Any]]:
    """One subscription, or None when Stripe does not know the id"""
    try:
        subscription = stripe.Subscription.retrieve(
            subscription_id, api_key=_api_key(), expand=['items.data.price'],
        )
    except stripe.InvalidRequestError as e:
        if e.code == 'resource_missing':
            return None
        raise
    return map_subscription(subscription)


def get_customers() -> List[Dict[str, Any]]:
    pages = stripe.Customer.list(api_key=_api_key(), limit=PAGE_SIZE)
    customers = [map_customer(customer) for customer in pages.auto_paging_iter()]
    logger.info(f"Fetched {len(customers)} Stripe customers")
    return customers


def get_customer(customer_id: str) -> Optional[Dict[str, Any]]:
    try:
        customer = stripe.Customer.retrieve(customer_id, api_key=_api_key())
    except stripe.InvalidRequestError as e:
        if e.code == 'resource_missing':
            return None
        raise
    return map_customer(customer)


def get_invoices() -> List[Dict[str, Any]]:
    pages = stripe.Invoice.list(api_key=_api_key(), limit=PAGE_SIZE)
    invoices = [map_invoice(invoice) for invoice in pages.auto_paging_iter()]
    logger.info(f"Fetched {len(invoices)} Stripe invoices")
    return invoices


def calculate_metrics(subscriptions: List[Dict[str, Any]],
                      customers: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Headline billing metrics.

    Churn rate is the share of all listed subscriptions that are canceled,
    as a percentage.
    """
    active = [sub for sub in subscriptions if sub['status'] == 'active']
    canceled = [sub for sub in subscriptions if sub['status'] == 'canceled']
    mrr = sum(sub['mrr'] for sub in active)

    return {
        'totalCustomers': len(customers),
        'activeSubscriptions': len(active),
        'mrr': mrr,
        'arr': mrr * 12,
        'averageRevenuePerCustomer': mrr / len(customers) if customers else 0.0,
        'churnRate': len(canceled) / len(subscriptions) * 100 if subscriptions else 0.0,
        'calculatedAt': utc_now_iso(),
    }


def get_metrics() -> Dict[str, Any]:
    return calculate_metrics(get_subscriptions(), get_customers())


def sync_stripe_data() -> Dict[str, Any]:
    """Pull subscriptions, customers and invoices into the local cache"""
    subscriptions = get_subscriptions()
    customers = get_customers()
    invoices = get_invoices()

    sync_cache.write_cache(SERVICE, 'subscriptions', subscriptions)
    sync_cache.write_cache(SERVICE, 'customers', customers)
    sync_cache.write_cache(SERVICE, 'invoices', invoices)

    counts = {
        'subscriptions': len(subscriptions),
        'customers': len(customers),
        'invoices': len(invoices),
    }
    metadata = sync_cache.save_sync_metadata(SERVICE, counts)
    return {
        'success': True,
        'syncedAt': metadata['lastSyncAt'],
        'counts': counts,
        'metrics': calculate_metrics(subscriptions, customers),
    }


def get_last_sync_time() -> Optional[str]:
    return sync_cache.last_sync_at(SERVICE)
