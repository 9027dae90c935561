"""
Dashboard aggregation. Every call recomputes from the collections.

The comparison window differs per metric (a week for most, a day for
ongoing deliveries); that asymmetry is intentional and kept.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from pymongo.database import Database

from database import DELIVERIES, ORDERS, USERS, utcnow
from lifecycle import ACTIVE_DELIVERY_STATUSES, IN_PROGRESS_ORDER_STATUSES

DAY = timedelta(days=1)
WEEK = timedelta(days=7)
SLOW_DELIVERY_MINUTES = 45


def calculate_percentage_change(current: float, previous: float) -> float:
    if previous == 0:
        return 100 if current > 0 else 0
    return (current - previous) / previous * 100


def rounded_change(current: float, previous: float) -> float:
    return round(calculate_percentage_change(current, previous), 1)


def dashboard_stats(db: Database, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()
    last_week = now - WEEK
    two_weeks_ago = now - 2 * WEEK
    yesterday = now - DAY

    driver_filter = {'role': 'driver', 'is_active': True}
    active_drivers = db[USERS].count_documents(driver_filter)
    active_drivers_last_week = db[USERS].count_documents({**driver_filter, 'created_at': {'$lte': last_week}})

    order_filter = {'status': {'$in': list(IN_PROGRESS_ORDER_STATUSES)}}
    active_orders = db[ORDERS].count_documents(order_filter)
    active_orders_last_week = db[ORDERS].count_documents(
        {**order_filter, 'created_at': {'$gte': two_weeks_ago, '$lte': last_week}}
    )

    completed_filter = {'status': 'completed'}
    total_deliveries = db[DELIVERIES].count_documents(completed_filter)
    total_deliveries_last_week = db[DELIVERIES].count_documents(
        {**completed_filter, 'created_at': {'$lte': last_week}}
    )

    ongoing_filter = {'status': {'$in': list(ACTIVE_DELIVERY_STATUSES)}}
    ongoing_deliveries = db[DELIVERIES].count_documents(ongoing_filter)
    ongoing_deliveries_yesterday = db[DELIVERIES].count_documents(
        {**ongoing_filter, 'created_at': {'$gte': yesterday, '$lte': now}}
    )

    return {
        'active_drivers': active_drivers,
        'active_drivers_change': rounded_change(active_drivers, active_drivers_last_week),
        'active_orders': active_orders,
        'active_orders_change': rounded_change(active_orders, active_orders_last_week),
        'total_deliveries': total_deliveries,
        'total_deliveries_change': rounded_change(total_deliveries, total_deliveries_last_week),
        'ongoing_deliveries': ongoing_deliveries,
        'ongoing_deliveries_change': rounded_change(ongoing_deliveries, ongoing_deliveries_yesterday),
    }


def chart_data(db: Database, now: Optional[datetime] = None, days: int = 7) -> List[Dict[str, Any]]:
    """Completed deliveries per UTC calendar day, oldest first."""
    now = now or utcnow()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    points = []
    for offset in range(days - 1, -1, -1):
        start = today - offset * DAY
        count = db[DELIVERIES].count_documents({
            'status': 'completed',
            'end_time': {'$gte': start, '$lt': start + DAY},
        })
        points.append({'date': start.strftime('%a, %d %b'), 'value': count})
    return points


def _top_demand_area(db: Database, since: datetime) -> Optional[Dict[str, Any]]:
    pipeline = [
        {'$match': {'status': {'$in': ['pending', 'confirmed']}, 'created_at': {'$gte': since}}},
        {'$group': {
            '_id': '$delivery_address.zip_code',
            'count': {'$sum': 1},
            'city': {'$first': '$delivery_address.city'},
            'state': {'$first': '$delivery_address.state'},
        }},
        {'$sort': {'count': -1}},
        {'$limit': 1},
    ]
    rows = list(db[ORDERS].aggregate(pipeline))
    return rows[0] if rows else None


def average_delivery_minutes(db: Database) -> Optional[float]:
    durations = []
    for delivery in db[DELIVERIES].find({'status': 'completed', 'end_time': {'$ne': None}}):
        start, end = delivery.get('start_time'), delivery.get('end_time')
        if start and end:
            durations.append((end - start).total_seconds() / 60)
    if not durations:
        return None
    return sum(durations) / len(durations)


def suggestions(db: Database, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    now = now or utcnow()
    out = []

    area = _top_demand_area(db, now - WEEK)
    if area and area.get('_id'):
        place = ', '.join(str(p) for p in (area['_id'], area.get('city'), area.get('state')) if p)
        out.append({
            'id': 1,
            'title': f"Increase fleet size in {place}",
            'description': f"Demand is high in {area['_id']}",
            'priority': 'high',
        })

    drivers = db[USERS].count_documents({'role': 'driver', 'is_active': True})
    orders = db[ORDERS].count_documents({'status': {'$in': list(IN_PROGRESS_ORDER_STATUSES)}})
    if orders > drivers * 2:
        out.append({
            'id': 2,
            'title': 'Driver shortage detected',
            'description': f"{orders} active orders with only {drivers} drivers available",
            'priority': 'high',
        })

    avg = average_delivery_minutes(db)
    if avg is not None and avg > SLOW_DELIVERY_MINUTES:
        out.append({
            'id': 3,
            'title': 'Optimize delivery routes',
            'description': f"Average delivery time is {round(avg)} minutes. Route optimization could reduce this by 15-20%",
            'priority': 'medium',
        })
    return out
