"""
Order lifecycle and its best-effort coupling to the Delivery record.

Order statuses move pending -> confirmed -> (assigned) -> picked_up ->
in_transit -> delivered, with cancelled reachable from any non-terminal
status. Delivery records use their own vocabulary and are synchronised only
here. The two writes are not transactional: if the delivery save fails the
order keeps its new status.
"""

import logging
import math
import random
import string
import time
from datetime import datetime
from typing import Any, Dict, Optional

from pymongo import ReturnDocument
from pymongo.database import Database

from database import DELIVERIES, ORDERS, USERS, to_object_id, utcnow
from errors import BadRequest, NotFound

logger = logging.getLogger(__name__)

# Accepted by PUT /orders/{id}/status. 'assigned' is only written by assign_driver.
STATUS_UPDATE_VALUES = ('pending', 'confirmed', 'picked_up', 'in_transit', 'delivered', 'cancelled')
ACTIVE_ORDER_STATUSES = ('pending', 'confirmed', 'assigned', 'picked_up', 'in_transit')
IN_PROGRESS_ORDER_STATUSES = ('confirmed', 'assigned', 'picked_up', 'in_transit')
ACTIVE_DELIVERY_STATUSES = ('assigned', 'ongoing')

_BASE36 = string.digits + string.ascii_uppercase


def _to_base36(number: int) -> str:
    if number == 0:
        return '0'
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return ''.join(reversed(digits))


def generate_order_number() -> str:
    timestamp = _to_base36(int(time.time() * 1000))
    suffix = ''.join(random.choice(_BASE36) for _ in range(4))
    return f"ORD-{timestamp}-{suffix}"


def delivery_status_for(order_status: str) -> str:
    if order_status == 'delivered':
        return 'completed'
    if order_status in ('picked_up', 'in_transit'):
        return 'ongoing'
    return 'assigned'


def duration_minutes(start: Optional[datetime], end: Optional[datetime]) -> Optional[int]:
    """Whole minutes between start and end, halves rounded up. None unless both are set."""
    if not start or not end:
        return None
    ms = (end - start).total_seconds() * 1000
    return int(math.floor(ms / 60000 + 0.5))


def sync_delivery(delivery: Dict[str, Any], order_status: str, now: datetime) -> Dict[str, Any]:
    """Return the field changes that mirror `order_status` onto `delivery`.

    Timestamps are only ever filled in, never cleared or moved.
    """
    changes: Dict[str, Any] = {'status': delivery_status_for(order_status)}
    if order_status == 'delivered':
        if not delivery.get('end_time'):
            changes['end_time'] = now
    elif order_status in ('picked_up', 'in_transit'):
        if not delivery.get('start_time'):
            changes['start_time'] = now
    return changes


def save_delivery(db: Database, delivery: Dict[str, Any], changes: Dict[str, Any]) -> Dict[str, Any]:
    merged = {**delivery, **changes}
    duration = duration_minutes(merged.get('start_time'), merged.get('end_time'))
    if duration is not None:
        changes = {**changes, 'actual_duration': duration}
    changes['updated_at'] = utcnow()
    db[DELIVERIES].update_one({'_id': delivery['_id']}, {'$set': changes})
    return {**delivery, **changes}


def update_order_status(db: Database, order_id: str, status: str) -> Dict[str, Any]:
    if status not in STATUS_UPDATE_VALUES:
        raise BadRequest("Invalid status")
    oid = to_object_id(order_id)
    now = utcnow()
    order = db[ORDERS].find_one_and_update(
        {'_id': oid},
        {
            '$set': {'status': status, 'updated_at': now},
            '$push': {'status_history': {'status': status, 'timestamp': now}},
        },
        return_document=ReturnDocument.AFTER,
    )
    if not order:
        raise NotFound("Order not found")
    logger.info("Order %s status -> %s", order.get('order_number'), status)

    delivery = db[DELIVERIES].find_one({'order_id': str(oid)})
    if delivery:
        updated = save_delivery(db, delivery, sync_delivery(delivery, status, now))
        logger.info("Delivery %s status -> %s", delivery['_id'], updated['status'])
    return order


def assign_driver(db: Database, order_id: str, driver_id: str) -> Dict[str, Any]:
    """Bind a driver to an order. Any previous driver is overwritten; no Delivery is touched."""
    oid = to_object_id(order_id)
    driver = db[USERS].find_one({'_id': to_object_id(driver_id)}, {'password': 0})
    if not driver:
        raise NotFound("Driver not found")
    if driver.get('role') != 'driver':
        raise BadRequest("This user is not a driver")
    now = utcnow()
    order = db[ORDERS].find_one_and_update(
        {'_id': oid},
        {
            '$set': {'driver_id': str(driver['_id']), 'status': 'assigned', 'updated_at': now},
            '$push': {'status_history': {'status': 'assigned', 'timestamp': now}},
        },
        return_document=ReturnDocument.AFTER,
    )
    if not order:
        raise NotFound("Order not found")
    logger.info("Order %s assigned to driver %s", order.get('order_number'), driver['_id'])
    return order


# ---------------------- Deletion guards ----------------------
def count_active_orders(db: Database, field: str, ref_id: str, statuses=ACTIVE_ORDER_STATUSES) -> int:
    return db[ORDERS].count_documents({field: ref_id, 'status': {'$in': list(statuses)}})


def count_active_deliveries(db: Database, driver_id: str) -> int:
    return db[DELIVERIES].count_documents({'driver_id': driver_id, 'status': {'$in': list(ACTIVE_DELIVERY_STATUSES)}})
