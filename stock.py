"""Stock bookkeeping for menu items that track inventory."""

from typing import Any, Dict

from errors import BadRequest

STOCK_OPERATIONS = ('subtract', 'add', 'set')


def apply_stock_rules(item: Dict[str, Any]) -> Dict[str, Any]:
    """Keep is_out_of_stock in line with current_stock before a save.

    Running out forces is_available off. Restocking clears is_out_of_stock
    but leaves availability alone.
    """
    stock = item.get('stock_management') or {}
    if not stock.get('track_stock'):
        return item
    if stock.get('current_stock', 0) == 0:
        stock['is_out_of_stock'] = True
        item['is_available'] = False
    else:
        stock['is_out_of_stock'] = False
    item['stock_management'] = stock
    return item


def adjust_stock(item: Dict[str, Any], quantity: int, operation: str = 'subtract') -> Dict[str, Any]:
    if operation not in STOCK_OPERATIONS:
        raise BadRequest(f"operation must be one of: {', '.join(STOCK_OPERATIONS)}")
    stock = item.get('stock_management') or {}
    if not stock.get('track_stock'):
        return item
    current = stock.get('current_stock', 0)
    if operation == 'subtract':
        current = max(0, current - quantity)
    elif operation == 'add':
        current += quantity
    else:
        current = max(0, quantity)
    stock['current_stock'] = current
    item['stock_management'] = stock
    return apply_stock_rules(item)


def is_actually_available(item: Dict[str, Any]) -> bool:
    if not item.get('is_available'):
        return False
    stock = item.get('stock_management') or {}
    if stock.get('track_stock'):
        return not stock.get('is_out_of_stock') and stock.get('current_stock', 0) > 0
    return True


def is_low_stock(item: Dict[str, Any]) -> bool:
    stock = item.get('stock_management') or {}
    if not stock.get('track_stock'):
        return False
    current = stock.get('current_stock', 0)
    return 0 < current <= stock.get('low_stock_threshold', 5)
