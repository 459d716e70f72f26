import json
import sqlite3
import sys

DB = sys.argv[1] if len(sys.argv) > 1 else "dev.db"
ORDER_NUMBER = sys.argv[2] if len(sys.argv) > 2 else None

conn = sqlite3.connect(DB)
cur = conn.cursor()

print("=== Recent Orders ===")
if ORDER_NUMBER:
    cur.execute(
        "SELECT id, order_number, status, subtotal, tax, shipping_cost, discount, total, created_at, paid_at "
        "FROM orders WHERE order_number=?",
        (ORDER_NUMBER,),
    )
else:
    cur.execute(
        "SELECT id, order_number, status, subtotal, tax, shipping_cost, discount, total, created_at, paid_at "
        "FROM orders ORDER BY created_at DESC LIMIT 20"
    )
orders = cur.fetchall()
for r in orders:
    print(r)

print("\n=== Payments ===")
if ORDER_NUMBER and orders:
    cur.execute(
        "SELECT id, order_id, status, amount, transaction_id, response_data, created_at FROM payments "
        "WHERE order_id=? ORDER BY created_at DESC",
        (orders[0][0],),
    )
else:
    cur.execute(
        "SELECT id, order_id, status, amount, transaction_id, response_data, created_at FROM payments "
        "ORDER BY created_at DESC LIMIT 20"
    )
for r in cur.fetchall():
    rd = r[5]
    try:
        rd = json.loads(rd) if isinstance(rd, str) else rd
    except ValueError:
        pass
    print(
        {
            "id": r[0],
            "order_id": r[1],
            "status": r[2],
            "amount": r[3],
            "transaction_id": r[4],
            "response_data": rd,
            "created_at": r[6],
        }
    )

print("\n=== Coupons ===")
cur.execute("SELECT code, discount_type, discount_value, used_count, usage_limit, is_active FROM coupons")
for r in cur.fetchall():
    print(r)

conn.close()
