import argparse
import concurrent.futures
import os
import sys

import requests

BASE = os.environ.get("STOREFRONT_BASE", "http://127.0.0.1:8000")


def checkout_task(i, user_id, product_id, coupon):
    """Fill a cart for ``user_id`` and check it out with the coupon."""
    headers = {"X-User-Id": str(user_id)}
    try:
        r = requests.post(
            f"{BASE}/api/cart/items",
            json={"product_id": product_id, "quantity": 1},
            headers=headers,
            timeout=10,
        )
        if r.status_code != 200:
            return (i, "cart", r.status_code, r.text)
        r = requests.post(f"{BASE}/api/orders", json={"coupon_code": coupon}, headers=headers, timeout=20)
        return (i, "order", r.status_code, r.text)
    except requests.RequestException as e:
        return (i, "order", "ERR", str(e))


def coupon_usage(admin_key, code):
    r = requests.get(f"{BASE}/api/admin/coupons", headers={"X-Admin-Key": admin_key}, timeout=10)
    r.raise_for_status()
    for c in r.json():
        if c["code"] == code.upper():
            return c["used_count"]
    return None


def run_checkout_concurrent(workers, product_id, coupon, admin_key, first_user):
    print(f"Running checkout test: workers={workers}, product_id={product_id}, coupon={coupon}")
    before = coupon_usage(admin_key, coupon)
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as ex:
        futures = [ex.submit(checkout_task, i, first_user + i, product_id, coupon) for i in range(workers)]
        results = [f.result() for f in futures]
    print("Results:")
    for r in results:
        print(r)
    created = sum(1 for r in results if r[1] == "order" and r[2] == 201)
    after = coupon_usage(admin_key, coupon)
    print(f"Orders created: {created}; coupon used_count {before} -> {after}")
    if before is not None and after is not None and after - before != created:
        print("MISMATCH: coupon usage does not match orders created")
        sys.exit(1)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Concurrent checkout test: coupon usage must match orders created.")
    parser.add_argument("--workers", type=int, default=8)
    parser.add_argument("--product-id", type=int, default=1)
    parser.add_argument("--coupon", default="WELCOME10")
    parser.add_argument("--admin-key", default=os.environ.get("ADMIN_API_KEY", "change-this-admin-key"))
    parser.add_argument("--first-user", type=int, default=1000)
    args = parser.parse_args()

    run_checkout_concurrent(args.workers, args.product_id, args.coupon, args.admin_key, args.first_user)
