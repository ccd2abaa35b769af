import csv
import json
import sys

from repricer.orchestration.delivery_cost.delivery_cost_task import delivery_manifest_import


# 在容器里手动导入一份仓库发货汇总 (CSV: orderNumber,parcels,carrier)
#   python scripts/import_delivery_manifest.py <account_id> manifest.csv
# PYTHONPATH 需要指向 backend/

def read_rows(path):
    with open(path, newline="", encoding="utf-8-sig") as f:
        return [
            {
                "orderNumber": (r.get("orderNumber") or r.get("order_number") or "").strip(),
                "parcels": r.get("parcels") or 1,
                "carrier": (r.get("carrier") or "").strip(),
            }
            for r in csv.DictReader(f)
        ]


def main():
    if len(sys.argv) != 3:
        print("usage: import_delivery_manifest.py <account_id> <manifest.csv>")
        sys.exit(2)
    account_id, path = sys.argv[1], sys.argv[2]
    rows = [r for r in read_rows(path) if r["orderNumber"]]
    if not rows:
        print("No delivery data provided")
        sys.exit(1)

    result = delivery_manifest_import.run(account_id, rows, "script")
    report = result["report"]
    print(json.dumps({
        "run_id": result["run_id"],
        "orders_matched": report["orders_matched"],
        "orders_not_found": report["orders_not_found"],
        "orders_ambiguous": report["orders_ambiguous"],
        "products_changed": result["products_changed"],
        "note": report["note"],
    }, indent=2))


if __name__ == "__main__":
    main()
