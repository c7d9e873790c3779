"""
Demo client: log in as an admin and record a plot with a few harvests.
Run:
    API=http://localhost:8000 ADMIN_EMAIL=... ADMIN_PASSWORD=... python scripts/seed_harvests.py
"""
import os
import random
from datetime import date, timedelta

import requests

API = os.getenv("API", "http://localhost:8000")


def main():
    r = requests.post(f"{API}/auth/login", json={
        "email": os.environ["ADMIN_EMAIL"],
        "password": os.environ["ADMIN_PASSWORD"],
    })
    r.raise_for_status()
    headers = {"Authorization": r.headers["Authorization"]}
    print("login:", r.json()["user"]["email"])

    rr = requests.post(f"{API}/plots", headers=headers, json={
        "name": f"Canteiro {random.randint(1, 999):03d}",
        "area": round(random.uniform(10, 60), 2),
        "plantingStart": str(date.today() - timedelta(days=60)),
    })
    print("plot:", rr.status_code, rr.text)
    rr.raise_for_status()
    plot_id = rr.json()["id"]

    for i in range(5):
        body = {
            "plotId": plot_id,
            "date": str(date.today() - timedelta(days=7 * i)),
            "weightKg": round(random.uniform(2, 15), 2),
            "quality": random.choice(["A", "B", "C"]),
        }
        rr = requests.post(f"{API}/harvests", headers=headers, json=body)
        print("harvest", i, rr.status_code, rr.text)

    rr = requests.get(f"{API}/plots/{plot_id}/summary", headers=headers)
    print("summary:", rr.json())


if __name__ == "__main__":
    main()
