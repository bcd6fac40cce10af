"""
Load test for the Boneyard Beta backend
Simulates lots of climbers logging the same few climbs at once, which is
exactly when overlapping stats recomputations happen.

Run the app with debug on (python -m boneyard.run) so X-Debug-User is
accepted from localhost, seed some climbs, then run this script.
"""

import asyncio
import random
import time
import aiohttp

# -----------------------------
# CONFIG - ADJUST IF NEEDED
# -----------------------------
BASE_URL = "http://127.0.0.1:5000"
GYM_ID = "urbana boulders"

# Fake climbers
NUM_USERS = 300

# Only hammer a handful of climbs so writes collide
HOT_CLIMBS = 5

# Total PUT requests to send
TOTAL_REQUESTS = 2000

# How many run simultaneously
MAX_CONCURRENT = 100


# -----------------------------
# Load test functions
# -----------------------------
async def fetch_climb_ids(session):
    async with session.get(f"{BASE_URL}/api/gyms/{GYM_ID}/climbs") as resp:
        climbs = await resp.json()
    return [c["id"] for c in climbs][:HOT_CLIMBS]


async def submit_log(session, user_id, climb_id):
    payload = {
        "comment": "load test send",
        "rating": random.randint(1, 5),
    }
    headers = {
        "X-Debug-User": f"load-user-{user_id}",
        "X-Debug-Email": f"load-user-{user_id}@example.com",
    }

    try:
        async with session.put(f"{BASE_URL}/api/climbs/{climb_id}/log", json=payload, headers=headers) as resp:
            text = await resp.text()
            if resp.status not in (200, 201):
                print(f"[ERROR {resp.status}] {climb_id} :: {text[:200]}")
            return resp.status
    except Exception as e:
        print(f"[EXCEPTION] {e} :: {climb_id}")
        return None


async def worker(name, session, task_queue):
    while True:
        item = await task_queue.get()
        if item is None:
            task_queue.task_done()
            break

        user_id, climb_id = item
        await submit_log(session, user_id, climb_id)
        task_queue.task_done()


async def check_stats(session, climb_ids):
    """Compare each hot climb's stored stats with its logs."""
    for climb_id in climb_ids:
        async with session.get(f"{BASE_URL}/api/climbs/{climb_id}") as resp:
            climb = await resp.json()
        async with session.get(f"{BASE_URL}/api/climbs/{climb_id}/logs") as resp:
            logs = await resp.json()

        ratings = [l["rating"] for l in logs if l.get("rating") is not None]
        expected_avg = (sum(ratings) / len(ratings)) if ratings else 0.0
        ok = climb["ascentCount"] == len(ratings) and abs(climb["avgRating"] - expected_avg) < 1e-9
        flag = "OK " if ok else "STALE"
        print(
            f"[{flag}] {climb_id}: stored ascents={climb['ascentCount']} avg={climb['avgRating']:.3f} "
            f"| logs={len(ratings)} avg={expected_avg:.3f}"
        )


async def main():
    task_queue = asyncio.Queue()

    async with aiohttp.ClientSession() as session:
        climb_ids = await fetch_climb_ids(session)
        if not climb_ids:
            print(f"No climbs for gym {GYM_ID!r} - run seed_climbs.py first.")
            return

        # Generate all simulated requests
        for _ in range(TOTAL_REQUESTS):
            uid = random.randint(1, NUM_USERS)
            await task_queue.put((uid, random.choice(climb_ids)))

        # Add sentinel None tasks to close workers
        for _ in range(MAX_CONCURRENT):
            await task_queue.put(None)

        workers = [
            asyncio.create_task(worker(f"worker-{i}", session, task_queue))
            for i in range(MAX_CONCURRENT)
        ]

        print(f"Sending {TOTAL_REQUESTS} requests with concurrency {MAX_CONCURRENT}...")
        start = time.time()

        await task_queue.join()
        end = time.time()

        for w in workers:
            await w

        print(f"Completed in {end - start:.2f} seconds")

        await check_stats(session, climb_ids)


if __name__ == "__main__":
    asyncio.run(main())
