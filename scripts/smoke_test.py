"""Exercise a running calendar API end to end: create, list, read, update, delete.

Usage: python scripts/smoke_test.py [SESSION_ID]   (BASE_URL defaults to http://localhost:3000)
"""

import os
import sys

import httpx


def main() -> None:
    base_url = os.getenv("BASE_URL", "http://localhost:3000")
    session_id = sys.argv[1] if len(sys.argv) > 1 else "test-123"
    print(f"Using BASE_URL={base_url} SESSION_ID={session_id}")

    with httpx.Client(base_url=base_url, timeout=10.0) as client:
        print("1) Checking health...")
        client.get("/health").raise_for_status()

        print("2) Creating event...")
        created = client.post(
            f"/sessions/{session_id}/events",
            json={
                "title": "Call",
                "description": "Status sync",
                "start": "2025-01-10T09:00:00Z",
                "end": "2025-01-10T09:30:00Z",
            },
        )
        created.raise_for_status()
        event_id = created.json()["id"]
        print(f"Created EVENT_ID={event_id}")

        print("3) Listing events in range...")
        listed = client.get(
            f"/sessions/{session_id}/events",
            params={"range_start": "2025-01-01T00:00:00Z", "range_end": "2025-01-31T23:59:59Z"},
        )
        print(listed.json())

        print("4) Reading created event...")
        print(client.get(f"/sessions/{session_id}/events/{event_id}").json())

        print("5) Updating event title...")
        print(client.patch(f"/sessions/{session_id}/events/{event_id}", json={"title": "Updated Call"}).json())

        print("6) Deleting event...")
        print(client.delete(f"/sessions/{session_id}/events/{event_id}").json())

    print("Done.")


if __name__ == "__main__":
    main()
