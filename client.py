import requests
from typing import Optional


class TrackerClient:
    """Simple REST client for the workout tracker API."""

    def __init__(self, base_url: str = "http://localhost:8000", timeout: float = 10) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def create_plan(self, title: str, exercises: Optional[list[dict]] = None) -> dict:
        resp = requests.post(
            f"{self.base_url}/plans",
            json={"title": title, "exercises": exercises or []},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def list_plans(self) -> list[dict]:
        resp = requests.get(f"{self.base_url}/plans", timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def finish_session(
        self, plan_title: str, exercises: list[dict], date: Optional[str] = None
    ) -> dict:
        resp = requests.post(
            f"{self.base_url}/sessions/finish",
            json={"planTitle": plan_title, "date": date, "exercises": exercises},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def list_logs(self) -> list[dict]:
        resp = requests.get(f"{self.base_url}/logs", timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def series(self, exercise: str, metric: str = "weight") -> list[dict]:
        resp = requests.get(
            f"{self.base_url}/stats/series",
            params={"exercise": exercise, "metric": metric},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def export_snapshot(self) -> dict:
        resp = requests.get(f"{self.base_url}/snapshot", timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def import_snapshot(self, snapshot: dict) -> dict:
        resp = requests.post(
            f"{self.base_url}/snapshot", json=snapshot, timeout=self.timeout
        )
        resp.raise_for_status()
        return resp.json()
