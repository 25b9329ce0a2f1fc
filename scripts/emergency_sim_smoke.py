#!/usr/bin/env python3
from __future__ import annotations

import importlib
import json
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi.testclient import TestClient


@dataclass
class Scenario:
  name: str
  payload: dict[str, Any]
  cancel_after_seconds: float | None = None


def run_until(client: TestClient, scheduler: Any, phases: set[str], limit_seconds: float = 3600.0) -> dict[str, Any]:
  elapsed = 0.0
  state = client.get("/emergency/state").json()
  while state["phase"] not in phases:
    if elapsed >= limit_seconds:
      raise RuntimeError(f"Phase {sorted(phases)} not reached; stuck in {state['phase']}")
    scheduler.advance(1.0)
    elapsed += 1.0
    state = client.get("/emergency/state").json()
  return state


def run() -> int:
  repo_root = Path(__file__).resolve().parents[1]
  backend_dir = repo_root / "backend"
  if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

  # Virtual time so a full dispatch completes in well under a second.
  os.environ.setdefault("EMERGENCY_SIM_SCHEDULER", "manual")
  os.environ.setdefault("EMERGENCY_SIM_DISABLE_EXTERNAL", "true")
  os.environ.setdefault("EMERGENCY_SIM_SEED", "2026")

  backend_module = importlib.import_module("main")
  backend_module = importlib.reload(backend_module)
  scheduler = backend_module.container.scheduler

  scenarios = [
    Scenario(name="High Urgency Dispatch", payload={"urgency": "high"}),
    Scenario(name="Low Urgency Dispatch", payload={"urgency": "low"}),
    Scenario(name="Stroke Scenario Dispatch", payload={"scenario_id": "stroke"}),
    Scenario(name="Cancelled During Countdown", payload={"urgency": "medium"}, cancel_after_seconds=4.0),
  ]

  results: list[dict[str, Any]] = []

  with TestClient(backend_module.app) as client:
    for scenario in scenarios:
      item: dict[str, Any] = {"name": scenario.name, "pass": False}
      try:
        trigger = client.post("/emergency/trigger", json=scenario.payload)
        item["trigger_status_code"] = trigger.status_code
        if scenario.cancel_after_seconds is not None:
          scheduler.advance(scenario.cancel_after_seconds)
          cancel_body = client.post("/emergency/cancel").json()
          item["final_phase"] = cancel_body["state"]["phase"]
          item["pass"] = cancel_body["accepted"] and item["final_phase"] == "idle"
        else:
          state = run_until(client, scheduler, {"complete", "idle"})
          item["final_phase"] = state["phase"]
          item["event_log"] = [entry["message"] for entry in state["event_log"]]
          stats_response = client.get("/emergency/statistics")
          item["statistics"] = stats_response.json() if stats_response.status_code == 200 else None
          item["pass"] = state["phase"] == "complete" and item["statistics"] is not None
          client.post("/emergency/acknowledge")
      except (RuntimeError, KeyError, ValueError) as exc:
        item["error"] = str(exc)
        client.post("/emergency/cancel")
      results.append(item)

  passed = sum(1 for item in results if item.get("pass"))
  failed = len(results) - passed
  timestamp = datetime.now(timezone.utc).isoformat()

  report_lines = [
    "# Emergency Simulation Smoke Report",
    "",
    f"- Timestamp (UTC): `{timestamp}`",
    f"- EMERGENCY_SIM_SEED: `{os.getenv('EMERGENCY_SIM_SEED')}`",
    f"- EMERGENCY_SIM_SPEED_MULTIPLIER: `{os.getenv('EMERGENCY_SIM_SPEED_MULTIPLIER', '5')}`",
    f"- Total scenarios: `{len(results)}`",
    f"- Passed: `{passed}`",
    f"- Failed: `{failed}`",
    "",
    "## Scenario Results",
    "",
  ]

  for item in results:
    status = "PASS" if item.get("pass") else "FAIL"
    report_lines.append(f"### {status} - {item['name']}")
    report_lines.append(f"- Trigger status code: `{item.get('trigger_status_code')}`")
    report_lines.append(f"- Final phase: `{item.get('final_phase')}`")
    if item.get("error"):
      report_lines.append(f"- Error: `{item['error']}`")
    for message in item.get("event_log") or []:
      report_lines.append(f"  - {message}")
    if item.get("statistics"):
      report_lines.append("- Statistics:")
      report_lines.append("```json")
      report_lines.append(json.dumps(item["statistics"], indent=2, ensure_ascii=True))
      report_lines.append("```")
    report_lines.append("")

  report_path = repo_root / "EMERGENCY_SIM_SMOKE_REPORT.md"
  report_path.write_text("\n".join(report_lines), encoding="utf-8")
  print(f"Wrote report: {report_path}")
  print(f"Passed {passed}/{len(results)} scenarios.")

  return 0 if failed == 0 else 1


if __name__ == "__main__":
  raise SystemExit(run())
