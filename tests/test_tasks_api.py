from datetime import date

import pytest

from cockpit.core.config import settings
from cockpit.db.models import FocusBlock

from conftest import HEADERS, TENANT, USER, reload

URL = "/api/v1/tasks"


def test_health(client):
    r = client.get("/api/v1/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_create_requires_context(client):
    r = client.post(URL, json={"name": "No context"}, headers=HEADERS)
    assert r.status_code == 422


def test_create_and_list(client):
    r = client.post(URL, json={"name": "Pay invoices", "context": "work", "due_date": "2024-01-12"}, headers=HEADERS)
    assert r.status_code == 201, r.text
    task = r.json()
    assert (task["tenant_id"], task["owner_id"], task["status"]) == (TENANT, USER, "open")
    assert task["created_at"].startswith("2024-01-10T12:00")

    listed = client.get(URL, headers=HEADERS).json()
    assert [t["id"] for t in listed] == [task["id"]]
    assert client.get(URL, headers={"X-User-Id": "x", "X-Tenant-Id": TENANT}).json() == []


def test_create_rejects_malformed_rule(client):
    r = client.post(URL, json={"name": "Bad", "context": "work", "recurrence_rule": "NOT_A_RULE"}, headers=HEADERS)
    assert r.status_code == 422


def test_create_rejects_zero_interval_rule(client):
    body = {"name": "Never", "context": "work", "recurrence_rule": "FREQ=DAILY;INTERVAL=0"}
    assert client.post(URL, json=body, headers=HEADERS).status_code == 422


def test_patch_status_and_ignore_identity(client, make_task):
    task = make_task()
    r = client.patch(f"{URL}/{task.id}", json={"status": "done", "owner_id": "mallory"}, headers=HEADERS)
    assert r.status_code == 200
    assert r.json()["status"] == "done"
    assert r.json()["owner_id"] == USER


def test_patch_rejects_null_for_required_fields(client, make_task):
    task = make_task()
    assert client.patch(f"{URL}/{task.id}", json={"context": None}, headers=HEADERS).status_code == 422


def test_occurrence_cannot_gain_a_rule(client, make_task):
    template = make_task(recurrence_rule="FREQ=DAILY", do_date=date(2024, 1, 1))
    occurrence = make_task(parent_task_id=template.id, do_date=date(2024, 1, 2))
    r = client.patch(f"{URL}/{occurrence.id}", json={"recurrence_rule": "FREQ=WEEKLY"}, headers=HEADERS)
    assert r.status_code == 400


def test_unknown_task_is_404(client):
    assert client.get(f"{URL}/999", headers=HEADERS).status_code == 404
    assert client.patch(f"{URL}/999", json={"name": "x"}, headers=HEADERS).status_code == 404


def test_expand_then_list_instances(client, make_task):
    template = make_task(name="Water plants", recurrence_rule="FREQ=WEEKLY;BYDAY=MO,WE,FR", do_date=date(2024, 1, 1))
    body = {"from": "2024-01-01", "to": "2024-01-07"}

    first = client.post(f"{URL}/recurring/expand", json=body, headers=HEADERS).json()
    second = client.post(f"{URL}/recurring/expand", json=body, headers=HEADERS).json()
    assert (first["created"], first["skipped"]) == (3, 0)
    assert (second["created"], second["skipped"]) == (0, 3)

    r = client.get(f"{URL}/{template.id}/instances", params={"from": "2024-01-01", "to": "2024-01-31"}, headers=HEADERS)
    instances = r.json()
    assert [i["do_date"] for i in instances] == ["2024-01-01", "2024-01-03", "2024-01-05"]
    assert all(i["recurrence_rule"] is None for i in instances)


def test_expand_defaults_to_thirty_days_from_today(client, make_task):
    make_task(recurrence_rule="FREQ=DAILY", do_date=date(2024, 1, 1))
    r = client.post(f"{URL}/recurring/expand", headers=HEADERS)
    assert r.json()["created"] == settings.RECURRENCE_WINDOW_DAYS + 1


def test_expand_single_template(client, make_task):
    wanted = make_task(recurrence_rule="FREQ=DAILY", do_date=date(2024, 1, 10))
    make_task(recurrence_rule="FREQ=DAILY", do_date=date(2024, 1, 10))
    r = client.post(f"{URL}/recurring/expand", json={"from": "2024-01-10", "to": "2024-01-11", "task_id": wanted.id},
                    headers=HEADERS)
    assert r.json()["created"] == 2


def test_recurring_lists_templates_only(client, make_task):
    template = make_task(recurrence_rule="FREQ=DAILY")
    make_task(parent_task_id=template.id, do_date=date(2024, 1, 2))
    make_task(name="plain")
    assert [t["id"] for t in client.get(f"{URL}/recurring", headers=HEADERS).json()] == [template.id]


def test_commit_defaults_to_today(client, make_task):
    task = make_task()
    r = client.post(f"{URL}/commit", json={"task_id": task.id}, headers=HEADERS)
    assert r.status_code == 200
    assert (r.json()["committed_date"], r.json()["do_date"]) == ("2024-01-10", "2024-01-10")

    r = client.post(f"{URL}/commit", json={"task_id": task.id, "date": "2024-01-15"}, headers=HEADERS)
    assert r.json()["committed_date"] == "2024-01-15"


def test_commit_rejects_template(client, make_task):
    template = make_task(recurrence_rule="FREQ=DAILY")
    assert client.post(f"{URL}/commit", json={"task_id": template.id}, headers=HEADERS).status_code == 400


def test_uncommit_returns_task_to_backlog_and_drops_block(client, session, make_task):
    task = make_task(committed_date=date(2024, 1, 10), do_date=date(2024, 1, 10))
    block = client.post(
        "/api/v1/focus-blocks",
        json={"title": "t", "context": "work", "task_id": task.id,
              "start_time": "2024-01-10T14:00:00Z", "end_time": "2024-01-10T15:00:00Z"},
        headers=HEADERS,
    ).json()["block"]

    r = client.delete(f"{URL}/commit", params={"task_id": task.id}, headers=HEADERS)
    assert r.status_code == 200
    out = r.json()
    assert (out["committed_date"], out["do_date"], out["scheduled_block_id"]) == (None, None, None)
    assert reload(session, FocusBlock, block["id"]) is None


def test_reconcile_endpoint_heals_dangling_link(client, session, make_task):
    task = make_task(scheduled_block_id=4242)
    r = client.post(f"{URL}/{task.id}/reconcile", headers=HEADERS)
    assert r.status_code == 200
    assert r.json()["scheduled_block_id"] is None


@pytest.fixture
def cron_secret(monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")
    return "s3cret"


def test_cron_disabled_without_secret(client, monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", "")
    assert client.post("/api/v1/cron/recurring", headers={"Authorization": "Bearer "}).status_code == 401


def test_cron_requires_matching_secret(client, cron_secret, session, make_task):
    make_task(recurrence_rule="FREQ=DAILY", do_date=date(2024, 1, 10))
    make_task(tenant_id="tenant-b", owner_id="user-9", recurrence_rule="FREQ=DAILY", do_date=date(2024, 1, 10))

    assert client.post("/api/v1/cron/recurring", headers={"Authorization": "Bearer nope"}).status_code == 401
    r = client.post("/api/v1/cron/recurring", headers={"Authorization": f"Bearer {cron_secret}"})
    assert r.status_code == 200
    assert r.json()["created"] == 2 * (settings.RECURRENCE_WINDOW_DAYS + 1)
