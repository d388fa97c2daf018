import json
from uuid import uuid4

import httpx
import pytest

from officetrack.services.directory import (
    ExternalDirectoryProxy,
    LocalDirectory,
    get_directory,
)
from officetrack.services.leave_ledger import LeaveLedger


async def test_local_directory_reads_manager_column(db, users):
    directory = LocalDirectory(db)
    reports = await directory.reports_of(users["manager"].id)
    assert set(reports) == {users["employee"].id, users["teammate"].id}
    assert await directory.reports_of(users["employee"].id) == []


async def test_external_proxy_sends_key_and_parses_items():
    manager_id = uuid4()
    report_ids = [uuid4(), uuid4()]
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        body = {"items": [{"id": str(report_ids[0])}, {"id": str(report_ids[1])}]}
        return httpx.Response(200, content=json.dumps(body))

    proxy = ExternalDirectoryProxy(
        "https://directory.example.com/api/", api_key="k3y", transport=httpx.MockTransport(handler)
    )
    assert await proxy.reports_of(manager_id) == report_ids
    assert seen["url"] == f"https://directory.example.com/api/managers/{manager_id}/reports"
    assert seen["auth"] == "Bearer k3y"


async def test_external_proxy_accepts_plain_lists():
    report_id = uuid4()
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=[str(report_id)]))
    proxy = ExternalDirectoryProxy("https://directory.example.com", transport=transport)
    assert await proxy.reports_of(uuid4()) == [report_id]


async def test_external_proxy_surfaces_http_errors():
    transport = httpx.MockTransport(lambda request: httpx.Response(503))
    proxy = ExternalDirectoryProxy("https://directory.example.com", transport=transport)
    with pytest.raises(httpx.HTTPStatusError):
        await proxy.reports_of(uuid4())


def test_get_directory_prefers_configured_api(db, settings):
    assert isinstance(get_directory(db, settings), LocalDirectory)
    settings.DIRECTORY_API_URL = "https://directory.example.com"
    assert isinstance(get_directory(db, settings), ExternalDirectoryProxy)


async def test_ledger_uses_external_directory_for_pending(db, settings, users, leave_types):
    outsider = users["outsider"]
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, json={"items": [{"id": str(outsider.id)}]})
    )
    ledger = LeaveLedger(
        db,
        settings,
        directory=ExternalDirectoryProxy("https://directory.example.com", transport=transport),
    )
    request = await ledger.apply(outsider.id, "CL", "2024-06-10", "2024-06-10", "full-day", "Errand")
    pending = await ledger.list_pending_for_manager(users["manager"].id)
    assert [d.request.id for d in pending] == [request.id]
