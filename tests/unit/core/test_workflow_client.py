"""Unit tests for the workflow backend client and status-document codec."""

import json
from datetime import date

import httpx
import pytest
from unittest.mock import AsyncMock

from gatepass.core.directory_client import IdentityDirectoryClient
from gatepass.core.erp_client import ErpClient
from gatepass.core.exceptions import APIClientError, LookupUnavailableError, StaleWriteConflictError
from gatepass.core.status_codec import parse_status_document, parse_status_documents
from gatepass.core.workflow_client import WorkflowBackendClient
from gatepass.schemas.profile import UNKNOWN_FIELD
from gatepass.schemas.view import ListScope, ViewRole, ViewTab
from gatepass.schemas.workflow import (
    ExternalPartyDetails,
    ReturnState,
    Stage,
    StaffAssignment,
    StaffType,
)
from gatepass.services.enrichment import EnrichmentPipeline
from gatepass.services.identity import IdentityResolver
from gatepass.services.workflow_service import GatePassWorkflowService
from tests.factories import make_profile, returnable


def status_document(reference_number="GP-042", after_status=5, **request_fields):
    request = {
        "referenceNumber": reference_number,
        "employeeServiceNo": "EMP100",
        "receiverServiceNo": "NSL200",
        "outLocation": "Colombo HQ",
        "inLocation": "Kandy",
        "status": after_status,
        "items": [{"serialNo": "SN-1", "itemDescription": "Router", "itemQuantity": 1}],
        "returnableItems": [
            {"serialNo": "SN-1", "itemName": "Router", "returned": False},
            {"serialNo": "SN-2", "itemName": "Switch", "returned": True, "returnedDate": "2025-03-04T10:00:00Z"},
        ],
        "createdAt": "2025-03-01T08:00:00Z",
    }
    request.update(request_fields)
    return {
        "referenceNumber": reference_number,
        "afterStatus": after_status,
        "request": request,
        "updatedAt": "2025-03-02T09:30:00Z",
        "verifyOfficerServiceNo": "EMP500",
    }


def client_for(handler, role=ViewRole.VERIFIER) -> WorkflowBackendClient:
    return WorkflowBackendClient(
        "http://backend.test/api",
        role=role,
        token="secret",
        retry_delay=0,
        transport=httpx.MockTransport(handler),
    )


class TestStatusCodec:

    def test_parses_nested_status_document(self):
        record = parse_status_document(status_document())

        assert record.reference_number == "GP-042"
        assert record.stage == Stage.AWAITING_RECEIPT
        assert record.stage_changed_at.isoformat() == "2025-03-02T09:30:00+00:00"
        assert record.verify_officer_service_no == "EMP500"
        assert record.snapshot.sender_service_no == "EMP100"
        assert record.returnable_item("SN-2").return_state == ReturnState.RETURNED
        assert record.returnable_item("SN-1").return_state == ReturnState.RETURNABLE

    def test_step_decision_codes(self):
        doc = status_document(after_status=8)
        doc.update({"verifyOfficerStatus": "2", "pleaderStatus": 2, "recieveOfficerStatus": 1})

        record = parse_status_document(doc)

        assert record.status_code == 8
        assert record.verify_officer_status == 2
        assert record.dispatch_status == 2
        assert record.receive_officer_status == 1

    def test_bare_request_document_uses_request_status(self):
        doc = status_document(after_status=11)["request"]

        record = parse_status_document(doc)

        assert record.stage == Stage.APPROVED
        assert record.stage_changed_at is None

    def test_rejection_fields(self):
        doc = status_document(after_status=6)
        doc.update(
            {
                "rejectedBy": "K. Fernando",
                "rejectedByServiceNo": "EMP500",
                "rejectedByBranch": "Colombo HQ",
                "rejectedAt": "2025-03-02T11:00:00Z",
                "rejectionLevel": 2,
            }
        )

        record = parse_status_document(doc)

        assert record.stage == Stage.REJECTED
        assert record.rejection.level == 2
        assert record.rejection.rejected_by_branch == "Colombo HQ"

    def test_duplicate_returnable_serials_keep_last_entry(self):
        doc = status_document(
            returnableItems=[
                {"serialNo": "SN-1", "returned": False},
                {"serialNumber": "SN-1", "returned": True},
            ]
        )

        record = parse_status_document(doc)

        assert len(record.snapshot.returnable_items) == 1
        assert record.returnable_item("SN-1").is_returned

    def test_non_slt_staff_and_destination(self):
        doc = status_document(
            isNonSltPlace=True,
            companyName="Acme Ltd",
            receiverName="J. Perera",
            loading={
                "staffType": "Non-SLT",
                "nonSLTStaffName": "P. Kumara",
                "nonSLTStaffNIC": "881234567V",
                "nonSLTStaffContact": "0770000000",
            },
        )

        snapshot = parse_status_document(doc).snapshot

        assert snapshot.is_non_slt_place is True
        assert snapshot.receiver_details.name == "J. Perera"
        assert snapshot.loading.staff_type == StaffType.NON_SLT
        assert snapshot.loading.external_staff.missing_required() == []

    def test_list_parsing_skips_documents_without_stage(self):
        broken = {"referenceNumber": "GP-X", "request": {"employeeServiceNo": "EMP1"}}

        records = parse_status_documents([status_document("GP-1"), broken, "junk"])

        assert [r.reference_number for r in records] == ["GP-1"]

    def test_non_list_body_parses_to_empty(self):
        assert parse_status_documents({"message": "nothing"}) == []


class TestListByStage:

    @pytest.mark.asyncio
    async def test_pending_listing_for_verifier(self):
        seen = []

        def handler(request):
            seen.append(request.url)
            return httpx.Response(200, json=[status_document("GP-1", after_status=2)])

        client = client_for(handler)
        records = await client.list_by_stage(
            Stage.AWAITING_VERIFICATION, ListScope(role=ViewRole.VERIFIER, service_no="EMP500")
        )

        assert [r.reference_number for r in records] == ["GP-1"]
        assert seen[0].path == "/api/verify/pending"
        assert seen[0].params["serviceNo"] == "EMP500"

    @pytest.mark.asyncio
    async def test_other_roles_pending_stage_is_not_requested(self):
        def handler(request):
            raise AssertionError("no request expected")

        records = await client_for(handler).list_by_stage(
            Stage.AWAITING_RECEIPT, ListScope(role=ViewRole.VERIFIER, service_no="EMP500")
        )

        assert records == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "role, listing, after_status, step_fields",
        [
            (ViewRole.VERIFIER, "/api/verify/approved", 7, {"verifyOfficerStatus": 2, "recieveOfficerStatus": 1}),
            (ViewRole.LOADER, "/api/dispatch/approved", 8, {"pleaderStatus": 2}),
        ],
    )
    async def test_role_approved_listing_keeps_records_still_in_flight(self, role, listing, after_status, step_fields):
        seen = []

        def handler(request):
            seen.append(request.url.path)
            doc = status_document("GP-1", after_status=after_status)
            doc.update(step_fields)
            return httpx.Response(200, json=[doc])

        records = await client_for(handler, role).list_by_stage(
            Stage.APPROVED, ListScope(role=role, service_no="EMP500")
        )

        assert seen == [listing]
        assert [r.reference_number for r in records] == ["GP-1"]
        assert records[0].stage == Stage.AWAITING_RECEIPT
        assert records[0].status_code == after_status

    @pytest.mark.asyncio
    async def test_verifier_refresh_shows_requests_awaiting_dispatch_as_approved(self, verifier_session):
        def handler(request):
            if request.url.path == "/api/verify/approved":
                doc = status_document("GP-1", after_status=7)
                doc.update({"verifyOfficerStatus": 2, "recieveOfficerStatus": 1})
                return httpx.Response(200, json=[doc])
            return httpx.Response(200, json=[])

        lookup = AsyncMock(side_effect=lambda identifier: make_profile(identifier))
        pipeline = EnrichmentPipeline(IdentityResolver(lookup))
        service = GatePassWorkflowService(client_for(handler), pipeline)

        approved = await service.refresh(verifier_session, ViewTab.APPROVED)
        pending = await service.refresh(verifier_session, ViewTab.PENDING)

        assert [item.reference_number for item in approved] == ["GP-1"]
        assert pending == []

    @pytest.mark.asyncio
    async def test_loader_rejected_listing_keeps_receiver_rejections(self):
        def handler(request):
            return httpx.Response(200, json=[status_document("GP-3", after_status=12)])

        records = await client_for(handler, ViewRole.LOADER).list_by_stage(
            Stage.REJECTED, ListScope(role=ViewRole.LOADER, service_no=None)
        )

        assert [r.stage for r in records] == [Stage.REJECTED]

    @pytest.mark.asyncio
    async def test_requester_lists_own_requests(self):
        seen = []

        def handler(request):
            seen.append(request.url.path)
            return httpx.Response(200, json=[status_document("GP-9", after_status=1)["request"]])

        records = await client_for(handler, ViewRole.REQUESTER).list_by_stage(
            Stage.AWAITING_VERIFICATION, ListScope(role=ViewRole.REQUESTER, service_no="EMP100")
        )

        assert seen == ["/api/requests/EMP100"]
        assert records[0].reference_number == "GP-9"


class TestMutations:

    @pytest.mark.asyncio
    async def test_receiver_approve_sends_unloading_details(self):
        captured = {}

        def handler(request):
            captured["path"] = request.url.path
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"updatedStatus": status_document(after_status=11)})

        details = StaffAssignment(
            location="Kandy",
            staff_type=StaffType.NON_SLT,
            external_staff=ExternalPartyDetails(name="P. Kumara", nic="881234567V", contact_no="077"),
        )
        record = await client_for(handler, ViewRole.RECEIVER).approve("GP-042", "Received", details, "EMP700", ["SN-1"])

        assert record.stage == Stage.APPROVED
        assert captured["path"] == "/api/receive/GP-042/approve"
        assert captured["body"]["userServiceNumber"] == "EMP700"
        assert captured["body"]["unloadingDetails"]["unloadingLocation"] == "Kandy"
        assert captured["body"]["unloadingDetails"]["nonSLTStaffNIC"] == "881234567V"
        assert captured["body"]["returnableItems"] == [{"serialNo": "SN-1", "returned": False}]

    @pytest.mark.asyncio
    async def test_approve_on_missing_pending_status_is_stale(self):
        client = client_for(lambda request: httpx.Response(404, json={"message": "Status not found"}))

        with pytest.raises(StaleWriteConflictError):
            await client.approve("GP-042", "", None, "EMP500", [])

    @pytest.mark.asyncio
    async def test_reject_uses_role_prefix(self):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return httpx.Response(200, json={"status": status_document(after_status=9)})

        record = await client_for(handler, ViewRole.LOADER).reject("GP-042", "Damaged")

        assert paths == ["/api/dispatch/GP-042/reject"]
        assert record.stage == Stage.REJECTED

    @pytest.mark.asyncio
    async def test_mark_returned_returns_backend_count(self):
        captured = {}

        def handler(request):
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "updatedCount": 1})

        count = await client_for(handler).mark_returned("GP-042", ["SN-1"], "Handed over")

        assert count == 1
        assert captured["body"] == {"serialNumbers": ["SN-1"], "remarks": "Handed over"}

    @pytest.mark.asyncio
    async def test_mark_returned_without_count_is_an_error(self):
        client = client_for(lambda request: httpx.Response(200, json={"success": True}))

        with pytest.raises(APIClientError):
            await client.mark_returned("GP-042", ["SN-1"])

    @pytest.mark.asyncio
    async def test_add_item_posts_serialized_item(self):
        captured = {}

        def handler(request):
            captured["method"] = request.method
            captured["path"] = request.url.path
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"message": "Item added"})

        item = returnable("SN-7", expected_return_date=date(2025, 4, 1))
        await client_for(handler).add_item("GP-042", item)

        assert captured["method"] == "POST"
        assert captured["path"] == "/api/receive/GP-042/items"
        assert captured["body"]["serialNo"] == "SN-7"
        assert captured["body"]["returnDate"] == "2025-04-01"

    def test_with_role_keeps_connection_settings(self):
        client = client_for(lambda request: httpx.Response(200))
        loader = client.with_role(ViewRole.LOADER)

        assert loader.prefix == "/dispatch"
        assert loader.headers == client.headers
        assert loader.transport is client.transport


class TestDirectoryAndErpClients:

    @pytest.mark.asyncio
    async def test_directory_maps_user_document(self):
        def handler(request):
            assert request.url.path == "/api/users/EMP100"
            return httpx.Response(
                200,
                json={"serviceNo": "EMP100", "name": "A. Silva", "designation": "Engineer", "email": "a@slt.lk"},
            )

        directory = IdentityDirectoryClient("http://backend.test/api", transport=httpx.MockTransport(handler))
        profile = await directory.lookup("EMP100")

        assert profile.display_name == "A. Silva"
        assert profile.section == UNKNOWN_FIELD
        assert profile.email == "a@slt.lk"

    @pytest.mark.asyncio
    async def test_directory_not_found_is_none(self):
        directory = IdentityDirectoryClient(
            "http://backend.test/api",
            transport=httpx.MockTransport(lambda request: httpx.Response(404, json={"message": "User not found"})),
        )

        assert await directory.lookup("EMP404") is None

    @pytest.mark.asyncio
    async def test_directory_outage_is_lookup_unavailable(self):
        directory = IdentityDirectoryClient(
            "http://backend.test/api",
            max_retries=1,
            transport=httpx.MockTransport(lambda request: httpx.Response(503)),
        )

        with pytest.raises(LookupUnavailableError):
            await directory.lookup("EMP100")

    @pytest.mark.asyncio
    async def test_erp_posts_employee_number(self):
        captured = {}

        def handler(request):
            captured["body"] = json.loads(request.content)
            captured["user"] = request.headers.get("UserName")
            return httpx.Response(200, json={"data": {"data": [{"employeeName": "A. Silva"}]}})

        erp = ErpClient(
            "http://backend.test/api",
            username="svc",
            password="pw",
            transport=httpx.MockTransport(handler),
        )
        payload = await erp.lookup_employee("EMP100")

        assert captured == {"body": {"employeeNo": "EMP100"}, "user": "svc"}
        assert payload["data"]["data"][0]["employeeName"] == "A. Silva"
