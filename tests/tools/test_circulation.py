"""
Tests for circulation tools (loan requests, approvals and returns).

These tests exercise the MCP tool handlers end to end:
1. Input validation
2. Success payloads
3. Error type and status mapping
4. State modifications in the database
"""

import pytest

from library_circulation.database.inventory_ledger import InventoryLedger
from library_circulation.models.loan import LoanStatus
from library_circulation.tools import circulation_tools
from library_circulation.tools.circulation import (
    approve_loan_handler,
    mark_overdue_handler,
    reject_loan_handler,
    reject_return_handler,
    request_loan_handler,
    request_return_handler,
    update_book_copies_handler,
    validate_return_handler,
)


def assert_error(result: dict, error_type: str, status: int):
    assert result["isError"] is True
    assert result["error"] == {"type": error_type, "status": status}
    assert result["content"][0]["type"] == "text"


class TestRequestLoanTool:
    """Test the request_loan MCP tool."""

    async def test_successful_request(self, mock_get_session, student, book):
        result = await request_loan_handler({"actor_id": student.id, "book_id": book.id})

        assert "isError" not in result
        loan = result["data"]["loan"]
        assert loan["status"] == "pending"
        assert loan["user_id"] == student.id
        assert loan["book_title"] == "Les Misérables"
        assert "pending approval" in result["content"][0]["text"]

    async def test_missing_book_id(self, mock_get_session, student):
        result = await request_loan_handler({"actor_id": student.id})

        assert_error(result, "validation_error", 400)
        assert "Invalid parameters" in result["content"][0]["text"]

    async def test_non_positive_ids_rejected(self, mock_get_session):
        result = await request_loan_handler({"actor_id": 0, "book_id": -3})

        assert_error(result, "validation_error", 400)

    async def test_unknown_book(self, mock_get_session, student):
        result = await request_loan_handler({"actor_id": student.id, "book_id": 999})

        assert_error(result, "not_found", 404)

    async def test_duplicate_request(self, mock_get_session, student, book):
        await request_loan_handler({"actor_id": student.id, "book_id": book.id})

        result = await request_loan_handler({"actor_id": student.id, "book_id": book.id})

        assert_error(result, "conflict", 409)
        assert "open loan" in result["content"][0]["text"]


class TestLoanDecisionTools:
    """approve_loan and reject_loan."""

    @pytest.fixture
    def pending(self, circulation, student, single_copy_book):
        return circulation.request_loan(student.id, single_copy_book.id).model_dump(mode="json")

    async def test_approve(self, mock_get_session, admin, single_copy_book, pending):
        result = await approve_loan_handler({"actor_id": admin.id, "loan_id": pending["id"]})

        assert result["data"]["loan"]["status"] == "active"
        assert "approved" in result["content"][0]["text"]
        snapshot = InventoryLedger(mock_get_session).snapshot(single_copy_book.id)
        assert snapshot.available_copies == 0

    async def test_second_approval_is_invalid_state(self, mock_get_session, admin, pending):
        await approve_loan_handler({"actor_id": admin.id, "loan_id": pending["id"]})

        result = await approve_loan_handler({"actor_id": admin.id, "loan_id": pending["id"]})

        assert_error(result, "not_found", 404)

    async def test_student_cannot_approve(self, mock_get_session, student, pending):
        result = await approve_loan_handler({"actor_id": student.id, "loan_id": pending["id"]})

        assert_error(result, "forbidden", 403)

    async def test_out_of_stock_on_approval(
        self, mock_get_session, admin, other_student, single_copy_book, pending
    ):
        second = await request_loan_handler(
            {"actor_id": other_student.id, "book_id": single_copy_book.id}
        )
        await approve_loan_handler({"actor_id": admin.id, "loan_id": pending["id"]})

        result = await approve_loan_handler(
            {"actor_id": admin.id, "loan_id": second["data"]["loan"]["id"]}
        )

        assert_error(result, "conflict", 409)

    async def test_reject(self, mock_get_session, admin, pending):
        result = await reject_loan_handler({"actor_id": admin.id, "loan_id": pending["id"]})

        assert result["data"]["loan"]["id"] == pending["id"]
        assert "rejected" in result["content"][0]["text"]

        again = await reject_loan_handler({"actor_id": admin.id, "loan_id": pending["id"]})
        assert_error(again, "not_found", 404)


class TestReturnTools:
    """request_return, validate_return and reject_return."""

    @pytest.fixture
    def active(self, circulation, admin, student, book):
        loan = circulation.request_loan(student.id, book.id)
        return circulation.approve_loan(loan.id, admin.id).model_dump(mode="json")

    async def test_round_trip(self, mock_get_session, admin, student, book, active):
        requested = await request_return_handler({"actor_id": student.id, "loan_id": active["id"]})
        validated = await validate_return_handler({"actor_id": admin.id, "loan_id": active["id"]})

        assert requested["data"]["loan"]["status"] == "return_requested"
        assert validated["data"]["loan"]["status"] == "returned"
        assert validated["data"]["loan"]["returned_at"] is not None
        snapshot = InventoryLedger(mock_get_session).snapshot(book.id)
        assert snapshot.available_copies == snapshot.total_copies

    async def test_other_student_cannot_request_return(
        self, mock_get_session, other_student, active
    ):
        result = await request_return_handler(
            {"actor_id": other_student.id, "loan_id": active["id"]}
        )

        assert_error(result, "forbidden", 403)

    async def test_reject_return(self, mock_get_session, admin, student, active):
        await request_return_handler({"actor_id": student.id, "loan_id": active["id"]})

        result = await reject_return_handler({"actor_id": admin.id, "loan_id": active["id"]})

        assert result["data"]["loan"]["status"] == LoanStatus.ACTIVE.value

    async def test_validate_without_request(self, mock_get_session, admin, active):
        result = await validate_return_handler({"actor_id": admin.id, "loan_id": active["id"]})

        assert_error(result, "not_found", 404)


class TestMarkOverdueTool:
    async def test_mark_overdue(self, mock_get_session, admin, student, book, backdate):
        requested = await request_loan_handler({"actor_id": student.id, "book_id": book.id})
        loan_id = requested["data"]["loan"]["id"]
        await approve_loan_handler({"actor_id": admin.id, "loan_id": loan_id})
        backdate(loan_id)

        result = await mark_overdue_handler({"actor_id": admin.id, "loan_id": loan_id})

        assert result["data"]["loan"]["status"] == "overdue"

    async def test_not_yet_due(self, mock_get_session, admin, student, book):
        requested = await request_loan_handler({"actor_id": student.id, "book_id": book.id})
        loan_id = requested["data"]["loan"]["id"]
        await approve_loan_handler({"actor_id": admin.id, "loan_id": loan_id})

        result = await mark_overdue_handler({"actor_id": admin.id, "loan_id": loan_id})

        assert_error(result, "not_found", 404)


class TestUpdateBookCopiesTool:
    async def test_resize(self, mock_get_session, admin, book):
        result = await update_book_copies_handler(
            {"actor_id": admin.id, "book_id": book.id, "total_copies": 5}
        )

        assert result["data"]["book"]["total_copies"] == 5
        assert result["data"]["book"]["available_copies"] == 5

    async def test_negative_total_is_validation_error(self, mock_get_session, admin, book):
        result = await update_book_copies_handler(
            {"actor_id": admin.id, "book_id": book.id, "total_copies": -1}
        )

        assert_error(result, "validation_error", 400)

    async def test_student_forbidden(self, mock_get_session, student, book):
        result = await update_book_copies_handler(
            {"actor_id": student.id, "book_id": book.id, "total_copies": 5}
        )

        assert_error(result, "forbidden", 403)


class TestToolMetadata:
    def test_every_tool_is_registered(self):
        names = {tool["name"] for tool in circulation_tools}

        assert names == {
            "request_loan",
            "request_return",
            "approve_loan",
            "reject_loan",
            "validate_return",
            "reject_return",
            "mark_overdue",
            "update_book_copies",
        }

    def test_input_schemas_require_actor(self):
        for tool in circulation_tools:
            assert "actor_id" in tool["inputSchema"]["required"]
            assert callable(tool["handler"])

    async def test_server_publishes_metadata(self):
        from fastmcp import Client

        from library_circulation.server import mcp

        async with Client(mcp) as client:
            published = {tool.name: tool for tool in await client.list_tools()}

        assert set(published) == {tool["name"] for tool in circulation_tools}
        for tool in circulation_tools:
            served = published[tool["name"]]
            assert served.description == tool["description"]
            assert set(served.inputSchema["properties"]) == set(tool["inputSchema"]["properties"])
