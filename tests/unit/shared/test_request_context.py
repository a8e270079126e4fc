"""Tests for request-id propagation via contextvars.

- Each orchestration scopes its own request id
- Auto-generates a short hex id if none is provided
- Concurrent tasks never see each other's id
"""

from __future__ import annotations

import asyncio

import pytest

from fetchguard.shared.request_context import (
    current_request_id,
    get_request_id,
    new_request_id,
    request_context,
)


class TestRequestContextManager:
    def test_empty_outside_scope(self) -> None:
        assert get_request_id() == ""

    def test_sets_request_id_within_scope(self) -> None:
        with request_context("req-1"):
            assert get_request_id() == "req-1"

    def test_restores_previous_on_exit(self) -> None:
        token = current_request_id.set("outer")
        try:
            with request_context("inner"):
                assert get_request_id() == "inner"
            assert get_request_id() == "outer"
        finally:
            current_request_id.reset(token)

    def test_auto_generates_when_none(self) -> None:
        with request_context() as rid:
            assert len(rid) == 12
            int(rid, 16)
            assert get_request_id() == rid

    def test_restores_on_exception(self) -> None:
        with pytest.raises(RuntimeError), request_context("boom"):
            raise RuntimeError
        assert get_request_id() == ""


class TestNewRequestId:
    def test_unique(self) -> None:
        assert len({new_request_id() for _ in range(50)}) == 50


class TestAsyncIsolation:
    @pytest.mark.asyncio
    async def test_tasks_do_not_leak_ids(self) -> None:
        seen: dict[str, str] = {}

        async def worker(name: str) -> None:
            with request_context(name):
                await asyncio.sleep(0)
                seen[name] = get_request_id()

        await asyncio.gather(worker("a"), worker("b"), worker("c"))
        assert seen == {"a": "a", "b": "b", "c": "c"}
