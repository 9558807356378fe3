"""Tests for CancellationToken."""

import asyncio

import pytest

from nftscout.core.cancellation import CancellationToken
from nftscout.core.errors import OperationCancelledError


class TestCancellationToken:
    def test_starts_uncancelled(self):
        token = CancellationToken()
        assert token.cancelled is False
        token.raise_if_cancelled()

    def test_cancel_is_idempotent(self):
        token = CancellationToken()
        token.cancel("superseded")
        token.cancel("again")
        assert token.cancelled is True
        assert token.reason == "superseded"
        with pytest.raises(OperationCancelledError, match="superseded"):
            token.raise_if_cancelled()

    @pytest.mark.asyncio
    async def test_run_returns_result(self):
        async def work():
            return 42

        assert await CancellationToken().run(work()) == 42

    @pytest.mark.asyncio
    async def test_run_propagates_errors(self):
        async def work():
            raise ValueError("bad")

        with pytest.raises(ValueError, match="bad"):
            await CancellationToken().run(work())

    @pytest.mark.asyncio
    async def test_cancel_interrupts_and_cancels_work(self):
        token = CancellationToken()
        inner_cancelled = asyncio.Event()

        async def work():
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                inner_cancelled.set()
                raise

        pending = asyncio.ensure_future(token.run(work()))
        await asyncio.sleep(0)
        token.cancel()

        with pytest.raises(OperationCancelledError):
            await pending
        await asyncio.wait_for(inner_cancelled.wait(), timeout=1)

    @pytest.mark.asyncio
    async def test_run_with_cancelled_token_never_starts_work(self):
        started = False

        async def work():
            nonlocal started
            started = True

        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelledError):
            await token.run(work())
        assert started is False
