"""Tests for routing Ctrl-C to the running command."""

import asyncio

import pytest

from artifact_client.cli.interrupts import INTERRUPT_REASON, InterruptHandler
from artifact_client.core.flow import TransferState


async def _idle():
    await asyncio.sleep(5)


async def test_interrupt_while_idle_cancels_task():
    task = asyncio.ensure_future(_idle())
    interrupt = InterruptHandler(task)

    interrupt()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert interrupt.cancel_token.cancelled


async def test_first_interrupt_during_transfer_only_fires_token():
    task = asyncio.ensure_future(_idle())
    interrupt = InterruptHandler(task)
    interrupt.track()(TransferState.TRANSFERRING)

    interrupt()
    await asyncio.sleep(0)

    assert interrupt.cancel_token.cancelled
    assert interrupt.cancel_token.reason == INTERRUPT_REASON
    assert not task.done()

    interrupt()

    with pytest.raises(asyncio.CancelledError):
        await task


async def test_track_forwards_states_and_clears_after_transfer():
    seen = []
    interrupt = InterruptHandler(asyncio.ensure_future(_idle()))
    on_state = interrupt.track(seen.append)

    on_state(TransferState.TRANSFERRING)
    assert interrupt.transferring

    on_state(TransferState.TRANSFERRED)
    assert not interrupt.transferring
    assert seen == [TransferState.TRANSFERRING, TransferState.TRANSFERRED]

    interrupt.task.cancel()
