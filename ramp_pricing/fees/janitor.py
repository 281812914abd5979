from __future__ import annotations

import asyncio

from ramp_pricing.core.types import UserData
from ramp_pricing.monitoring.logger import get_logger
from ramp_pricing.storage.base import UserDataStore


class FeeAssignmentJanitor:
    """
    Removes expired fee assignments in the background.

    Fee resolution reports expired assignments instead of deleting them; the
    janitor turns those reports into store writes without holding up the quote.
    """

    def __init__(self, store: UserDataStore) -> None:
        self._store = store
        self._tasks: set[asyncio.Task[None]] = set()
        self._log = get_logger("fee_janitor")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, user_data: UserData, fee_ids: tuple[int, ...] | list[int]) -> None:
        if not fee_ids:
            return
        # keep the in-memory view in line with what the store will hold
        user_data.individual_fee_list = [f for f in user_data.individual_fee_list if f not in fee_ids]
        task = asyncio.get_running_loop().create_task(self._remove(user_data.id, tuple(fee_ids)))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _remove(self, user_data_id: int, fee_ids: tuple[int, ...]) -> None:
        for fee_id in fee_ids:
            try:
                await asyncio.to_thread(self._store.remove_fee, user_data_id, fee_id)
                self._log.info("removed expired fee %s from user data %s", fee_id, user_data_id)
            except Exception as e:
                self._log.warning("failed to remove expired fee %s from user data %s: %s", fee_id, user_data_id, e)

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks))
