"""
SectionLoader: runs section providers against one session's state.

Every load request takes a new generation number. A provider writes
into a scratch copy of the state; its owned fields are copied into the
live state only if no newer request has started meanwhile. A slow load
that finishes after a newer one is discarded, so the state always
reflects the most recently requested section.

    loader = SectionLoader(ctx)
    await loader.load(app, app.default_section)
    loader.state.config_values
"""

from __future__ import annotations

import asyncio
import logging
from typing import Mapping

from hostctl.core.context import SessionContext
from hostctl.core.errors import SectionProviderError
from hostctl.core.models.application import ApplicationDefinition, SectionDefinition, SectionProviderType
from hostctl.core.models.state import ApplicationState
from hostctl.core.sections.base import SectionProvider, require_service
from hostctl.core.sections.registry import provider_for

logger = logging.getLogger(__name__)

_BANNER_FIELDS = ("error_message", "success_message")


class SectionLoader:
    """Load sections into a single ApplicationState with a generation guard."""

    def __init__(
        self,
        ctx: SessionContext,
        state: ApplicationState | None = None,
        providers: Mapping[SectionProviderType, SectionProvider] | None = None,
    ):
        self.ctx = ctx
        self.state = state if state is not None else ApplicationState()
        self.providers = providers
        self._generation = 0
        self._task: asyncio.Task[bool] | None = None

    @property
    def generation(self) -> int:
        return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def load(self, app: ApplicationDefinition, section: SectionDefinition) -> bool:
        """Load ``section`` of ``app`` into the state.

        Returns:
            True if the results were committed, False if the section was
            skipped (service not running) or superseded by a newer load.

        Raises:
            SectionProviderError: Structural failure; ``error_message``
                is set before it propagates.
        """
        self._generation += 1
        generation = self._generation

        try:
            provider = provider_for(section.provider_type, self.providers)
            if section.requires_running and not await self._is_running(app):
                if self.is_current(generation):
                    self.state.error_message = f"{app.name} is not running"
                logger.info("Skipped %s/%s: service not running", app.id, section.id)
                return False

            scratch = self.state.scratch()
            scratch.error_message = ""
            scratch.success_message = ""
            await provider.load_data(app, scratch, self.ctx)
        except SectionProviderError as e:
            logger.warning("Section %s/%s failed: %s", app.id, section.id, e)
            if self.is_current(generation):
                self.state.error_message = str(e)
            raise

        if not self.is_current(generation):
            logger.info(
                "Discarded stale %s/%s result (generation %d, current %d)",
                app.id, section.id, generation, self._generation,
            )
            return False

        self.state.copy_fields(scratch, provider.owns + _BANNER_FIELDS)
        logger.debug("Committed %s/%s (generation %d)", app.id, section.id, generation)
        return True

    async def load_default(self, app: ApplicationDefinition) -> bool:
        section = app.default_section
        if section is None:
            return False
        return await self.load(app, section)

    def switch(self, app: ApplicationDefinition, section: SectionDefinition) -> asyncio.Task[bool]:
        """Cancel any in-flight load and start loading ``section`` in the background."""
        self.cancel()
        self._task = asyncio.create_task(self.load(app, section))
        self._task.add_done_callback(_retrieve_failure)
        return self._task

    def cancel(self) -> None:
        """Cancel the in-flight background load; its result can never commit."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.debug("Cancelled in-flight section load")
        self._task = None
        self._generation += 1

    def reset(self) -> None:
        """Cancel pending work and put the state back to its defaults."""
        self.cancel()
        self.state.reset()

    async def _is_running(self, app: ApplicationDefinition) -> bool:
        return await require_service(app, self.ctx).is_running()


def _retrieve_failure(task: asyncio.Task[bool]) -> None:
    """Collect the exception of a background load nobody awaits.

    The failure is already on the state's error banner and in the log.
    """
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug("Background section load ended with %s: %s", type(error).__name__, error)
