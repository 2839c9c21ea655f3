"""Run command processors over a provider answer in a fixed order."""

import logging
from collections.abc import Sequence

from websy.services.commands.base import CommandProcessor

logger = logging.getLogger(__name__)


class CommandPipeline:
    """Feeds each processor the text produced by the previous one.

    Output only ever grows: a processor whose result does not start with the
    text it was given is ignored for that turn.
    """

    def __init__(self, processors: Sequence[CommandProcessor] = ()) -> None:
        self._processors = list(processors)

    @property
    def processors(self) -> list[CommandProcessor]:
        return list(self._processors)

    async def run(self, answer: str, user_message: str, *, actor_id: str = "system") -> str:
        """Return ``answer`` with every processor's blocks appended."""
        text = answer
        for processor in self._processors:
            try:
                result = await processor.process(text, user_message, actor_id=actor_id)
            except Exception:
                logger.exception(
                    "Command processor raised, skipping", extra={"processor": processor.name}
                )
                continue
            if not result.startswith(text):
                logger.error(
                    "Command processor rewrote prior output, discarding its result",
                    extra={"processor": processor.name},
                )
                continue
            if len(result) > len(text):
                logger.info(
                    "Command block appended",
                    extra={"processor": processor.name, "added_chars": len(result) - len(text)},
                )
            text = result
        return text
