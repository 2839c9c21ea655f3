"""FastAPI dependencies shared by route modules."""

from typing import Annotated

from fastapi import Depends, Request

from websy.core.exceptions import ConfigurationError
from websy.services.chat import ChatOrchestrator


def get_orchestrator(request: Request) -> ChatOrchestrator:
    """Return the orchestrator installed on the application.

    Raises:
        ConfigurationError: If the app was created without one.
    """
    orchestrator: ChatOrchestrator | None = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise ConfigurationError("Chat orchestrator is not configured")
    return orchestrator


Orchestrator = Annotated[ChatOrchestrator, Depends(get_orchestrator)]
