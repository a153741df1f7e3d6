import os
import pkgutil
from collections.abc import Awaitable, Callable
from importlib import import_module
from typing import Any

from fastapi import APIRouter

from presence_relay.api.ws.constants import ClientEventType
from presence_relay.logging import logger

EventHandlerType = Callable[[Any, Any], Awaitable[None]]


class EventRouter:
    """
    Router for inbound WebSocket events.

    Maps every ClientEventType to exactly one handler. Handlers are plain
    async functions `handler(websocket, request)` registered with the
    `register` decorator and invoked by each connection's dispatch loop.
    """

    def __init__(self):
        self.handlers_registry: dict[ClientEventType, EventHandlerType] = {}

    def register(self, *event_types: ClientEventType):
        """
        Decorator to register a handler for one or more event types.

        Registering the same function twice is a no-op (module reload);
        registering a different function for a taken event type raises.

        Args:
            *event_types: The client events the handler is responsible for.

        Returns:
            A decorator that registers and returns the handler unchanged.
        """

        def decorator(func: EventHandlerType):
            for event_type in event_types:
                if event_type in self.handlers_registry:
                    if self.handlers_registry[event_type] != func:
                        raise ValueError(
                            f"Different handler already registered for event {event_type}"
                        )
                    continue

                self.handlers_registry[event_type] = func
                logger.info(
                    f"Register {func.__module__}.{func.__name__} for event: {event_type}"
                )

            return func

        return decorator

    def missing_handlers(self) -> list[ClientEventType]:
        return [
            event_type
            for event_type in ClientEventType
            if event_type not in self.handlers_registry
        ]

    def ensure_exhaustive(self) -> None:
        """
        Verify every client event type has a handler.

        Raises:
            RuntimeError: If any event type is left unhandled.
        """
        if missing := self.missing_handlers():
            raise RuntimeError(
                "No handler registered for events: "
                + ", ".join(str(event_type) for event_type in missing)
            )

    async def dispatch(self, websocket: Any, request: Any) -> None:
        """
        Route a validated client event to its handler.

        Args:
            websocket: The connection the event arrived on.
            request: A validated client event model.
        """
        handler = self.handlers_registry[ClientEventType(request.event)]
        await handler(websocket, request)


event_router = EventRouter()


# Track registered modules to prevent duplicate logging
_registered_http_modules: set[str] = set()
_registered_ws_modules: set[str] = set()


def collect_subrouters() -> APIRouter:
    """
    Collects and registers all API and WebSocket routers for the application.

    Iterates through the `api/http` and `api/ws/consumers` directories,
    imports the corresponding modules, and adds their routers to the main
    `APIRouter` instance.
    """
    main_router: APIRouter = APIRouter()

    app_dir = os.path.dirname(__file__)
    app_name = os.path.basename(app_dir)

    for _, module, _ in pkgutil.iter_modules([f"{app_dir}/api/http"]):
        api = import_module(f".{module}", package=f"{app_name}.api.http")
        main_router.include_router(api.router)

        if module not in _registered_http_modules:
            logger.info(f'Register "{module}" api')
            _registered_http_modules.add(module)

    for _, module, _ in pkgutil.iter_modules([f"{app_dir}/api/ws/consumers"]):
        ws_consumer = import_module(
            f".{module}", package=f"{app_name}.api.ws.consumers"
        )
        main_router.include_router(ws_consumer.router)

        if module not in _registered_ws_modules:
            logger.info(f'Register "{module}" websocket consumer')
            _registered_ws_modules.add(module)

    return main_router
