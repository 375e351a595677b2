"""
Tasks: one request run through builder, connector and handler.

A Task is started and stopped through its Session, which owns the
registry of active tasks. The execution unit of a started task is a
separate ``asyncio.Task``.
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, Union

from .contracts import Connector, RequestBuilder, ResponseHandler
from .http_primitives import Request, Response, merge_headers
from .url import Url

if TYPE_CHECKING:
    from .session import Session  # Forward reference

logger = logging.getLogger(__name__)

LogAction = Callable[[str], Union[None, Awaitable[None]]]


class TaskState(Enum):
    """Lifecycle of a task."""
    CREATED = "created"          # Not started yet
    ENQUEUED = "enqueued"        # Waiting for the session to register it
    RUNNING = "running"          # Execution unit launched
    COMPLETED = "completed"      # Response produced (success or captured failure)
    CANCELLED = "cancelled"      # Stopped before completing


class Task:
    """
    One HTTP request and the components that process it.

    Example:
        task = Task(session, Request.create("https://example.com/items"),
                    response_handler=BasicResponseHandler(print))
        task.start()
        response = await task.wait()
    """

    def __init__(
        self,
        session: "Session",
        request: Union[Request, Url, str],
        request_builder: Optional[RequestBuilder] = None,
        connector: Optional[Connector] = None,
        response_handler: Optional[ResponseHandler] = None,
        log_action: Optional[LogAction] = None,
    ):
        """
        Initialize a task.

        Args:
            session: Session that schedules the task
            request: Request, or a URL to create one from
            request_builder: Completes the request before it is sent
            connector: Performs the request (default: the session's
                configured HTTP/1.1 connector)
            response_handler: Consumes the response
            log_action: Receives request/response diagnostics (sync or
                async callable); the module logger is used when None
        """
        if not isinstance(request, Request):
            request = Request.create(request)

        self.session = session
        self.request = request
        self.request_builder = request_builder
        self.connector = connector if connector is not None else session.make_connector()
        self.response_handler = response_handler
        self.log_action = log_action

        self._state = TaskState.CREATED
        self._unit: Optional[asyncio.Task] = None
        self._finished: Optional[asyncio.Event] = None
        self._response: Optional[Response] = None
        self.handler_error: Optional[Exception] = None

    @property
    def state(self) -> TaskState:
        return self._state

    @property
    def response(self) -> Optional[Response]:
        """The response, once the connector (or a failure) produced one."""
        return self._response

    @property
    def done(self) -> bool:
        return self._state in (TaskState.COMPLETED, TaskState.CANCELLED)

    def start(self) -> None:
        """
        Schedule the task on its session.

        Starting a task that is already scheduled, running or finished
        does nothing. Must be called with a running event loop.
        """
        self.session.start(self)

    def stop(self) -> None:
        """
        Cancel the task.

        Cancels the execution unit, asks the connector to abort and
        removes the task from the session. A no-op for a task that was
        never started or has finished.
        """
        if self._state in (TaskState.CREATED, TaskState.COMPLETED, TaskState.CANCELLED):
            return

        logger.debug(f"Stopping {self!r}")
        self._state = TaskState.CANCELLED
        if self._unit is not None:
            self._unit.cancel()
        self.connector.stop()
        self.session._enqueue_remove(self)
        if self._unit is None and self._finished is not None:
            self._finished.set()

    async def wait(self) -> Optional[Response]:
        """
        Wait until the task finished.

        Returns:
            The response, or None if the task was cancelled first

        Raises:
            RuntimeError: If the task was never started
        """
        if self._finished is None:
            raise RuntimeError("Task was not started")
        await self._finished.wait()
        return self._response

    def _mark_enqueued(self) -> None:
        self._state = TaskState.ENQUEUED
        self._finished = asyncio.Event()

    def _launch(self) -> None:
        """Create the execution unit; called by the session consumer."""
        self._state = TaskState.RUNNING
        self._unit = asyncio.create_task(self._run())
        # A unit cancelled before its first step never runs its finally block
        self._unit.add_done_callback(lambda _: self._finished.set())

    def _cancelled_while_queued(self) -> None:
        self._state = TaskState.CANCELLED
        if self._finished is not None:
            self._finished.set()

    async def _send_log(self, render: Callable[[], str]) -> None:
        if self.log_action is None:
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(render())
            return

        try:
            result = self.log_action(render())
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"Log action failed: {e}")

    def _merge_additional_headers(self, request: Request) -> Request:
        additional = self.session.additional_headers
        if not additional:
            return request
        return request.replace(headers=merge_headers(request.headers, additional))

    async def _run(self) -> None:
        request = self.request
        try:
            try:
                try:
                    request = self._merge_additional_headers(request)
                    if self.request_builder is not None:
                        request = await self.request_builder.fill_request(request)
                    await self._send_log(request.describe)
                    response = await self.connector.perform(self, request)
                except Exception as e:
                    logger.error(f"{self!r} failed before a response was received: {e}")
                    response = Response.from_error(
                        e, origin_url=_url_or_none(request.url), user_info=request.user_info
                    )
                await self._send_log(response.describe)
            finally:
                if self.request_builder is not None:
                    try:
                        self.request_builder.clean()
                    except Exception as e:
                        logger.warning(f"Error cleaning request builder: {e}")

            if self._state is TaskState.CANCELLED:
                # The connector finished despite stop()
                logger.debug(f"{self!r} was stopped; response discarded")
                return
            self._response = response
            self._state = TaskState.COMPLETED

            if self.response_handler is not None:
                try:
                    await self.response_handler.handle_response(response)
                except Exception as e:
                    logger.exception(f"Response handler of {self!r} failed")
                    self.handler_error = e
        finally:
            self.session._enqueue_remove(self)
            if self._finished is not None:
                self._finished.set()

    def __repr__(self) -> str:
        return f"<Task {_url_or_none(self.request.url)} state={self._state.value}>"


def _url_or_none(url: Url) -> Optional[str]:
    try:
        return url.build()
    except ValueError:
        return None
