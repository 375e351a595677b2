"""
Session: scheduler and configuration scope of tasks.

The registry of active tasks and the component settings table are only
mutated by a single consumer reading an ``asyncio.Queue`` of commands,
so registry changes apply in submission order without locks.
"""

import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type, TypeVar, Union

from .builders import FormUrlEncodedRequestBuilder, JsonBodyRequestBuilder
from .connector import HTTP11Connector, ProgressAction
from .contracts import Connector, ResponseHandler
from .encoding import PercentEncoder
from .http_primitives import Headers, HeadersLike, Request, normalize_headers
from .multipart import MultipartFormDataRequestBuilder
from .network.backend import NetworkBackend
from .serialization import JsonSerializer
from .settings import (
    DEFAULT_CONNECTOR_SETTINGS,
    DEFAULT_ENCODER_SETTINGS,
    DEFAULT_MULTIPART_SETTINGS,
    DEFAULT_URL_SETTINGS,
    ConnectorSettings,
    EncoderSettings,
    MultipartSettings,
    UrlSettings,
    resolve_settings,
)
from .task import Task, TaskState
from .url import Url

logger = logging.getLogger(__name__)

SettingsT = TypeVar("SettingsT")

RequestLike = Union[Request, Url, str]


class CommandKind(Enum):
    ADD = "add"
    REMOVE = "remove"
    SETTINGS = "settings"


@dataclass
class Command:
    kind: CommandKind
    task: Optional[Task] = None
    settings: Any = None
    done: Optional[asyncio.Future] = None


class Session:
    """
    Scheduler of tasks plus session-wide configuration.

    ``additional_headers`` are merged into every request before its
    builder runs. Component settings stored with
    ``set_component_settings`` act as defaults for the ``make_*``
    factories, below call-site arguments and above library defaults.

    Sessions must be used from a single event loop.
    """

    DEFAULT_CHARSET = "UTF-8"

    def __init__(
        self,
        additional_headers: Optional[HeadersLike] = None,
        charset: Optional[str] = None,
        backend: Optional[NetworkBackend] = None,
    ):
        """
        Initialize a session.

        Args:
            additional_headers: Headers added to every request
            charset: Default charset of encoders and body builders
            backend: Network backend of the connectors this session makes
        """
        self.additional_headers: Headers = normalize_headers(additional_headers)
        self.charset = charset or self.DEFAULT_CHARSET
        self.backend = backend

        self._tasks: Dict[Task, None] = {}  # insertion ordered set
        self._pending: Dict[Task, None] = {}
        self._settings: Dict[type, Any] = {}
        self._queue: Optional[asyncio.Queue] = None
        self._consumer: Optional[asyncio.Task] = None
        self._closed = False

    # Command queue

    def _ensure_consumer(self) -> asyncio.Queue:
        if self._closed:
            raise RuntimeError("Session is closed")
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._consumer is None or self._consumer.done():
            self._consumer = asyncio.create_task(self._consume())
            logger.debug("Session command consumer started")
        return self._queue

    async def _consume(self) -> None:
        queue = self._queue
        while True:
            command = await queue.get()
            try:
                self._apply(command)
            except Exception as e:
                logger.error(f"Error applying {command.kind.value} command: {e}")
                if command.done is not None and not command.done.done():
                    command.done.set_exception(e)
            finally:
                queue.task_done()

    def _apply(self, command: Command) -> None:
        if command.kind is CommandKind.ADD:
            task = command.task
            self._pending.pop(task, None)
            if task in self._tasks:
                logger.debug(f"{task!r} already registered")
                return
            if task.state is TaskState.CANCELLED:
                logger.debug(f"{task!r} cancelled while queued")
                task._cancelled_while_queued()
                return
            self._tasks[task] = None
            task._launch()
            logger.debug(f"Registered {task!r} ({len(self._tasks)} active)")

        elif command.kind is CommandKind.REMOVE:
            task = command.task
            self._pending.pop(task, None)
            if task in self._tasks:
                del self._tasks[task]
                logger.debug(f"Removed {task!r} ({len(self._tasks)} active)")

        elif command.kind is CommandKind.SETTINGS:
            self._settings[type(command.settings)] = command.settings
            if command.done is not None and not command.done.done():
                command.done.set_result(None)

    def _enqueue_remove(self, task: Task) -> None:
        if self._queue is None:
            return
        self._queue.put_nowait(Command(CommandKind.REMOVE, task=task))

    # Scheduling

    def start(self, task: Task) -> None:
        """
        Schedule a task.

        A no-op when the task is registered, already queued or finished.

        Raises:
            RuntimeError: If there is no running event loop or the
                session is closed
        """
        if task.session is not self:
            raise ValueError("Task belongs to another session")
        if task in self._tasks or task in self._pending:
            return
        if task.state is not TaskState.CREATED:
            logger.debug(f"{task!r} already ran; not starting it again")
            return

        queue = self._ensure_consumer()
        self._pending[task] = None
        task._mark_enqueued()
        queue.put_nowait(Command(CommandKind.ADD, task=task))

    def stop(self, task: Task) -> None:
        """Stop a task of this session."""
        task.stop()

    def stop_all(self) -> None:
        """Stop every registered or queued task."""
        for task in list(self._tasks) + list(self._pending):
            task.stop()

    async def drain(self) -> None:
        """Wait until every command queued so far has been applied."""
        if self._queue is not None:
            await self._queue.join()

    async def aclose(self) -> None:
        """
        Stop all tasks and the command consumer.

        The session cannot schedule tasks afterwards.
        """
        units = [task._unit for task in self._tasks if task._unit is not None]
        self.stop_all()
        if units:
            await asyncio.gather(*units, return_exceptions=True)
        await self.drain()
        self._closed = True
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None
        logger.debug("Session closed")

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    @property
    def active_tasks(self) -> List[Task]:
        """Registered tasks, in registration order."""
        return list(self._tasks)

    # Component settings

    async def set_component_settings(self, settings: Any) -> None:
        """
        Store settings for one component type, replacing earlier ones.

        The change is applied through the command queue, after every
        command submitted before it.
        """
        if not dataclasses.is_dataclass(settings) or isinstance(settings, type):
            raise TypeError("settings must be a settings dataclass instance")
        queue = self._ensure_consumer()
        done = asyncio.get_running_loop().create_future()
        queue.put_nowait(Command(CommandKind.SETTINGS, settings=settings, done=done))
        await done

    def get_component_settings(self, settings_type: Type[SettingsT]) -> Optional[SettingsT]:
        """Get the stored settings of a type, or None."""
        return self._settings.get(settings_type)

    # Factories

    def make_url(
        self,
        path_components: Iterable[str] = (),
        queries: Optional[Mapping[str, Any]] = None,
        query: Optional[str] = None,
        force_path_end_with_slash: bool = False,
        scheme: Optional[str] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        user_name: Optional[str] = None,
        password: Optional[str] = None,
    ) -> Url:
        """Create a Url with scheme, host, port and credentials from settings."""
        settings = resolve_settings(
            UrlSettings,
            {
                "scheme": scheme,
                "host": host,
                "port": port,
                "user_name": user_name,
                "password": password,
            },
            self.get_component_settings(UrlSettings),
            DEFAULT_URL_SETTINGS,
        )
        return Url(
            scheme=settings.scheme,
            host=settings.host,
            port=settings.port,
            path_components=tuple(path_components),
            force_path_end_with_slash=force_path_end_with_slash,
            queries=queries,
            query=query,
            user_name=settings.user_name,
            password=settings.password,
        )

    def make_url_encoder(
        self,
        charset: Optional[str] = None,
        space_as_plus: Optional[bool] = None,
        lower_case: Optional[bool] = None,
        unreserved_chars: Optional[str] = None,
        unreserved_predicate: Optional[Any] = None,
    ) -> PercentEncoder:
        """Create a PercentEncoder; the session charset precedes the library default."""
        settings = resolve_settings(
            EncoderSettings,
            {
                "charset": charset,
                "space_as_plus": space_as_plus,
                "lower_case": lower_case,
                "unreserved_chars": unreserved_chars,
                "unreserved_predicate": unreserved_predicate,
            },
            self.get_component_settings(EncoderSettings),
            dataclasses.replace(DEFAULT_ENCODER_SETTINGS, charset=self.charset),
        )
        return PercentEncoder.from_settings(settings)

    def make_connector(
        self,
        output_file: Optional[Union[str, Path]] = None,
        connect_timeout: Optional[float] = None,
        read_timeout: Optional[float] = None,
        enable_caching: Optional[bool] = None,
        redirect: Optional[bool] = None,
        max_redirects: Optional[int] = None,
        progress_action: Optional[ProgressAction] = None,
    ) -> HTTP11Connector:
        """Create an HTTP/1.1 connector using the session's settings and backend."""
        settings = resolve_settings(
            ConnectorSettings,
            {
                "connect_timeout": connect_timeout,
                "read_timeout": read_timeout,
                "enable_caching": enable_caching,
                "redirect": redirect,
                "max_redirects": max_redirects,
            },
            self.get_component_settings(ConnectorSettings),
            DEFAULT_CONNECTOR_SETTINGS,
        )
        return HTTP11Connector(
            output_file=output_file,
            connect_timeout=settings.connect_timeout,
            read_timeout=settings.read_timeout,
            enable_caching=settings.enable_caching,
            redirect=settings.redirect,
            max_redirects=settings.max_redirects,
            progress_action=progress_action,
            backend=self.backend,
            encoder=self.make_url_encoder(),
        )

    def make_form_url_encoded_request_builder(
        self,
        params: Any,
        is_body: bool = False,
        encoder: Optional[PercentEncoder] = None,
    ) -> FormUrlEncodedRequestBuilder:
        return FormUrlEncodedRequestBuilder(
            is_body=is_body,
            params=params,
            encoder=encoder or self.make_url_encoder(),
        )

    def make_multipart_request_builder(
        self,
        params: Any,
        output: Optional[Union[str, Path]] = None,
        auto_delete_output: Optional[bool] = None,
        boundary: Optional[str] = None,
        charset: Optional[str] = None,
        enable_log: bool = True,
    ) -> MultipartFormDataRequestBuilder:
        """
        Create a multipart builder.

        ``output`` falls back to the session's ``MultipartSettings.output_dir``;
        the charset falls back to the session charset.
        """
        settings = resolve_settings(
            MultipartSettings,
            {
                "output_dir": output,
                "auto_delete_output": auto_delete_output,
                "charset": charset,
            },
            self.get_component_settings(MultipartSettings),
            dataclasses.replace(DEFAULT_MULTIPART_SETTINGS, charset=self.charset),
        )
        return MultipartFormDataRequestBuilder(
            params=params,
            output=settings.output_dir,
            auto_delete_output=settings.auto_delete_output,
            boundary=boundary,
            charset=settings.charset,
            enable_log=enable_log,
        )

    # Shortcuts, returning tasks that are not started yet

    def request_form_url_encoded(
        self,
        request: RequestLike,
        params: Any,
        is_body: bool = False,
        response_handler: Optional[ResponseHandler] = None,
        connector: Optional[Connector] = None,
    ) -> Task:
        """Task sending ``params`` form-url-encoded in the query (GET) or body (POST)."""
        return Task(
            self,
            request,
            request_builder=self.make_form_url_encoded_request_builder(params, is_body=is_body),
            connector=connector,
            response_handler=response_handler,
        )

    def request_json(
        self,
        request: RequestLike,
        params: Any,
        response_handler: Optional[ResponseHandler] = None,
        connector: Optional[Connector] = None,
        serializer: Optional[JsonSerializer] = None,
    ) -> Task:
        """Task POSTing ``params`` as a JSON body."""
        return Task(
            self,
            request,
            request_builder=JsonBodyRequestBuilder(
                params, serializer=serializer, charset=self.charset
            ),
            connector=connector,
            response_handler=response_handler,
        )

    def request_multipart(
        self,
        request: RequestLike,
        params: Any,
        response_handler: Optional[ResponseHandler] = None,
        connector: Optional[Connector] = None,
        output: Optional[Union[str, Path]] = None,
    ) -> Task:
        """Task POSTing ``params`` as multipart/form-data."""
        return Task(
            self,
            request,
            request_builder=self.make_multipart_request_builder(params, output=output),
            connector=connector,
            response_handler=response_handler,
        )

    def request_download(
        self,
        destination: Union[str, Path],
        request: RequestLike,
        params: Any = None,
        is_body: bool = False,
        progress_action: Optional[ProgressAction] = None,
        response_handler: Optional[ResponseHandler] = None,
    ) -> Task:
        """Task writing the response body to ``destination``."""
        return Task(
            self,
            request,
            request_builder=self.make_form_url_encoded_request_builder(params, is_body=is_body),
            connector=self.make_connector(
                output_file=destination, progress_action=progress_action
            ),
            response_handler=response_handler,
        )

    def __repr__(self) -> str:
        return f"<Session active={len(self._tasks)} pending={len(self._pending)}>"
