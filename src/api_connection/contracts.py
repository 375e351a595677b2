"""
Pipeline contracts for api_connection.

A task runs its request through three pluggable stages: a
RequestBuilder that fills in the request, a Connector that performs it
and a ResponseHandler that consumes the result.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from .http_primitives import Request, Response

if TYPE_CHECKING:
    from .task import Task  # Forward reference


class RequestBuilder(ABC):
    """
    Interface for objects that complete a request before it is sent.

    Builders only fill gaps: a field already set on the incoming request
    is never overwritten.
    """

    @abstractmethod
    async def fill_request(self, request: Request) -> Request:
        """
        Complete the request data.

        Args:
            request: The request as configured by the caller

        Returns:
            A new Request with the missing fields filled in

        Raises:
            Exception: Any failure; the task turns it into a failure
                Response
        """
        pass

    @abstractmethod
    def clean(self) -> None:
        """
        Release resources owned by the builder, e.g. temporary files.

        Called exactly once per task execution, whether or not the
        request succeeded.
        """
        pass


class Connector(ABC):
    """
    Interface for transports that execute one request.

    Implementations must never raise from ``perform``: every transport
    failure is captured into ``Response.error``.
    """

    @abstractmethod
    async def perform(self, task: "Task", request: Request) -> Response:
        """
        Perform the request and return the result.

        Args:
            task: The task on whose behalf the request runs
            request: The completed request

        Returns:
            The response, possibly carrying a captured error
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """
        Best-effort cancellation of an in-flight transport operation.

        Must be safe to call any number of times, including after the
        request finished.
        """
        pass


class ResponseHandler(ABC):
    """Interface for the final consumer of a task's response."""

    @abstractmethod
    async def handle_response(self, response: Response) -> None:
        """
        Consume the response.

        Args:
            response: The response, possibly carrying a captured error
        """
        pass
