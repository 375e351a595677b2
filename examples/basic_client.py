"""
Basic api_connection example.

This example demonstrates how to run GET, form and JSON requests as
tasks of a Session, with the session settings supplying the host.
"""

import asyncio
import logging
from dataclasses import dataclass

from api_connection import (
    BasicResponseHandler,
    JsonResponseHandler,
    Session,
    Task,
    UrlSettings,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@dataclass
class Echo:
    url: str
    headers: dict


async def simple_get_request(session: Session):
    """Demonstrate a simple GET request."""
    logger.info("Making simple GET request...")

    handler = BasicResponseHandler()
    task = Task(session, session.make_url(["get"]), response_handler=handler)
    task.start()
    response = await task.wait()

    if handler.is_success:
        logger.info(f"Response status: {response.status_code}")
        logger.info(f"Response body length: {len(response.body)} bytes")
    else:
        logger.error(f"Request failed: {response.error or response.status_code}")


async def form_request(session: Session):
    """Demonstrate form parameters in the query string."""
    logger.info("Making GET request with form parameters...")

    handler = JsonResponseHandler(Echo)
    task = session.request_form_url_encoded(
        session.make_url(["get"]),
        {"name": "Ann Lee", "page": 2},
        response_handler=handler,
    )
    task.start()
    await task.wait()

    if handler.is_success:
        logger.info(f"Server saw URL: {handler.success_object.url}")
    else:
        logger.error(f"Decoding failed: {handler.json_error}")


async def json_request(session: Session):
    """Demonstrate a JSON POST."""
    logger.info("Making JSON POST request...")

    handler = JsonResponseHandler()
    task = session.request_json(
        session.make_url(["post"]),
        {"message": "Hello, World!"},
        response_handler=handler,
    )
    task.start()
    await task.wait()

    if handler.is_success and handler.success_object.get("json"):
        logger.info("✓ Our data was received by the server")


async def main():
    """Run all examples."""
    logger.info("Starting api_connection examples...")

    async with Session(additional_headers={"User-Agent": "api-connection-example"}) as session:
        await session.set_component_settings(UrlSettings(scheme="https", host="httpbin.org"))

        await simple_get_request(session)
        print()

        await form_request(session)
        print()

        await json_request(session)

    logger.info("All examples completed!")


if __name__ == "__main__":
    asyncio.run(main())
