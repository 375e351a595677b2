"""
multipart/form-data upload example.

The body is written into a temporary directory before sending, so the
upload never has to be held in memory; the file is deleted when the
task finishes.
"""

import asyncio
import logging
import tempfile
from pathlib import Path

from api_connection import (
    JsonResponseHandler,
    MultipartSection,
    MultipartSettings,
    Session,
)

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def upload(session: Session, attachment: Path):
    handler = JsonResponseHandler()
    task = session.request_multipart(
        "https://httpbin.org/post",
        {
            "title": "Quarterly report",
            "attachment": attachment,
            "raw": MultipartSection.make("raw", b"\x00\x01\x02", filename="raw.bin"),
        },
        response_handler=handler,
    )
    task.start()
    response = await task.wait()

    if handler.is_success:
        files = handler.success_object.get("files", {})
        logger.info(f"Uploaded {len(files)} files, status {response.status_code}")
    else:
        logger.error(f"Upload failed: {response.error or response.status_code}")


async def main():
    with tempfile.TemporaryDirectory() as work_dir:
        attachment = Path(work_dir) / "report.txt"
        attachment.write_text("Revenue went up.\n")

        async with Session() as session:
            await session.set_component_settings(MultipartSettings(output_dir=Path(work_dir)))
            await upload(session, attachment)


if __name__ == "__main__":
    asyncio.run(main())
