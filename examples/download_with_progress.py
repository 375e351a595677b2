"""
Download example with progress reporting and cancellation.
"""

import asyncio
import logging
import sys

from api_connection import ConnectorSettings, ProgressInfo, Session

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def report(info: ProgressInfo) -> None:
    if info.is_last:
        logger.info(f"Done: {info.total_received} bytes")
    elif info.supposed_size:
        percent = info.total_received * 100 // info.supposed_size
        logger.info(f"{percent}% ({info.total_received}/{info.supposed_size})")


async def main(destination: str):
    async with Session() as session:
        await session.set_component_settings(ConnectorSettings(read_timeout=10.0))

        task = session.request_download(
            destination,
            "https://httpbin.org/bytes/100000",
            params={"seed": 1},
            progress_action=report,
        )
        task.start()

        # Give up after 30 seconds
        try:
            response = await asyncio.wait_for(asyncio.shield(task.wait()), timeout=30.0)
        except asyncio.TimeoutError:
            task.stop()
            logger.warning("Download cancelled")
            return

        if response.is_success:
            logger.info(f"Saved to {response.body_file}")
        else:
            logger.error(f"Download failed: {response.error or response.status_code}")


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "download.bin"))
