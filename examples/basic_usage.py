"""
Basic usage example for logshipper.

Ships a small bulk of structured records to CloudWatch Logs, one log stream
per host. Point ``LOGSHIPPER_AWS__ENDPOINT_URL`` at a local emulator to try it
without an AWS account.
"""

import asyncio
from datetime import datetime, timezone

from logshipper import Settings, get_sink


async def main() -> None:
    settings = Settings(
        destination={
            "log_group_name": "/example/%{service}",
            "log_stream_name": "%{host}",
            "message_template": "%{level} %{message}",
        },
        core={"internal_logging_enabled": True},
    )
    sink = get_sink(settings, fallback_to_stderr=True)
    await sink.start()

    now = datetime.now(timezone.utc)
    records = [
        {"@timestamp": now, "service": "api", "host": "web-1", "level": "INFO",
         "message": "started"},
        {"@timestamp": now, "service": "api", "host": "web-2", "level": "INFO",
         "message": "started"},
        {"@timestamp": now, "service": "api", "host": "web-1", "level": "WARN",
         "message": "slow request"},
    ]
    try:
        report = await sink.write_batch(records)
        print(
            f"delivered={report.events_delivered} failed={report.events_failed}"
        )
    finally:
        await sink.stop()


if __name__ == "__main__":
    asyncio.run(main())
