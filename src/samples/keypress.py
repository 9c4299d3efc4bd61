"""Outbound IVR that collects keypresses and reads them back.

    python -m samples.keypress +15551230001 +15551230002
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from calls.engine import CallEngine
from calls.errors import CallEndedError, CallInvocationError

LOGGER = logging.getLogger(__name__)


async def script(engine: CallEngine, to: str, from_: str) -> str:
    """Run the keypress tester and return how the call went."""

    try:
        LOGGER.info("Calling %s from %s", to, from_)
        call = await engine.make_call(to, from_)

        if call.status != "in-progress":
            LOGGER.info("Call was not answered. Reason: %s, SIP code: %s", call.status, call.sip_response_code)
            return call.status or "failed"

        call.say("Welcome to the keypress tester")
        while True:
            call.gather().say("Please press some digits, or pound to finish")
            await call.submit_response()

            if not call.digits:
                break
            call.say(f"You pressed {' '.join(call.digits)}")

        call.say("Thank you for your input. Goodbye!")
        await call.submit_response(final=True)
        return "completed"

    except CallEndedError:
        LOGGER.info("Called party hung up")
        return "hung up"
    except CallInvocationError as exc:
        LOGGER.error("Call to %s failed: %s", to, exc.detail)
        return "failed"


def main() -> None:
    from main import configure_logging, run_script

    parser = argparse.ArgumentParser(description="Collect keypresses on an outbound call")
    parser.add_argument("to_number")
    parser.add_argument("from_number")
    args = parser.parse_args()

    configure_logging()
    asyncio.run(run_script(script, args.to_number, args.from_number))


if __name__ == "__main__":
    main()
