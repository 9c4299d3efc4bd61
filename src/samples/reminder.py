"""Appointment reminder using asynchronous answering machine detection.

The patient is asked to confirm, cancel or reschedule; answering machines get a
message instead. Appointment details come from a JSON file:

    {"to": "+1...", "from": "+1...", "forward": "+1...", "patient": "Orpheus",
     "doctor": "Dr. Asclepius", "date": "Monday, May 1st", "time": "10 AM"}

    python -m samples.reminder appointment.json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from calls.engine import CallEngine
from calls.errors import CallEndedError, CallInvocationError, CallTimeoutError
from calls.session import Call
from calls.timeout import Timeout

LOGGER = logging.getLogger(__name__)

POLL_INTERVAL = 1.0
DETECTION_TIMEOUT = 30.0


async def wait_for_answered_by(call: Call, *, interval: float = POLL_INTERVAL, timeout: float = DETECTION_TIMEOUT) -> str:
    """Poll the call until async AMD reports who answered."""

    async def _poll() -> str:
        while not call.answered_by:
            await Timeout(interval).wait()
        return call.answered_by

    return await Timeout(timeout, "Answering machine detection timed out").apply(_poll())


def _appointment(appt: dict[str, Any]) -> str:
    return f"You have an appointment with {appt['doctor']}, on {appt['date']}, at {appt['time']} . "


async def _leave_message(call: Call, appt: dict[str, Any]) -> None:
    message = _appointment(appt)
    call.say(
        f"This is an appointment reminder for {appt['patient']} . {message}"
        f"I repeat, {message}"
        f"If you wish to change or cancel your appointment, please call the doctor's office on {appt['forward']} ."
    )
    call.hangup()
    await call.submit_response()


async def _ask_patient(call: Call, appt: dict[str, Any]) -> str:
    tries = 0
    while tries < 3:
        tries += 1
        call.gather(num_digits=1, finish_on_key="").say(
            _appointment(appt) + "Please press 1 to confirm your appointment, 2 to cancel, or 3 to reschedule. "
            "Press star to hear this message again."
        )
        await call.submit_response()

        if call.digits == "*":
            tries = 0
        elif call.digits == "1":
            call.say("Thank you for confirming your appointment. Goodbye.")
            call.hangup()
            await call.submit_response()
            return "confirmed"
        elif call.digits == "2":
            call.say("Thank you. We will cancel your appointment. Goodbye.")
            call.hangup()
            await call.submit_response()
            return "canceled"
        elif call.digits == "3":
            call.say(f"Connecting you to {appt['doctor']}'s office")
            call.dial(appt["forward"])
            await call.submit_response()
            status = call.child_calls[-1].dial_call_status
            outcome = "transferred"
            if status != "completed":
                outcome = "transfer failed"
                call.say("Sorry, we were unable to transfer your call. Goodbye.")
            call.hangup()
            await call.submit_response()
            return outcome

    call.say("We did not get your response. Goodbye.")
    call.hangup()
    await call.submit_response()
    return "no response"


async def script(engine: CallEngine, appt: dict[str, Any]) -> dict[str, Any]:
    """Call the patient and record the outcome on a copy of ``appt``."""

    result = dict(appt)
    try:
        call = await engine.make_call(
            appt["to"],
            appt["from"],
            machine_detection="DetectMessageEnd",
            async_amd=True,
        )
        if call.status != "in-progress":
            result.update(outcome="no answer", reason=call.status, sip_code=call.sip_response_code)
            return result

        call.pause(length=3)
        call.say(f"Hello. This is an appointment reminder for {appt['patient']}")
        await call.submit_response()

        try:
            answered_by = await wait_for_answered_by(call, interval=POLL_INTERVAL, timeout=DETECTION_TIMEOUT)
        except CallTimeoutError as exc:
            call.say("Sorry, we are unable to complete this call. Goodbye.")
            call.hangup()
            await call.submit_response()
            result.update(outcome="failed", reason=exc.detail)
            return result

        if answered_by != "human":
            await _leave_message(call, appt)
            result["outcome"] = "left message"
        else:
            result["outcome"] = await _ask_patient(call, appt)

    except CallEndedError:
        result["outcome"] = "hung up"
    except CallInvocationError as exc:
        result.update(outcome="failed", reason=exc.detail)
    finally:
        LOGGER.info("Reminder outcome: %s", result.get("outcome"))
    return result


def main() -> None:
    from main import configure_logging, run_script

    parser = argparse.ArgumentParser(description="Call a patient with an appointment reminder")
    parser.add_argument("appointment", type=Path, help="JSON file with the appointment details")
    args = parser.parse_args()

    configure_logging()
    appt = json.loads(args.appointment.read_text(encoding="utf-8"))
    print(json.dumps(asyncio.run(run_script(script, appt)), indent=2))


if __name__ == "__main__":
    main()
