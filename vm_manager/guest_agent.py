import json
import logging

import libvirt
import libvirt_qemu

from .error import GuestAgentError

logger = logging.getLogger(__name__)

# Seconds to wait for the guest agent to answer
GUEST_AGENT_TIMEOUT = 10


def build_set_password_command(username: str, password: str, encrypted: bool) -> str:
    # json takes care of escaping quotes and backslashes so values can't break out of their strings
    return json.dumps({
        "execute": "guest-set-user-password",
        "arguments": {
            "username": username,
            "password": password,
            "encrypted": encrypted,
        },
    })


def send_set_password(domain, username: str, password: str, encrypted: bool):
    command = build_set_password_command(username, password, encrypted)
    try:
        response = libvirt_qemu.qemuAgentCommand(domain, command, GUEST_AGENT_TIMEOUT, 0)
    except libvirt.libvirtError as e:
        raise GuestAgentError(f"Guest agent of {domain.name()!r} did not accept password change: {e}")

    try:
        reply = json.loads(response) if response else {}
    except ValueError:
        logger.debug("Guest agent of %r returned a non JSON reply: %r", domain.name(), response)
        return

    if isinstance(reply, dict) and "error" in reply:
        error = reply["error"]
        message = error.get("desc", error) if isinstance(error, dict) else error
        raise GuestAgentError(f"Guest agent of {domain.name()!r} rejected password change: {message}")
