import enum

import libvirt


class VmStatus(enum.Enum):
    """
    Externally visible VM status.

    Codes are part of the public contract and must never be renumbered.
    """

    NOSTATE = (0, "No state")
    RUNNING = (1, "Running")
    BLOCKED = (2, "Blocked on resource")
    PAUSED = (3, "Paused")
    SHUTDOWN = (4, "Shutting down")
    SHUTOFF = (5, "Shut off")
    CRASHED = (6, "Crashed")
    PMSUSPENDED = (7, "Suspended by guest power management")

    def __init__(self, code: int, description: str):
        self.code = code
        self.description = description

    @classmethod
    def from_code(cls, code: int) -> "VmStatus":
        for status in cls:
            if status.code == code:
                return status

        return cls.NOSTATE


LIBVIRT_STATES = {
    libvirt.VIR_DOMAIN_NOSTATE: VmStatus.NOSTATE,
    libvirt.VIR_DOMAIN_RUNNING: VmStatus.RUNNING,
    libvirt.VIR_DOMAIN_BLOCKED: VmStatus.BLOCKED,
    libvirt.VIR_DOMAIN_PAUSED: VmStatus.PAUSED,
    libvirt.VIR_DOMAIN_SHUTDOWN: VmStatus.SHUTDOWN,
    libvirt.VIR_DOMAIN_SHUTOFF: VmStatus.SHUTOFF,
    libvirt.VIR_DOMAIN_CRASHED: VmStatus.CRASHED,
    libvirt.VIR_DOMAIN_PMSUSPENDED: VmStatus.PMSUSPENDED,
}


def domain_status(state: int | None) -> VmStatus:
    # States added by newer libvirt releases fall back to NOSTATE
    return LIBVIRT_STATES.get(state, VmStatus.NOSTATE)
