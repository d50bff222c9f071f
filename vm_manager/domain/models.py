from dataclasses import dataclass, field
import enum
import os

from ..status import VmStatus


class NetworkType(enum.Enum):
    NAT = "nat"
    BRIDGE = "bridge"


@dataclass(kw_only=True)
class VmInfo:
    name: str
    uuid: str
    status: VmStatus
    max_memory: int
    current_memory: int
    cpu_count: int
    # Cumulative guest CPU time in milliseconds while running. This is NOT a percentage, a real usage figure
    # needs two samples over a time window (see `VmManager.measure_cpu_usage`).
    cpu_usage: float
    run_time: int
    persistent: bool
    network_interfaces: list[str] = field(default_factory=list)
    disks: list[str] = field(default_factory=list)
    vnc_host: str | None = None
    vnc_port: int | None = None

    @property
    def status_description(self) -> str:
        return self.status.description

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "uuid": self.uuid,
            "status": self.status.name,
            "statusCode": self.status.code,
            "statusDescription": self.status_description,
            "maxMemory": self.max_memory,
            "currentMemory": self.current_memory,
            "cpuCount": self.cpu_count,
            "cpuUsage": self.cpu_usage,
            "runTime": self.run_time,
            "persistent": self.persistent,
            "networkInterfaces": list(self.network_interfaces),
            "disks": list(self.disks),
            "vncHost": self.vnc_host,
            "vncPort": self.vnc_port,
        }


@dataclass(kw_only=True)
class CreateVmRequest:
    MIN_MEMORY_MB = 512

    name: str
    memory_mb: int
    cpu_count: int
    disk_image_path: str
    # Accepted for compatibility, the definition is always rendered from the bundled templates
    xml_config_path: str | None = None
    network_type: NetworkType = NetworkType.NAT
    network_name: str = "default"

    def __post_init__(self):
        # Unknown strings are kept as given and reported by validate()
        if isinstance(self.network_type, str):
            try:
                self.network_type = NetworkType(self.network_type.lower())
            except ValueError:
                pass

    @property
    def memory_kib(self) -> int:
        return self.memory_mb * 1024

    def validate(self) -> list[tuple[str, str]]:
        verrors = []
        if not self.name or not self.name.strip():
            verrors.append(("name", "VM name is required"))
        if self.memory_mb < self.MIN_MEMORY_MB:
            verrors.append(("memory_mb", f"Memory must be at least {self.MIN_MEMORY_MB} MB"))
        if self.cpu_count < 1:
            verrors.append(("cpu_count", "At least 1 CPU is required"))
        if not self.disk_image_path or not self.disk_image_path.strip():
            verrors.append(("disk_image_path", "Disk image path is required"))
        elif not os.path.isabs(self.disk_image_path):
            verrors.append(("disk_image_path", "Disk image path must be an absolute path"))
        if not isinstance(self.network_type, NetworkType):
            choices = ", ".join(network_type.value for network_type in NetworkType)
            verrors.append(("network_type", f"Network type must be one of: {choices}"))
        if not self.network_name or not self.network_name.strip():
            verrors.append(("network_name", "Network name is required"))
        return verrors


@dataclass(kw_only=True)
class ChangePasswordRequest:
    username: str
    password: str
    encrypted: bool = False

    def validate(self) -> list[tuple[str, str]]:
        verrors = []
        if not self.username or not self.username.strip():
            verrors.append(("username", "Username is required"))
        if not self.password:
            verrors.append(("password", "Password is required"))
        return verrors
