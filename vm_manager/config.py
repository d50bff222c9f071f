from dataclasses import dataclass
import os


@dataclass(kw_only=True)
class LibvirtConfiguration:
    uri: str = "qemu:///system"
    # Seconds before an unresponsive daemon is considered dead
    timeout: int = 30
    # Emulator binary rendered into new domain definitions, libvirt picks its default when unset
    qemu_path: str | None = None

    @classmethod
    def from_environ(cls, environ=None):
        environ = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            uri=environ.get("LIBVIRT_URI") or defaults.uri,
            timeout=int(environ.get("LIBVIRT_TIMEOUT") or defaults.timeout),
            qemu_path=environ.get("LIBVIRT_QEMU_PATH") or None,
        )
