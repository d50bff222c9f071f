import logging
import time
import uuid as uuid_lib

import libvirt

from ..config import LibvirtConfiguration
from ..error import (
    DefinitionConflictError, DomainDoesNotExistError, Error, InvalidStateTransitionError, ValidationError,
)
from ..guest_agent import send_set_password
from ..libvirtd.connection import Connection
from ..libvirtd.connection_manager import ConnectionManager
from ..status import VmStatus, domain_status
from .descriptor import parse_domain_descriptor
from .models import ChangePasswordRequest, CreateVmRequest, VmInfo
from .template import render_domain_xml

logger = logging.getLogger(__name__)


class VmManager:
    """
    Lifecycle operations and read models for the VMs of one libvirt daemon.

    Every public method resolves the shared connection, looks the domain up by name and performs
    a single action or read while holding the connection lock. Nothing is cached, each read
    rebuilds `VmInfo` from the daemon's current state.
    """

    def __init__(self, connection: Connection):
        self.connection = connection

    @classmethod
    def from_config(cls, configuration: LibvirtConfiguration, connection_manager: ConnectionManager | None = None):
        connection_manager = connection_manager or ConnectionManager()
        return cls(connection_manager.create(configuration))

    def close(self):
        self.connection.close()

    def list_vms(self) -> list[VmInfo]:
        with self.connection.acquire() as connection:
            domains = [connection.lookupByID(domain_id) for domain_id in connection.listDomainsID()]
            domains.extend(connection.lookupByName(name) for name in connection.listDefinedDomains())
            return [self._vm_info(domain) for domain in domains]

    def get_vm_by_name(self, name: str) -> VmInfo:
        with self.connection.acquire() as connection:
            return self._vm_info(self._libvirt_domain(connection, name))

    def get_vm_by_uuid(self, uuid: str) -> VmInfo:
        """
        Raises `ValidationError` for a malformed `uuid` and `DomainDoesNotExistError` when no domain has it.
        """
        try:
            uuid_lib.UUID(uuid)
        except (AttributeError, TypeError, ValueError):
            raise ValidationError([("uuid", f"{uuid!r} is not a valid UUID")])

        with self.connection.acquire() as connection:
            try:
                domain = connection.lookupByUUIDString(uuid)
            except libvirt.libvirtError as e:
                if e.get_error_code() == libvirt.VIR_ERR_NO_DOMAIN:
                    raise DomainDoesNotExistError(f"VM with UUID {uuid!r} does not exist")

                raise

            return self._vm_info(domain)

    def monitor_vm(self, name: str) -> VmInfo:
        return self.get_vm_by_name(name)

    def get_vm_status(self, name: str) -> tuple[VmStatus, int, str]:
        with self.connection.acquire() as connection:
            status = self._status(self._libvirt_domain(connection, name))
            return status, status.code, status.description

    def create_vm(self, request: CreateVmRequest) -> VmInfo:
        if verrors := request.validate():
            raise ValidationError(verrors)

        if request.xml_config_path:
            logger.debug(
                "Ignoring XML config path %r for VM %r, definition is rendered from template",
                request.xml_config_path, request.name,
            )

        xml = render_domain_xml(request, qemu_path=self.connection.configuration.qemu_path)

        with self.connection.acquire() as connection:
            if self._find_libvirt_domain(connection, request.name) is not None:
                raise DefinitionConflictError(f"VM {request.name!r} already exists")

            try:
                domain = connection.defineXML(xml)
            except libvirt.libvirtError as e:
                if self._is_conflict(e):
                    raise DefinitionConflictError(f"VM {request.name!r} already exists: {e}")

                raise

            if not domain:
                raise Error(f"Failed to define VM {request.name!r} from an XML definition")

            logger.info("Defined VM %r (%s)", request.name, domain.UUIDString())
            return self._vm_info(domain)

    def destroy_vm(self, name: str):
        with self.connection.acquire() as connection:
            domain = self._libvirt_domain(connection, name)
            # Transient domains vanish once stopped, there is nothing left to undefine
            persistent = bool(domain.isPersistent())

            if domain.isActive():
                self._destroy(domain)
                logger.info("Forcefully stopped VM %r", name)

            if persistent:
                domain.undefine()

            logger.info("Deleted VM %r", name)

    def start_vm(self, name: str):
        with self.connection.acquire() as connection:
            domain = self._libvirt_domain(connection, name)
            if domain.isActive():
                raise InvalidStateTransitionError(f"VM {name!r} is already running")

            self._call(name, "start", domain.create)
            logger.info("Started VM %r", name)

    def shutdown_vm(self, name: str):
        with self.connection.acquire() as connection:
            domain = self._libvirt_domain_for_stop(connection, name)
            # Only asks the guest to power off, the daemon completes the shutdown asynchronously
            self._call(name, "shut down", domain.shutdown)
            logger.info("Sent shutdown request to VM %r", name)

    def force_shutdown_vm(self, name: str):
        with self.connection.acquire() as connection:
            domain = self._libvirt_domain_for_stop(connection, name)
            self._call(name, "force shut down", domain.destroy)
            logger.info("Forcefully stopped VM %r", name)

    def reboot_vm(self, name: str):
        with self.connection.acquire() as connection:
            domain = self._libvirt_domain_for_stop(connection, name)
            self._call(name, "reboot", domain.reboot, 0)
            logger.info("Sent reboot request to VM %r", name)

    def suspend_vm(self, name: str):
        with self.connection.acquire() as connection:
            domain = self._libvirt_domain_for_stop(connection, name)
            self._call(name, "suspend", domain.suspend)
            logger.info("Suspended VM %r", name)

    def resume_vm(self, name: str):
        with self.connection.acquire() as connection:
            domain = self._libvirt_domain(connection, name)
            if self._status(domain) != VmStatus.PAUSED:
                raise InvalidStateTransitionError(f"VM {name!r} is not suspended")

            self._call(name, "resume", domain.resume)
            logger.info("Resumed VM %r", name)

    def change_guest_password(self, name: str, username: str, password: str, encrypted: bool = False):
        request = ChangePasswordRequest(username=username, password=password, encrypted=encrypted)
        if verrors := request.validate():
            raise ValidationError(verrors)

        with self.connection.acquire() as connection:
            domain = self._libvirt_domain(connection, name)
            send_set_password(domain, request.username, request.password, request.encrypted)
            logger.info("Changed password of guest user %r in VM %r", username, name)

    def measure_cpu_usage(self, name: str, interval: float = 1.0) -> float:
        """
        Guest CPU usage in percent (0-100) over `interval` seconds.

        Takes two samples of the cumulative CPU time and relates their difference to the elapsed
        wall clock time and the number of vCPUs. Blocks the caller for `interval` seconds, the
        connection is not held in between.
        """
        with self.connection.acquire() as connection:
            domain = self._libvirt_domain(connection, name)
            first_cpu_time = domain.info()[4]
        started = time.monotonic()

        time.sleep(interval)

        # The connection may have been replaced or the domain undefined while sleeping
        with self.connection.acquire() as connection:
            domain = self._libvirt_domain(connection, name)
            state, _, _, vcpus, cpu_time = domain.info()
        elapsed = time.monotonic() - started

        if domain_status(state) != VmStatus.RUNNING or vcpus <= 0 or elapsed <= 0:
            return 0.0

        percentage = (cpu_time - first_cpu_time) * 100.0 / (elapsed * 1000 * 1000 * 1000) / vcpus
        return max(0.0, min(100.0, percentage))

    def _vm_info(self, domain) -> VmInfo:
        state, max_memory, memory, vcpus, cpu_time = domain.info()
        status = domain_status(state)

        try:
            xml = domain.XMLDesc(0)
        except libvirt.libvirtError as e:
            logger.debug("Unable to retrieve XML description of %r: %s", domain.name(), e)
            xml = None

        descriptor = parse_domain_descriptor(xml)

        return VmInfo(
            name=domain.name(),
            uuid=domain.UUIDString(),
            status=status,
            # libvirt reports memory in KiB
            max_memory=max_memory * 1024,
            current_memory=memory * 1024,
            cpu_count=vcpus,
            # Not a percentage: cumulative CPU time (ns) scaled to milliseconds
            cpu_usage=cpu_time / 1000000 if status == VmStatus.RUNNING else 0.0,
            run_time=cpu_time // vcpus // 1000000000 if vcpus > 0 else 0,
            persistent=bool(domain.isPersistent()),
            network_interfaces=descriptor.interfaces,
            disks=descriptor.disks,
            vnc_host=descriptor.vnc_host,
            vnc_port=descriptor.vnc_port,
        )

    def _status(self, domain) -> VmStatus:
        return domain_status(domain.state()[0])

    def _destroy(self, domain):
        try:
            domain.destroy()
        except libvirt.libvirtError:
            if self._status(domain) == VmStatus.SHUTOFF:
                # The domain went down on its own in the meantime
                return

            raise

    def _call(self, name: str, action: str, method, *args):
        try:
            return method(*args)
        except libvirt.libvirtError as e:
            if e.get_error_code() == libvirt.VIR_ERR_OPERATION_INVALID:
                raise InvalidStateTransitionError(f"Unable to {action} VM {name!r}: {e}")

            if e.get_error_code() == libvirt.VIR_ERR_NO_DOMAIN:
                # Transient domains disappear as soon as the guest powers off
                raise DomainDoesNotExistError(f"VM {name!r} does not exist")

            raise

    def _is_conflict(self, error: libvirt.libvirtError) -> bool:
        if error.get_error_code() == libvirt.VIR_ERR_DOM_EXIST:
            return True

        # qemu reports a name clash with a different UUID as a generic failure
        return error.get_error_code() == libvirt.VIR_ERR_OPERATION_FAILED and "already exists" in str(error)

    def _find_libvirt_domain(self, connection, name: str):
        try:
            return connection.lookupByName(name)
        except libvirt.libvirtError as e:
            if e.get_error_code() == libvirt.VIR_ERR_NO_DOMAIN:
                return None

            raise

    def _libvirt_domain(self, connection, name: str):
        domain = self._find_libvirt_domain(connection, name)
        if domain is None:
            raise DomainDoesNotExistError(f"VM {name!r} does not exist")

        return domain

    def _libvirt_domain_for_stop(self, connection, name: str):
        domain = self._libvirt_domain(connection, name)

        if not domain.isActive():
            raise InvalidStateTransitionError(f"VM {name!r} is not active")

        return domain
