"""Shared fixtures for vm_manager tests."""
from __future__ import annotations

import itertools
from unittest.mock import patch
from xml.etree import ElementTree

import libvirt
import pytest

from vm_manager.config import LibvirtConfiguration
from vm_manager.domain.manager import VmManager
from vm_manager.libvirtd.connection_manager import ConnectionManager


def make_libvirt_error(code: int, message: str = "libvirt failure") -> libvirt.libvirtError:
    error = libvirt.libvirtError(message)
    error.err = (code, 0, message, libvirt.VIR_ERR_ERROR, None, None, None, -1, -1)
    return error


class FakeDomain:
    """In-memory stand-in for `libvirt.virDomain` driven by `FakeLibvirtConnection`."""

    def __init__(self, daemon, name, uuid, xml, max_memory, vcpus, persistent=True):
        self.daemon = daemon
        self._name = name
        self._uuid = uuid
        self.xml = xml
        self.max_memory = max_memory
        self.vcpus = vcpus
        self.persistent = persistent
        self.cpu_time = 0
        self.state_ = libvirt.VIR_DOMAIN_SHUTOFF
        self.id = -1

    def name(self):
        return self._name

    def UUIDString(self):
        return self._uuid

    def ID(self):
        return self.id

    def info(self):
        memory = self.max_memory if self.isActive() else 0
        return [self.state_, self.max_memory, memory, self.vcpus, self.cpu_time]

    def state(self):
        return [self.state_, 0]

    def XMLDesc(self, flags=0):
        return self.xml

    def isActive(self):
        return int(self.state_ not in (libvirt.VIR_DOMAIN_SHUTOFF, libvirt.VIR_DOMAIN_NOSTATE))

    def isPersistent(self):
        return int(self.persistent)

    def create(self):
        if self.isActive():
            raise make_libvirt_error(libvirt.VIR_ERR_OPERATION_INVALID, "domain is already running")
        self.state_ = libvirt.VIR_DOMAIN_RUNNING
        self.id = next(self.daemon.ids)
        return 0

    def shutdown(self):
        self.state_ = libvirt.VIR_DOMAIN_SHUTDOWN
        return 0

    def destroy(self):
        self.state_ = libvirt.VIR_DOMAIN_SHUTOFF
        self.id = -1
        if not self.persistent:
            self.daemon.domains.pop(self._name, None)
        return 0

    def reboot(self, flags=0):
        return 0

    def suspend(self):
        self.state_ = libvirt.VIR_DOMAIN_PAUSED
        return 0

    def resume(self):
        self.state_ = libvirt.VIR_DOMAIN_RUNNING
        return 0

    def undefine(self):
        self.daemon.domains.pop(self._name)
        return 0


class FakeLibvirtConnection:
    """In-memory stand-in for `libvirt.virConnect` holding `FakeDomain` objects by name."""

    def __init__(self):
        self.domains: dict[str, FakeDomain] = {}
        self.ids = itertools.count(1)
        self.alive = True
        self.closed = False

    def add_domain(self, name, uuid, xml="", max_memory=1048576, vcpus=1, persistent=True, running=False):
        domain = FakeDomain(self, name, uuid, xml, max_memory, vcpus, persistent)
        self.domains[name] = domain
        if running:
            domain.create()
        return domain

    def isAlive(self):
        return int(self.alive)

    def listAllDomains(self, flags=0):
        return list(self.domains.values())

    def listDomainsID(self):
        return [domain.id for domain in self.domains.values() if domain.isActive()]

    def listDefinedDomains(self):
        return [domain.name() for domain in self.domains.values() if not domain.isActive()]

    def lookupByID(self, domain_id):
        for domain in self.domains.values():
            if domain.id == domain_id:
                return domain
        raise make_libvirt_error(libvirt.VIR_ERR_NO_DOMAIN, f"no domain with matching id {domain_id}")

    def lookupByName(self, name):
        try:
            return self.domains[name]
        except KeyError:
            raise make_libvirt_error(libvirt.VIR_ERR_NO_DOMAIN, f"no domain with matching name {name!r}")

    def lookupByUUIDString(self, uuid):
        for domain in self.domains.values():
            if domain.UUIDString() == uuid:
                return domain
        raise make_libvirt_error(libvirt.VIR_ERR_NO_DOMAIN, f"no domain with matching uuid {uuid!r}")

    def defineXML(self, xml):
        root = ElementTree.fromstring(xml)
        name = root.findtext("name")
        if name in self.domains:
            raise make_libvirt_error(libvirt.VIR_ERR_OPERATION_FAILED, f"domain '{name}' already exists")

        return self.add_domain(
            name,
            root.findtext("uuid"),
            xml=xml,
            max_memory=int(root.findtext("memory")),
            vcpus=int(root.findtext("vcpu")),
        )

    def setKeepAlive(self, interval, count):
        return 0

    def getType(self):
        return "QEMU"

    def getLibVersion(self):
        return 10000000

    def getHostname(self):
        return "hypervisor.local"

    def close(self):
        self.closed = True
        return 0


@pytest.fixture
def fake_daemon():
    return FakeLibvirtConnection()


@pytest.fixture
def libvirt_open(fake_daemon):
    with patch.object(libvirt, "open", return_value=fake_daemon) as open_mock:
        yield open_mock


@pytest.fixture
def configuration():
    return LibvirtConfiguration(uri="qemu:///system", timeout=30)


@pytest.fixture
def connection(libvirt_open, configuration):
    return ConnectionManager().create(configuration)


@pytest.fixture
def vm_manager(connection):
    manager = VmManager(connection)
    yield manager
    manager.close()


@pytest.fixture
def libvirt_error():
    return make_libvirt_error


@pytest.fixture
def daemon_factory():
    return FakeLibvirtConnection
