"""
Extraction of UI facing facts from a libvirt domain XML description.

Everything here is best effort: a description that is missing or lacks a section simply yields
empty/unset fields. Markup that does not parse as XML yields an entirely empty descriptor, the
individual extractions only run on a parsed document and fail independently of each other.
Callers never see an exception from this module.
"""
from dataclasses import dataclass, field
import logging
from xml.etree import ElementTree

logger = logging.getLogger(__name__)


@dataclass
class DomainDescriptor:
    interfaces: list[str] = field(default_factory=list)
    disks: list[str] = field(default_factory=list)
    vnc_host: str | None = None
    vnc_port: int | None = None


def parse_domain_descriptor(xml: str | None) -> DomainDescriptor:
    descriptor = DomainDescriptor()
    if not xml:
        return descriptor

    try:
        root = ElementTree.fromstring(xml)
    except ElementTree.ParseError as e:
        logger.debug("Unable to parse domain XML description: %s", e)
        return descriptor

    for name, extract in (
        ("network interfaces", _extract_interfaces),
        ("disks", _extract_disks),
        ("VNC endpoint", _extract_vnc),
    ):
        try:
            extract(root, descriptor)
        except Exception as e:
            logger.debug("Unable to extract %s from domain XML description: %s", name, e)

    return descriptor


def _extract_interfaces(root: ElementTree.Element, descriptor: DomainDescriptor):
    interfaces = root.findall(".//interface")

    # Host side device names only exist for running domains, fall back to MAC addresses otherwise
    names = _attribute_values(interfaces, "target", "dev")
    descriptor.interfaces = names or _attribute_values(interfaces, "mac", "address")


def _extract_disks(root: ElementTree.Element, descriptor: DomainDescriptor):
    descriptor.disks = _attribute_values(root.findall(".//disk"), "source", "file")


def _extract_vnc(root: ElementTree.Element, descriptor: DomainDescriptor):
    graphics = next(
        (element for element in root.iter("graphics") if (element.get("type") or "").lower() == "vnc"), None,
    )
    if graphics is None:
        return

    port = graphics.get("port")
    if port is not None:
        try:
            descriptor.vnc_port = int(port)
        except ValueError:
            logger.debug("Ignoring invalid VNC port %r", port)

    listen = graphics.get("listen")
    if listen is None and (listen_element := graphics.find("listen")) is not None:
        listen = listen_element.get("address")

    descriptor.vnc_host = listen


def _attribute_values(elements: list[ElementTree.Element], tag: str, attribute: str) -> list[str]:
    values = []
    for element in elements:
        for child in element.findall(tag):
            if value := child.get(attribute):
                values.append(value)

    return values
