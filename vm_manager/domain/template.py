from importlib import resources
import logging
import uuid as uuid_lib
from xml.sax.saxutils import escape

from ..error import TemplateRenderError
from .models import CreateVmRequest, NetworkType

logger = logging.getLogger(__name__)

TEMPLATES = {
    NetworkType.NAT: "vm-template.xml",
    NetworkType.BRIDGE: "vm-template-bridge.xml",
}


def load_template(network_type: NetworkType) -> str:
    name = TEMPLATES[network_type]
    try:
        return (resources.files("vm_manager") / "templates" / name).read_text(encoding="utf-8")
    except OSError as e:
        logger.error("Failed to read domain template %r: %s", name, e)
        raise TemplateRenderError(f"Unable to read domain template {name!r}: {e}")


def render_domain_xml(request: CreateVmRequest, *, qemu_path: str | None = None, uuid: str | None = None) -> str:
    """
    Render a libvirt domain definition for `request`.

    Templates use positional placeholders: name, uuid, memory and current memory (KiB), vCPU count,
    emulator element, disk image path and network (or bridge) name.
    """
    template = load_template(request.network_type)
    emulator = f"\n    <emulator>{escape(qemu_path)}</emulator>" if qemu_path else ""

    try:
        return template.format(
            escape(request.name),
            uuid or str(uuid_lib.uuid4()),
            request.memory_kib,
            request.memory_kib,
            request.cpu_count,
            emulator,
            escape(request.disk_image_path, {"'": "&apos;"}),
            escape(request.network_name, {"'": "&apos;"}),
        )
    except (IndexError, KeyError, ValueError) as e:
        raise TemplateRenderError(f"Unable to render domain template for {request.name!r}: {e}")
