import argparse
import json
import logging
import sys

import libvirt

from .config import LibvirtConfiguration
from .domain.manager import VmManager
from .domain.models import CreateVmRequest
from .error import Error

logger = logging.getLogger(__name__)

ACTIONS = {
    "start": "start_vm",
    "shutdown": "shutdown_vm",
    "force-shutdown": "force_shutdown_vm",
    "reboot": "reboot_vm",
    "suspend": "suspend_vm",
    "resume": "resume_vm",
    "destroy": "destroy_vm",
}


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="vm_manager", description="Manage libvirt virtual machines")
    parser.add_argument("--uri", help="libvirt connection URI (defaults to $LIBVIRT_URI or qemu:///system)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List all VMs")
    for command in ("show", "status", *ACTIONS):
        subparsers.add_parser(command).add_argument("name")

    create = subparsers.add_parser("create", help="Define a new VM")
    create.add_argument("name")
    create.add_argument("--memory", type=int, default=1024, help="Memory in MB")
    create.add_argument("--cpus", type=int, default=1)
    create.add_argument("--disk", required=True, help="Disk image path")
    create.add_argument("--network-type", choices=["nat", "bridge"], default="nat")
    create.add_argument("--network", default="default", help="Network or bridge name")

    password = subparsers.add_parser("set-password", help="Change a guest user's password via the guest agent")
    password.add_argument("name")
    password.add_argument("username")
    password.add_argument("password")
    password.add_argument("--encrypted", action="store_true")

    return parser.parse_args(argv)


def run(manager: VmManager, args) -> object:
    match args.command:
        case "list":
            return [vm.to_dict() for vm in manager.list_vms()]
        case "show":
            return manager.get_vm_by_name(args.name).to_dict()
        case "status":
            status, code, description = manager.get_vm_status(args.name)
            return {"status": status.name, "code": code, "description": description}
        case "create":
            return manager.create_vm(CreateVmRequest(
                name=args.name,
                memory_mb=args.memory,
                cpu_count=args.cpus,
                disk_image_path=args.disk,
                network_type=args.network_type,
                network_name=args.network,
            )).to_dict()
        case "set-password":
            manager.change_guest_password(args.name, args.username, args.password, args.encrypted)
        case _:
            getattr(manager, ACTIONS[args.command])(args.name)

    return None


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    configuration = LibvirtConfiguration.from_environ()
    if args.uri:
        configuration.uri = args.uri

    manager = VmManager.from_config(configuration)
    try:
        result = run(manager, args)
    except (Error, libvirt.libvirtError) as e:
        logger.error("%s", e)
        return 1
    finally:
        manager.close()

    if result is not None:
        json.dump(result, sys.stdout, indent=2)
        sys.stdout.write("\n")

    return 0


if __name__ == "__main__":
    sys.exit(main())
