from .config import LibvirtConfiguration  # noqa
from .domain.descriptor import DomainDescriptor, parse_domain_descriptor  # noqa
from .domain.manager import VmManager  # noqa
from .domain.models import ChangePasswordRequest, CreateVmRequest, NetworkType, VmInfo  # noqa
from .error import (  # noqa
    Error, ConnectionFailedError, DomainDoesNotExistError, InvalidStateTransitionError, DefinitionConflictError,
    TemplateRenderError, GuestAgentError, ValidationError,
)
from .libvirtd.connection import Connection  # noqa
from .libvirtd.connection_manager import ConnectionManager  # noqa
from .status import VmStatus, domain_status  # noqa
