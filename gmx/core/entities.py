"""Naming rules for machines and sites"""
from enum import Enum
from typing import Tuple

MACHINE_SEPARATOR = "-"
DOMAIN_SUFFIX = "measurement-lab.org"


class EntityKind(str, Enum):
    MACHINE = "machine"
    SITE = "site"


class Action(int, Enum):
    """What a maintenance flag asks for"""

    ENTER_MAINTENANCE = 2
    LEAVE_MAINTENANCE = 1

    @property
    def status_value(self) -> float:
        """gauge reading: 1 while in maintenance, 0 otherwise"""
        return float(self.value - 1)


def machine_name(node: str, site: str) -> str:
    """compose the canonical machine key, e.g. mlab1 + abc02 => mlab1-abc02"""
    #site_of() splits on the first separator, so the node must not contain one
    if not node or MACHINE_SEPARATOR in node or not site:
        raise ValueError(f"Cannot build a machine name from node {node!r} and site {site!r}")
    return f"{node}{MACHINE_SEPARATOR}{site}"


def split_machine(machine: str) -> Tuple[str, str]:
    """
    split a machine key into (node, site) on the first separator.
    Raises ValueError when either half would be empty.
    """
    node, sep, site = machine.partition(MACHINE_SEPARATOR)
    if not sep or not node or not site:
        raise ValueError(f"Malformed machine name: {machine!r}")
    return node, site


def site_of(machine: str) -> str:
    return split_machine(machine)[1]


def is_machine_name(name: str) -> bool:
    try:
        split_machine(name)
    except ValueError:
        return False
    return True


def normalize_machine(name: str) -> str:
    #people write mlab1.abc02 in issues, the registry keys on mlab1-abc02
    return name.replace(".", MACHINE_SEPARATOR, 1)


def machine_fqdn(machine: str, project: str) -> str:
    return f"{machine}.{project}.{DOMAIN_SUFFIX}"
