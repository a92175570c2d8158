"""
Maintenance flags in issue and comment bodies.

    /machine mlab1.abc02        put a machine into maintenance
    /machine mlab1.abc02 del    take it out again
    /site abc02                 put a site (and all its machines) into maintenance
    /site abc02 del             take it out again

Which names are accepted depends on the project the service runs for.
"""
import logging
import re
from typing import List, NamedTuple, TYPE_CHECKING

from .entities import Action, EntityKind, normalize_machine

if TYPE_CHECKING:
    from .maintenance_state import MaintenanceState

logger = logging.getLogger(__name__)

PROJECTS = ("mlab-sandbox", "mlab-staging", "mlab-oti")

MACHINE_PATTERNS = {
    "mlab-sandbox": re.compile(r"/machine\s+(mlab[1-4][.-][a-z]{3}[0-9]t)(\s+del)?"),
    "mlab-staging": re.compile(r"/machine\s+(mlab4[.-][a-z]{3}[0-9c]{2})(\s+del)?"),
    "mlab-oti": re.compile(r"/machine\s+(mlab[1-3][.-][a-z]{3}[0-9c]{2})(\s+del)?"),
}

SITE_PATTERNS = {
    "mlab-sandbox": re.compile(r"/site\s+([a-z]{3}[0-9]t)(\s+del)?"),
    "mlab-staging": re.compile(r"/site\s+([a-z]{3}[0-9c]{2})(\s+del)?"),
    "mlab-oti": re.compile(r"/site\s+([a-z]{3}[0-9c]{2})(\s+del)?"),
}


class Command(NamedTuple):
    kind: EntityKind
    name: str
    action: Action


def _action(flag: str) -> Action:
    if flag and flag.strip() == "del":
        return Action.LEAVE_MAINTENANCE
    return Action.ENTER_MAINTENANCE


def parse_commands(message: str, project: str) -> List[Command]:
    """all site flags in message, then all machine flags"""
    if project not in PROJECTS:
        raise ValueError(f"Unknown project: {project}")

    commands = []
    for match in SITE_PATTERNS[project].finditer(message or ""):
        logger.info(f"Flag found for site: {match.group(1)}")
        commands.append(Command(EntityKind.SITE, match.group(1), _action(match.group(2))))

    for match in MACHINE_PATTERNS[project].finditer(message or ""):
        logger.info(f"Flag found for machine: {match.group(1)}")
        commands.append(
            Command(EntityKind.MACHINE, normalize_machine(match.group(1)), _action(match.group(2)))
        )
    return commands


def apply_commands(state: "MaintenanceState", message: str, issue: str, project: str) -> int:
    """apply every flag in message for issue; returns the number of modifications"""
    mods = 0
    for command in parse_commands(message, project):
        if command.kind is EntityKind.SITE:
            mods += state.update_site(command.name, command.action, issue)
        else:
            mods += state.update_machine(command.name, command.action, issue)
    return mods
