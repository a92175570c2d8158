"""
Maintenance state registry.

Keeps, per machine and per site, the set of issues that put it into
maintenance, mirrors presence into the maintenance gauges, and saves the whole
thing to a JSON snapshot file.
"""
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional, Set, Union

from prometheus_client import Gauge
from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from . import metrics
from .entities import (
    Action,
    EntityKind,
    is_machine_name,
    machine_fqdn,
    machine_name,
    site_of,
)
from .siteinfo import SiteDirectory, SiteinfoError
from ..schemas import MaintenanceSnapshot

logger = logging.getLogger(__name__)


class MaintenanceState:
    """
    Registry of machines and sites in maintenance.

    An entity has an entry only while at least one issue holds it in
    maintenance, and its gauge reads 1 exactly while the entry exists. Every
    public operation runs under one reentrant lock, so a sweep such as
    close_issue() or prune() is atomic with respect to webhook updates.
    """

    def __init__(
        self,
        filename: Union[str, Path],
        directory: SiteDirectory,
        project: str,
        machine_gauge: Optional[Gauge] = None,
        site_gauge: Optional[Gauge] = None,
    ):
        self.filename = Path(filename)
        self.project = project
        self._directory = directory
        self._lock = threading.RLock()
        self._entities: Dict[EntityKind, Dict[str, Set[str]]] = {
            EntityKind.MACHINE: {},
            EntityKind.SITE: {},
        }
        self._gauges: Dict[EntityKind, Gauge] = {
            EntityKind.MACHINE: machine_gauge if machine_gauge is not None else metrics.machine_maintenance,
            EntityKind.SITE: site_gauge if site_gauge is not None else metrics.site_maintenance,
        }

    @classmethod
    def load(cls, filename: Union[str, Path], directory: SiteDirectory, project: str, **kwargs) -> "MaintenanceState":
        """build a registry and restore it from disk; a failed restore leaves it empty"""
        state = cls(filename, directory, project, **kwargs)
        if not state.restore():
            logger.warning(f"Failed to restore state file {filename}, starting with an empty state")
            metrics.error_count.labels("restore", "maintenancestate.load").inc()
        return state

    def _set_gauge(self, kind: EntityKind, key: str, action: Action) -> None:
        if kind is EntityKind.MACHINE:
            fqdn = machine_fqdn(key, self.project)
            self._gauges[kind].labels(fqdn, fqdn, site_of(key)).set(action.status_value)
        else:
            self._gauges[kind].labels(key).set(action.status_value)

    def _update(self, kind: EntityKind, key: str, issue: str, action: Action) -> int:
        try:
            action = Action(action)
        except ValueError:
            logger.warning(f"Unknown action type: {action}")
            return 0

        entities = self._entities[kind]
        issues = entities.get(key, set())

        if action is Action.ENTER_MAINTENANCE:
            if issue in issues:
                logger.info(f"{key} is already in maintenance for issue #{issue}")
                return 0
            entities[key] = issues | {issue}
            self._set_gauge(kind, key, action)
            logger.info(f"{key} was added to maintenance for issue #{issue}")
            return 1

        if issue not in issues:
            return 0
        issues.discard(issue)
        if not issues:
            del entities[key]
            self._set_gauge(kind, key, action)
        logger.info(f"{key} was removed from maintenance for issue #{issue}")
        return 1

    def update_machine(self, name: str, action: Action, issue: str) -> int:
        """put a single machine into, or take it out of, maintenance"""
        if not is_machine_name(name):
            logger.warning(f"Ignoring malformed machine name {name!r}")
            return 0
        with self._lock:
            return self._update(EntityKind.MACHINE, name, issue, action)

    def update_site(self, name: str, action: Action, issue: str) -> int:
        """
        put a site and every machine the directory lists for it into, or out
        of, maintenance. Nothing is touched when the directory does not know
        the site.
        """
        try:
            nodes = self._directory.machines(name)
        except SiteinfoError as e:
            logger.error(f"Could not update site {name}: {e}")
            return 0

        with self._lock:
            mods = self._update(EntityKind.SITE, name, issue, action)
            for node in nodes:
                try:
                    machine = machine_name(node, name)
                except ValueError as e:
                    logger.warning(f"Skipping machine of site {name}: {e}")
                    continue
                mods += self.update_machine(machine, action, issue)
        logger.info(f"Site {name} update for issue #{issue} made {mods} modifications")
        return mods

    def close_issue(self, issue: str) -> int:
        """drop issue from every site and machine; returns the number of modifications"""
        total = 0
        with self._lock:
            for site in list(self._entities[EntityKind.SITE]):
                total += self.update_site(site, Action.LEAVE_MAINTENANCE, issue)
            for machine in list(self._entities[EntityKind.MACHINE]):
                total += self.update_machine(machine, Action.LEAVE_MAINTENANCE, issue)
        return total

    def prune(self) -> int:
        """
        remove sites the directory no longer knows, and machines at such
        sites, whatever issues hold them. Writes the snapshot if anything was
        removed. Returns the number of removed entities.
        """
        known: Dict[str, bool] = {}

        def site_exists(site: str) -> bool:
            if site not in known:
                try:
                    self._directory.machines(site)
                    known[site] = True
                except SiteinfoError:
                    known[site] = False
            return known[site]

        removed = 0
        with self._lock:
            sites = self._entities[EntityKind.SITE]
            for site in list(sites):
                if site_exists(site):
                    continue
                del sites[site]
                self._set_gauge(EntityKind.SITE, site, Action.LEAVE_MAINTENANCE)
                removed += 1
                logger.info(f"Removed site {site} from maintenance because it no longer exists")

            machines = self._entities[EntityKind.MACHINE]
            for machine in list(machines):
                if site_exists(site_of(machine)):
                    continue
                del machines[machine]
                self._set_gauge(EntityKind.MACHINE, machine, Action.LEAVE_MAINTENANCE)
                removed += 1
                logger.info(f"Removed machine {machine} from maintenance because its site no longer exists")

            if removed:
                self.write()
        return removed

    def restore(self) -> bool:
        """load the snapshot file, replacing the in-memory state"""
        with self._lock:
            try:
                data = self.filename.read_bytes()
            except OSError as e:
                logger.warning(f"Failed to read state data from {self.filename}: {e}")
                metrics.error_count.labels("readfile", "maintenancestate.restore").inc()
                return False

            try:
                snapshot = MaintenanceSnapshot.model_validate_json(data)
            except ValidationError as e:
                logger.warning(f"Failed to parse state data from {self.filename}: {e}")
                metrics.error_count.labels("unmarshaljson", "maintenancestate.restore").inc()
                return False

            restored = {
                EntityKind.MACHINE: snapshot.machines,
                EntityKind.SITE: snapshot.sites,
            }
            for kind, entities in self._entities.items():
                for key in entities.keys() - restored[kind].keys():
                    self._set_gauge(kind, key, Action.LEAVE_MAINTENANCE)
            self._entities = restored

            #only presence is exported, not which issues
            for kind, entities in self._entities.items():
                for key in entities:
                    self._set_gauge(kind, key, Action.ENTER_MAINTENANCE)

        logger.info(f"Successfully restored {self.filename} from disk")
        return True

    def write(self) -> bool:
        """save the full state to the snapshot file, atomically"""
        with self._lock:
            try:
                data = self._snapshot().model_dump_json(by_alias=True, indent=4)
            except PydanticSerializationError as e:
                raise RuntimeError("Could not serialize the maintenance state. This should never happen.") from e

            try:
                self._replace_file(data)
            except OSError as e:
                logger.error(f"Failed to write state to {self.filename}: {e}")
                metrics.error_count.labels("writefile", "maintenancestate.write").inc()
                return False

        logger.info(f"Successfully wrote state to {self.filename}")
        return True

    def _replace_file(self, data: str) -> None:
        fd, tmp_path = tempfile.mkstemp(
            dir=self.filename.parent, prefix=f".{self.filename.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
            os.chmod(tmp_path, 0o664)
            os.replace(tmp_path, self.filename)
        except OSError:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def _snapshot(self) -> MaintenanceSnapshot:
        return MaintenanceSnapshot.model_construct(
            machines=self._entities[EntityKind.MACHINE],
            sites=self._entities[EntityKind.SITE],
        )

    def snapshot(self) -> Dict[str, Dict[str, list]]:
        """copy of the current state as {"machines": {...}, "sites": {...}}, issues sorted"""
        with self._lock:
            return self._snapshot().model_dump()
