"""
Requirement and dependency evaluation.

Gates a module on facts of the loaded policy (requirements) and on the
presence and selection of other modules (dependencies), and orders the
selected modules so that every module runs after the ones it depends on.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Collection

import networkx as nx

from sechecker.domain.exceptions import CyclicDependencyError
from sechecker.domain.models import ModuleState, NameValue
from sechecker.domain.policy import PolicyType
from sechecker.utils.logging import get_logger

if TYPE_CHECKING:
    from sechecker.engine.library import Library
    from sechecker.modules.base import Module

logger = get_logger("engine.requirements")

_TRUE_VALUES = {"", "1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_flag(value: str) -> bool | None:
    value = value.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    return None


def _require_policy_version(value: str, library: Library) -> bool:
    try:
        required = int(value.strip())
    except ValueError:
        logger.warning(f"Invalid policy_version requirement: {value!r}")
        return False
    return library.policy.version >= required


def _require_policy_type(value: str, library: Library) -> bool:
    try:
        required = PolicyType(value.strip().lower())
    except ValueError:
        logger.warning(f"Invalid policy_type requirement: {value!r}")
        return False
    return PolicyType(library.policy.policy_type) == required


def _require_flag(attribute: str) -> Callable[[str, Library], bool]:
    def check(value: str, library: Library) -> bool:
        wanted = _parse_flag(value)
        if wanted is None:
            logger.warning(f"Invalid boolean requirement for {attribute}: {value!r}")
            return False
        return bool(getattr(library.policy, attribute)) == wanted

    return check


def _require_file_contexts(value: str, library: Library) -> bool:
    wanted = _parse_flag(value)
    if wanted is None:
        logger.warning(f"Invalid file_contexts requirement: {value!r}")
        return False
    return (library.file_contexts is not None) == wanted


REQUIREMENT_CHECKS: dict[str, Callable[[str, Library], bool]] = {
    "policy_version": _require_policy_version,
    "policy_type": _require_policy_type,
    "selinux": _require_flag("selinux_enabled"),
    "mls_policy": _require_flag("mls_policy"),
    "mls_system": _require_flag("mls_system"),
    "file_contexts": _require_file_contexts,
}


def unmet_requirements(module: Module, library: Library) -> list[NameValue]:
    """
    Requirements of ``module`` the library's data does not satisfy.

    Unknown requirement keys are treated as satisfied so that profiles
    written for newer engines still load.
    """
    unmet: list[NameValue] = []
    for requirement in module.requirements:
        check = REQUIREMENT_CHECKS.get(requirement.name)
        if check is None:
            logger.debug(
                f"Module '{module.name}': unknown requirement '{requirement.name}' treated as met"
            )
            continue
        if not check(requirement.value, library):
            unmet.append(requirement)
    return unmet


def check_requirement(module: Module, library: Library) -> bool:
    """Whether every requirement of the module holds."""
    return not unmet_requirements(module, library)


def unmet_dependencies(module: Module, library: Library) -> list[tuple[str, str]]:
    """Dependencies of ``module`` that cannot be satisfied, with the reason for each."""
    unmet: list[tuple[str, str]] = []
    for name in module.dependency_names:
        dependency = library.registry.get(name)
        if dependency is None:
            unmet.append((name, "not registered"))
        elif not library.is_selected(name):
            unmet.append((name, "not selected"))
        elif dependency.state in (ModuleState.SKIPPED, ModuleState.FAILED):
            unmet.append((name, dependency.state.value.lower()))
    return unmet


def check_dependency(module: Module, library: Library) -> bool:
    """Whether every module this one depends on exists, is selected and has not dropped out."""
    return not unmet_dependencies(module, library)


def dependency_graph(library: Library, exclude: Collection[str] = ()) -> nx.DiGraph:
    """
    Graph of selected modules with an edge from each dependency to its dependent.

    Modules named in ``exclude`` are ineligible: they stay in the graph but
    their own dependency edges are dropped, so they can never close a cycle.
    """
    graph = nx.DiGraph()
    selected = [module for module in library.registry if library.is_selected(module.name)]

    for module in selected:
        graph.add_node(module.name)
    for module in selected:
        for name in module.dependency_names:
            if name in graph and module.name not in exclude:
                graph.add_edge(name, module.name)

    return graph


def dependency_order(library: Library, exclude: Collection[str] = ()) -> list[str]:
    """
    Order the selected modules so each comes after all of its dependencies.

    Modules with no dependency relation keep their registration order.
    Dependencies of the modules named in ``exclude`` are not considered.

    Raises:
        CyclicDependencyError: If the dependencies of the selected modules
            form a cycle.
    """
    graph = dependency_graph(library, exclude)

    try:
        cycle = nx.find_cycle(graph)
    except nx.NetworkXNoCycle:
        cycle = None

    if cycle:
        path = [edge[0] for edge in cycle] + [cycle[-1][1]]
        logger.error(f"Cyclic module dependency: {' -> '.join(path)}")
        raise CyclicDependencyError(path[0], cycle=path)

    positions = {name: index for index, name in enumerate(library.registry.names)}
    return list(nx.lexicographical_topological_sort(graph, key=positions.__getitem__))
