# TIMETRACK/hierarchy.py
"""
Project hierarchy helpers.

Project names use '/' as a path separator ("business/quote" is a child of
"business"). Totals roll up from children into their parents.
"""
from typing import Dict, Iterable, List, Optional

from .model import ProjectStats


def parse_project(project: str) -> List[str]:
    return [part for part in project.split("/") if part.strip()]


def get_parent(project: str) -> Optional[str]:
    parts = parse_project(project)
    if len(parts) <= 1:
        return None
    return "/".join(parts[:-1])


def is_parent_of(parent: str, child: str, ignore_case: bool = False) -> bool:
    """True if `child` lives anywhere below `parent` (strict path prefix)."""
    if ignore_case:
        parent, child = parent.lower(), child.lower()
    if parent == child:
        return False
    parent_parts = parse_project(parent)
    child_parts = parse_project(child)
    if len(child_parts) <= len(parent_parts):
        return False
    return child_parts[:len(parent_parts)] == parent_parts


def get_depth(project: str) -> int:
    return len(parse_project(project)) - 1


def matches_project_tree(project: str, project_filter: Optional[str]) -> bool:
    """Case-insensitive substring match, or the project sits below the filter in the hierarchy."""
    if not project_filter:
        return True
    return (project_filter.lower() in project.lower()
            or is_parent_of(project_filter, project, ignore_case=True))


def calculate_project_stats(entries: Iterable) -> Dict[str, ProjectStats]:
    """Flat per-project totals, entry counts and last-used dates."""
    stats: Dict[str, ProjectStats] = {}
    for entry in entries:
        current = stats.get(entry.project)
        if current is None:
            current = stats[entry.project] = ProjectStats(
                total_minutes=0, entry_count=0, last_used=entry.date)
        current.total_minutes += entry.duration
        current.direct_minutes += entry.duration
        current.entry_count += 1
        if entry.date > current.last_used:
            current.last_used = entry.date
    return stats


def calculate_hierarchical_stats(flat_stats: Dict[str, ProjectStats]) -> Dict[str, ProjectStats]:
    """
    Build parent/child links and roll totals up the tree.

    Each project's own minutes become `direct_minutes`; `total_minutes` is
    direct plus every descendant's total. Only roots are walked (a root is a
    project whose parent has no stats of its own), so every node is summed
    exactly once and the input is left untouched.
    """
    hierarchical: Dict[str, ProjectStats] = {}
    for project, stats in flat_stats.items():
        hierarchical[project] = ProjectStats(
            total_minutes=stats.direct_minutes or stats.total_minutes,
            entry_count=stats.entry_count,
            last_used=stats.last_used,
            direct_minutes=stats.direct_minutes or stats.total_minutes,
            children=[],
        )

    for project in hierarchical:
        parent = get_parent(project)
        if parent and parent in hierarchical:
            hierarchical[parent].children.append(project)

    def total_minutes(project: str) -> int:
        node = hierarchical[project]
        node.total_minutes = node.direct_minutes + sum(total_minutes(child) for child in node.children)
        return node.total_minutes

    for root in get_root_projects(hierarchical):
        total_minutes(root)

    return hierarchical


def get_root_projects(stats: Dict[str, ProjectStats]) -> List[str]:
    roots = []
    for project in stats:
        parent = get_parent(project)
        if not parent or parent not in stats:
            roots.append(project)
    return roots
