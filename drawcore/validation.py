"""
Document validation - check a drawing for graph integrity problems.

Used by tests and by the HTTP server's /api/validate endpoint to confirm
that the registry and the shapes in the document still agree.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .document import Document


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Inconsistent state, edits may misbehave
    WARNING = "warning"  # Probably unintended
    INFO = "info"        # Informational, may be intentional


@dataclass
class ValidationIssue:
    """A single validation issue found in a document."""
    severity: IssueSeverity
    message: str
    node_id: str | None = None
    edge_id: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.node_id:
            result["node_id"] = self.node_id
        if self.edge_id:
            result["edge_id"] = self.edge_id
        return result


def validate_document(document: "Document") -> list[ValidationIssue]:
    """
    Validate a document and return a list of issues.

    Checks for:
    - Edges whose source/target node is missing - ERROR
    - Nodes or edges present in only one of document and registry - ERROR
    - Registry adjacency out of step with its edge table - ERROR
    - Orphan nodes (no connections) - WARNING
    - Nodes with empty labels - WARNING
    - Self-loops and parallel edges - INFO
    - Empty document - INFO

    Args:
        document: The document to validate

    Returns:
        List of ValidationIssue objects
    """
    issues: list[ValidationIssue] = []
    graph = document.graph

    nodes = document.get_nodes()
    edges = document.get_edges()

    if len(document) == 0:
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message="Document has no shapes"
        ))
        return issues

    node_ids = {n.id for n in nodes}
    edge_ids = {e.id for e in edges}

    # Dangling edge references
    for edge in edges:
        if edge.source_node_id not in node_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Edge references non-existent source node: {edge.source_node_id}",
                edge_id=edge.id
            ))
        if edge.target_node_id not in node_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Edge references non-existent target node: {edge.target_node_id}",
                edge_id=edge.id
            ))

    # Document and registry must list the same graph shapes
    for node_id in set(graph.get_all_node_ids()) - node_ids:
        issues.append(ValidationIssue(
            severity=IssueSeverity.ERROR,
            message="Registered node is not in the document",
            node_id=node_id
        ))
    for node in nodes:
        if graph.get_node_shape(node.id) is not node:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message="Node is not registered with the graph",
                node_id=node.id
            ))
    for edge_id in set(graph.get_all_edge_ids()) - edge_ids:
        issues.append(ValidationIssue(
            severity=IssueSeverity.ERROR,
            message="Registered edge is not in the document",
            edge_id=edge_id
        ))
    for edge in edges:
        if graph.get_edge_connection(edge.id) != (edge.source_node_id, edge.target_node_id):
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message="Edge registration does not match its endpoints",
                edge_id=edge.id
            ))

    for problem in graph.check_consistency():
        issues.append(ValidationIssue(severity=IssueSeverity.ERROR, message=problem))

    # Orphan nodes
    connected_nodes: set[str] = set()
    for edge in edges:
        connected_nodes.add(edge.source_node_id)
        connected_nodes.add(edge.target_node_id)

    orphans = [n for n in nodes if n.id not in connected_nodes]
    if orphans:
        issues.append(ValidationIssue(
            severity=IssueSeverity.WARNING,
            message=f"Orphan nodes (no connections): {', '.join(f'{n.label} ({n.id})' for n in orphans)}"
        ))

    for node in nodes:
        if not node.label.strip():
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message="Node has an empty label",
                node_id=node.id
            ))

    # Self-loops and parallel bundles are legal but worth pointing out
    seen_pairs: set[frozenset[str]] = set()
    for edge in edges:
        if edge.is_self_loop:
            issues.append(ValidationIssue(
                severity=IssueSeverity.INFO,
                message="Self-loop edge",
                edge_id=edge.id,
                node_id=edge.source_node_id
            ))
            continue
        pair = frozenset((edge.source_node_id, edge.target_node_id))
        if pair in seen_pairs:
            issues.append(ValidationIssue(
                severity=IssueSeverity.INFO,
                message=f"Parallel edge between {edge.source_node_id} and {edge.target_node_id}",
                edge_id=edge.id
            ))
        else:
            seen_pairs.add(pair)

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """
    Create a summary of validation issues.

    Args:
        issues: List of validation issues

    Returns:
        Dictionary with counts by severity
    """
    return {
        "total": len(issues),
        "errors": len([i for i in issues if i.severity == IssueSeverity.ERROR]),
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": len([i for i in issues if i.severity == IssueSeverity.ERROR]) == 0
    }
