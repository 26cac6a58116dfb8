"""
Graph sinks that receive log lines, entities and relations.

Nodes are keyed by ``<Class>_<key>`` so asking for the same class and key
twice always returns the same node.
"""

import json
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

import networkx as nx
from networkx.readwrite import json_graph

from .log_utils import get_logger

CLASS_ATTR = "class"
LABEL_ATTR = "label"
RESERVED_ATTRS = frozenset([CLASS_ATTR, LABEL_ATTR])


class GraphSink(ABC):
    """Narrow interface the line typer writes through."""

    @abstractmethod
    def create_or_get_node(self, node_class: str, key: str,
                           label: Optional[str] = None) -> str:
        """Return the node id for (class, key), creating it on first use."""
        pass

    @abstractmethod
    def add_relation(self, subject: str, relation: str, obj: str) -> None:
        """Link two existing nodes."""
        pass

    @abstractmethod
    def add_literal(self, subject: str, relation: str, value: Any) -> None:
        """Attach a literal attribute value to a node."""
        pass

    @abstractmethod
    def serialize(self, destination) -> None:
        """Write the graph out."""
        pass

    @staticmethod
    def node_id(node_class: str, key: str) -> str:
        return f"{node_class}_{key}"


class NetworkXGraphSink(GraphSink):
    """
    Graph sink backed by a ``networkx.MultiDiGraph``.

    Relations become edges keyed by relation name, so re-adding the same
    relation between the same nodes is a no-op. Literal values are kept as
    a de-duplicated list per relation on the node.
    """

    def __init__(self, graph: Optional[nx.MultiDiGraph] = None):
        self.graph = graph if graph is not None else nx.MultiDiGraph()
        self._lock = threading.RLock()

    def create_or_get_node(self, node_class: str, key: str,
                           label: Optional[str] = None) -> str:
        node = self.node_id(node_class, key)
        with self._lock:
            if node not in self.graph:
                self.graph.add_node(node, **{CLASS_ATTR: node_class,
                                             LABEL_ATTR: label if label is not None else key})
        return node

    def add_relation(self, subject: str, relation: str, obj: str) -> None:
        with self._lock:
            for node in (subject, obj):
                if node not in self.graph:
                    raise KeyError(f"Unknown node: {node}")
            self.graph.add_edge(subject, obj, key=relation, relation=relation)

    def add_literal(self, subject: str, relation: str, value: Any) -> None:
        if relation in RESERVED_ATTRS:
            raise ValueError(f"Relation name is reserved for node metadata: {relation}")
        with self._lock:
            if subject not in self.graph:
                raise KeyError(f"Unknown node: {subject}")
            values = self.graph.nodes[subject].setdefault(relation, [])
            if value not in values:
                values.append(value)

    def literals(self, node: str, relation: str) -> List[Any]:
        return list(self.graph.nodes[node].get(relation, []))

    def objects(self, node: str, relation: str) -> List[str]:
        """Targets of ``relation`` edges leaving ``node``."""
        return [target for _, target, key in self.graph.out_edges(node, keys=True)
                if key == relation]

    def nodes_of_class(self, node_class: str) -> List[str]:
        return [n for n, data in self.graph.nodes(data=True)
                if data.get(CLASS_ATTR) == node_class]

    def summary(self) -> Dict[str, Any]:
        by_class: Dict[str, int] = {}
        for _, data in self.graph.nodes(data=True):
            node_class = data.get(CLASS_ATTR, "unknown")
            by_class[node_class] = by_class.get(node_class, 0) + 1
        by_relation: Dict[str, int] = {}
        for _, _, key in self.graph.edges(keys=True):
            by_relation[key] = by_relation.get(key, 0) + 1
        return {
            "nodes": self.graph.number_of_nodes(),
            "edges": self.graph.number_of_edges(),
            "nodes_by_class": by_class,
            "edges_by_relation": by_relation,
        }

    def serialize(self, destination) -> None:
        """
        Write the graph to ``destination``.

        ``.graphml`` writes GraphML (list attributes JSON-encoded, since
        GraphML only stores scalars); anything else writes node-link JSON.
        """
        path = Path(destination)
        path.parent.mkdir(parents=True, exist_ok=True)

        with self._lock:
            if path.suffix.lower() == ".graphml":
                nx.write_graphml(self._scalar_copy(), path)
            else:
                data = json_graph.node_link_data(self.graph)
                with open(path, 'w', encoding='utf-8') as f:
                    json.dump(data, f, ensure_ascii=False, indent=2)

        get_logger().info("Wrote graph with %d nodes to %s",
                          self.graph.number_of_nodes(), path)

    def _scalar_copy(self) -> nx.MultiDiGraph:
        graph = self.graph.copy()
        for _, data in graph.nodes(data=True):
            for attr, value in list(data.items()):
                if isinstance(value, list):
                    data[attr] = json.dumps(value, ensure_ascii=False)
        return graph
