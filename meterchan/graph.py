"""Message-flow graph between subsystems, with cycle detection and dot rendering."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterable, List, Optional, Set, Tuple

import networkx as nx

_log = logging.getLogger(__name__)

GREEK_ALPHABET_SIZE = 24
COLOR_SCHEME = "rdylgn10"
COLOR_SCHEME_N = 10
# More annotated components than this is too much visual clutter.
UPPER_BOUND = 10

_UNSENT_NODE_LABEL = (
    'label="✨",fillcolor=black,shape=doublecircle,style=filled,fontname="NotoColorEmoji"'
)
_UNCONSUMED_NODE_LABEL = (
    'label="💀",fillcolor=black,shape=doublecircle,style=filled,fontname="NotoColorEmoji"'
)


def greek_alphabet() -> List[str]:
    """Return the 24 consecutive lowercase Greek code points starting at alpha."""
    return [chr(0x03B1 + i) for i in range(GREEK_ALPHABET_SIZE)]


def strongly_connected_components(graph: nx.DiGraph) -> List[List[Hashable]]:
    """Return the strongly connected components that contain at least one cycle.

    A single node only counts if it has an edge to itself. Nodes within a
    component, and the components themselves, follow the graph's node order.
    """
    order = {node: i for i, node in enumerate(graph.nodes)}
    components = []
    for component in nx.kosaraju_strongly_connected_components(graph):
        nodes = sorted(component, key=order.__getitem__)
        if not nodes:
            continue
        if len(nodes) == 1 and not graph.has_edge(nodes[0], nodes[0]):
            continue
        components.append(nodes)
    components.sort(key=lambda comp: order[comp[0]])
    return components


def _debug_quote(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _trailing_ident(path: str) -> str:
    return path.rsplit("::", 1)[-1].strip()


def _color_by_tag(tag: str, color_lut: Dict[str, int]) -> str:
    return f"/{COLOR_SCHEME}/{color_lut.get(tag, 0)}"


def _cycle_tags_to_annotation(tags: Iterable[str], color_lut: Dict[str, int]) -> str:
    return ",".join(
        f'<B><FONT COLOR="{_color_by_tag(tag, color_lut)}">{tag}</FONT></B>' for tag in tags
    )


@dataclass(frozen=True)
class SubsystemSpec:
    """A subsystem: its name, the message it consumes and the messages it sends."""

    name: str
    consumes: Optional[str] = None
    sends: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "sends", tuple(self.sends))


@dataclass
class ConnectionGraph:
    """Subsystems as nodes, messages as edges from sender to consumer.

    Nodes are the integers 0..n-1 in declaration order, each carrying a
    ``name`` attribute; edges carry a ``message`` attribute.
    """

    graph: nx.MultiDiGraph
    sccs: List[List[int]]
    unsent_messages: Dict[str, Tuple[str, int]]
    unconsumed_messages: Dict[str, List[Tuple[str, int]]]

    @classmethod
    def construct(cls, subsystems: Iterable[SubsystemSpec]) -> ConnectionGraph:
        """Build the graph and find unsent, unconsumed messages and cycles."""
        outgoing: Dict[str, List[Tuple[str, int]]] = {}
        consuming: Dict[str, Tuple[str, int]] = {}
        graph = nx.MultiDiGraph()

        for index, spec in enumerate(subsystems):
            graph.add_node(index, name=spec.name)
            for message in spec.sends:
                outgoing.setdefault(message, []).append((spec.name, index))
            if spec.consumes is not None:
                # a later consumer of the same message replaces an earlier one
                consuming[spec.consumes] = (spec.name, index)

        for message, (_consumer, consumer_index) in consuming.items():
            for _origin, sender_index in outgoing.get(message, []):
                graph.add_edge(sender_index, consumer_index, message=message)

        unsent = {msg: entry for msg, entry in consuming.items() if msg not in outgoing}
        unconsumed = {msg: list(entries) for msg, entries in outgoing.items() if msg not in consuming}

        return cls(
            graph=graph,
            sccs=strongly_connected_components(graph),
            unsent_messages=unsent,
            unconsumed_messages=unconsumed,
        )

    def _name(self, node: int) -> str:
        return self.graph.nodes[node]["name"]

    def describe_cycles(self) -> List[str]:
        """Return a summary line and, per component, one cycle found in it."""
        count = len(self.sccs)
        if count == 0:
            lines = ["✅ Found no strongly connected components, hence no cycles exist"]
        elif count == 1:
            lines = ["⚡ Found 1 strongly connected component which includes at least one cycle"]
        else:
            lines = [
                f"⚡ Found {count} strongly connected components which includes at least one cycle each"
            ]

        alphabet = greek_alphabet()
        for scc_idx, scc in enumerate(self.sccs):
            tag = alphabet[scc_idx] if scc_idx < len(alphabet) else "_"
            print_idx = scc_idx + 1
            members = set(scc)
            acc: List[str] = []
            visited: Dict[int, int] = {}
            node = scc[0]
            for step in range(len(scc)):
                edge = next(
                    (
                        (target, data["message"])
                        for _src, target, data in self.graph.out_edges(node, data=True)
                        if target in members
                    ),
                    None,
                )
                if edge is None:
                    lines.append(
                        f"cycle({print_idx:03}) ∈ {tag}: Missing connection in hypothesized "
                        f"cycle after {step} steps, this is a bug 🐛"
                    )
                    break
                target, message = edge
                visited[node] = step
                acc.append(f"{self._name(node)} ~~{{{_debug_quote(message)}}}~~> ")
                node = target
                if target in visited:
                    # cut off the tail leading into the cycle
                    del acc[: visited[target]]
                    break
            lines.append(f"cycle({print_idx:03}) ∈ {tag}: {''.join(acc)} *")
        return lines

    def to_dot(self) -> str:
        """Render the message flow as a graphviz document, cycles highlighted."""
        graph = self.graph.copy()
        alphabet = greek_alphabet()

        if len(self.sccs) > UPPER_BOUND:
            _log.warning(
                "Too many (%d) strongly connected components, only annotating the first %d",
                len(self.sccs),
                UPPER_BOUND,
            )

        scc_lut: Dict[int, Set[str]] = {}
        color_lut: Dict[str, int] = {}
        for scc_idx, scc in enumerate(self.sccs[:UPPER_BOUND]):
            tag = alphabet[scc_idx]
            for node in scc:
                scc_lut.setdefault(node, set()).add(tag)
            color_lut[tag] = scc_idx + 1

        unconsumed_idx = graph.number_of_nodes()
        graph.add_node(unconsumed_idx, name="SENT_TO_NONONE")
        for message, senders in self.unconsumed_messages.items():
            for _name, node in senders:
                graph.add_edge(node, unconsumed_idx, message=message)

        unsent_idx = unconsumed_idx + 1
        graph.add_node(unsent_idx, name="NEVER_SENT_ANYWHERE")
        for message, (_name, node) in self.unsent_messages.items():
            graph.add_edge(unsent_idx, node, message=message)

        def node_attributes(node: int) -> str:
            name = graph.nodes[node]["name"]
            if node == unsent_idx:
                return _UNSENT_NODE_LABEL
            if node == unconsumed_idx:
                return _UNCONSUMED_NODE_LABEL
            tags = scc_lut.get(node)
            if tags:
                tag = sorted(tags)[0]
                color = _color_by_tag(tag, color_lut)
                annotation = _cycle_tags_to_annotation(sorted(tags), color_lut)
                return f'color="{color}",fontcolor="{color}",xlabel=<{annotation}>,label="{name}"'
            return f'label="{name}"'

        def edge_attributes(source: int, sink: int, message: str) -> str:
            label = _trailing_ident(message)
            shared = scc_lut.get(source, set()) & scc_lut.get(sink, set())
            if shared:
                tag = sorted(shared)[0]
                color = _color_by_tag(tag, color_lut)
                annotation = _cycle_tags_to_annotation(sorted(shared), color_lut)
                return f'color="{color}",fontcolor="{color}",xlabel=<{annotation}>,label="{label}"'
            return f'label="{label}"'

        lines = [
            "digraph {",
            '    fontname="Cantarell"',
            '    bgcolor="white"',
            '    label = "orchestra message flow between subsystems"',
            f"node [colorscheme={COLOR_SCHEME}]",
        ]
        for node in graph.nodes:
            lines.append(f"    {node} [ {node_attributes(node)}]")
        for source, sink, data in graph.edges(data=True):
            lines.append(f"    {source} -> {sink} [ {edge_attributes(source, sink, data['message'])}]")
        lines.append("}")
        return "\n".join(lines) + "\n"