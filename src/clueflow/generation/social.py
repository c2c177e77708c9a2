"""Social graph of a game built from messages and votes."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List

import networkx as nx

from clueflow.domain.game import GameState

ANOMALY_THRESHOLD = 0.7
STRONG_CONNECTION = 0.8


@dataclass(frozen=True)
class SocialAnomaly:
    kind: str
    description: str
    players: tuple[str, ...]
    significance: float


@dataclass
class SocialAnalysis:
    graph: nx.DiGraph
    message_frequency: Dict[str, int] = field(default_factory=dict)
    influence: Dict[str, float] = field(default_factory=dict)
    connections: List[Dict[str, object]] = field(default_factory=list)
    clusters: List[List[str]] = field(default_factory=list)
    anomalies: List[SocialAnomaly] = field(default_factory=list)

    def significant_anomalies(self) -> List[SocialAnomaly]:
        return [anomaly for anomaly in self.anomalies if anomaly.significance > ANOMALY_THRESHOLD]


def message_sentiment(content: str) -> str:
    if "!" in content:
        return "negative"
    if "?" in content:
        return "neutral"
    return "positive"


def build_social_graph(state: GameState) -> nx.DiGraph:
    """Players as nodes; edges carry direct-message and vote counts."""
    graph = nx.DiGraph()
    for player_id in state.alive_players:
        graph.add_node(player_id)
    alive = set(state.alive_players)
    for message in state.communications:
        if message.recipient == "all" or message.sender not in alive or message.recipient not in alive:
            continue
        data = _edge(graph, message.sender, message.recipient)
        data["messages"] += 1
        data["sentiments"].append(message_sentiment(message.content))
    for vote in state.voting_history:
        if vote.voter_id not in alive or vote.target_id not in alive:
            continue
        _edge(graph, vote.voter_id, vote.target_id)["votes"] += 1
    return graph


def _edge(graph: nx.DiGraph, source: str, target: str) -> dict:
    if not graph.has_edge(source, target):
        graph.add_edge(source, target, messages=0, votes=0, sentiments=[])
    return graph.edges[source, target]


def analyze_social(state: GameState) -> SocialAnalysis:
    graph = build_social_graph(state)
    frequency = Counter(message.sender for message in state.communications if message.sender in graph)
    analysis = SocialAnalysis(
        graph=graph,
        message_frequency=dict(frequency),
        influence={player_id: round(count * 0.1, 2) for player_id, count in frequency.items()},
    )
    for source, target, data in graph.edges(data=True):
        if data["messages"]:
            sentiments = Counter(data["sentiments"])
            mood = sentiments.most_common(1)[0][0]
            kind = {"positive": "ally", "negative": "enemy"}.get(mood, "neutral")
            analysis.connections.append(
                {"from": source, "to": target, "type": kind, "strength": min(data["messages"] / 3, 1.0)}
            )
        if data["votes"] > 1:
            analysis.connections.append(
                {"from": source, "to": target, "type": "enemy", "strength": min(data["votes"] / 3, 1.0)}
            )

    contacts = nx.Graph()
    for source, target, data in graph.edges(data=True):
        if data["messages"] >= 2:
            contacts.add_edge(source, target)
    analysis.clusters = sorted(
        (sorted(component) for component in nx.connected_components(contacts) if len(component) > 1),
        key=lambda members: (-len(members), members),
    )

    for player_id in sorted(graph.nodes):
        if graph.degree(player_id) == 0:
            analysis.anomalies.append(
                SocialAnomaly("isolated", f"{_name(state, player_id)} keeps apart from everyone", (player_id,), 0.6)
            )
    for connection in analysis.connections:
        if connection["type"] == "ally" and connection["strength"] > STRONG_CONNECTION:
            pair = (str(connection["from"]), str(connection["to"]))
            analysis.anomalies.append(
                SocialAnomaly(
                    "unexpected_alliance",
                    f"{_name(state, pair[0])} and {_name(state, pair[1])} confer more than anyone else",
                    pair,
                    0.8,
                )
            )
    return analysis


def _name(state: GameState, player_id: str) -> str:
    player = state.player(player_id)
    return player.name if player else player_id
