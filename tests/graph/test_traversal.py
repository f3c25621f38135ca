"""
Tests for context expansion and shortest path.
"""

import asyncio
from unittest.mock import patch

import pytest

from agentkg.config.settings import SearchOptions
from agentkg.errors import (
    BackendError,
    EntityNotFoundError,
    InvalidDepthError,
    InvalidIDError,
    MaxDepthExceededError,
    PathNotFoundError,
)
from agentkg.graph.traversal import DEFAULT_TRAVERSAL_DEPTH, normalize_depth

from conftest import make_entity, make_relationship


class TestNormalizeDepth:
    """Depth validation."""

    def test_zero_means_default(self):
        """0 selects the default depth."""
        assert normalize_depth(0) == DEFAULT_TRAVERSAL_DEPTH

    def test_bounds(self):
        """Negative and > 5 are rejected."""
        assert normalize_depth(5) == 5
        with pytest.raises(InvalidDepthError):
            normalize_depth(-1)
        with pytest.raises(MaxDepthExceededError):
            normalize_depth(6)

    def test_max_depth_is_invalid_depth(self):
        """MaxDepthExceededError is an InvalidDepthError."""
        assert issubclass(MaxDepthExceededError, InvalidDepthError)


class TestTraverseFrom:
    """Bounded BFS context expansion."""

    @pytest.mark.asyncio
    async def test_depth_one_on_chain(self, chain_graph):
        """A->B->C->D from A with depth 1 visits exactly A and B."""
        ctx = await chain_graph.traverse_from("A", depth=1)

        assert ctx.central_entity.id == "A"
        assert ctx.depth == 1
        assert {e.id for e in ctx.entities} == {"A", "B"}
        # Edges seen at the frontier are kept
        assert {r.id for r in ctx.relationships} == {"ab", "bc"}

    @pytest.mark.asyncio
    async def test_depth_two_on_chain(self, chain_graph):
        """Depth 2 reaches C."""
        ctx = await chain_graph.traverse_from("A", depth=2)
        assert {e.id for e in ctx.entities} == {"A", "B", "C"}

    @pytest.mark.asyncio
    async def test_follows_incoming_edges(self, chain_graph):
        """Traversal walks edges in both directions."""
        ctx = await chain_graph.traverse_from("C", depth=1)
        assert {e.id for e in ctx.entities} == {"B", "C", "D"}

    @pytest.mark.asyncio
    async def test_entities_unique(self, keyword_graph):
        """Each entity appears once even on cycles."""
        await keyword_graph.store_entities([make_entity(x) for x in "XYZ"])
        await keyword_graph.store_relationships([
            make_relationship("xy", "X", "Y"),
            make_relationship("yz", "Y", "Z"),
            make_relationship("zx", "Z", "X"),
        ])

        ctx = await keyword_graph.traverse_from("X", depth=3)

        ids = [e.id for e in ctx.entities]
        assert sorted(ids) == ["X", "Y", "Z"]
        assert len({r.id for r in ctx.relationships}) == len(ctx.relationships) == 3

    @pytest.mark.asyncio
    async def test_relationship_type_filter(self, keyword_graph):
        """Only the requested relationship types are followed."""
        await keyword_graph.store_entities([make_entity(x) for x in "ABC"])
        await keyword_graph.store_relationships([
            make_relationship("ab", "A", "B", "WORKS_ON"),
            make_relationship("ac", "A", "C", "MANAGES"),
        ])

        ctx = await keyword_graph.traverse_from(
            "A", depth=1, options=SearchOptions().with_relationship_types("WORKS_ON")
        )
        assert {e.id for e in ctx.entities} == {"A", "B"}

    @pytest.mark.asyncio
    async def test_dangling_endpoint_skipped(self, keyword_graph):
        """Relationships to missing entities do not fail traversal."""
        await keyword_graph.store_entities([make_entity("A")])
        await keyword_graph.store_relationships([make_relationship("ag", "A", "ghost")])

        ctx = await keyword_graph.traverse_from("A", depth=2)

        assert [e.id for e in ctx.entities] == ["A"]
        assert [r.id for r in ctx.relationships] == ["ag"]

    @pytest.mark.asyncio
    async def test_dangling_endpoint_fetched_once(self, keyword_graph):
        """A missing entity referenced from several nodes is looked up once."""
        await keyword_graph.store_entities([make_entity("A"), make_entity("B"), make_entity("C")])
        await keyword_graph.store_relationships([
            make_relationship("ab", "A", "B"),
            make_relationship("ac", "A", "C"),
            make_relationship("bg", "B", "ghost"),
            make_relationship("cg", "C", "ghost"),
        ])
        repo = keyword_graph.repository

        with patch.object(repo, "get_entity", wraps=repo.get_entity) as get_entity:
            ctx = await keyword_graph.traverse_from("A", depth=3)

        ghost_lookups = [c for c in get_entity.await_args_list if c.args[0] == "ghost"]
        assert len(ghost_lookups) == 1
        assert {e.id for e in ctx.entities} == {"A", "B", "C"}
        assert {r.id for r in ctx.relationships} == {"ab", "ac", "bg", "cg"}

    @pytest.mark.asyncio
    async def test_relationship_lookup_failure_skipped(self, chain_graph):
        """A failing relationship lookup is logged and the node skipped."""
        original = chain_graph.repository.get_relationships

        async def flaky(entity_id, direction, options=None):
            if entity_id == "B":
                raise BackendError("timeout")
            return await original(entity_id, direction, options)

        with patch.object(chain_graph.repository, "get_relationships", side_effect=flaky):
            ctx = await chain_graph.traverse_from("A", depth=3)

        assert {e.id for e in ctx.entities} == {"A", "B"}

    @pytest.mark.asyncio
    async def test_missing_start(self, keyword_graph):
        """Unknown start entity raises EntityNotFoundError."""
        with pytest.raises(EntityNotFoundError):
            await keyword_graph.traverse_from("nobody", depth=1)

    @pytest.mark.asyncio
    async def test_invalid_arguments(self, chain_graph):
        """Empty id and bad depth are rejected."""
        with pytest.raises(InvalidIDError):
            await chain_graph.traverse_from("", depth=1)
        with pytest.raises(MaxDepthExceededError):
            await chain_graph.traverse_from("A", depth=6)
        with pytest.raises(InvalidDepthError):
            await chain_graph.traverse_from("A", depth=-1)


class TestShortestPath:
    """Unweighted BFS path finding."""

    @pytest.mark.asyncio
    async def test_two_hop_path(self, keyword_graph):
        """1 -WORKS_ON-> 2 <-MANAGES- 3: path 1..3 has length 2 through 2."""
        await keyword_graph.store_entities([
            make_entity("1", "Alice"),
            make_entity("2", "Project Alpha", "Project"),
            make_entity("3", "Bob"),
        ])
        await keyword_graph.store_relationships([
            make_relationship("r1", "1", "2", "WORKS_ON"),
            make_relationship("r2", "3", "2", "MANAGES"),
        ])

        path = await keyword_graph.shortest_path("1", "3")

        assert path.length == 2
        assert path.source.id == "1"
        assert path.target.id == "3"
        assert [e.id for e in path.entities] == ["2"]
        assert [r.type for r in path.relationships] == ["WORKS_ON", "MANAGES"]

    @pytest.mark.asyncio
    async def test_same_entity(self, chain_graph):
        """Source == target gives a zero-length path."""
        path = await chain_graph.shortest_path("A", "A")

        assert path.length == 0
        assert path.source.id == path.target.id == "A"
        assert path.entities == []
        assert path.relationships == []

    @pytest.mark.asyncio
    async def test_shortest_is_chosen(self, chain_graph):
        """A shortcut edge wins over the long chain."""
        await chain_graph.store_relationships([make_relationship("ad", "A", "D", "KNOWS")])

        path = await chain_graph.shortest_path("A", "D")
        assert path.length == 1
        assert [r.id for r in path.relationships] == ["ad"]

    @pytest.mark.asyncio
    async def test_max_depth_bound(self, chain_graph):
        """No path within max_depth raises PathNotFoundError."""
        with pytest.raises(PathNotFoundError):
            await chain_graph.shortest_path("A", "D", SearchOptions().with_max_depth(2))

        path = await chain_graph.shortest_path("A", "D", SearchOptions().with_max_depth(3))
        assert path.length == 3

    @pytest.mark.asyncio
    async def test_disconnected(self, chain_graph):
        """Disconnected entities have no path."""
        await chain_graph.store_entities([make_entity("E")])
        with pytest.raises(PathNotFoundError):
            await chain_graph.shortest_path("A", "E")

    @pytest.mark.asyncio
    async def test_missing_intermediate_skipped(self, keyword_graph):
        """A deleted intermediate entity is left out, length stays the hop count."""
        await keyword_graph.store_entities([make_entity("A"), make_entity("C")])
        await keyword_graph.store_relationships([
            make_relationship("ab", "A", "B"),
            make_relationship("bc", "B", "C"),
        ])

        path = await keyword_graph.shortest_path("A", "C")

        assert path.length == 2
        assert path.entities == []
        assert [r.id for r in path.relationships] == ["ab", "bc"]

    @pytest.mark.asyncio
    async def test_empty_ids(self, chain_graph):
        """Empty ids are rejected."""
        with pytest.raises(InvalidIDError):
            await chain_graph.shortest_path("", "A")


class TestTraversalCancellation:
    """Cancellation propagates out of both walks."""

    @staticmethod
    def _cancel_on(graph, entity_id):
        original = graph.repository.get_relationships

        async def lookup(current_id, direction, options=None):
            if current_id == entity_id:
                raise asyncio.CancelledError()
            return await original(current_id, direction, options)

        return patch.object(graph.repository, "get_relationships", side_effect=lookup)

    @pytest.mark.asyncio
    async def test_traverse_from(self, chain_graph):
        """CancelledError mid-expansion is not skipped like a lookup failure."""
        with self._cancel_on(chain_graph, "B"):
            with pytest.raises(asyncio.CancelledError):
                await chain_graph.traverse_from("A", depth=3)

    @pytest.mark.asyncio
    async def test_shortest_path(self, chain_graph):
        """CancelledError mid-search is not reported as a missing path."""
        with self._cancel_on(chain_graph, "C"):
            with pytest.raises(asyncio.CancelledError):
                await chain_graph.shortest_path("A", "D")

    @pytest.mark.asyncio
    async def test_cancelled_task(self, chain_graph):
        """Cancelling the task running a walk cancels the walk."""
        started = asyncio.Event()
        original = chain_graph.repository.get_relationships

        async def slow(current_id, direction, options=None):
            if current_id == "B":
                started.set()
                await asyncio.sleep(10)
            return await original(current_id, direction, options)

        with patch.object(chain_graph.repository, "get_relationships", side_effect=slow):
            task = asyncio.create_task(chain_graph.shortest_path("A", "D"))
            await started.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
