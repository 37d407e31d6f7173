import math

import numpy as np
import pytest

from src.curvesketch.config import DrawingConfig
from src.curvesketch.model import CurveNotFoundError, NodeNotFoundError, RejectionReason
from src.curvesketch.store import CurveStore
from src.utils import debug


def _draw(store: CurveStore, points: list[tuple[float, float]], straight: bool = True) -> None:
    for p in points:
        result = store.add_node(p, straight)
        assert result.accepted, result.message


def test_add_nodes_builds_one_curve() -> None:
    store = CurveStore()
    _draw(store, [(0.0, 0.0), (100.0, 0.0), (100.0, 100.0)])
    assert len(store.state) == 1
    curve = store.state[0]
    assert [n.position for n in curve.nodes] == [(0.0, 0.0), (100.0, 0.0), (100.0, 100.0)]
    assert not curve.closed
    assert all(n.straight_to_next for n in curve.nodes)


def test_add_node_uses_configured_mode_and_radius() -> None:
    store = CurveStore(DrawingConfig(straight_mode=True, node_radius=4.0))
    store.add_node((1.0, 2.0))
    node = store.state[0].nodes[0]
    assert node.straight_to_next
    assert node.radius == 4.0
    store.configure(straight_mode=False)
    store.add_node((10.0, 2.0))
    assert not store.state[0].nodes[1].straight_to_next


def test_self_crossing_add_is_rejected_and_state_unchanged() -> None:
    store = CurveStore()
    _draw(store, [(0.0, 0.0), (100.0, 0.0), (100.0, 100.0)])
    before = store.state
    result = store.add_node((50.0, -50.0), True)
    assert not result.accepted
    assert result.rejection is RejectionReason.SELF_INTERSECTION
    assert store.state is before
    assert result.state is before
    assert len(store.state[0]) == 3


def test_cross_curve_add_is_rejected() -> None:
    store = CurveStore()
    _draw(store, [(0.0, 0.0), (100.0, 0.0)])
    store.begin_new_curve()
    _draw(store, [(50.0, -50.0)])
    before = store.state
    result = store.add_node((50.0, 50.0), True)
    assert result.rejection is RejectionReason.CROSS_CURVE_INTERSECTION
    assert store.state == before
    assert "another curve" in result.message


def test_begin_new_curve_starts_a_second_curve() -> None:
    store = CurveStore()
    _draw(store, [(0.0, 0.0), (10.0, 0.0)])
    store.begin_new_curve()
    assert store.pending_new_curve
    _draw(store, [(0.0, 20.0), (10.0, 20.0)])
    assert not store.pending_new_curve
    assert [len(c) for c in store.state] == [2, 2]


def test_close_triangle_succeeds() -> None:
    store = CurveStore()
    _draw(store, [(0.0, 0.0), (100.0, 0.0), (100.0, 100.0)])
    result = store.close_current_curve()
    assert result.accepted
    assert store.state[0].closed
    assert store.state[0].n_segments == 3


def test_close_needs_three_nodes() -> None:
    store = CurveStore()
    assert store.close_current_curve().rejection is RejectionReason.INVALID_STATE
    _draw(store, [(0.0, 0.0), (100.0, 0.0)])
    result = store.close_current_curve()
    assert result.rejection is RejectionReason.INVALID_STATE
    assert not store.state[0].closed


def test_close_crossing_another_curve_is_rejected() -> None:
    store = CurveStore()
    _draw(store, [(50.0, -20.0), (50.0, 20.0)])
    store.begin_new_curve()
    _draw(store, [(0.0, 0.0), (0.0, 100.0), (100.0, 0.0)])
    before = store.state
    result = store.close_current_curve()
    assert result.rejection is RejectionReason.CROSS_CURVE_INTERSECTION
    assert store.state is before
    assert not store.state[1].closed


def test_adding_after_close_starts_a_new_curve() -> None:
    store = CurveStore()
    _draw(store, [(0.0, 0.0), (100.0, 0.0), (100.0, 100.0)])
    store.close_current_curve()
    _draw(store, [(200.0, 0.0)])
    assert [len(c) for c in store.state] == [3, 1]


def test_move_selected_node() -> None:
    store = CurveStore()
    _draw(store, [(0.0, 0.0), (100.0, 0.0), (100.0, 100.0), (0.0, 100.0)])
    handle = store.state[0].nodes[3].id
    store.select_node(handle)
    assert store.original_position == (0.0, 100.0)
    result = store.move_node(handle, (10.0, 90.0))
    assert result.accepted
    assert store.state.node(handle).position == (10.0, 90.0)
    assert store.selection is None
    assert store.original_position is None


def test_rejected_move_reverts_to_original_position() -> None:
    store = CurveStore()
    _draw(store, [(0.0, 0.0), (100.0, 0.0), (100.0, 100.0), (0.0, 100.0)])
    handle = store.state[0].nodes[3].id
    before = store.state
    store.select_node(handle)
    preview = store.preview_move(handle, (50.0, -50.0))
    assert preview.node(handle).position == (50.0, -50.0)
    assert store.state is before
    result = store.move_node(handle, (50.0, -50.0))
    assert result.rejection is RejectionReason.SELF_INTERSECTION
    assert "reverted" in result.message
    assert store.state is before
    assert store.state.node(handle).position == (0.0, 100.0)
    assert store.selection is None


def test_move_into_another_curve_is_rejected() -> None:
    store = CurveStore()
    _draw(store, [(0.0, 0.0), (100.0, 0.0)])
    store.begin_new_curve()
    _draw(store, [(0.0, 50.0), (100.0, 50.0)])
    handle = store.state[1].nodes[1].id
    store.select_node(handle)
    result = store.move_node(handle, (100.0, -50.0))
    assert result.rejection is RejectionReason.CROSS_CURVE_INTERSECTION


def test_move_requires_selection() -> None:
    store = CurveStore()
    _draw(store, [(0.0, 0.0), (100.0, 0.0)])
    handle = store.state[0].nodes[0].id
    result = store.move_node(handle, (5.0, 5.0))
    assert result.rejection is RejectionReason.INVALID_STATE
    assert store.state.node(handle).position == (0.0, 0.0)


def test_unknown_handles_are_contract_errors() -> None:
    store = CurveStore()
    _draw(store, [(0.0, 0.0), (100.0, 0.0)])
    with pytest.raises(NodeNotFoundError):
        store.move_node(-1, (1.0, 1.0))
    with pytest.raises(NodeNotFoundError):
        store.delete_node(-1)
    with pytest.raises(NodeNotFoundError):
        store.select_node(-1)
    with pytest.raises(CurveNotFoundError):
        store.resample(-1)


def test_non_finite_position_is_rejected_as_input_error() -> None:
    store = CurveStore()
    with pytest.raises(ValueError):
        store.add_node((math.nan, 0.0))


def test_deleting_last_node_removes_the_curve() -> None:
    store = CurveStore()
    _draw(store, [(0.0, 0.0), (100.0, 0.0), (100.0, 100.0)])
    store.close_current_curve()
    store.begin_new_curve()
    _draw(store, [(300.0, 300.0)])
    lone = store.state[1].nodes[0].id
    state = store.delete_node(lone)
    assert len(state) == 1
    assert state[0].closed
    assert store.state is state


def test_deleting_from_triangle_reopens_it() -> None:
    store = CurveStore()
    _draw(store, [(0.0, 0.0), (100.0, 0.0), (100.0, 100.0)])
    store.close_current_curve()
    handle = store.state[0].nodes[2].id
    store.select_node(handle)
    store.delete_node(handle)
    assert len(store.state[0]) == 2
    assert not store.state[0].closed
    assert store.selection is None


def test_node_at_hit_test() -> None:
    store = CurveStore(DrawingConfig(node_radius=10.0))
    _draw(store, [(0.0, 0.0), (100.0, 0.0)])
    assert store.node_at(5.0, -5.0) == store.state[0].nodes[0].id
    assert store.node_at(95.0, 9.0) == store.state[0].nodes[1].id
    assert store.node_at(50.0, 0.0) is None
    assert store.node_at(10.0, 0.0) is None


def test_example_scenario() -> None:
    store = CurveStore()
    _draw(store, [(0.0, 0.0), (100.0, 0.0), (100.0, 100.0)])
    assert store.close_current_curve().accepted
    curve = store.state[0]
    out = store.resample(curve.id, 4)
    assert out.shape == (4, 2)
    assert tuple(out[0]) == (0.0, 0.0)
    spacing = (200.0 + 100.0 * math.sqrt(2.0)) / 3.0
    np.testing.assert_allclose(out[1], [100.0, spacing - 100.0], atol=1e-9)
    assert out[2][0] == pytest.approx(out[2][1])
    assert 0.0 < out[2][0] < 100.0


def test_resample_cache_is_invalidated_by_edits() -> None:
    store = CurveStore()
    _draw(store, [(0.0, 0.0), (100.0, 0.0)])
    cid = store.state[0].id
    first = store.resample(cid, 5)
    first[0] = [999.0, 999.0]
    np.testing.assert_allclose(store.resample(cid, 5)[-1], [100.0, 0.0])
    assert tuple(store.resample(cid, 5)[0]) == (0.0, 0.0)
    store.add_node((200.0, 0.0), True)
    np.testing.assert_allclose(store.resample(cid, 5)[-1], [200.0, 0.0])


def test_rasterize_through_store() -> None:
    store = CurveStore(DrawingConfig(cell_size=10.0))
    _draw(store, [(0.0, 5.0), (100.0, 5.0)])
    cid = store.state[0].id
    cells = store.rasterize(cid)
    assert len(cells) >= 10
    assert all(c.angle == pytest.approx(0.0) for c in cells)
    assert store.rasterize(cid, 20.0, 5) != cells
    store.begin_new_curve()
    _draw(store, [(0.0, 55.0), (100.0, 55.0)])
    everything = store.rasterize_all()
    assert len(everything) == 2 * len(cells)


def test_discretize_through_store() -> None:
    store = CurveStore(DrawingConfig(segment_length_ratio=0.5))
    _draw(store, [(0.0, 0.0), (100.0, 0.0)])
    spans = store.discretize(store.state[0].id, 3)
    np.testing.assert_allclose(spans[:, 0], [[0.0, 0.0], [50.0, 0.0]])
    np.testing.assert_allclose(spans[:, 1], [[25.0, 0.0], [75.0, 0.0]])


def test_verbose_logging(capsys: pytest.CaptureFixture[str]) -> None:
    store = CurveStore()
    debug.set_verbose(True)
    try:
        store.add_node((0.0, 0.0))
        store.close_current_curve()
        store.add_node((5.0, 0.0))
        store.resample(store.state[0].id, 3)
    finally:
        debug.set_verbose(False)
    out = capsys.readouterr().out
    assert "commit add_node" in out
    assert "reject close_current_curve: INVALID_STATE" in out
    assert "resample: n=3 finite_all=True" in out
    store.add_node((10.0, 0.0))
    assert capsys.readouterr().out == ""


def test_doubling_back_along_previous_segment_is_rejected() -> None:
    store = CurveStore()
    _draw(store, [(0.0, 0.0), (100.0, 0.0)])
    before = store.state
    result = store.add_node((50.0, 0.0), True)
    assert result.rejection is RejectionReason.SELF_INTERSECTION
    assert store.state is before
    _draw(store, [(200.0, 0.0)])
    assert len(store.state[0]) == 3


def test_move_that_flattens_closed_curve_is_rejected() -> None:
    store = CurveStore()
    _draw(store, [(0.0, 0.0), (100.0, 0.0), (100.0, 100.0)])
    assert store.close_current_curve().accepted
    handle = store.state[0].nodes[2].id
    before = store.state
    store.select_node(handle)
    result = store.move_node(handle, (50.0, 0.0))
    assert result.rejection is RejectionReason.SELF_INTERSECTION
    assert store.state is before
    assert store.state.node(handle).position == (100.0, 100.0)


def test_close_running_back_over_first_segment_is_rejected() -> None:
    store = CurveStore()
    _draw(store, [(0.0, 0.0), (100.0, 0.0), (100.0, 50.0), (50.0, 0.0)])
    result = store.close_current_curve()
    assert result.rejection is RejectionReason.SELF_INTERSECTION
    assert not store.state[0].closed


def test_cache_keeps_one_entry_per_curve_and_kind() -> None:
    store = CurveStore()
    _draw(store, [(0.0, 0.0), (100.0, 0.0)])
    cid = store.state[0].id
    for n in range(2, 12):
        store.resample(cid, n)
    assert len(store._cache) == 1
    np.testing.assert_allclose(store.resample(cid, 3)[1], [50.0, 0.0])
    store.rasterize(cid, 10.0, 3)
    store.rasterize(cid, 20.0, 3)
    assert len(store._cache) == 2


def test_verbose_commit_reports_conflicts_left_by_delete(
    capsys: pytest.CaptureFixture[str],
) -> None:
    store = CurveStore()
    _draw(store, [(0.0, 0.0), (50.0, -100.0), (100.0, 0.0)])
    store.begin_new_curve()
    _draw(store, [(50.0, -20.0), (50.0, 20.0)])
    capsys.readouterr()
    debug.set_verbose(True)
    try:
        store.delete_node(store.state[0].nodes[1].id)
    finally:
        debug.set_verbose(False)
    out = capsys.readouterr().out
    assert "commit delete_node" in out
    assert "drawing check after delete_node" in out
    assert "with another curve" in out
