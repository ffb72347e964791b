"""Tests for the organizer booth editor and the anchor editor."""

import pytest

from makanx_map.editing import (
    AnchorCanvas,
    AnchorMode,
    BoothDragSession,
    DragMode,
    OrganizerMapCanvas,
    add_anchor_point,
    build_geometry_patch,
)
from makanx_map.gestures import GestureKind
from makanx_map.overlay import BoothVisualState
from makanx_map.types import UNSET, AnchorSet, Booth, Point, Rect, Venue, ViewportTransform


def make_venue(width=1000, height=1000):
    return Venue(
        id="evt-1", display_name="Fair", image_url="map.png",
        natural_width=width, natural_height=height,
    )


@pytest.fixture
def organizer():
    canvas = OrganizerMapCanvas()
    canvas.set_container_size(800, 600)
    canvas.set_venue(make_venue())
    canvas.set_booths([
        Booth(id="b1", label="A1", pos_x=100, pos_y=100, width=50, height=50),
        Booth(id="b2", label="A2", pos_x=300, pos_y=100, width=50, height=50),
    ])
    canvas.viewport.set_transform(ViewportTransform(0, 0, 2))
    return canvas


@pytest.fixture
def updates(organizer):
    record = []
    organizer.on_booth_update.add_listener(lambda booth_id, patch: record.append((booth_id, patch)))
    return record


class TestBoothDragSession:
    """Tests for world-space drag arithmetic."""

    def test_move_divides_by_scale(self):
        """Screen deltas become world deltas, rounded to whole pixels."""
        session = BoothDragSession("b1", DragMode.MOVE, Rect(10, 10, 40, 40), Point(0, 0), 1)
        assert session.update(25, -9, 2.0, 20) == Rect(22, 6, 40, 40)
        assert session.temp_rect == Rect(22, 6, 40, 40)

    def test_resize_respects_minimum(self):
        """Resizing never shrinks below the minimum size."""
        session = BoothDragSession("b1", DragMode.RESIZE, Rect(10, 10, 40, 40), Point(0, 0), 1)
        assert session.update(-100, 30, 1.0, 20) == Rect(10, 10, 20, 70)

    def test_patch_includes_normalized_fields(self):
        """A known map size adds all four fractions to the patch."""
        session = BoothDragSession("b1", DragMode.MOVE, Rect(0, 0, 50, 50), Point(0, 0), 1)
        patch = build_geometry_patch(session, Rect(110, 90, 50, 50), 1000, 500)
        assert (patch.pos_x, patch.pos_y) == (110, 90)
        assert patch.width is None
        assert patch.pos_x_norm == pytest.approx(0.11)
        assert patch.pos_y_norm == pytest.approx(0.18)
        assert patch.width_norm == pytest.approx(0.05)
        assert patch.height_norm == pytest.approx(0.1)
        assert patch.vendor_id is UNSET

    def test_patch_without_map_size(self):
        """Without a map size only absolute fields are sent."""
        session = BoothDragSession("b1", DragMode.RESIZE, Rect(0, 0, 50, 50), Point(0, 0), 1)
        patch = build_geometry_patch(session, Rect(0, 0, 80, 60), None, None)
        assert (patch.width, patch.height) == (80, 60)
        assert patch.pos_x is None
        assert patch.pos_x_norm is None


class TestOrganizerMapCanvas:
    """Tests for booth move, resize and selection."""

    def test_move_commits_on_release(self, organizer, updates):
        """The booth list is untouched until the pointer lifts."""
        episodes = []
        organizer.on_episode_end.add_listener(episodes.append)

        organizer.pointer_down(1, 250, 250, booth_id="b1")
        assert organizer.selected_booth_id == "b1"
        organizer.pointer_move(1, 270, 230)

        assert organizer.booths[0].pos_x == 100
        dragged = organizer.frame().booths[-1]
        assert dragged.state is BoothVisualState.DRAGGING
        assert dragged.world_rect == Rect(110, 90, 50, 50)
        assert organizer.viewport.transform == ViewportTransform(0, 0, 2)

        organizer.pointer_up(1, 270, 230)
        assert organizer.drag_session is None
        assert episodes == [GestureKind.DRAG]
        ((booth_id, patch),) = updates
        assert booth_id == "b1"
        assert (patch.pos_x, patch.pos_y) == (110, 90)
        assert patch.pos_x_norm == pytest.approx(0.11)

    def test_resize_only_from_selected_handle(self, organizer, updates):
        """The handle resizes only a booth that was already selected."""
        organizer.pointer_down(1, 690, 290, booth_id="b2", on_handle=True)
        assert organizer.drag_session.mode is DragMode.MOVE
        organizer.pointer_up(1, 690, 290)

        organizer.pointer_down(1, 690, 290, booth_id="b2", on_handle=True)
        assert organizer.drag_session.mode is DragMode.RESIZE
        organizer.pointer_move(1, 490, 290)
        organizer.pointer_up(1, 490, 290)

        ((booth_id, patch),) = updates
        assert booth_id == "b2"
        assert (patch.width, patch.height) == (20, 50)

    def test_click_without_motion_selects_only(self, organizer, updates):
        """A booth click with no movement selects and commits nothing."""
        selections = []
        organizer.on_booth_select.add_listener(selections.append)
        episodes = []
        organizer.on_episode_end.add_listener(episodes.append)

        organizer.pointer_down(1, 250, 250, booth_id="b1")
        organizer.pointer_up(1, 250, 250)

        assert selections == ["b1"]
        assert updates == []
        assert episodes == [GestureKind.TAP]

    def test_click_on_fractional_booth_commits_nothing(self, organizer, updates):
        """Rounding a normalized booth's fractional rect is not a move."""
        organizer.set_booths([
            Booth(
                id="b1", label="A1",
                pos_x_norm=0.1234, pos_y_norm=0.1234, width_norm=0.05, height_norm=0.05,
            ),
        ])
        organizer.viewport.set_transform(ViewportTransform(0, 0, 1))
        episodes = []
        organizer.on_episode_end.add_listener(episodes.append)

        organizer.pointer_down(1, 130, 130, booth_id="b1")
        organizer.pointer_up(1, 130, 130)

        assert episodes == [GestureKind.TAP]
        assert updates == []

        organizer.pointer_down(1, 130, 130, booth_id="b1")
        organizer.pointer_move(1, 140, 130)
        organizer.pointer_up(1, 140, 130)
        assert episodes == [GestureKind.TAP, GestureKind.DRAG]
        assert updates[0][1].pos_x == 133

    def test_booth_press_joins_active_map_gesture(self, organizer, updates):
        """A second finger on a booth pinches instead of dragging it."""
        episodes = []
        organizer.on_episode_end.add_listener(episodes.append)

        organizer.pointer_down(1, 500, 500)
        organizer.pointer_down(2, 250, 250, booth_id="b1")
        assert organizer.drag_session is None
        organizer.pointer_up(1, 500, 500)
        organizer.pointer_up(2, 250, 250)
        assert organizer.recognizer.session is None
        assert episodes == [GestureKind.PINCH]

        organizer.pointer_down(3, 5, 5)
        organizer.pointer_up(3, 5, 5)
        assert episodes == [GestureKind.PINCH, GestureKind.TAP]
        assert organizer.recognizer.session is None
        assert updates == []

    def test_other_pointer_during_booth_drag(self, organizer, updates):
        """Extra pointers during a booth drag leave no stale map gesture."""
        organizer.pointer_down(1, 250, 250, booth_id="b1")
        organizer.pointer_down(2, 5, 5)
        organizer.pointer_move(2, 60, 5)
        organizer.pointer_up(2, 60, 5)
        organizer.pointer_move(1, 270, 250)
        organizer.pointer_up(1, 270, 250)

        assert organizer.viewport.transform == ViewportTransform(0, 0, 2)
        assert updates[0][1].pos_x == 110
        assert organizer.recognizer.session is None

    def test_empty_tap_clears_selection(self, organizer):
        """Tapping empty map deselects."""
        selections = []
        organizer.on_booth_select.add_listener(selections.append)
        organizer.select_booth("b1")

        organizer.pointer_down(1, 5, 5)
        organizer.pointer_up(1, 5, 5)
        assert organizer.selected_booth_id is None
        assert selections == ["b1", None]

    def test_empty_drag_pans(self, organizer, updates):
        """Dragging empty space pans the map."""
        organizer.pointer_down(1, 5, 5)
        organizer.pointer_move(1, 45, 5)
        organizer.pointer_up(1, 45, 5)
        assert organizer.viewport.transform.translate_x == pytest.approx(40)
        assert updates == []

    def test_cancel_commits_like_up(self, organizer, updates):
        """pointer_cancel ends a booth drag the same way as pointer_up."""
        organizer.pointer_down(1, 250, 250, booth_id="b1")
        organizer.pointer_cancel(1, 260, 250)
        assert [u[0] for u in updates] == ["b1"]
        assert updates[0][1].pos_x == 105

    def test_removed_booth_drops_selection(self, organizer):
        """set_booths forgets a selection whose booth disappeared."""
        organizer.select_booth("b2")
        organizer.set_booths(organizer.booths[:1])
        assert organizer.selected_booth_id is None


@pytest.fixture
def anchors_canvas():
    canvas = AnchorCanvas()
    canvas.set_container_size(800, 600)
    canvas.set_venue(make_venue())
    return canvas


def tap(canvas, x, y):
    canvas.pointer_down(1, x, y)
    canvas.pointer_up(1, x, y)


class TestAddAnchorPoint:
    """Tests for add_anchor_point."""

    def test_returns_copy(self):
        """The input set is not mutated."""
        original = AnchorSet(blocked_zones=[[Point(0.1, 0.1)]])
        updated = add_anchor_point(original, AnchorMode.BLOCKED, Point(0.2, 0.2))
        assert original.blocked_zones == [[Point(0.1, 0.1)]]
        assert updated.blocked_zones == [[Point(0.1, 0.1), Point(0.2, 0.2)]]

    def test_allowed_area_starts_from_none(self):
        """The first allowed point creates the polygon."""
        updated = add_anchor_point(AnchorSet(), AnchorMode.ALLOWED, Point(0.5, 0.5))
        assert updated.allowed_area == [Point(0.5, 0.5)]


class TestAnchorCanvas:
    """Tests for anchor annotation."""

    def test_tap_adds_normalized_entrance(self, anchors_canvas):
        """The map center (400, 300) is normalized (0.5, 0.5)."""
        anchors_canvas.set_mode(AnchorMode.ENTRANCE)
        tap(anchors_canvas, 400, 300)
        (entrance,) = anchors_canvas.anchors.entrances
        assert entrance.x == pytest.approx(0.5)
        assert entrance.y == pytest.approx(0.5)

    def test_blocked_zone_clicks(self, anchors_canvas):
        """Two clicks in blocked mode build one polygon with two points."""
        anchors_canvas.set_mode(AnchorMode.BLOCKED)
        anchors_canvas.start_blocked_zone()
        tap(anchors_canvas, 400, 300)
        tap(anchors_canvas, 460, 300)

        zones = anchors_canvas.anchors.blocked_zones
        assert len(zones) == 1
        assert zones[0][0].x == pytest.approx(0.5)
        assert zones[0][1].x == pytest.approx(0.6)

    def test_start_blocked_zone_noop_when_empty(self, anchors_canvas):
        """An empty trailing polygon is not duplicated."""
        anchors_canvas.start_blocked_zone()
        anchors_canvas.start_blocked_zone()
        assert anchors_canvas.anchors.blocked_zones == [[]]

    def test_tap_outside_map_ignored(self, anchors_canvas):
        """Points off the map image are not recorded."""
        anchors_canvas.set_mode(AnchorMode.WALKWAY)
        tap(anchors_canvas, 50, 300)
        assert anchors_canvas.anchors.walkway == []

    def test_no_mode_only_navigates(self, anchors_canvas):
        """Without a mode taps add nothing."""
        changes = []
        anchors_canvas.on_change.add_listener(changes.append)
        tap(anchors_canvas, 400, 300)
        assert anchors_canvas.add_point(Point(0.1, 0.1)) is False
        assert changes == []

    def test_undo_and_clear(self, anchors_canvas):
        """Walkway undo drops the last point and clears reset each layer."""
        anchors_canvas.set_mode(AnchorMode.WALKWAY)
        anchors_canvas.add_point(Point(0.1, 0.1))
        anchors_canvas.add_point(Point(0.2, 0.2))
        anchors_canvas.undo_walkway()
        assert anchors_canvas.anchors.walkway == [Point(0.1, 0.1)]

        anchors_canvas.set_mode(AnchorMode.ALLOWED)
        anchors_canvas.add_point(Point(0.3, 0.3))
        anchors_canvas.clear_allowed_area()
        anchors_canvas.clear_walkway()
        assert anchors_canvas.anchors.allowed_area is None
        assert anchors_canvas.anchors.walkway == []

    def test_frame_projects_anchors(self, anchors_canvas):
        """The frame carries anchors projected to the screen."""
        anchors_canvas.set_anchors(AnchorSet(entrances=[Point(0.5, 0.5)]))
        entrance = anchors_canvas.frame().anchors.entrances[0]
        assert entrance.x == pytest.approx(400)
        assert entrance.y == pytest.approx(300)
