import pytest

from attendcache.core.exceptions.exceptions import InvalidCursorChainError
from attendcache.schemas.pagination import SearchParams, SortOption
from attendcache.services.pagination_controller import PaginationController


@pytest.fixture
def controller(registry, name_asc):
    return PaginationController(registry, "evt-1", name_asc)


def known_pages(controller, n, total_pages=10):
    controller.registry.set_cursors(controller.signature, [None] + [f"c{i}" for i in range(1, n)])
    controller.set_total_pages(total_pages)


def test_initial_state(controller):
    assert controller.current_page == 1
    assert controller.total_pages == 1
    assert controller.pending_jump_target is None
    assert controller.cursors == [None]


def test_next_requires_known_cursor(controller):
    assert controller.handle_page_change("next") is False
    assert controller.current_page == 1

    controller.record_next_cursor(1, "c1")
    assert controller.handle_page_change("next") is True
    assert controller.current_page == 2
    assert controller.handle_page_change("next") is False


def test_prev_walks_back_to_first_page(controller):
    known_pages(controller, 3)
    controller.go_to_specific_page(3)

    assert controller.handle_page_change("prev") is True
    assert controller.handle_page_change("prev") is True
    assert controller.handle_page_change("prev") is False
    assert controller.current_page == 1


def test_unknown_direction_raises(controller):
    with pytest.raises(ValueError):
        controller.handle_page_change("sideways")


def test_jump_within_known_chain_is_plain_navigation(controller):
    known_pages(controller, 2)

    assert controller.go_to_specific_page(2) is True
    assert controller.current_page == 2
    assert controller.pending_jump_target is None


def test_jump_past_known_chain_is_flagged(controller):
    known_pages(controller, 2)

    assert controller.go_to_specific_page(5) is True
    assert controller.pending_jump_target == 5
    assert controller.current_page == 5


def test_jump_back_inside_chain_drops_earlier_pending_target(controller):
    known_pages(controller, 2)
    controller.go_to_specific_page(5)

    assert controller.go_to_specific_page(2) is True
    assert controller.current_page == 2
    assert controller.pending_jump_target is None


def test_resume_lost_position_rearms_jump_after_chain_shrinks(controller, registry):
    known_pages(controller, 3)
    controller.go_to_specific_page(3)
    registry.set_cursors(controller.signature, [None])

    assert controller.resume_lost_position() is True
    assert controller.pending_jump_target == 3
    # already armed
    assert controller.resume_lost_position() is False


def test_resume_lost_position_leaves_known_pages_alone(controller):
    known_pages(controller, 3)
    controller.go_to_specific_page(2)

    assert controller.resume_lost_position() is False
    assert controller.pending_jump_target is None


@pytest.mark.parametrize("page", [0, -1, 11])
def test_out_of_range_jump_is_noop(controller, page):
    known_pages(controller, 2)
    controller.go_to_specific_page(2)
    before = controller.state.model_copy()

    assert controller.go_to_specific_page(page) is False
    assert controller.state == before


def test_reset_pagination(controller):
    known_pages(controller, 4)
    controller.go_to_specific_page(8)
    generation = controller.generation

    controller.reset_pagination()
    assert controller.current_page == 1
    assert controller.cursors == [None]
    assert controller.pending_jump_target is None
    assert controller.generation == generation + 1


def test_filter_change_resets_state_and_chain(controller):
    known_pages(controller, 3)
    controller.go_to_specific_page(3)
    old_signature = controller.signature

    assert controller.update_filters(category_filter="BSIT") is True
    assert controller.signature != old_signature
    assert controller.state.current_page == 1
    assert controller.state.total_pages == 1
    assert controller.pending_jump_target is None
    assert controller.cursors == [None]
    assert controller.generation == 1


def test_same_filters_do_not_reset(controller):
    known_pages(controller, 3)

    assert controller.update_filters(category_filter=None) is False
    assert len(controller.cursors) == 3


def test_direction_change_gets_independent_chain(registry, name_asc):
    ascending = PaginationController(registry, "evt-1", name_asc)
    descending = PaginationController(registry, "evt-1", SortOption(field="name", direction="desc"))
    ascending.record_next_cursor(1, "a1")

    descending.record_next_cursor(1, "d1")
    descending.reset_pagination()

    assert ascending.cursors == [None, "a1"]
    assert descending.cursors == [None]


def test_search_change_switches_chain(controller):
    controller.record_next_cursor(1, "c1")
    controller.update_filters(search=SearchParams(type="name", query="ana"))

    assert controller.cursors == [None]
    controller.update_filters(search=None)
    # switching back resets that chain too
    assert controller.cursors == [None]


def test_record_next_cursor_only_extends_from_last_page(controller):
    assert controller.record_next_cursor(1, "c1") is True
    assert controller.record_next_cursor(1, "c1-again") is False
    assert controller.record_next_cursor(2, None) is False
    assert controller.cursors == [None, "c1"]


def test_cursor_for_page(controller):
    known_pages(controller, 2)

    assert controller.cursor_for_page(1) is None
    assert controller.cursor_for_page(2) == "c1"
    with pytest.raises(InvalidCursorChainError):
        controller.cursor_for_page(3)


def test_abandon_jump_lands_inside_known_chain(controller):
    known_pages(controller, 2)
    controller.go_to_specific_page(6)

    controller.abandon_jump()
    assert controller.pending_jump_target is None
    assert controller.current_page == 2


def test_returning_view_reuses_fresh_chain(registry, name_asc):
    first = PaginationController(registry, "evt-1", name_asc)
    first.record_next_cursor(1, "c1")
    first.set_total_pages(4)

    second = PaginationController(registry, "evt-1", name_asc)
    assert second.cursors == [None, "c1"]
    assert second.total_pages == 4
