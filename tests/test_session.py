import numpy as np
import pytest

from conftest import make_image
from hdrstack.errors import EmptyStack, InvalidParameter, NotFound, NothingToUndo
from hdrstack.model.channels import ChannelGroup, ChannelRole
from hdrstack.model.image import ImageDescriptor
from hdrstack.pipeline.compositor import BlendMode
from hdrstack.pipeline.request import ViewRect
from hdrstack.session import Session


@pytest.fixture
def scenario(session):
    session.add_image(make_image('scenario', np.array([[0.0, 1.0], [2.0, 4.0]])))
    return session


def test_single_channel_scenario(scenario):
    out = scenario.render_viewport()
    assert out.shape == (2, 2, 4) and out.dtype == np.uint8
    assert out[:, :, 0].ravel().tolist() == [0, 255, 255, 255]
    # grey groups are replicated to RGB, alpha is opaque
    assert (out[:, :, 1] == out[:, :, 0]).all() and (out[:, :, 2] == out[:, :, 0]).all()
    assert (out[:, :, 3] == 255).all()


def test_exposure_scenario(scenario):
    scenario.set_exposure(-2.0)
    assert scenario.render_viewport()[:, :, 0].ravel().tolist() == [0, 64, 128, 255]


def test_normalize_uses_group_range(scenario):
    scenario.toggle_normalize()
    assert scenario.render_viewport()[:, :, 0].ravel().tolist() == [0, 64, 128, 255]
    assert scenario.current_stats().maximum == 4.0


def test_empty_session_errors(session):
    with pytest.raises(EmptyStack):
        session.render_viewport()
    with pytest.raises(EmptyStack):
        session.current_stats()
    with pytest.raises(EmptyStack):
        session.set_exposure(1.0)
    with pytest.raises(EmptyStack):
        session.select_next()
    with pytest.raises(NothingToUndo):
        session.undo()
    assert session.list_images() == []


def test_exposure_and_gamma_steps_are_undoable(scenario):
    image = scenario.stack.current()
    scenario.increase_exposure()
    scenario.increase_exposure()
    scenario.decrease_gamma()
    assert image.exposure_ev == 0.5
    assert image.gamma_override == 0.9
    assert scenario.effective_gamma(image) == 0.9

    scenario.reset_tonemapping()
    assert (image.exposure_ev, image.gamma_override) == (0.0, None)
    scenario.undo()
    assert (image.exposure_ev, image.gamma_override) == (0.5, 0.9)
    for _ in range(3):
        scenario.undo()
    assert (image.exposure_ev, image.gamma_override) == (0.0, None)
    assert not scenario.history_state().can_undo


def test_decrease_gamma_stops_at_last_positive_step(scenario):
    image = scenario.stack.current()
    for _ in range(15):
        scenario.decrease_gamma()
    assert image.gamma_override == 0.1
    assert len(scenario.history) == 9
    scenario.dispatch('reduce_gamma')
    assert image.gamma_override == 0.1


def test_no_op_edits_are_not_recorded(scenario):
    scenario.set_exposure(0.0)
    scenario.reset_tonemapping()
    scenario.select_group(0)
    assert len(scenario.history) == 0


def test_invalid_gamma_rejected_without_history(scenario):
    with pytest.raises(InvalidParameter):
        scenario.set_gamma(0.0)
    with pytest.raises(InvalidParameter):
        scenario.select_group(3)
    assert len(scenario.history) == 0


def test_selection_and_navigation(three_image_session):
    session, (a, b, c) = three_image_session
    assert session.stack.current_id == a
    session.select_next()
    assert session.stack.current_id == b
    session.select_previous()
    session.select_previous()
    assert session.stack.current_id == c
    session.select_nth(1)
    assert session.stack.current_id == a
    with pytest.raises(InvalidParameter):
        session.select_nth(4)
    with pytest.raises(NotFound):
        session.select_image(99)


def test_toggle_reference(three_image_session):
    session, (a, b, c) = three_image_session
    session.toggle_reference(b)
    assert session.stack.reference_id == b
    session.toggle_reference(b)
    assert session.stack.reference_id is None
    with pytest.raises(InvalidParameter):
        session.toggle_reference(a)


def test_reference_blend(three_image_session):
    session, (a, b, c) = three_image_session
    session.select_reference(b)
    session.set_blend_mode(BlendMode.ABSOLUTE_DIFFERENCE)
    assert (session.render_viewport()[:, :, 0] == 64).all()

    session.set_blend_mode(BlendMode.REFERENCE)
    assert (session.render_viewport()[:, :, 0] == 128).all()

    session.set_blend_mode(BlendMode.CURRENT)
    assert (session.render_viewport()[:, :, 0] == 64).all()


def test_difference_against_itself_is_black(session, gradient_rgb):
    a = session.add_image(make_image('a', gradient_rgb))
    b = session.add_image(make_image('b', gradient_rgb))
    session.select_reference(b)
    session.set_blend_mode(BlendMode.DIFFERENCE)
    out = session.render_viewport()
    assert (out[:, :, :3] == 0).all()
    assert session.stack.current_id == a


def test_move_and_close_with_undo(three_image_session):
    session, (a, b, c) = three_image_session
    session.move_backward()  # a is already first
    assert len(session.history) == 0
    session.move_forward()
    assert [e.id for e in session.list_images()] == [b, a, c]

    session.close_image()
    assert [e.id for e in session.list_images()] == [b, c]
    assert session.stack.current_id == c
    session.undo()
    assert [e.id for e in session.list_images()] == [b, a, c]
    assert session.stack.current_id == a


def test_close_all_then_undo_everything(three_image_session):
    session, ids = three_image_session
    session.close_all()
    assert len(session.stack) == 0
    for _ in ids:
        session.undo()
    assert [e.id for e in session.list_images()] == ids
    assert session.stack.current_id == ids[0]


def test_rect_partially_outside_image(scenario):
    out = scenario.render_viewport(ViewRect(1, 1, 3, 2))
    assert out.shape == (2, 3, 4)
    assert out[0, 0].tolist() == [255, 255, 255, 255]
    assert (out[0, 1:] == 0).all() and (out[1] == 0).all()
    assert (scenario.render_viewport(ViewRect(10, 10, 2, 2)) == 0).all()


def test_flip_changes_render(scenario):
    scenario.set_exposure(-2.0)
    scenario.flip('horizontal')
    assert scenario.render_viewport()[:, :, 0].ravel().tolist() == [64, 0, 255, 128]
    scenario.dispatch('flip')
    assert scenario.render_viewport()[:, :, 0].ravel().tolist() == [255, 128, 64, 0]


def test_alpha_channel(session):
    rgba = np.zeros((1, 2, 4), dtype=np.float32)
    rgba[..., :3] = 1.0
    rgba[..., 3] = [0.5, 2.0]
    descriptor = ImageDescriptor.from_array('rgba', rgba)
    descriptor.suggested_groups = [
        ChannelGroup('RGBA', (0, 1, 2, 3), ChannelRole.COLOR),
        ChannelGroup('A', (3,), ChannelRole.ALPHA),
    ]
    session.add_image(descriptor)
    out = session.render_viewport()
    assert out[0, :, 3].tolist() == [128, 255]
    assert (out[0, :, :3] == 255).all()

    # a lone alpha group is shown as grey and opaque
    session.select_group(1)
    out = session.render_viewport()
    assert out[0, :, 0].tolist() == [128, 255]
    assert (out[0, :, 3] == 255).all()


def test_split_alpha_group_is_opaque(session):
    rgba = np.full((1, 2, 4), 0.5)
    session.add_image(make_image('rgba', rgba))
    assert [g.name for g in session.stack.current().groups] == ['RGB', 'A']
    assert (session.render_viewport()[:, :, 3] == 255).all()


def test_dispatch(three_image_session):
    session, (a, b, c) = three_image_session
    session.dispatch('select_image_3')
    assert session.stack.current_id == c
    session.dispatch('increase_exposure')
    assert session.stack.get(c).exposure_ev == session.settings.exposure_step
    session.dispatch('blend_mode_4')
    assert session.blend_mode == BlendMode.ABSOLUTE_DIFFERENCE
    session.dispatch('undo')
    assert session.stack.get(c).exposure_ev == 0.0
    with pytest.raises(NotFound):
        session.dispatch('no_such_action')
    with pytest.raises(InvalidParameter):
        session.dispatch('select_group_2')


def test_list_images_marks_selection(three_image_session):
    session, (a, b, c) = three_image_session
    session.select_reference(c)
    entries = session.list_images()
    assert [e.display_name for e in entries] == ['a.tif', 'b.tif', 'c.tif']
    assert [(e.is_current, e.is_reference) for e in entries] == [(True, False), (False, False), (False, True)]


def test_snapshot_is_isolated_from_later_edits(scenario):
    snapshot = scenario.snapshot()
    scenario.set_exposure(3.0)
    scenario.flip('vertical')
    assert snapshot.ev == 0.0
    assert snapshot.planes[0][0, 1] == 1.0


def test_defaults_from_settings():
    session = Session()
    assert session.blend_mode == BlendMode.DIFFERENCE
    assert session.dither
