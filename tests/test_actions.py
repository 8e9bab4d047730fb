import pytest

from hdrstack.actions import ACTIONS, actions_by_section, get_action
from hdrstack.errors import NotFound
from hdrstack.session import Session


def test_every_action_has_a_session_handler():
    for action in ACTIONS.values():
        assert callable(getattr(Session, action.handler, None)), action.id


def test_lookup():
    assert get_action('mirror').args == ('horizontal',)
    assert get_action('select_group_1').args == (0,)
    with pytest.raises(NotFound):
        get_action('nope')


def test_numbered_shortcuts():
    assert [a.id for a in ACTIONS.values() if a.handler == 'select_blend_mode'] == [
        f'blend_mode_{n}' for n in range(1, 9)
    ]
    assert len([a for a in ACTIONS.values() if a.handler == 'select_group']) == 7


def test_sections_cover_all_actions():
    sections = actions_by_section()
    assert sum(len(actions) for actions in sections.values()) == len(ACTIONS)
    assert 'Image Edits' in sections
