"""
Logical actions: id -> label, shortcut, icon glyph and the Session method
that performs it.

The table is resolved once at import. Menus, toolbars, key handlers and the
help listing read it; the rendering code never does.
"""
import sys
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, List, Tuple

from hdrstack.errors import NotFound

COMMAND = "Cmd" if sys.platform == "darwin" else "Ctrl"
ALT = "Opt" if sys.platform == "darwin" else "Alt"


@dataclass(frozen=True)
class Action:
    id: str
    label: str
    shortcut: str
    glyph: str        # Font Awesome 6 icon name
    handler: str      # Session method name
    args: Tuple = ()
    section: str = ''


def _build_actions() -> Dict[str, Action]:
    table: List[Action] = []

    def add(action_id, label, shortcut, glyph, handler, args=(), section=''):
        table.append(Action(action_id, label, shortcut, glyph, handler, tuple(args), section))

    images = "Images and Layer List"
    add('open_image', "Open Image", f"{COMMAND}+O", 'folder-open', 'open_image', section=images)
    add('save_image', "Save Image", f"{COMMAND}+S", 'floppy-disk', 'save_image', section=images)
    add('close_image', "Close Image", f"{COMMAND}+W or Delete", 'circle-xmark', 'close_image', section=images)
    add('close_all', "Close All Images", f"{COMMAND}+Shift+W", 'circle-xmark', 'close_all', section=images)
    add('select_image', "Select Image", "Left Click", 'image', 'select_image', section=images)
    add('toggle_reference', "Select/Deselect Reference Image", "Shift+Left Click",
        'eye-low-vision', 'toggle_reference', section=images)
    for n in range(1, 10):
        add(f'select_image_{n}', f"Select Image {n}", str(n), 'images', 'select_nth', (n,), section=images)
    add('select_previous', "Select Previous Image", "Down", 'arrow-down', 'select_previous', section=images)
    add('select_next', "Select Next Image", "Up", 'arrow-up', 'select_next', section=images)
    add('send_forward', "Send Image Forward", f"{COMMAND}+Down", 'arrow-down', 'move_forward', section=images)
    add('send_backward', "Send Image Backward", f"{COMMAND}+Up", 'arrow-up', 'move_backward', section=images)

    display = "Display/Tonemapping Options"
    add('reduce_exposure', "Decrease Exposure", "E", 'moon', 'decrease_exposure', section=display)
    add('increase_exposure', "Increase Exposure", "Shift+E", 'sun', 'increase_exposure', section=display)
    add('reduce_gamma', "Decrease Gamma", "G", 'minus', 'decrease_gamma', section=display)
    add('increase_gamma', "Increase Gamma", "Shift+G", 'plus', 'increase_gamma', section=display)
    add('reset_tonemapping', "Reset Tonemapping", "R", 'arrows-rotate', 'reset_tonemapping', section=display)
    add('normalize_exposure', "Normalize Image to [0,1]", "N", 'wand-magic-sparkles',
        'toggle_normalize', section=display)
    add('dither', "Dither", "", 'chess-board', 'toggle_dither', section=display)
    add('clamp_to_ldr', "Clamp to LDR", "", 'arrows-up-to-line', 'toggle_clamp', section=display)
    for n in range(1, 8):
        add(f'select_group_{n}', f"Channel Group {n}", f"{COMMAND}+{n}", 'layer-group',
            'select_group', (n - 1,), section=display)
    add('cycle_group', "Next Channel Group", "", 'layer-group', 'cycle_group', section=display)
    for n in range(1, 9):
        add(f'blend_mode_{n}', f"Blend Mode {n}", f"Shift+{n}", 'filter', 'select_blend_mode', (n - 1,),
            section=display)
    add('cycle_blend_mode', "Next Blend Mode", "", 'filter', 'cycle_blend_mode', section=display)

    edits = "Image Edits"
    add('flip', "Flip image about horizontal axis", "F", 'arrows-up-down', 'flip', ('vertical',), section=edits)
    add('mirror', "Mirror image about vertical axis", "M", 'arrows-left-right', 'flip', ('horizontal',),
        section=edits)
    add('undo', "Undo", f"{COMMAND}+Z", 'rotate-left', 'undo', section=edits)
    add('redo', "Redo", f"{COMMAND}+Shift+Z", 'rotate-right', 'redo', section=edits)

    return OrderedDict((a.id, a) for a in table)


ACTIONS: Dict[str, Action] = _build_actions()


def get_action(action_id: str) -> Action:
    action = ACTIONS.get(action_id)
    if action is None:
        raise NotFound(f"Unknown action: {action_id}")
    return action


def actions_by_section() -> Dict[str, List[Action]]:
    """Grouped listing for a help window"""
    sections: Dict[str, List[Action]] = OrderedDict()
    for action in ACTIONS.values():
        sections.setdefault(action.section, []).append(action)
    return sections
