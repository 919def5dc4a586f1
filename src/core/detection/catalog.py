"""
Step Catalog

The fixed, ordered detection sequence. Order here is execution order.
"""

from typing import Dict, Tuple

from .models import Step, StepCategory


STEP_CATALOG: Tuple[Step, ...] = (
    Step('hardware', StepCategory.HARDWARE, False, "Hardware"),
    Step('battery', StepCategory.BATTERY, False, "Battery"),
    Step('storage', StepCategory.STORAGE, False, "Storage"),
    Step('refurbishment', StepCategory.REFURBISHMENT, False, "Refurbishment"),
    Step('network', StepCategory.NETWORK, False, "Network"),
    Step('screen', StepCategory.SCREEN, True, "Screen"),
    Step('keyboard', StepCategory.KEYBOARD, True, "Keyboard"),
    Step('trackpad', StepCategory.TRACKPAD, True, "Trackpad"),
    Step('camera', StepCategory.CAMERA, True, "Camera"),
    Step('microphone', StepCategory.MICROPHONE, True, "Microphone"),
    Step('speaker', StepCategory.SPEAKER, True, "Speaker"),
    Step('sensors', StepCategory.SENSORS, False, "Sensors"),
)

# Keys the keyboard test asks the operator to press, row by row
KEYBOARD_LAYOUT: Tuple[Tuple[str, ...], ...] = (
    ('Escape', 'F1', 'F2', 'F3', 'F4', 'F5', 'F6', 'F7', 'F8', 'F9', 'F10', 'F11', 'F12'),
    ('`', '1', '2', '3', '4', '5', '6', '7', '8', '9', '0', '-', '=', 'Backspace'),
    ('Tab', 'q', 'w', 'e', 'r', 't', 'y', 'u', 'i', 'o', 'p', '[', ']', '\\'),
    ('CapsLock', 'a', 's', 'd', 'f', 'g', 'h', 'j', 'k', 'l', ';', "'", 'Enter'),
    ('Shift', 'z', 'x', 'c', 'v', 'b', 'n', 'm', ',', '.', '/', 'ShiftRight'),
    ('Fn', 'Control', 'Alt', 'Meta', 'Space', 'MetaRight', 'AltRight',
     'ArrowLeft', 'ArrowUp', 'ArrowDown', 'ArrowRight'),
)

KEYBOARD_TOTAL_KEYS = sum(len(row) for row in KEYBOARD_LAYOUT)

_STEPS_BY_ID: Dict[str, Step] = {step.id: step for step in STEP_CATALOG}


def get_step(step_id: str) -> Step:
    """Look up a catalog step. Raises KeyError for unknown ids."""
    return _STEPS_BY_ID[step_id]


def step_index(step_id: str) -> int:
    """Position of a step in the execution order."""
    return STEP_CATALOG.index(get_step(step_id))


def automatic_steps() -> Tuple[Step, ...]:
    return tuple(s for s in STEP_CATALOG if not s.interactive)


def interactive_steps() -> Tuple[Step, ...]:
    return tuple(s for s in STEP_CATALOG if s.interactive)
