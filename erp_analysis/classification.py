"""
Trial classification by flash width

Each detected event gets exactly one label. Events whose epoch window leaves
the recording are excluded first, then the pulse width is compared with the
non-target (short) band and the target (long) band, in that order.
"""

import logging
from typing import List

from .data_types import ClassifiedEvent, EpochGeometry, Event, TrialLabel

OUT_OF_BOUNDS = "out-of-bounds epoch"


def unrecognized_duration(duration: int) -> str:
    """Exclusion reason for a pulse width matching neither class"""
    return f"unrecognized pulse duration: {duration} samples"


def classify_event(
    index: int,
    event: Event,
    geometry: EpochGeometry,
    n_samples: int,
    short_width: int,
    short_tol: int,
    long_width: int,
    long_tol: int
) -> ClassifiedEvent:
    """
    Label one event

    Rules, in order:
    1. Epoch window outside the recording -> excluded ("out-of-bounds epoch"),
       whatever the width
    2. |duration - short_width| <= short_tol -> non-target
    3. |duration - long_width| <= long_tol -> target
    4. Anything else -> excluded ("unrecognized pulse duration: N samples")

    The bounds check comes first because a truncated epoch cannot be
    averaged even when its flash is perfectly clear. The result depends only
    on the arguments, so classification is deterministic and can run in any
    order.

    Args:
        index: Position of the event in detection order
        event: Detected pulse
        geometry: Epoch window in samples
        n_samples: Recording length
        short_width/short_tol: Non-target band (samples)
        long_width/long_tol: Target band (samples)

    Returns:
        ClassifiedEvent with exactly one label
    """
    start, stop = geometry.bounds(event.onset)
    if start < 0 or stop > n_samples:
        return ClassifiedEvent(index, event, TrialLabel.EXCLUDED, OUT_OF_BOUNDS)

    # Short band first: it wins when the bands overlap
    if abs(event.duration - short_width) <= short_tol:
        return ClassifiedEvent(index, event, TrialLabel.NON_TARGET)

    if abs(event.duration - long_width) <= long_tol:
        return ClassifiedEvent(index, event, TrialLabel.TARGET)

    return ClassifiedEvent(index, event, TrialLabel.EXCLUDED, unrecognized_duration(event.duration))


def classify_events(
    events: List[Event],
    geometry: EpochGeometry,
    n_samples: int,
    short_width: int = 45,
    short_tol: int = 10,
    long_width: int = 135,
    long_tol: int = 10
) -> List[ClassifiedEvent]:
    """
    Label every event in detection order

    Args:
        events: Detected events
        geometry: Epoch window in samples
        n_samples: Recording length
        short_width/short_tol: Non-target band (samples)
        long_width/long_tol: Target band (samples)

    Returns:
        One ClassifiedEvent per input event, same order
    """
    classified = [
        classify_event(index, event, geometry, n_samples, short_width, short_tol, long_width, long_tol)
        for index, event in enumerate(events)
    ]

    n_target = sum(1 for item in classified if item.label is TrialLabel.TARGET)
    n_non_target = sum(1 for item in classified if item.label is TrialLabel.NON_TARGET)
    n_excluded = len(classified) - n_target - n_non_target
    logging.info(
        f"Classified {len(classified)} events: target={n_target}, "
        f"non-target={n_non_target}, excluded={n_excluded}"
    )

    for item in classified:
        if not item.is_included:
            logging.debug(f"Trial {item.index} excluded - {item.reason}")

    return classified
