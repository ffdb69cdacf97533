from __future__ import annotations

import sys
import threading
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from filehost_bot.core.conversation import ConversationStateMachine, ConversationStep  # noqa: E402


def test_take_state_consumes_the_pending_step_once() -> None:
    machine = ConversationStateMachine()
    machine.set_state(5, ConversationStep.MESSAGE_USER, target=42)

    state = machine.take_state(5)

    assert state is not None
    assert state.step is ConversationStep.MESSAGE_USER
    assert state.target == 42
    assert machine.take_state(5) is None
    assert len(machine) == 0


def test_new_step_replaces_the_previous_one() -> None:
    machine = ConversationStateMachine()
    machine.set_state(5, ConversationStep.BAN_USER)
    machine.set_state(5, ConversationStep.ADD_SLOTS)

    assert machine.has_state(5, ConversationStep.ADD_SLOTS)
    assert not machine.has_state(5, ConversationStep.BAN_USER)
    assert machine.clear(5) is True
    assert machine.clear(5) is False
    assert machine.peek(5) is None


def test_states_are_isolated_per_actor() -> None:
    machine = ConversationStateMachine()
    machine.set_state(1, ConversationStep.BROADCAST)
    machine.set_state(2, ConversationStep.REPORT_BUG)

    assert machine.take_state(1).step is ConversationStep.BROADCAST
    assert machine.has_state(2)
    assert not machine.has_state(1)


def test_concurrent_takes_hand_the_step_to_one_caller() -> None:
    machine = ConversationStateMachine()
    machine.set_state(7, ConversationStep.SEND_NOTIFICATION)
    start = threading.Barrier(8)
    taken = []

    def _worker() -> None:
        start.wait()
        taken.append(machine.take_state(7))

    threads = [threading.Thread(target=_worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len([state for state in taken if state is not None]) == 1


def test_only_bug_reports_are_open_to_everyone() -> None:
    open_steps = [step for step in ConversationStep if not step.admin_only]

    assert open_steps == [ConversationStep.REPORT_BUG]
