"""Session store: the single writer of wallet session state.

``transition(state, event)`` is a pure, total function driven by an
explicit table. An event that is not valid in the current state returns
the state unchanged; late results from an abandoned session must never
fault the current one.

The store also keeps a session epoch. Every ``Disconnect`` starts a new
epoch; async work records the epoch it was issued under and dispatches
with it, so results that outlive their session are discarded.
"""

import logging
from dataclasses import replace
from typing import Callable, Optional

from walletsdk.errors import ErrorRecord
from walletsdk.session.state import (
    INITIAL_STATE,
    BalanceFailed,
    BalanceRequested,
    BalanceUpdated,
    Balances,
    ChainChanged,
    ConnectFailed,
    Connected,
    Connecting,
    ConnectRequested,
    ConnectSucceeded,
    Disconnect,
    Disconnected,
    ErrorRaised,
    Event,
    SendFailed,
    SendRequested,
    SessionState,
    TransactionReconciled,
    TransactionSubmitted,
)

logger = logging.getLogger(__name__)

Listener = Callable[[SessionState, Event], None]


def _surface(state: SessionState, error: ErrorRecord) -> Optional[ErrorRecord]:
    # User rejections never reach the visible error slot
    return error if error.surfaced else state.last_error


# ======================
# Transition handlers
# ======================

def _on_connect_requested(state: SessionState, event: ConnectRequested) -> SessionState:
    if not isinstance(state.connection, Disconnected):
        return state
    return replace(state, connection=Connecting(), last_error=None)


def _on_connect_succeeded(state: SessionState, event: ConnectSucceeded) -> SessionState:
    if isinstance(state.connection, Connected):
        return state
    return replace(
        state,
        connection=Connected(
            address=event.address,
            chain_id=event.chain_id,
            provider=event.provider,
        ),
        last_error=None,
    )


def _on_connect_failed(state: SessionState, event: ConnectFailed) -> SessionState:
    if not isinstance(state.connection, Connecting):
        return state
    return replace(
        state,
        connection=Disconnected(),
        last_error=_surface(state, event.error),
    )


def _on_disconnect(state: SessionState, event: Disconnect) -> SessionState:
    return INITIAL_STATE


def _on_balance_requested(state: SessionState, event: BalanceRequested) -> SessionState:
    return replace(state, loading_balance=True)


def _on_balance_updated(state: SessionState, event: BalanceUpdated) -> SessionState:
    return replace(
        state,
        balances=Balances(
            native=event.native,
            token=event.token,
            portfolio_value=event.portfolio_value,
        ),
        loading_balance=False,
    )


def _on_balance_failed(state: SessionState, event: BalanceFailed) -> SessionState:
    return replace(
        state,
        loading_balance=False,
        last_error=_surface(state, event.error),
    )


def _on_chain_changed(state: SessionState, event: ChainChanged) -> SessionState:
    return replace(state, connection=replace(state.connection, chain_id=event.chain_id))


def _on_send_requested(state: SessionState, event: SendRequested) -> SessionState:
    return replace(state, sending_transaction=True, last_error=None)


def _on_send_failed(state: SessionState, event: SendFailed) -> SessionState:
    return replace(
        state,
        sending_transaction=False,
        last_error=_surface(state, event.error),
    )


def _on_transaction_submitted(state: SessionState, event: TransactionSubmitted) -> SessionState:
    record = event.record
    if state.find_transaction(record.id) is not None:
        return state
    return replace(
        state,
        transactions=(record,) + state.transactions,
        pending_hashes=state.pending_hashes | {record.id},
        sending_transaction=False,
    )


def _on_transaction_reconciled(state: SessionState, event: TransactionReconciled) -> SessionState:
    # Only a pending record can settle, and only once
    if event.id not in state.pending_hashes or not event.status.is_terminal:
        return state
    transactions = tuple(
        replace(
            tx,
            status=event.status,
            gas_used=event.gas_used,
            block_number=event.block_number,
        )
        if tx.id == event.id
        else tx
        for tx in state.transactions
    )
    return replace(
        state,
        transactions=transactions,
        pending_hashes=state.pending_hashes - {event.id},
    )


def _on_error_raised(state: SessionState, event: ErrorRaised) -> SessionState:
    return replace(state, last_error=_surface(state, event.error))


# event type -> (handler, requires an active session)
TRANSITIONS: dict[type, tuple[Callable[[SessionState, Event], SessionState], bool]] = {
    ConnectRequested: (_on_connect_requested, False),
    ConnectSucceeded: (_on_connect_succeeded, False),
    ConnectFailed: (_on_connect_failed, False),
    Disconnect: (_on_disconnect, False),
    BalanceRequested: (_on_balance_requested, True),
    BalanceUpdated: (_on_balance_updated, True),
    BalanceFailed: (_on_balance_failed, True),
    ChainChanged: (_on_chain_changed, True),
    SendRequested: (_on_send_requested, True),
    SendFailed: (_on_send_failed, True),
    TransactionSubmitted: (_on_transaction_submitted, True),
    TransactionReconciled: (_on_transaction_reconciled, True),
    ErrorRaised: (_on_error_raised, False),
}


def transition(state: SessionState, event: Event) -> SessionState:
    """Apply one event to a state.

    Returns:
        The next state, or ``state`` itself when the event does not apply
    """
    entry = TRANSITIONS.get(type(event))
    if entry is None:
        logger.warning(f"Ignoring unknown session event {type(event).__name__}")
        return state

    handler, needs_session = entry
    if needs_session and not isinstance(state.connection, Connected):
        return state
    return handler(state, event)


class SessionStore:
    """Holds the current SessionState and applies events to it.

    Example:
        store = SessionStore()
        dispose = store.subscribe(lambda state, event: render(state))
        store.dispatch(ConnectRequested())
    """

    def __init__(self, state: SessionState = INITIAL_STATE):
        self._state = state
        self._epoch = 0
        self._listeners: list[Listener] = []

    @property
    def state(self) -> SessionState:
        """Current snapshot."""
        return self._state

    @property
    def epoch(self) -> int:
        """Generation counter; bumped by every Disconnect."""
        return self._epoch

    def dispatch(self, event: Event, epoch: Optional[int] = None) -> bool:
        """Apply an event.

        Args:
            event: Event to apply
            epoch: Epoch the event's work was issued under; a mismatch
                means the session it belongs to is gone

        Returns:
            True if the state changed
        """
        if epoch is not None and epoch != self._epoch:
            logger.debug(
                f"Dropping stale {type(event).__name__} (epoch {epoch}, current {self._epoch})"
            )
            return False

        previous = self._state
        self._state = transition(previous, event)
        if isinstance(event, Disconnect):
            self._epoch += 1

        changed = self._state is not previous
        if changed:
            for listener in list(self._listeners):
                try:
                    listener(self._state, event)
                except Exception as e:
                    logger.error(f"Session listener failed on {type(event).__name__}: {e}")
        return changed

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called after every state change.

        Returns:
            A disposer that unregisters the listener
        """
        self._listeners.append(listener)

        def dispose() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return dispose

    def reset(self) -> None:
        """Return to the initial state (same as dispatching Disconnect)."""
        self.dispatch(Disconnect())
